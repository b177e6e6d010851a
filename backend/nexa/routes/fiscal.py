# Overview: Flask API routes for fiscal documents (NFC-e).

# backend/nexa/routes/fiscal.py
"""
Fiscal routes.

Reading requires VIEW_INVOICES (cashiers included). POST /api/fiscal/nfe
dispatches on "action"; every action is checked for an elevated role inside
fiscal_service, and the route maps the outcome to HTTP:

    400  bad request, wrong state, expired window, short correction text
    403  caller is not admin/manager
    404  unknown sale/invoice
    409  sale already has an authorized invoice, or another emit for it is
         still talking to the authority
    502  fiscal authority unreachable (invoice stays pendente)
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..services import fiscal_service
from ..services.fiscal_gateway import FiscalGatewayError
from ..services.fiscal_service import (
    FiscalError,
    InvoiceAlreadyIssuedError,
    InvoiceEmissionInProgressError,
)
from ..services.permission_service import PermissionDeniedError
from ..validation import NotFoundError, ValidationError, coerce_int

fiscal_bp = Blueprint("fiscal", __name__, url_prefix="/api/fiscal")


@fiscal_bp.get("/invoices")
@require_auth
@require_permission("VIEW_INVOICES")
def list_invoices_route():
    invoices = fiscal_service.list_invoices(
        status=request.args.get("status"),
        sale_id=request.args.get("sale_id", type=int),
        limit=request.args.get("limit", default=100, type=int),
    )
    return jsonify({"items": [inv.to_dict() for inv in invoices], "count": len(invoices)})


@fiscal_bp.get("/invoices/<int:invoice_id>")
@require_auth
@require_permission("VIEW_INVOICES")
def get_invoice_route(invoice_id: int):
    try:
        invoice = fiscal_service.get_invoice(invoice_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"invoice": invoice.to_dict(include_xml=True)})


def _emit(data: dict):
    sale_id = coerce_int(data.get("sale_id"), "sale_id")
    invoice = fiscal_service.emit_invoice(sale_id, g.current_user.id)
    return {
        "status": invoice.status,
        "invoice_id": invoice.id,
        "number": invoice.number,
        "series": invoice.series,
        "access_key": invoice.access_key,
        "protocol": invoice.protocol,
        "rejection_reason": invoice.rejection_reason,
        "message": (
            "NFC-e emitida em ambiente de HOMOLOGACAO (sem valor fiscal)"
            if invoice.status == "autorizada" and invoice.environment == "homologacao"
            else f"NFC-e {invoice.status}"
        ),
    }


def _cancel(data: dict):
    invoice_id = coerce_int(data.get("invoice_id"), "invoice_id")
    invoice = fiscal_service.cancel_invoice(invoice_id, g.current_user.id, reason=data.get("reason"))
    return {"status": invoice.status, "invoice_id": invoice.id, "message": "NFC-e cancelada"}


def _correct(data: dict):
    invoice_id = coerce_int(data.get("invoice_id"), "invoice_id")
    correction = fiscal_service.register_correction(
        invoice_id, g.current_user.id, data.get("correction_text"),
    )
    invoice = fiscal_service.get_invoice(invoice_id)
    return {
        "status": invoice.status,
        "invoice_id": invoice.id,
        "sequence": correction.sequence,
        "protocol": correction.protocol,
        "message": "CC-e registrada",
    }


ACTIONS = {
    "emit": _emit,
    "cancel": _cancel,
    "correction": _correct,
}


@fiscal_bp.post("/nfe")
@require_auth
def nfe_route():
    """Body: {"action": "emit"|"cancel"|"correction", "sale_id" | "invoice_id", "correction_text"?}"""
    data = request.get_json(silent=True) or {}
    handler = ACTIONS.get(data.get("action") or "emit")
    if handler is None:
        return jsonify({"error": f"Unknown action: {data.get('action')}"}), 400

    try:
        return jsonify(handler(data)), 200
    except PermissionDeniedError as e:
        return jsonify({"error": "Permission denied", "message": str(e)}), 403
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except (InvoiceAlreadyIssuedError, InvoiceEmissionInProgressError) as e:
        return jsonify({"error": str(e), "code": e.__class__.__name__}), 409
    except FiscalError as e:
        return jsonify({"error": str(e), "code": e.__class__.__name__}), 400
    except FiscalGatewayError as e:
        return jsonify({"error": "Fiscal authority unavailable", "message": str(e)}), 502
    except Exception:
        current_app.logger.exception("Fiscal action %s failed", data.get("action"))
        return jsonify({"error": "Internal server error"}), 500
