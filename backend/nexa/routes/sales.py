# Overview: Flask API routes for sales; parses input and returns JSON responses.

# backend/nexa/routes/sales.py
"""Sales API routes with permission enforcement"""

from flask import Blueprint, Response, current_app, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..services import receipt_service, sales_service, settings_service
from ..services.sales_service import (
    IdempotencyConflictError,
    SaleValidationError,
    StockConflictError,
)
from ..time_utils import parse_iso_datetime
from ..validation import NotFoundError

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("/finalize")
@require_auth
@require_permission("CREATE_SALE")
def finalize_sale_route():
    """
    Commit a cart as a sale (one transaction).

    Body:
        {
          "items": [{"product_id": 1, "quantity": 2, "unit_price_cents": 1000}],
          "payment_method": "cash" | "card" | "pix",
          "discount_cents": 0,
          "subtotal_cents": 2000,      (optional, checked against items)
          "total_cents": 2000,         (optional, checked)
          "customer_name": "...", "customer_cpf": "...", "notes": "...",
          "idempotency_key": "..."     (or Idempotency-Key header)
        }

    Returns:
        201 {"sale": {...}, "replayed": false}
        200 {"sale": {...}, "replayed": true} when the key was already committed
        400 validation error, nothing written
        409 stock conflict with per-product details, nothing written
        422 idempotency key already committed with a different payload
    """
    data = request.get_json(silent=True) or {}
    idempotency_key = data.get("idempotency_key") or request.headers.get("Idempotency-Key")

    try:
        result = sales_service.finalize_sale(
            user_id=g.current_user.id,
            items=data.get("items"),
            payment_method=data.get("payment_method"),
            discount_cents=data.get("discount_cents", 0),
            subtotal_cents=data.get("subtotal_cents"),
            total_cents=data.get("total_cents"),
            customer_name=data.get("customer_name"),
            customer_cpf=data.get("customer_cpf"),
            notes=data.get("notes"),
            idempotency_key=idempotency_key,
        )
    except SaleValidationError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except StockConflictError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except IdempotencyConflictError as e:
        return jsonify({"error": str(e), "details": e.details}), 422
    except Exception:
        current_app.logger.exception("Failed to finalize sale")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({
        "sale": result.sale.to_dict(include_items=True),
        "replayed": result.replayed,
    }), (200 if result.replayed else 201)


@sales_bp.get("")
@require_auth
@require_permission("VIEW_SALES")
def list_sales_route():
    try:
        start = parse_iso_datetime(request.args.get("start"))
        end = parse_iso_datetime(request.args.get("end"))
    except ValueError:
        return jsonify({"error": "start/end must be ISO-8601 datetimes"}), 400

    sales = sales_service.list_sales(
        start=start,
        end=end,
        payment_method=request.args.get("payment_method"),
        limit=request.args.get("limit", default=100, type=int),
    )
    return jsonify({"items": [s.to_dict() for s in sales], "count": len(sales)})


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_permission("VIEW_SALES")
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    data = sale.to_dict(include_items=True)
    data["invoices"] = [inv.to_dict() for inv in sale.invoices]
    return jsonify({"sale": data})


@sales_bp.get("/by-key/<string:idempotency_key>")
@require_auth
@require_permission("CREATE_SALE")
def get_sale_by_key_route(idempotency_key: str):
    """
    Resolve a finalization whose response was lost (client timeout).

    404 means the sale was never committed and the cart may be resubmitted
    with the same key.
    """
    sale = sales_service.get_sale_by_key(idempotency_key)
    if sale is None:
        return jsonify({"error": "No sale for this key", "committed": False}), 404
    return jsonify({"sale": sale.to_dict(include_items=True), "committed": True})


@sales_bp.get("/<int:sale_id>/receipt")
@require_auth
@require_permission("VIEW_SALES")
def receipt_route(sale_id: int):
    """Plain-text receipt. ?layout=compact (default, 40 columns) or report."""
    layout = request.args.get("layout", "compact")
    if layout not in receipt_service.LAYOUTS:
        return jsonify({"error": f"layout must be one of: {', '.join(receipt_service.LAYOUTS)}"}), 400

    try:
        sale = sales_service.get_sale(sale_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404

    text = receipt_service.render_receipt(sale, settings_service.get_company(), layout=layout)
    return Response(text, content_type="text/plain; charset=utf-8")
