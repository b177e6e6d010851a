# Overview: Flask API routes for the cash-flow ledger and accounts receivable.

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth, require_permission
from ..services import finance_service, receivable_service
from ..time_utils import parse_iso_datetime
from ..validation import ConflictError, NotFoundError, ValidationError

finance_bp = Blueprint("finance", __name__, url_prefix="/api")


def _date_range():
    return (
        parse_iso_datetime(request.args.get("start")),
        parse_iso_datetime(request.args.get("end")),
    )


@finance_bp.get("/finance/movements")
@require_auth
@require_permission("VIEW_FINANCE")
def list_movements_route():
    try:
        start, end = _date_range()
    except ValueError:
        return {"error": "start/end must be ISO-8601 datetimes"}, 400

    movements = finance_service.list_movements(
        movement_type=request.args.get("type"),
        start=start,
        end=end,
        limit=request.args.get("limit", default=100, type=int),
    )
    return {"items": [m.to_dict() for m in movements], "count": len(movements)}


@finance_bp.get("/finance/summary")
@require_auth
@require_permission("VIEW_FINANCE")
def summary_route():
    try:
        start, end = _date_range()
    except ValueError:
        return {"error": "start/end must be ISO-8601 datetimes"}, 400
    return finance_service.summarize(start=start, end=end)


@finance_bp.get("/receivables")
@require_auth
@require_permission("VIEW_FINANCE")
def list_receivables_route():
    receivables = receivable_service.list_receivables(
        status=request.args.get("status"),
        overdue=request.args.get("overdue") == "1",
    )
    return {"items": [r.to_dict() for r in receivables], "count": len(receivables)}


@finance_bp.post("/receivables")
@require_auth
@require_permission("MANAGE_RECEIVABLES")
def create_receivable_route():
    try:
        receivable = receivable_service.create_receivable(
            payload=request.get_json(silent=True),
            user_id=g.current_user.id,
        )
        return {"receivable": receivable.to_dict()}, 201
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to create receivable")
        return {"error": "Internal server error"}, 500


@finance_bp.post("/receivables/<int:receivable_id>/receive")
@require_auth
@require_permission("MANAGE_RECEIVABLES")
def receive_route(receivable_id: int):
    data = request.get_json(silent=True) or {}
    try:
        receivable = receivable_service.receive(
            receivable_id,
            user_id=g.current_user.id,
            payment_method=data.get("payment_method"),
        )
        return {"receivable": receivable.to_dict()}, 200
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to receive receivable %s", receivable_id)
        return {"error": "Internal server error"}, 500
