# Overview: Flask API routes for goods received from suppliers.

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth, require_permission
from ..services import inventory_service, purchase_service
from ..validation import NotFoundError, ValidationError

purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.get("")
@require_auth
@require_permission("VIEW_STOCK")
def list_purchases_route():
    movements = inventory_service.list_movements(
        movement_type="PURCHASE",
        product_id=request.args.get("product_id", type=int),
        limit=request.args.get("limit", default=50, type=int),
    )
    return {"items": [m.to_dict() for m in movements], "count": len(movements)}


@purchases_bp.post("")
@require_auth
@require_permission("REGISTER_PURCHASE")
def register_purchase_route():
    """
    Body: {"product_id", "quantity", "supplier_id"?, "unit_cost_cents"?, "payment_method"?}

    Stock entry and cash OUTFLOW are committed together.
    """
    data = request.get_json(silent=True) or {}
    if not data.get("product_id"):
        return {"error": "product_id required"}, 400

    try:
        movement = purchase_service.register_purchase(
            product_id=data["product_id"],
            quantity=data.get("quantity"),
            user_id=g.current_user.id,
            supplier_id=data.get("supplier_id"),
            unit_cost_cents=data.get("unit_cost_cents"),
            payment_method=data.get("payment_method") or "cash",
        )
        return {"movement": movement.to_dict()}, 201
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to register purchase")
        return {"error": "Internal server error"}, 500
