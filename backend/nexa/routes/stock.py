# Overview: Flask API routes for stock movements and low-stock listing.

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth, require_permission
from ..services import inventory_service
from ..services.inventory_service import InsufficientStockError
from ..validation import NotFoundError, ValidationError

stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


@stock_bp.get("/movements")
@require_auth
@require_permission("VIEW_STOCK")
def list_movements_route():
    movements = inventory_service.list_movements(
        movement_type=request.args.get("type"),
        product_id=request.args.get("product_id", type=int),
        limit=request.args.get("limit", default=50, type=int),
    )
    return {"items": [m.to_dict() for m in movements], "count": len(movements)}


@stock_bp.post("/movements")
@require_auth
@require_permission("ADJUST_STOCK")
def adjust_stock_route():
    """
    Manual entry or exit.

    Body: {"product_id": 1, "direction": "in"|"out", "quantity": 3, "reason": "..."}
    """
    data = request.get_json(silent=True) or {}
    if not data.get("product_id"):
        return {"error": "product_id required"}, 400

    try:
        movement = inventory_service.adjust_stock(
            product_id=data["product_id"],
            direction=data.get("direction"),
            quantity=data.get("quantity"),
            user_id=g.current_user.id,
            reason=data.get("reason"),
        )
        return {"movement": movement.to_dict()}, 201
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except InsufficientStockError as e:
        return {"error": str(e), "details": e.details}, 409
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return {"error": "Internal server error"}, 500


@stock_bp.get("/low")
@require_auth
@require_permission("VIEW_STOCK")
def low_stock_route():
    products = inventory_service.list_low_stock()
    return {"items": [p.to_summary() for p in products], "count": len(products)}
