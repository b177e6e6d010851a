# Overview: Flask API routes for customers and suppliers.

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth, require_permission
from ..models import Customer, Supplier
from ..services import party_service
from ..validation import ConflictError, NotFoundError, ValidationError

parties_bp = Blueprint("parties", __name__, url_prefix="/api")


def _save(model, party_id: int | None = None):
    payload = request.get_json(silent=True)
    try:
        if party_id is None:
            party = party_service.create_party(model, payload)
            return party.to_dict(), 201
        return party_service.update_party(model, party_id, payload).to_dict(), 200
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to save %s", model.__name__)
        return {"error": "Internal server error"}, 500


def _delete(model, party_id: int):
    try:
        party_service.delete_party(model, party_id, g.current_user.id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"message": f"{model.__name__} deleted"}, 200


def _list(model):
    parties = party_service.list_parties(model, search=request.args.get("q"))
    return {"items": [p.to_dict() for p in parties], "count": len(parties)}


# Customers

@parties_bp.get("/customers")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def list_customers():
    return _list(Customer)


@parties_bp.post("/customers")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def create_customer():
    return _save(Customer)


@parties_bp.patch("/customers/<int:customer_id>")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def update_customer(customer_id: int):
    return _save(Customer, customer_id)


@parties_bp.delete("/customers/<int:customer_id>")
@require_auth
@require_permission("DELETE_CUSTOMERS")
def delete_customer(customer_id: int):
    return _delete(Customer, customer_id)


# Suppliers

@parties_bp.get("/suppliers")
@require_auth
@require_permission("VIEW_SUPPLIERS")
def list_suppliers():
    return _list(Supplier)


@parties_bp.post("/suppliers")
@require_auth
@require_permission("MANAGE_SUPPLIERS")
def create_supplier():
    return _save(Supplier)


@parties_bp.patch("/suppliers/<int:supplier_id>")
@require_auth
@require_permission("MANAGE_SUPPLIERS")
def update_supplier(supplier_id: int):
    return _save(Supplier, supplier_id)


@parties_bp.delete("/suppliers/<int:supplier_id>")
@require_auth
@require_permission("MANAGE_SUPPLIERS")
def delete_supplier(supplier_id: int):
    return _delete(Supplier, supplier_id)
