# Overview: Flask API routes for products and the register's catalog lookup.

# backend/nexa/routes/products.py
"""
Product management routes.

SECURITY: All routes require authentication.
- Read and lookup require VIEW_PRODUCTS
- Create/update require MANAGE_PRODUCTS
- Delete (deactivate) requires DELETE_PRODUCTS (admin, manager)
"""
from flask import Blueprint, current_app, g, request

from ..decorators import require_auth, require_permission
from ..models import Product
from ..services import catalog_service, products_service
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_rules_product,
    validate_payload,
)

PRODUCT_FIELDS = {
    "name", "description", "sku", "barcode", "category", "unit",
    "price_cents", "cost_cents", "min_stock", "ncm", "cfop", "cst", "is_active",
}

PRODUCT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_FIELDS | {"stock_qty"},
    required_on_create={"name", "price_cents"},
)

# stock_qty changes only through stock movements
PRODUCT_PATCH_POLICY = ModelValidationPolicy(writable_fields=PRODUCT_FIELDS)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_permission("VIEW_PRODUCTS")
def list_products():
    """
    Query params:
    - q: partial name, SKU or barcode
    - include_inactive: "1" to include deactivated products
    - page / per_page: optional pagination (per_page max 100)
    """
    return products_service.list_products(
        search=request.args.get("q"),
        include_inactive=request.args.get("include_inactive") == "1",
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )


@products_bp.get("/search")
@require_auth
@require_permission("VIEW_PRODUCTS")
def search_products():
    """Register lookup: active products by partial name or exact barcode/SKU."""
    products = catalog_service.search_catalog(request.args.get("q"))
    return {"items": [p.to_summary() for p in products], "count": len(products)}


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission("VIEW_PRODUCTS")
def get_product(product_id: int):
    try:
        return products_service.get_product(product_id).to_dict()
    except NotFoundError as e:
        return {"error": str(e)}, 404


@products_bp.post("")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def create_product():
    try:
        patch = validate_payload(
            model=Product,
            payload=request.get_json(silent=True),
            policy=PRODUCT_CREATE_POLICY,
            partial=False,
        )
        enforce_rules_product(patch)
        initial_stock = patch.pop("stock_qty", None) or 0
        return products_service.create_product(
            patch=patch, user_id=g.current_user.id, initial_stock=initial_stock,
        ), 201
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to create product")
        return {"error": "Internal server error"}, 500


@products_bp.patch("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def update_product(product_id: int):
    try:
        patch = validate_payload(
            model=Product,
            payload=request.get_json(silent=True),
            policy=PRODUCT_PATCH_POLICY,
            partial=True,
        )
        enforce_rules_product(patch)
        return products_service.update_product(product_id=product_id, patch=patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to update product")
        return {"error": "Internal server error"}, 500


@products_bp.delete("/<int:product_id>")
@require_auth
@require_permission("DELETE_PRODUCTS")
def delete_product(product_id: int):
    if not products_service.delete_product(product_id=product_id, user_id=g.current_user.id):
        return {"error": "Product not found"}, 404
    return {"message": "Product deactivated"}, 200
