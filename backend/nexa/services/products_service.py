# backend/nexa/services/products_service.py
"""
Products Service

Products are never hard-deleted: sale items, stock movements and invoices keep
pointing at them. delete_product deactivates, which also removes the product
from the register's catalog lookup.

stock_qty is NOT writable here. Stock changes only through sales, purchases and
adjustments so every change has a movement behind it. The initial quantity on
create is the one exception, and it is recorded as an ADJUST_IN movement.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import Product
from ..validation import ConflictError, NotFoundError
from .inventory_service import record_movement

PRODUCT_MUTABLE_FIELDS = {
    "name", "description", "sku", "barcode", "category", "unit",
    "price_cents", "cost_cents", "min_stock", "ncm", "cfop", "cst", "is_active",
}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _ensure_unique_codes(patch: dict, exclude_id: int | None = None) -> None:
    for field in ("sku", "barcode"):
        value = patch.get(field)
        if not value:
            continue
        q = db.session.query(Product).filter(getattr(Product, field) == value)
        if exclude_id is not None:
            q = q.filter(Product.id != exclude_id)
        if q.first():
            raise ConflictError(f"{field} already exists: {value}")


def list_products(
    *,
    search: str | None = None,
    include_inactive: bool = False,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Product listing for the back office, with optional pagination.

    Unlike catalog lookup, this matches partial SKU and barcode too and can
    include inactive products.
    """
    base_query = db.session.query(Product)
    if not include_inactive:
        base_query = base_query.filter(Product.is_active.is_(True))
    if search:
        like = f"%{search.strip()}%"
        base_query = base_query.filter(or_(
            Product.name.ilike(like),
            Product.sku.ilike(like),
            Product.barcode.ilike(like),
        ))
    base_query = base_query.order_by(Product.name.asc(), Product.id.asc())

    if page is None:
        products = base_query.all()
        return {
            "items": [p.to_dict() for p in products],
            "count": len(products),
        }

    per_page = min(per_page or 20, 100)
    page = max(page, 1)

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    products = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def get_product(product_id: int) -> Product:
    p = db.session.get(Product, product_id)
    if not p:
        raise NotFoundError("Product not found")
    return p


def create_product(*, patch: dict, user_id: int, initial_stock: int = 0) -> dict:
    """
    Create a product from a validated patch dict.

    Raises:
        ConflictError: sku or barcode already used by another product
    """
    _ensure_unique_codes(patch)

    p = Product(created_by_user_id=user_id, stock_qty=initial_stock)
    apply_product_patch(p, patch)
    db.session.add(p)
    db.session.flush()

    if initial_stock > 0:
        record_movement(
            product=p,
            movement_type="ADJUST_IN",
            quantity_delta=initial_stock,
            user_id=user_id,
            reason="Estoque inicial",
        )

    db.session.commit()
    current_app.logger.info("Product %s created (%s) by user %s", p.id, p.name, user_id)
    return p.to_dict()


def update_product(*, product_id: int, patch: dict) -> dict:
    p = get_product(product_id)
    _ensure_unique_codes(patch, exclude_id=product_id)
    apply_product_patch(p, patch)
    db.session.commit()
    return p.to_dict()


def delete_product(*, product_id: int, user_id: int) -> bool:
    """Soft-delete. Returns False if the product does not exist."""
    p = db.session.get(Product, product_id)
    if not p:
        return False

    if p.is_active:
        p.is_active = False
        current_app.logger.info("Product %s deactivated by user %s", product_id, user_id)

    db.session.commit()
    return True
