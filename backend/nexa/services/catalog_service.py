# Overview: Product lookup for the register (name, barcode or SKU).

from __future__ import annotations

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import Product


def search_catalog(query: str | None, limit: int | None = None) -> list[Product]:
    """
    Active products whose name contains the query (case-insensitive), or whose
    barcode or SKU equals it exactly.

    A blank query returns nothing; the register shows an empty list instead of
    the whole catalog.
    """
    term = (query or "").strip()
    if not term:
        return []

    if limit is None:
        limit = current_app.config.get("CATALOG_SEARCH_LIMIT", 10)

    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return (
        db.session.query(Product)
        .filter(Product.is_active.is_(True))
        .filter(or_(
            Product.name.ilike(f"%{escaped}%", escape="\\"),
            Product.barcode == term,
            Product.sku == term,
        ))
        .order_by(Product.name.asc(), Product.id.asc())
        .limit(limit)
        .all()
    )
