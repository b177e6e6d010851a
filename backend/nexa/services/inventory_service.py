# Overview: Service-layer operations for stock; all stock_qty writes go through here.

"""
Stock Invariants (authoritative)

- products.stock_qty is never negative.
- stock_qty is only changed by the conditional UPDATEs below, executed by the
  database: "stock_qty = stock_qty - :qty WHERE stock_qty >= :qty". Code never
  reads the quantity, computes a new value and writes it back, because two
  concurrent sales would both read the same number.
- Every change appends a StockMovement in the same transaction.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..models import Product, StockMovement
from ..validation import NotFoundError, ValidationError, coerce_int
from .concurrency import run_in_write_transaction

ADJUSTMENT_TYPES = {"in": "ADJUST_IN", "out": "ADJUST_OUT"}


class InsufficientStockError(ValueError):
    """Raised when a decrement would drive stock negative."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def decrement_stock(product_id: int, quantity: int) -> bool:
    """
    Atomically take quantity units out of stock.

    Returns False, changing nothing, if fewer than quantity units are on hand.
    Must run inside the caller's transaction.
    """
    stmt = (
        update(Product)
        .where(Product.id == product_id, Product.stock_qty >= quantity)
        .values(stock_qty=Product.stock_qty - quantity)
        .execution_options(synchronize_session=False)
    )
    return db.session.execute(stmt).rowcount == 1


def increment_stock(product_id: int, quantity: int) -> bool:
    stmt = (
        update(Product)
        .where(Product.id == product_id)
        .values(stock_qty=Product.stock_qty + quantity)
        .execution_options(synchronize_session=False)
    )
    return db.session.execute(stmt).rowcount == 1


def current_stock(product_id: int) -> int | None:
    return db.session.query(Product.stock_qty).filter(Product.id == product_id).scalar()


def record_movement(
    *,
    product: Product,
    movement_type: str,
    quantity_delta: int,
    user_id: int,
    reason: str | None = None,
    supplier_id: int | None = None,
    unit_cost_cents: int | None = None,
    reference_type: str | None = None,
    reference_id: int | None = None,
) -> StockMovement:
    movement = StockMovement(
        product_id=product.id,
        product_name=product.name,
        type=movement_type,
        quantity_delta=quantity_delta,
        reason=reason,
        supplier_id=supplier_id,
        unit_cost_cents=unit_cost_cents,
        reference_type=reference_type,
        reference_id=reference_id,
        user_id=user_id,
    )
    db.session.add(movement)
    return movement


def adjust_stock(
    *,
    product_id: int,
    direction: str,
    quantity,
    user_id: int,
    reason: str | None = None,
) -> StockMovement:
    """
    Manual stock entry ("in") or exit ("out").

    An exit larger than the stock on hand raises InsufficientStockError and
    writes nothing.
    """
    if direction not in ADJUSTMENT_TYPES:
        raise ValidationError("direction must be 'in' or 'out'")
    quantity = coerce_int(quantity, "quantity")
    if quantity <= 0:
        raise ValidationError("quantity must be > 0")

    def _op():
        product = db.session.get(Product, product_id)
        if not product:
            raise NotFoundError("Product not found")

        if direction == "in":
            increment_stock(product_id, quantity)
            delta = quantity
        else:
            if not decrement_stock(product_id, quantity):
                available = current_stock(product_id)
                raise InsufficientStockError(
                    "Insufficient stock for exit",
                    details={"product_id": product_id, "requested_quantity": quantity, "on_hand": available},
                )
            delta = -quantity

        movement = record_movement(
            product=product,
            movement_type=ADJUSTMENT_TYPES[direction],
            quantity_delta=delta,
            user_id=user_id,
            reason=reason,
        )
        db.session.flush()
        return movement

    movement = run_in_write_transaction(_op)
    current_app.logger.info(
        "Stock %s of %s unit(s) for product %s by user %s",
        direction, quantity, product_id, user_id,
    )
    return movement


def list_movements(
    *,
    movement_type: str | None = None,
    product_id: int | None = None,
    limit: int = 50,
) -> list[StockMovement]:
    q = db.session.query(StockMovement)
    if movement_type:
        q = q.filter(StockMovement.type == movement_type)
    if product_id:
        q = q.filter(StockMovement.product_id == product_id)
    return q.order_by(StockMovement.created_at.desc(), StockMovement.id.desc()).limit(min(limit, 500)).all()


def list_low_stock() -> list[Product]:
    return (
        db.session.query(Product)
        .filter(Product.is_active.is_(True), Product.stock_qty <= Product.min_stock)
        .order_by(Product.stock_qty.asc(), Product.name.asc())
        .all()
    )
