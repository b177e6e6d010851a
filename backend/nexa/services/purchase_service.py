# Overview: Service-layer operations for goods received from suppliers.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import PAYMENT_METHODS, Product, StockMovement, Supplier
from ..validation import NotFoundError, ValidationError, coerce_int
from .concurrency import run_in_write_transaction
from .finance_service import append_movement
from .inventory_service import increment_stock, record_movement


def register_purchase(
    *,
    product_id: int,
    quantity,
    user_id: int,
    supplier_id: int | None = None,
    unit_cost_cents=None,
    payment_method: str = "cash",
) -> StockMovement:
    """
    Receive goods: stock entry, PURCHASE movement and OUTFLOW ledger entry in
    one transaction.

    unit_cost_cents defaults to the product's registered cost. A purchase with
    zero total cost (e.g., a free sample) moves stock but writes no OUTFLOW.
    """
    quantity = coerce_int(quantity, "quantity")
    if quantity <= 0:
        raise ValidationError("quantity must be > 0")
    if unit_cost_cents is not None:
        unit_cost_cents = coerce_int(unit_cost_cents, "unit_cost_cents")
        if unit_cost_cents < 0:
            raise ValidationError("unit_cost_cents must be >= 0")
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")

    def _op():
        product = db.session.get(Product, product_id)
        if not product:
            raise NotFoundError("Product not found")

        supplier = None
        if supplier_id is not None:
            supplier = db.session.get(Supplier, supplier_id)
            if not supplier:
                raise NotFoundError("Supplier not found")

        unit_cost = unit_cost_cents if unit_cost_cents is not None else product.cost_cents
        increment_stock(product.id, quantity)

        movement = record_movement(
            product=product,
            movement_type="PURCHASE",
            quantity_delta=quantity,
            user_id=user_id,
            reason=f"Compra - {supplier.name}" if supplier else "Compra",
            supplier_id=supplier.id if supplier else None,
            unit_cost_cents=unit_cost,
        )
        db.session.flush()

        total_cost = quantity * unit_cost
        if total_cost > 0:
            append_movement(
                movement_type="OUTFLOW",
                amount_cents=total_cost,
                description=f"Compra: {product.name}",
                user_id=user_id,
                payment_method=payment_method,
                reference_type="purchase",
                reference_id=movement.id,
            )

        return movement

    movement = run_in_write_transaction(_op)
    current_app.logger.info(
        "Purchase of %s unit(s) of product %s registered by user %s",
        quantity, product_id, user_id,
    )
    return movement
