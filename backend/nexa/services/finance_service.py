# Overview: Service-layer operations for the cash-flow ledger.

"""
Financial Ledger Invariants (authoritative)

- Append-only: movements are never updated or deleted.
- Movements are written inside the same DB transaction as the business event
  they record (sale, purchase, receivable settlement), so the ledger and the
  sales/stock history cannot diverge.
- amount_cents is always positive; the direction is the type.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func

from ..extensions import db
from ..models import FinancialMovement
from ..validation import ValidationError

MOVEMENT_TYPES = ("INFLOW", "OUTFLOW")


def append_movement(
    *,
    movement_type: str,
    amount_cents: int,
    description: str,
    user_id: int,
    payment_method: str | None = None,
    reference_type: str | None = None,
    reference_id: int | None = None,
) -> FinancialMovement:
    """Add a movement to the current transaction. The caller commits."""
    if movement_type not in MOVEMENT_TYPES:
        raise ValidationError(f"Unknown movement type: {movement_type}")
    if amount_cents <= 0:
        raise ValidationError("amount_cents must be > 0")

    movement = FinancialMovement(
        type=movement_type,
        amount_cents=amount_cents,
        description=description[:255],
        payment_method=payment_method,
        reference_type=reference_type,
        reference_id=reference_id,
        user_id=user_id,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def list_movements(
    *,
    movement_type: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = 100,
) -> list[FinancialMovement]:
    q = db.session.query(FinancialMovement)
    if movement_type:
        q = q.filter(FinancialMovement.type == movement_type)
    if start is not None:
        q = q.filter(FinancialMovement.created_at >= start)
    if end is not None:
        q = q.filter(FinancialMovement.created_at <= end)
    return (
        q.order_by(FinancialMovement.created_at.desc(), FinancialMovement.id.desc())
        .limit(min(limit, 1000))
        .all()
    )


def summarize(start: datetime | None = None, end: datetime | None = None) -> dict:
    """Inflow, outflow and balance over an optional [start, end] window."""
    q = db.session.query(
        FinancialMovement.type,
        func.coalesce(func.sum(FinancialMovement.amount_cents), 0),
    )
    if start is not None:
        q = q.filter(FinancialMovement.created_at >= start)
    if end is not None:
        q = q.filter(FinancialMovement.created_at <= end)

    totals = {row[0]: int(row[1]) for row in q.group_by(FinancialMovement.type).all()}
    inflow = totals.get("INFLOW", 0)
    outflow = totals.get("OUTFLOW", 0)
    return {
        "inflow_cents": inflow,
        "outflow_cents": outflow,
        "balance_cents": inflow - outflow,
    }
