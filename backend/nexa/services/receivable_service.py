# Overview: Accounts receivable (store credit / installments).

from __future__ import annotations

from datetime import date

from flask import current_app

from ..extensions import db
from ..models import AccountReceivable, Customer, Sale
from ..time_utils import utcnow
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    enforce_rules_receivable,
    validate_payload,
)
from .concurrency import run_in_write_transaction
from .finance_service import append_movement

RECEIVABLE_POLICY = ModelValidationPolicy(
    writable_fields={"description", "amount_cents", "due_date", "customer_id", "sale_id"},
    required_on_create={"description", "amount_cents", "due_date"},
)


def create_receivable(*, payload: dict, user_id: int) -> AccountReceivable:
    patch = validate_payload(
        model=AccountReceivable, payload=payload, policy=RECEIVABLE_POLICY, partial=False,
    )
    enforce_rules_receivable(patch)

    if patch.get("customer_id") and not db.session.get(Customer, patch["customer_id"]):
        raise NotFoundError("Customer not found")
    if patch.get("sale_id") and not db.session.get(Sale, patch["sale_id"]):
        raise NotFoundError("Sale not found")

    receivable = AccountReceivable(user_id=user_id, status="pending", **patch)
    db.session.add(receivable)
    db.session.commit()
    return receivable


def list_receivables(*, status: str | None = None, overdue: bool = False, today: date | None = None) -> list[AccountReceivable]:
    q = db.session.query(AccountReceivable)
    if status:
        q = q.filter(AccountReceivable.status == status)
    if overdue:
        today = today or utcnow().date()
        q = q.filter(AccountReceivable.status == "pending", AccountReceivable.due_date < today)
    return q.order_by(AccountReceivable.due_date.asc(), AccountReceivable.id.asc()).all()


def receive(receivable_id: int, *, user_id: int, payment_method: str | None = None) -> AccountReceivable:
    """
    Mark a receivable as received and record the INFLOW, atomically.

    Raises:
        NotFoundError: unknown receivable
        ConflictError: already received
    """
    def _op():
        receivable = db.session.get(AccountReceivable, receivable_id)
        if not receivable:
            raise NotFoundError("Receivable not found")
        if receivable.status != "pending":
            raise ConflictError("Receivable already received")

        receivable.status = "received"
        receivable.paid_date = utcnow().date()
        append_movement(
            movement_type="INFLOW",
            amount_cents=receivable.amount_cents,
            description=f"Recebimento - {receivable.description}",
            user_id=user_id,
            payment_method=payment_method,
            reference_type="receivable",
            reference_id=receivable.id,
        )
        return receivable

    receivable = run_in_write_transaction(_op)
    current_app.logger.info(
        "Receivable %s received (%s cents) by user %s",
        receivable_id, receivable.amount_cents, user_id,
    )
    return receivable
