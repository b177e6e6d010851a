from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class FinancialMovement(db.Model):
    """
    Cash-flow ledger entry.

    IMMUTABLE: append-only. Corrections are new entries, never updates.
    type is INFLOW (sales, receivables) or OUTFLOW (purchases).
    reference_type/reference_id point at the originating document.
    """
    __tablename__ = "financial_movements"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_financial_movements_amount_positive"),
        db.Index("ix_financial_movements_type_created", "type", "created_at"),
        db.Index("ix_financial_movements_reference", "reference_type", "reference_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(8), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(255), nullable=False)
    payment_method = db.Column(db.String(16), nullable=True)

    reference_type = db.Column(db.String(16), nullable=True)
    reference_id = db.Column(db.Integer, nullable=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "amount_cents": self.amount_cents,
            "description": self.description,
            "payment_method": self.payment_method,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
        }


class AccountReceivable(db.Model):
    """
    Amount owed to the store (store credit, installments).

    status: pending -> received. Receiving writes an INFLOW movement.
    """
    __tablename__ = "accounts_receivable"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_accounts_receivable_amount_positive"),
        db.Index("ix_accounts_receivable_status_due", "status", "due_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    description = db.Column(db.String(255), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    due_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="pending")
    paid_date = db.Column(db.Date, nullable=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id", ondelete="SET NULL"), nullable=True, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="SET NULL"), nullable=True, index=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    customer = db.relationship("Customer")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "description": self.description,
            "amount_cents": self.amount_cents,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "status": self.status,
            "paid_date": self.paid_date.isoformat() if self.paid_date else None,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "sale_id": self.sale_id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
        }
