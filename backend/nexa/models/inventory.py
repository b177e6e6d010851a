from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class StockMovement(db.Model):
    """
    Append-only history of stock changes.

    TYPES:
    - PURCHASE: goods received from a supplier (positive, carries unit cost)
    - ADJUST_IN: manual entry (positive)
    - ADJUST_OUT: manual exit, shrink, loss (negative)
    - SALE: decrement written by sale finalization (negative)

    quantity_delta is signed. The row is written in the same transaction as
    the conditional UPDATE of products.stock_qty it records.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_product_created", "product_id", "created_at"),
        db.Index("ix_stock_movements_type_created", "type", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Weak reference: history survives product deletion
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True)
    product_name = db.Column(db.String(255), nullable=False)

    type = db.Column(db.String(16), nullable=False)
    quantity_delta = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(255), nullable=True)

    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id", ondelete="SET NULL"), nullable=True, index=True)
    unit_cost_cents = db.Column(db.Integer, nullable=True)

    # Originating document (sale id for SALE rows)
    reference_type = db.Column(db.String(16), nullable=True)
    reference_id = db.Column(db.Integer, nullable=True, index=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    supplier = db.relationship("Supplier")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "type": self.type,
            "quantity_delta": self.quantity_delta,
            "reason": self.reason,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier.name if self.supplier else None,
            "unit_cost_cents": self.unit_cost_cents,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
        }
