from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow

PAYMENT_METHODS = ("cash", "card", "pix")


class Sale(db.Model):
    """
    Finalized sale header.

    Created exactly once, by sales_service.finalize_sale, in the same
    transaction as its items, the stock decrements and the INFLOW movement.
    There is no DRAFT state on the server: the cart lives on the client
    until finalization.

    customer_name / customer_cpf are a free-text snapshot, not a foreign key,
    so walk-in customers need no registration.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.CheckConstraint("total_cents = subtotal_cents - discount_cents", name="ck_sales_total"),
        db.CheckConstraint("discount_cents >= 0", name="ck_sales_discount_non_negative"),
        db.Index("ix_sales_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_number = db.Column(db.Integer, nullable=False, unique=True)

    customer_name = db.Column(db.String(255), nullable=True)
    customer_cpf = db.Column(db.String(14), nullable=True)

    subtotal_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)

    payment_method = db.Column(db.String(16), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default="FINALIZED", index=True)
    notes = db.Column(db.Text, nullable=True)

    # Client-generated token; a resubmission with the same key returns this sale
    idempotency_key = db.Column(db.String(64), nullable=True, unique=True)
    # sha256 of the finalize payload; a reused key must carry the same one
    request_fingerprint = db.Column(db.String(64), nullable=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    user = db.relationship("User")
    items = db.relationship(
        "SaleItem",
        backref="sale",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="SaleItem.id",
    )

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "sale_number": self.sale_number,
            "customer_name": self.customer_name,
            "customer_cpf": self.customer_cpf,
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "payment_method": self.payment_method,
            "status": self.status,
            "notes": self.notes,
            "idempotency_key": self.idempotency_key,
            "user_id": self.user_id,
            "operator_name": (self.user.full_name or self.user.username) if self.user else None,
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """
    Immutable line of a finalized sale.

    product_id is a weak reference (nulled if the product is deleted);
    product_name and unit_price_cents are snapshots taken when the item
    was added to the cart.
    """
    __tablename__ = "sale_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sale_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True)
    product_name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    total_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "total_cents": self.total_cents,
            "created_at": to_utc_z(self.created_at),
        }
