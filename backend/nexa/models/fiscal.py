from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow

INVOICE_STATUSES = ("pendente", "autorizada", "rejeitada", "cancelada")


class Invoice(db.Model):
    """
    Fiscal document (NFC-e) for a finalized sale.

    STATE MACHINE:
        pendente -> autorizada | rejeitada
        autorizada -> cancelada   (only within the cancellation window)
    rejeitada and cancelada are terminal. A correction letter is recorded in
    InvoiceCorrection and never changes status.

    number and series stay NULL until the document is authorized.
    reserved_number is taken on the first emit attempt and reused by every
    retry of the same pendente document.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("series", "number", name="uq_invoices_series_number"),
        db.Index("ix_invoices_sale_status", "sale_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    type = db.Column(db.String(8), nullable=False, default="nfce")

    number = db.Column(db.Integer, nullable=True)
    series = db.Column(db.Integer, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="pendente", index=True)
    access_key = db.Column(db.String(44), nullable=True, unique=True)
    protocol = db.Column(db.String(32), nullable=True)
    rejection_reason = db.Column(db.String(255), nullable=True)
    xml = db.Column(db.Text, nullable=True)
    environment = db.Column(db.String(16), nullable=False, default="homologacao")

    # Number held for this document across transport retries
    reserved_number = db.Column(db.Integer, nullable=True)
    # Set while one request is talking to the authority for this invoice
    emit_token = db.Column(db.String(32), nullable=True)
    emit_started_at = db.Column(db.DateTime(timezone=True), nullable=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    authorized_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    sale = db.relationship("Sale", backref=db.backref("invoices", lazy=True))
    corrections = db.relationship(
        "InvoiceCorrection",
        backref="invoice",
        lazy=True,
        order_by="InvoiceCorrection.sequence",
    )

    def to_dict(self, include_xml: bool = False) -> dict:
        data = {
            "id": self.id,
            "sale_id": self.sale_id,
            "sale_number": self.sale.sale_number if self.sale else None,
            "type": self.type,
            "number": self.number,
            "series": self.series,
            "status": self.status,
            "access_key": self.access_key,
            "protocol": self.protocol,
            "rejection_reason": self.rejection_reason,
            "environment": self.environment,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "authorized_at": to_utc_z(self.authorized_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
            "corrections": [c.to_dict() for c in self.corrections],
        }
        if include_xml:
            data["xml"] = self.xml
        return data


class InvoiceCorrection(db.Model):
    """Correction letter (CC-e) registered against an authorized invoice."""
    __tablename__ = "invoice_corrections"
    __table_args__ = (
        db.UniqueConstraint("invoice_id", "sequence", name="uq_invoice_corrections_invoice_seq"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    sequence = db.Column(db.Integer, nullable=False)
    text = db.Column(db.Text, nullable=False)
    protocol = db.Column(db.String(32), nullable=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "sequence": self.sequence,
            "text": self.text,
            "protocol": self.protocol,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
        }
