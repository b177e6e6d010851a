from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow

COMPANY_FIELDS = (
    "company_name",
    "trade_name",
    "cnpj",
    "ie",
    "im",
    "phone",
    "email",
    "address_street",
    "address_number",
    "address_complement",
    "address_neighborhood",
    "address_city",
    "address_state",
    "address_zip",
)


class CompanySettings(db.Model):
    """
    Issuer data printed on receipts and used in fiscal access keys.

    Single row per installation.
    """
    __tablename__ = "company_settings"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    company_name = db.Column(db.String(255), nullable=False)
    trade_name = db.Column(db.String(255), nullable=True)
    cnpj = db.Column(db.String(18), nullable=True)
    ie = db.Column(db.String(32), nullable=True)
    im = db.Column(db.String(32), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address_street = db.Column(db.String(255), nullable=True)
    address_number = db.Column(db.String(16), nullable=True)
    address_complement = db.Column(db.String(120), nullable=True)
    address_neighborhood = db.Column(db.String(120), nullable=True)
    address_city = db.Column(db.String(120), nullable=True)
    address_state = db.Column(db.String(2), nullable=True)
    address_zip = db.Column(db.String(9), nullable=True)

    updated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def display_name(self) -> str:
        return self.trade_name or self.company_name

    def to_dict(self) -> dict:
        data = {field: getattr(self, field) for field in COMPANY_FIELDS}
        data.update({
            "id": self.id,
            "updated_by_user_id": self.updated_by_user_id,
            "updated_at": to_utc_z(self.updated_at),
        })
        return data
