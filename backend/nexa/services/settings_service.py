# Overview: Company (issuer) settings.

from __future__ import annotations

import re

from ..extensions import db
from ..models import COMPANY_FIELDS, CompanySettings
from ..validation import ModelValidationPolicy, ValidationError, validate_payload

COMPANY_POLICY = ModelValidationPolicy(
    writable_fields=set(COMPANY_FIELDS),
    required_on_create={"company_name"},
)


def get_company() -> CompanySettings | None:
    return db.session.query(CompanySettings).order_by(CompanySettings.id.asc()).first()


def upsert_company(payload: dict, *, user_id: int) -> CompanySettings:
    """Create the single settings row on first save, patch it afterwards."""
    company = get_company()
    patch = validate_payload(
        model=CompanySettings,
        payload=payload,
        policy=COMPANY_POLICY,
        partial=company is not None,
    )

    if "company_name" in patch and not patch["company_name"]:
        raise ValidationError("company_name cannot be blank")
    if patch.get("cnpj"):
        digits = re.sub(r"\D", "", patch["cnpj"])
        if len(digits) != 14:
            raise ValidationError("cnpj must have 14 digits")
        patch["cnpj"] = digits
    if patch.get("address_state"):
        patch["address_state"] = patch["address_state"].upper()

    if company is None:
        company = CompanySettings()
        db.session.add(company)
    for k, v in patch.items():
        setattr(company, k, v)
    company.updated_by_user_id = user_id

    db.session.commit()
    return company
