# Overview: Customers and suppliers.

"""
Customer and supplier records.

Sales never reference a Customer row (they keep a free-text name/CPF snapshot),
so deleting a customer only detaches its receivables. Deleting a supplier
detaches the purchase movements that named it; the movement history stays.
"""

from __future__ import annotations

import re

from flask import current_app
from sqlalchemy import or_, update

from ..extensions import db
from ..models import AccountReceivable, Customer, StockMovement, Supplier
from ..validation import ConflictError, ModelValidationPolicy, NotFoundError, ValidationError, validate_payload

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "cpf", "email", "phone", "address", "city", "state", "zip_code", "notes"},
    required_on_create={"name"},
)

SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "cnpj", "contact_name", "email", "phone", "address", "city", "state", "notes"},
    required_on_create={"name"},
)

# model -> (policy, document field, digit count)
_PARTIES = {
    Customer: (CUSTOMER_POLICY, "cpf", 11),
    Supplier: (SUPPLIER_POLICY, "cnpj", 14),
}


def _normalize_document(patch: dict, field: str, digits: int) -> None:
    value = patch.get(field)
    if not value:
        return
    cleaned = re.sub(r"\D", "", value)
    if len(cleaned) != digits:
        raise ValidationError(f"{field} must have {digits} digits")
    patch[field] = cleaned


def _check_unique(model, field: str, value: str | None, exclude_id: int | None = None) -> None:
    if not value:
        return
    q = db.session.query(model).filter(getattr(model, field) == value)
    if exclude_id is not None:
        q = q.filter(model.id != exclude_id)
    if q.first():
        raise ConflictError(f"{field} already registered: {value}")


def list_parties(model, search: str | None = None) -> list:
    _, doc_field, _ = _PARTIES[model]
    q = db.session.query(model)
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(or_(model.name.ilike(like), getattr(model, doc_field).ilike(like)))
    return q.order_by(model.name.asc(), model.id.asc()).all()


def get_party(model, party_id: int):
    party = db.session.get(model, party_id)
    if not party:
        raise NotFoundError(f"{model.__name__} not found")
    return party


def create_party(model, payload: dict):
    policy, doc_field, digits = _PARTIES[model]
    patch = validate_payload(model=model, payload=payload, policy=policy, partial=False)
    if not patch.get("name"):
        raise ValidationError("name cannot be blank")
    _normalize_document(patch, doc_field, digits)
    _check_unique(model, doc_field, patch.get(doc_field))

    party = model(**patch)
    db.session.add(party)
    db.session.commit()
    return party


def update_party(model, party_id: int, payload: dict):
    policy, doc_field, digits = _PARTIES[model]
    party = get_party(model, party_id)
    patch = validate_payload(model=model, payload=payload, policy=policy, partial=True)
    if "name" in patch and not patch["name"]:
        raise ValidationError("name cannot be blank")
    _normalize_document(patch, doc_field, digits)
    _check_unique(model, doc_field, patch.get(doc_field), exclude_id=party_id)

    for k, v in patch.items():
        setattr(party, k, v)
    db.session.commit()
    return party


def delete_party(model, party_id: int, user_id: int) -> None:
    party = get_party(model, party_id)

    if model is Customer:
        db.session.execute(
            update(AccountReceivable)
            .where(AccountReceivable.customer_id == party_id)
            .values(customer_id=None)
        )
    else:
        db.session.execute(
            update(StockMovement)
            .where(StockMovement.supplier_id == party_id)
            .values(supplier_id=None)
        )

    db.session.delete(party)
    db.session.commit()
    current_app.logger.info("%s %s deleted by user %s", model.__name__, party_id, user_id)
