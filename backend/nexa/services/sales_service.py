"""
Sale Finalization Service

A sale touches four tables (sales, sale_items, products.stock_qty,
financial_movements), all written in ONE transaction. A committed sale always
has its stock decrement and its ledger entry.

The client keeps the cart and performs an advisory stock check; the
conditional decrement below is the only authoritative one.
"""

from __future__ import annotations

import hashlib
import json
import re
from dataclasses import dataclass
from datetime import datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import PAYMENT_METHODS, Product, Sale, SaleItem
from ..validation import NotFoundError, ValidationError, coerce_int
from .concurrency import run_in_write_transaction
from .finance_service import append_movement
from .inventory_service import current_stock, decrement_stock, record_movement
from .sequence_service import SALE_SEQUENCE, next_number

MAX_IDEMPOTENCY_KEY_LENGTH = 64


class SaleError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class SaleValidationError(SaleError):
    """Request rejected before anything was written."""


class StockConflictError(SaleError):
    """
    At least one product cannot cover the requested quantity at commit time.

    details["items"] lists every offending product; the whole sale was
    rolled back.
    """


class IdempotencyConflictError(SaleError):
    """An idempotency key was reused with a different cart, discount or payment."""


@dataclass
class FinalizeResult:
    sale: Sale
    replayed: bool = False


@dataclass(frozen=True)
class _RequestedLine:
    product_id: int
    quantity: int
    unit_price_cents: int | None


def _parse_items(items) -> list[_RequestedLine]:
    if not isinstance(items, list) or not items:
        raise SaleValidationError("Cart is empty")

    lines = []
    for index, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise SaleValidationError(f"items[{index}] must be an object")
        try:
            product_id = coerce_int(raw.get("product_id"), f"items[{index}].product_id")
            quantity = coerce_int(raw.get("quantity"), f"items[{index}].quantity")
            unit_price = raw.get("unit_price_cents")
            if unit_price is not None:
                unit_price = coerce_int(unit_price, f"items[{index}].unit_price_cents")
        except ValidationError as e:
            raise SaleValidationError(str(e))

        if quantity <= 0:
            raise SaleValidationError(f"items[{index}].quantity must be > 0")
        if unit_price is not None and unit_price < 0:
            raise SaleValidationError(f"items[{index}].unit_price_cents must be >= 0")
        lines.append(_RequestedLine(product_id, quantity, unit_price))
    return lines


def normalize_cpf(value: str | None) -> str | None:
    if value is None or not str(value).strip():
        return None
    digits = re.sub(r"\D", "", str(value))
    if len(digits) != 11:
        raise SaleValidationError("customer_cpf must have 11 digits")
    return digits


def _validate_request(payment_method, discount_cents, idempotency_key) -> int:
    if not payment_method:
        raise SaleValidationError("Payment method is required")
    if payment_method not in PAYMENT_METHODS:
        raise SaleValidationError(
            f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}"
        )
    try:
        discount = coerce_int(discount_cents or 0, "discount_cents")
    except ValidationError as e:
        raise SaleValidationError(str(e))
    if discount < 0:
        raise SaleValidationError("discount_cents must be >= 0")
    if idempotency_key is not None and (
        not str(idempotency_key).strip() or len(str(idempotency_key)) > MAX_IDEMPOTENCY_KEY_LENGTH
    ):
        raise SaleValidationError("idempotency_key must be 1-64 characters")
    return discount


def request_fingerprint(lines: list[_RequestedLine], discount: int, payment_method: str) -> str:
    """Stable hash of what the cashier asked for; line order does not matter."""
    payload = {
        "items": sorted(
            [line.product_id, line.quantity, -1 if line.unit_price_cents is None else line.unit_price_cents]
            for line in lines
        ),
        "discount_cents": discount,
        "payment_method": payment_method,
    }
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


def _existing_for_key(idempotency_key: str | None, user_id: int, fingerprint: str) -> Sale | None:
    if not idempotency_key:
        return None
    sale = db.session.query(Sale).filter_by(idempotency_key=idempotency_key).first()
    if sale is None:
        return None
    if sale.user_id != user_id:
        raise SaleValidationError("idempotency_key already used by another operator")
    if sale.request_fingerprint is not None and sale.request_fingerprint != fingerprint:
        raise IdempotencyConflictError(
            "idempotency_key already used for a different sale",
            details={"sale_number": sale.sale_number},
        )
    return sale


def finalize_sale(
    *,
    user_id: int,
    items,
    payment_method: str | None,
    discount_cents=0,
    subtotal_cents=None,
    total_cents=None,
    customer_name: str | None = None,
    customer_cpf: str | None = None,
    notes: str | None = None,
    idempotency_key: str | None = None,
) -> FinalizeResult:
    """
    Commit a cart as a sale. All of the following happen in one transaction:

    1. allocate the next sale number
    2. insert the Sale header (subtotal, discount, total, payment, customer)
    3. insert one SaleItem per cart line
    4. decrement each product's stock, failing the whole sale if any product
       cannot cover its quantity
    5. append SALE stock movements and one INFLOW financial movement

    Replaying an idempotency_key that already committed returns the existing
    sale with replayed=True and writes nothing.
    The key is bound to the cart, discount and payment it first committed;
    reusing it with a different payload raises IdempotencyConflictError.

    Raises:
        SaleValidationError: bad request, nothing written
        StockConflictError: stock changed since the cart was built; rolled back
        IdempotencyConflictError: key already committed with another payload
    """
    discount = _validate_request(payment_method, discount_cents, idempotency_key)
    lines = _parse_items(items)
    cpf = normalize_cpf(customer_cpf)
    name = (customer_name or "").strip() or None
    fingerprint = request_fingerprint(lines, discount, payment_method)

    def _op() -> FinalizeResult:
        existing = _existing_for_key(idempotency_key, user_id, fingerprint)
        if existing is not None:
            return FinalizeResult(sale=existing, replayed=True)

        product_ids = {line.product_id for line in lines}
        products = {
            p.id: p
            for p in db.session.query(Product).filter(Product.id.in_(product_ids)).all()
        }

        priced = []
        for line in lines:
            product = products.get(line.product_id)
            unit_price = line.unit_price_cents
            if unit_price is None and product is not None:
                unit_price = product.price_cents
            priced.append((line, product, unit_price or 0))

        subtotal = sum(line.quantity * unit_price for line, _, unit_price in priced)
        if subtotal_cents is not None and coerce_int(subtotal_cents, "subtotal_cents") != subtotal:
            raise SaleValidationError(
                "Subtotal does not match items",
                details={"expected_subtotal_cents": subtotal},
            )
        if discount > subtotal:
            raise SaleValidationError("Discount cannot exceed subtotal")
        total = subtotal - discount
        if total_cents is not None and coerce_int(total_cents, "total_cents") != total:
            raise SaleValidationError(
                "Total does not match subtotal minus discount",
                details={"expected_total_cents": total},
            )

        # 1. sale number
        sale_number = next_number(SALE_SEQUENCE)

        # 2. header
        sale = Sale(
            sale_number=sale_number,
            customer_name=name,
            customer_cpf=cpf,
            subtotal_cents=subtotal,
            discount_cents=discount,
            total_cents=total,
            payment_method=payment_method,
            status="FINALIZED",
            notes=notes,
            idempotency_key=idempotency_key,
            request_fingerprint=fingerprint if idempotency_key else None,
            user_id=user_id,
        )
        db.session.add(sale)
        db.session.flush()

        # 3. items
        for line, product, unit_price in priced:
            db.session.add(SaleItem(
                sale_id=sale.id,
                product_id=line.product_id if product is not None else None,
                product_name=product.name if product is not None else f"#{line.product_id}",
                quantity=line.quantity,
                unit_price_cents=unit_price,
                total_cents=line.quantity * unit_price,
            ))

        # 4. conditional decrements, one per product
        requested: dict[int, int] = {}
        for line in lines:
            requested[line.product_id] = requested.get(line.product_id, 0) + line.quantity

        conflicts = []
        for product_id, quantity in requested.items():
            product = products.get(product_id)
            if product is None:
                conflicts.append({"product_id": product_id, "reason": "not_found",
                                  "requested_quantity": quantity, "on_hand": 0})
            elif not product.is_active:
                conflicts.append({"product_id": product_id, "product_name": product.name,
                                  "reason": "inactive", "requested_quantity": quantity,
                                  "on_hand": current_stock(product_id)})
            elif not decrement_stock(product_id, quantity):
                conflicts.append({"product_id": product_id, "product_name": product.name,
                                  "reason": "insufficient_stock", "requested_quantity": quantity,
                                  "on_hand": current_stock(product_id)})

        if conflicts:
            raise StockConflictError(
                "Insufficient stock to finalize sale",
                details={"items": conflicts},
            )

        # 5. stock history and ledger
        for product_id, quantity in requested.items():
            record_movement(
                product=products[product_id],
                movement_type="SALE",
                quantity_delta=-quantity,
                user_id=user_id,
                reason=f"Venda #{sale_number}",
                reference_type="sale",
                reference_id=sale.id,
            )

        if total > 0:
            append_movement(
                movement_type="INFLOW",
                amount_cents=total,
                description=f"Venda #{sale_number}",
                user_id=user_id,
                payment_method=payment_method,
                reference_type="sale",
                reference_id=sale.id,
            )

        db.session.flush()
        return FinalizeResult(sale=sale)

    try:
        result = run_in_write_transaction(_op)
    except StockConflictError as e:
        current_app.logger.warning("Sale rejected, stock conflict: %s", e.details.get("items"))
        raise
    except IntegrityError:
        # A concurrent request committed the same idempotency key first
        existing = _existing_for_key(idempotency_key, user_id, fingerprint)
        if existing is None:
            raise
        result = FinalizeResult(sale=existing, replayed=True)

    if result.replayed:
        current_app.logger.info(
            "Replayed sale #%s for idempotency key %s", result.sale.sale_number, idempotency_key,
        )
    else:
        current_app.logger.info(
            "Sale #%s finalized: total=%s cents, method=%s, user=%s",
            result.sale.sale_number, result.sale.total_cents, payment_method, user_id,
        )
    return result


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if not sale:
        raise NotFoundError("Sale not found")
    return sale


def get_sale_by_key(idempotency_key: str) -> Sale | None:
    return db.session.query(Sale).filter_by(idempotency_key=idempotency_key).first()


def list_sales(
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    payment_method: str | None = None,
    limit: int = 100,
) -> list[Sale]:
    q = db.session.query(Sale)
    if start is not None:
        q = q.filter(Sale.created_at >= start)
    if end is not None:
        q = q.filter(Sale.created_at <= end)
    if payment_method:
        q = q.filter(Sale.payment_method == payment_method)
    return q.order_by(Sale.created_at.desc(), Sale.id.desc()).limit(min(limit, 500)).all()
