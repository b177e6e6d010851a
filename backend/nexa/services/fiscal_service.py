# Overview: Fiscal document lifecycle (emit, cancel, correction letter).

"""
Fiscal Document Emitter

STATE MACHINE (Invoice.status):
    pendente   -> autorizada | rejeitada     (gateway answer)
    autorizada -> cancelada                  (within INVOICE_CANCEL_WINDOW_HOURS
                                              of created_at)
    autorizada -> autorizada                 (correction letter, status unchanged)

rejeitada and cancelada are terminal.

Every mutating operation requires an elevated role (admin or manager). The
check runs here as well as in the route.

Emission is two short transactions around the gateway call:
    1. create (or resume) the pendente invoice, take its emit lock and
       reserve a number; commit
    2. call the gateway outside any DB transaction
    3. record the answer only if the lock is still ours; commit
A transport failure at step 2 releases the lock and leaves the invoice
pendente. The next emit for the same sale resumes it with the same number.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..models import CompanySettings, Invoice, InvoiceCorrection, Sale
from ..permissions import ELEVATED_ROLES, role_allows
from ..time_utils import hours_elapsed, utcnow
from ..validation import NotFoundError
from .auth_service import get_user_roles
from .concurrency import run_in_write_transaction
from .fiscal_gateway import AuthorizationRequest, FiscalGatewayError, get_gateway
from .permission_service import PermissionDeniedError, log_security_event
from .sequence_service import invoice_sequence, next_number

MAX_CORRECTION_LENGTH = 1000

ACTION_PERMISSIONS = {
    "emit": "EMIT_INVOICE",
    "cancel": "CANCEL_INVOICE",
    "correct": "CORRECT_INVOICE",
}


class FiscalError(Exception):
    """Base for fiscal business rule violations."""


class InvoiceStateError(FiscalError):
    """Transition not allowed from the invoice's current status."""


class CancellationWindowExpiredError(FiscalError):
    """Authorized invoice is older than the cancellation window."""


class CorrectionTextError(FiscalError):
    """Correction letter text too short or too long."""


class InvoiceAlreadyIssuedError(FiscalError):
    """The sale already has an authorized (or cancelled) invoice."""


class InvoiceEmissionInProgressError(FiscalError):
    """Another request is currently emitting this sale's invoice."""


def require_elevated_role(user_id: int, action: str) -> None:
    roles = get_user_roles(user_id)
    if role_allows(roles, ACTION_PERMISSIONS[action]):
        return
    log_security_event(
        user_id=user_id,
        event_type="PERMISSION_DENIED",
        success=False,
        resource="fiscal",
        action=action,
        reason="Elevated role required",
    )
    current_app.logger.warning("Fiscal %s denied for user %s (roles=%s)", action, user_id, roles)
    raise PermissionDeniedError(f"Only {' or '.join(ELEVATED_ROLES)} may {action} invoices")


def get_invoice(invoice_id: int) -> Invoice:
    invoice = db.session.get(Invoice, invoice_id)
    if not invoice:
        raise NotFoundError("Invoice not found")
    return invoice


def list_invoices(*, status: str | None = None, sale_id: int | None = None, limit: int = 100) -> list[Invoice]:
    q = db.session.query(Invoice)
    if status:
        q = q.filter(Invoice.status == status)
    if sale_id:
        q = q.filter(Invoice.sale_id == sale_id)
    return q.order_by(Invoice.created_at.desc(), Invoice.id.desc()).limit(min(limit, 500)).all()


def emit_invoice(sale_id: int, user_id: int, *, gateway=None, now: datetime | None = None) -> Invoice:
    """
    Emit the NFC-e for a finalized sale.

    Only one request at a time may talk to the authority for a given
    pendente invoice. A lock older than FISCAL_EMIT_LOCK_SECONDS is taken
    over. The number reserved on the first attempt is reused by every retry
    until the authority answers.

    Raises:
        PermissionDeniedError: caller is not admin/manager
        NotFoundError: sale does not exist
        InvoiceAlreadyIssuedError: the sale already has an authorized invoice
        InvoiceEmissionInProgressError: another emit for this sale is running
        FiscalGatewayError: authority unreachable; the invoice stays pendente
    """
    require_elevated_role(user_id, "emit")
    gateway = gateway or get_gateway()
    series = current_app.config.get("FISCAL_SERIES", 1)
    lock_seconds = current_app.config.get("FISCAL_EMIT_LOCK_SECONDS", 120)
    token = uuid.uuid4().hex

    def _reserve():
        sale = db.session.get(Sale, sale_id)
        if not sale:
            raise NotFoundError("Sale not found")

        issued = (
            db.session.query(Invoice)
            .filter(Invoice.sale_id == sale_id, Invoice.status.in_(("autorizada", "cancelada")))
            .first()
        )
        if issued is not None:
            raise InvoiceAlreadyIssuedError(
                f"Sale #{sale.sale_number} already has invoice {issued.id} ({issued.status})"
            )

        started_at = utcnow()
        invoice = (
            db.session.query(Invoice)
            .filter(Invoice.sale_id == sale_id, Invoice.status == "pendente")
            .order_by(Invoice.id.desc())
            .first()
        )
        if invoice is None:
            invoice = Invoice(
                sale_id=sale_id,
                type="nfce",
                status="pendente",
                environment=gateway.environment,
                user_id=user_id,
                emit_token=token,
                emit_started_at=started_at,
            )
            db.session.add(invoice)
            db.session.flush()
        else:
            held_by = invoice.emit_token
            if held_by is not None:
                age = hours_elapsed(invoice.emit_started_at, started_at) * 3600
                if age < lock_seconds:
                    raise InvoiceEmissionInProgressError(
                        f"Invoice {invoice.id} for sale #{sale.sale_number} is being emitted"
                    )
                current_app.logger.warning(
                    "Taking over invoice %s emission left running for %.0fs", invoice.id, age,
                )
            claimed = db.session.execute(
                update(Invoice)
                .where(
                    Invoice.id == invoice.id,
                    Invoice.status == "pendente",
                    Invoice.emit_token.is_(None) if held_by is None else Invoice.emit_token == held_by,
                )
                .values(emit_token=token, emit_started_at=started_at)
            )
            if claimed.rowcount != 1:
                raise InvoiceEmissionInProgressError(
                    f"Invoice {invoice.id} for sale #{sale.sale_number} is being emitted"
                )
            db.session.refresh(invoice)

        if invoice.reserved_number is None:
            invoice.reserved_number = next_number(invoice_sequence(series))
            db.session.flush()
        return invoice.id, invoice.reserved_number

    invoice_id, number = run_in_write_transaction(_reserve)

    def _release():
        db.session.execute(
            update(Invoice)
            .where(Invoice.id == invoice_id, Invoice.emit_token == token)
            .values(emit_token=None, emit_started_at=None)
        )

    invoice = db.session.get(Invoice, invoice_id)
    issued_at = now or utcnow()
    request = AuthorizationRequest(
        invoice_id=invoice_id,
        sale=invoice.sale,
        company=db.session.query(CompanySettings).first(),
        number=number,
        series=series,
        issued_at=issued_at,
    )

    try:
        result = gateway.authorize(request)
    except FiscalGatewayError as e:
        current_app.logger.warning(
            "Invoice %s for sale %s left pendente: %s", invoice_id, sale_id, e,
        )
        run_in_write_transaction(_release)
        raise
    except Exception:
        current_app.logger.exception("Gateway crashed emitting invoice %s", invoice_id)
        run_in_write_transaction(_release)
        raise

    def _record():
        if result.authorized:
            values = dict(
                status="autorizada",
                number=result.number or number,
                series=series,
                access_key=result.access_key,
                protocol=result.protocol,
                xml=result.xml,
                authorized_at=issued_at,
            )
        else:
            values = dict(
                status="rejeitada",
                rejection_reason=(result.rejection_reason or "")[:255] or "Rejeitada",
            )
        recorded = db.session.execute(
            update(Invoice)
            .where(
                Invoice.id == invoice_id,
                Invoice.status == "pendente",
                Invoice.emit_token == token,
            )
            .values(emit_token=None, emit_started_at=None, updated_at=utcnow(), **values)
        )
        if recorded.rowcount != 1:
            current_app.logger.error(
                "Discarding %s answer for invoice %s: emission was taken over",
                values["status"], invoice_id,
            )
            raise InvoiceStateError(f"Invoice {invoice_id} is no longer held by this emission")

    run_in_write_transaction(_record)
    db.session.expire(invoice)

    if invoice.status == "autorizada":
        current_app.logger.info(
            "Invoice %s authorized: sale=%s number=%s/%s key=%s",
            invoice.id, sale_id, invoice.series, invoice.number, invoice.access_key,
        )
    else:
        current_app.logger.warning(
            "Invoice %s rejected for sale %s: %s", invoice.id, sale_id, invoice.rejection_reason,
        )
    return invoice


def cancel_invoice(
    invoice_id: int,
    user_id: int,
    *,
    reason: str | None = None,
    gateway=None,
    now: datetime | None = None,
) -> Invoice:
    """
    Cancel an authorized invoice inside the legal window.

    The window is measured from created_at. At exactly the limit the
    cancellation is still accepted.
    """
    require_elevated_role(user_id, "cancel")
    invoice = get_invoice(invoice_id)

    if invoice.status != "autorizada":
        raise InvoiceStateError(f"Invoice is not cancellable from status '{invoice.status}'")

    window = current_app.config.get("INVOICE_CANCEL_WINDOW_HOURS", 24)
    if hours_elapsed(invoice.created_at, now) > window:
        raise CancellationWindowExpiredError(
            f"Cancellation window expired ({window}h since emission)"
        )

    gateway = gateway or get_gateway()
    event = gateway.cancel(invoice, reason)
    cancelled_at = now or utcnow()

    def _op():
        result = db.session.execute(
            update(Invoice)
            .where(Invoice.id == invoice_id, Invoice.status == "autorizada")
            .values(
                status="cancelada",
                cancelled_at=cancelled_at,
                cancelled_by_user_id=user_id,
                updated_at=cancelled_at,
            )
        )
        if result.rowcount != 1:
            raise InvoiceStateError("Invoice is not cancellable from its current status")

    run_in_write_transaction(_op)
    db.session.expire(invoice)

    current_app.logger.info(
        "Invoice %s cancelled by user %s (protocol=%s)", invoice_id, user_id, event.protocol,
    )
    return invoice


def register_correction(invoice_id: int, user_id: int, text: str | None, *, gateway=None) -> InvoiceCorrection:
    """Record a correction letter. The invoice status does not change."""
    require_elevated_role(user_id, "correct")

    cleaned = (text or "").strip()
    min_length = current_app.config.get("CORRECTION_MIN_LENGTH", 15)
    if len(cleaned) < min_length:
        raise CorrectionTextError(f"Correction text must have at least {min_length} characters")
    if len(cleaned) > MAX_CORRECTION_LENGTH:
        raise CorrectionTextError(
            f"Correction text cannot exceed {MAX_CORRECTION_LENGTH} characters"
        )

    invoice = get_invoice(invoice_id)
    if invoice.status != "autorizada":
        raise InvoiceStateError(f"Correction not allowed for status '{invoice.status}'")

    sequence = len(invoice.corrections) + 1
    gateway = gateway or get_gateway()
    event = gateway.correct(invoice, sequence, cleaned)

    def _op():
        correction = InvoiceCorrection(
            invoice_id=invoice_id,
            sequence=sequence,
            text=cleaned,
            protocol=event.protocol,
            user_id=user_id,
        )
        db.session.add(correction)
        db.session.flush()
        return correction

    correction = run_in_write_transaction(_op)
    db.session.expire(invoice, ["corrections"])
    current_app.logger.info("Correction %s registered on invoice %s", sequence, invoice_id)
    return correction
