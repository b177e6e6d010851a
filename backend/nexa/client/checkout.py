# Overview: Guarded submission of the cart to POST /api/sales/finalize.

"""
Checkout

The server transaction is authoritative; this class only decides whether to
send, and what a failure means for the operator:

    PreconditionFailed          nothing sent (no payment method, empty cart,
                                quantity above the stock last seen)
    CheckoutInProgress          a finalization is already in flight
    StockConflict               server rejected; nothing committed; cart kept
    CheckoutError               other definite rejection; cart kept
    FinalizationOutcomeUnknown  no answer (timeout); the sale may or may not
                                exist. Call resolve() before retrying.
    ResolutionRequired          an earlier outcome is still unknown; nothing
                                sent until resolve() settles it
    KeyReusedForOtherSale       the pending key already committed a different
                                cart; resolve() returns that sale

Each attempt carries an idempotency key. After an unknown outcome the key is
kept, so resubmitting the same cart can never commit it twice.
The server binds the key to the cart it first saw, so an edited cart sent
under an old key is refused instead of replayed.
"""

from __future__ import annotations

import threading
import uuid
from typing import Callable, Dict, List, Optional

import httpx

from .api import ApiError
from .cart import Cart, CartLine

PAYMENT_METHODS = ("cash", "card", "pix")


class CheckoutError(Exception):
    pass


class PreconditionFailed(CheckoutError):
    def __init__(self, message: str, lines: Optional[List[CartLine]] = None):
        super().__init__(message)
        self.lines = lines or []


class CheckoutInProgress(CheckoutError):
    pass


class StockConflict(CheckoutError):
    def __init__(self, message: str, items: List[Dict]):
        super().__init__(message)
        self.items = items


class FinalizationOutcomeUnknown(CheckoutError):
    def __init__(self, idempotency_key: str):
        super().__init__(
            "No answer from the server. Check the sale history before retrying."
        )
        self.idempotency_key = idempotency_key


class ResolutionRequired(CheckoutError):
    pass


class KeyReusedForOtherSale(CheckoutError):
    def __init__(self, message: str, idempotency_key: str):
        super().__init__(message)
        self.idempotency_key = idempotency_key


class Checkout:
    def __init__(self, api, cart: Cart, key_factory: Callable[[], str] = lambda: uuid.uuid4().hex):
        self.api = api
        self.cart = cart
        self.key_factory = key_factory
        self.pending_key: Optional[str] = None
        self.outcome_unknown = False
        self._lock = threading.Lock()

    @property
    def in_flight(self) -> bool:
        return self._lock.locked()

    def check_preconditions(self, payment_method: Optional[str], discount_cents: int) -> None:
        if payment_method not in PAYMENT_METHODS:
            raise PreconditionFailed("Select a payment method")
        if not self.cart:
            raise PreconditionFailed("Cart is empty")
        over = self.cart.over_stock()
        if over:
            names = ", ".join(line.name for line in over)
            raise PreconditionFailed(f"Quantity above available stock: {names}", lines=over)
        if discount_cents < 0 or discount_cents > self.cart.subtotal_cents():
            raise PreconditionFailed("Discount must be between zero and the subtotal")

    def finalize(
        self,
        payment_method: Optional[str],
        discount_cents: int = 0,
        customer_name: Optional[str] = None,
        customer_cpf: Optional[str] = None,
    ) -> Dict:
        if not self._lock.acquire(blocking=False):
            raise CheckoutInProgress("A finalization is already in progress")

        try:
            if self.outcome_unknown:
                raise ResolutionRequired(
                    "The previous finalization has no known outcome. Resolve it first."
                )
            self.check_preconditions(payment_method, discount_cents)

            key = self.pending_key or self.key_factory()
            self.pending_key = key
            payload = {
                "items": self.cart.to_items(),
                "payment_method": payment_method,
                "discount_cents": discount_cents,
                "subtotal_cents": self.cart.subtotal_cents(),
                "total_cents": self.cart.total_cents(discount_cents),
                "customer_name": customer_name,
                "customer_cpf": customer_cpf,
            }

            try:
                data = self.api.finalize_sale(payload, key)
            except httpx.ConnectError as e:
                # Never reached the server
                raise CheckoutError(f"Server unreachable: {e}") from e
            except httpx.TransportError as e:
                self.outcome_unknown = True
                raise FinalizationOutcomeUnknown(key) from e
            except ApiError as e:
                if e.status_code >= 500:
                    self.outcome_unknown = True
                    raise FinalizationOutcomeUnknown(key) from e
                if e.status_code == 422:
                    # Key is committed; resolve() fetches that sale
                    self.outcome_unknown = True
                    raise KeyReusedForOtherSale(str(e), key) from e
                self.pending_key = None
                if e.status_code == 409:
                    raise StockConflict(str(e), e.details.get("items", [])) from e
                raise CheckoutError(str(e)) from e

            self.pending_key = None
            self.cart.clear()
            return data["sale"]
        finally:
            self._lock.release()

    def resolve(self) -> Optional[Dict]:
        """
        Settle an unknown outcome by asking the server for the pending key.

        Returns the sale (and clears the cart) if it was committed. Returns
        None if it was not; finalize() will then resend with the same key.
        Either way finalize() is allowed again afterwards.
        """
        if self.pending_key is None:
            self.outcome_unknown = False
            return None
        sale = self.api.get_sale_by_key(self.pending_key)
        if sale is not None:
            self.pending_key = None
            self.cart.clear()
        self.outcome_unknown = False
        return sale
