# Overview: Operator-side workflow: catalog lookup, cart and guarded checkout.

from .api import ApiError, PermissionDenied, PosApiClient
from .cart import Cart, CartLine
from .catalog import CatalogLookup, SearchDebouncer
from .checkout import (
    Checkout,
    CheckoutError,
    CheckoutInProgress,
    FinalizationOutcomeUnknown,
    KeyReusedForOtherSale,
    PreconditionFailed,
    ResolutionRequired,
    StockConflict,
)

__all__ = [
    "ApiError",
    "PermissionDenied",
    "PosApiClient",
    "Cart",
    "CartLine",
    "CatalogLookup",
    "SearchDebouncer",
    "Checkout",
    "CheckoutError",
    "CheckoutInProgress",
    "FinalizationOutcomeUnknown",
    "KeyReusedForOtherSale",
    "PreconditionFailed",
    "ResolutionRequired",
    "StockConflict",
]
