# Overview: Default role -> permission mapping.
#
# This is the single authorization policy. The server enforces it before every
# state-changing call; /api/auth/me hands the resolved set to clients for UI gating.

from .definitions import PERMISSION_DEFINITIONS

ROLES = ("admin", "manager", "cashier", "seller")

# Roles allowed to emit, cancel and correct fiscal documents and delete records
ELEVATED_ROLES = ("admin", "manager")

DEFAULT_ROLE_PERMISSIONS = {
    # Admin: everything
    "admin": [perm[0] for perm in PERMISSION_DEFINITIONS],

    "manager": [
        "VIEW_PRODUCTS",
        "MANAGE_PRODUCTS",
        "DELETE_PRODUCTS",
        "VIEW_STOCK",
        "ADJUST_STOCK",
        "REGISTER_PURCHASE",
        "CREATE_SALE",
        "VIEW_SALES",
        "VIEW_FINANCE",
        "MANAGE_RECEIVABLES",
        "VIEW_INVOICES",
        "EMIT_INVOICE",
        "CANCEL_INVOICE",
        "CORRECT_INVOICE",
        "MANAGE_CUSTOMERS",
        "DELETE_CUSTOMERS",
        "VIEW_SUPPLIERS",
        "MANAGE_SUPPLIERS",
        "VIEW_REPORTS",
        "MANAGE_SETTINGS",
    ],

    "cashier": [
        # Front of house: ring up sales
        "VIEW_PRODUCTS",
        "VIEW_STOCK",
        "CREATE_SALE",
        "VIEW_SALES",
        "VIEW_INVOICES",
        "MANAGE_CUSTOMERS",
    ],

    "seller": [
        "VIEW_PRODUCTS",
        "CREATE_SALE",
        "VIEW_SALES",
        "MANAGE_CUSTOMERS",
    ],
}
