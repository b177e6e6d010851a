# Overview: All permission definitions organized by category.
# Each permission is defined as: (code, name, description, category)

from .categories import PermissionCategory


CATALOG_PERMISSIONS = [
    ("VIEW_PRODUCTS", "View Products", "Search and list products with price and stock", PermissionCategory.CATALOG),
    ("MANAGE_PRODUCTS", "Manage Products", "Create and edit products", PermissionCategory.CATALOG),
    ("DELETE_PRODUCTS", "Delete Products", "Delete products (sale history is kept)", PermissionCategory.CATALOG),
]

INVENTORY_PERMISSIONS = [
    ("VIEW_STOCK", "View Stock", "View stock movements and low-stock alerts", PermissionCategory.INVENTORY),
    ("ADJUST_STOCK", "Adjust Stock", "Register manual stock entries and exits", PermissionCategory.INVENTORY),
    ("REGISTER_PURCHASE", "Register Purchase", "Receive goods from suppliers", PermissionCategory.INVENTORY),
]

SALES_PERMISSIONS = [
    ("CREATE_SALE", "Create Sale", "Finalize sales at the point of sale", PermissionCategory.SALES),
    ("VIEW_SALES", "View Sales", "View sales history and receipts", PermissionCategory.SALES),
]

FINANCE_PERMISSIONS = [
    ("VIEW_FINANCE", "View Finance", "View cash-flow movements and summaries", PermissionCategory.FINANCE),
    ("MANAGE_RECEIVABLES", "Manage Receivables", "Create and settle accounts receivable", PermissionCategory.FINANCE),
]

FISCAL_PERMISSIONS = [
    ("VIEW_INVOICES", "View Invoices", "View fiscal document history", PermissionCategory.FISCAL),
    ("EMIT_INVOICE", "Emit Invoice", "Request NFC-e emission for a sale", PermissionCategory.FISCAL),
    ("CANCEL_INVOICE", "Cancel Invoice", "Cancel an authorized NFC-e within the legal window", PermissionCategory.FISCAL),
    ("CORRECT_INVOICE", "Correct Invoice", "Register a correction letter (CC-e)", PermissionCategory.FISCAL),
]

PARTY_PERMISSIONS = [
    ("MANAGE_CUSTOMERS", "Manage Customers", "Create and edit customers", PermissionCategory.PARTIES),
    ("DELETE_CUSTOMERS", "Delete Customers", "Delete customers", PermissionCategory.PARTIES),
    ("VIEW_SUPPLIERS", "View Suppliers", "View supplier list", PermissionCategory.PARTIES),
    ("MANAGE_SUPPLIERS", "Manage Suppliers", "Create, edit and delete suppliers", PermissionCategory.PARTIES),
]

SYSTEM_PERMISSIONS = [
    ("VIEW_REPORTS", "View Reports", "View the dashboard report", PermissionCategory.SYSTEM),
    ("MANAGE_SETTINGS", "Manage Settings", "Edit company settings", PermissionCategory.SYSTEM),
    ("MANAGE_USERS", "Manage Users", "Create users and assign roles", PermissionCategory.SYSTEM),
]


PERMISSION_DEFINITIONS = (
    CATALOG_PERMISSIONS
    + INVENTORY_PERMISSIONS
    + SALES_PERMISSIONS
    + FINANCE_PERMISSIONS
    + FISCAL_PERMISSIONS
    + PARTY_PERMISSIONS
    + SYSTEM_PERMISSIONS
)
