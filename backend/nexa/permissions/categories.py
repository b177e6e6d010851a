# Overview: Permission category constants for grouping related permissions.


class PermissionCategory:
    """Permission categories for grouping in the UI."""
    CATALOG = "CATALOG"
    INVENTORY = "INVENTORY"
    SALES = "SALES"
    FINANCE = "FINANCE"
    FISCAL = "FISCAL"
    PARTIES = "PARTIES"
    SYSTEM = "SYSTEM"
