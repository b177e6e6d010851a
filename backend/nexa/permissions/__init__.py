# Overview: Permission system package.

from .categories import PermissionCategory
from .definitions import PERMISSION_DEFINITIONS
from .roles import ROLES, ELEVATED_ROLES, DEFAULT_ROLE_PERMISSIONS
from .helpers import (
    get_all_permission_codes,
    permissions_for_roles,
    role_allows,
)

__all__ = [
    "PermissionCategory",
    "PERMISSION_DEFINITIONS",
    "ROLES",
    "ELEVATED_ROLES",
    "DEFAULT_ROLE_PERMISSIONS",
    "get_all_permission_codes",
    "permissions_for_roles",
    "role_allows",
]
