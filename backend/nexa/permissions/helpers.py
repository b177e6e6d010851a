# Overview: Utility functions for permission lookups and validation.

from .definitions import PERMISSION_DEFINITIONS
from .roles import DEFAULT_ROLE_PERMISSIONS


def get_all_permission_codes():
    """Get list of all permission codes."""
    return [perm[0] for perm in PERMISSION_DEFINITIONS]


def permissions_for_roles(role_names) -> set[str]:
    """Union of the permissions granted by the given roles. Unknown roles grant nothing."""
    codes: set[str] = set()
    for role in role_names:
        codes.update(DEFAULT_ROLE_PERMISSIONS.get(role, ()))
    return codes


def role_allows(role_names, permission_code: str) -> bool:
    return permission_code in permissions_for_roles(role_names)
