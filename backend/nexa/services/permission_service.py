# Overview: Permission checks and security event logging.

"""
Permission Checking and Security Event Logging

- Denied unless one of the user's roles grants the permission
- Policy: nexa.permissions.DEFAULT_ROLE_PERMISSIONS, also served to clients
  through /api/auth/me
- Only denials are logged
"""

from ..extensions import db
from ..models import SecurityEvent
from ..permissions import permissions_for_roles
from ..time_utils import utcnow
from .auth_service import get_user_roles


class PermissionDeniedError(Exception):
    """Raised when user lacks required permission."""
    pass


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> SecurityEvent:
    """
    Append a security event.

    event_type examples: PERMISSION_DENIED, LOGIN_FAILED, LOGIN, LOGOUT
    """
    event = SecurityEvent(
        user_id=user_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow(),
    )
    db.session.add(event)
    db.session.commit()
    return event


def get_user_permissions(user_id: int) -> set[str]:
    return permissions_for_roles(get_user_roles(user_id))


def user_has_permission(user_id: int, permission_code: str) -> bool:
    return permission_code in get_user_permissions(user_id)


def require_permission(
    user_id: int,
    permission_code: str,
    resource: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    """
    Raise PermissionDeniedError (and log the denial) unless the user holds
    the permission.
    """
    if user_has_permission(user_id, permission_code):
        return

    log_security_event(
        user_id=user_id,
        event_type="PERMISSION_DENIED",
        success=False,
        resource=resource,
        action=permission_code,
        reason=f"Missing permission: {permission_code}",
        ip_address=ip_address,
        user_agent=user_agent,
    )
    raise PermissionDeniedError(f"Permission denied: {permission_code}")
