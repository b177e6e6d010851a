# Overview: Service-layer operations for session tokens and the per-request session context.

"""
Session Token Management

A SessionContext is built for every authenticated request from the stored
session and the user's roles; it is attached to flask.g by @require_auth and
discarded with the request. Logging out revokes the token, which ends the
session for every later request.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage
- Absolute timeout (SESSION_ABSOLUTE_TIMEOUT_HOURS)
- Revocable on logout
"""

import hashlib
import secrets
from dataclasses import dataclass, field
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from ..permissions import ELEVATED_ROLES, permissions_for_roles
from ..time_utils import utcnow
from .auth_service import get_user_roles


@dataclass
class SessionContext:
    """Identity, roles and resolved permissions for one authenticated session."""
    user: User
    session: SessionToken
    roles: list[str] = field(default_factory=list)
    permissions: set[str] = field(default_factory=set)

    @property
    def is_elevated(self) -> bool:
        return any(role in ELEVATED_ROLES for role in self.roles)

    def to_dict(self) -> dict:
        return {
            "user": self.user.to_dict(),
            "roles": list(self.roles),
            "permissions": sorted(self.permissions),
            "is_elevated": self.is_elevated,
            "session": self.session.to_dict(),
        }


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """
    Create a session for the user.

    Returns (session_record, plaintext_token). Only the hash is stored.
    """
    user = db.session.get(User, user_id)
    if not user or not user.is_active:
        raise ValueError("User not found or inactive")

    plaintext_token = generate_token()
    now = utcnow()
    hours = current_app.config.get("SESSION_ABSOLUTE_TIMEOUT_HOURS", 12)

    session = SessionToken(
        user_id=user_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + timedelta(hours=hours),
        user_agent=user_agent,
        ip_address=ip_address,
        is_revoked=False,
    )

    db.session.add(session)
    db.session.commit()
    return session, plaintext_token


def validate_session(token: str) -> SessionContext | None:
    """
    Return the SessionContext for a token, or None if the token is unknown,
    revoked, expired, or belongs to a deactivated user.
    """
    session = db.session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()
    if not session or session.is_revoked:
        return None

    now = utcnow()
    if session.expires_at <= now:
        return None

    user = db.session.get(User, session.user_id)
    if not user or not user.is_active:
        return None

    session.last_used_at = now
    db.session.commit()

    roles = get_user_roles(user.id)
    return SessionContext(
        user=user,
        session=session,
        roles=roles,
        permissions=permissions_for_roles(roles),
    )


def revoke_session(token: str) -> bool:
    session = db.session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()
    if not session or session.is_revoked:
        return False
    session.is_revoked = True
    session.revoked_at = utcnow()
    db.session.commit()
    return True


def revoke_all_user_sessions(user_id: int) -> int:
    now = utcnow()
    count = db.session.query(SessionToken).filter_by(user_id=user_id, is_revoked=False).update(
        {"is_revoked": True, "revoked_at": now}
    )
    db.session.commit()
    return count
