# Overview: Service-layer operations for users, passwords and role assignment.

"""
Authentication Service

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, with upper, lower, digit and special character
- Session tokens are managed separately (see session_service.py)
"""

import re

import bcrypt

from ..extensions import db
from ..models import User, UserRole
from ..permissions import ROLES
from ..time_utils import utcnow


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """Raise PasswordValidationError unless the password meets the policy."""
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str, rounds: int = 12) -> str:
    validate_password_strength(password)
    hashed = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=rounds))
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt comparison. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(
    username: str,
    email: str,
    password: str,
    full_name: str = "",
    roles: list[str] | None = None,
    *,
    hash_rounds: int = 12,
) -> User:
    """
    Create a user and assign roles.

    Raises:
        ValueError: username/email taken or unknown role
        PasswordValidationError: weak password
    """
    existing = db.session.query(User).filter(
        db.or_(User.username == username, User.email == email)
    ).first()
    if existing:
        raise ValueError("Username or email already exists")

    for role in roles or []:
        if role not in ROLES:
            raise ValueError(f"Unknown role: {role}")

    user = User(
        username=username,
        email=email,
        full_name=full_name,
        password_hash=hash_password(password, rounds=hash_rounds),
    )
    db.session.add(user)
    db.session.flush()

    for role in roles or []:
        db.session.add(UserRole(user_id=user.id, role=role))

    db.session.commit()
    return user


def authenticate(username: str, password: str) -> User | None:
    """
    Authenticate by username or email.

    Returns the User and stamps last_login_at, or None for bad credentials
    or inactive accounts.
    """
    user = db.session.query(User).filter(
        db.or_(User.username == username, User.email == username),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def assign_role(user_id: int, role: str) -> UserRole:
    if role not in ROLES:
        raise ValueError(f"Unknown role: {role}")

    existing = db.session.query(UserRole).filter_by(user_id=user_id, role=role).first()
    if existing:
        return existing

    user_role = UserRole(user_id=user_id, role=role)
    db.session.add(user_role)
    db.session.commit()
    return user_role


def revoke_role(user_id: int, role: str) -> bool:
    user_role = db.session.query(UserRole).filter_by(user_id=user_id, role=role).first()
    if not user_role:
        return False
    db.session.delete(user_role)
    db.session.commit()
    return True


def get_user_roles(user_id: int) -> list[str]:
    rows = db.session.query(UserRole.role).filter_by(user_id=user_id).order_by(UserRole.role).all()
    return [row.role for row in rows]
