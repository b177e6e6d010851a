# Overview: Flask API routes for user administration (admin only).

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth, require_permission
from ..extensions import db
from ..models import User
from ..permissions import ROLES
from ..services import auth_service, session_service
from ..services.auth_service import PasswordValidationError

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


def _user_payload(user: User) -> dict:
    data = user.to_dict()
    data["roles"] = auth_service.get_user_roles(user.id)
    return data


@users_bp.get("")
@require_auth
@require_permission("MANAGE_USERS")
def list_users_route():
    users = db.session.query(User).order_by(User.username.asc()).all()
    return jsonify({"items": [_user_payload(u) for u in users], "count": len(users)})


@users_bp.post("")
@require_auth
@require_permission("MANAGE_USERS")
def create_user_route():
    """Body: {"username", "email", "password", "full_name"?, "roles": ["cashier"]}"""
    data = request.get_json(silent=True) or {}
    if not all([data.get("username"), data.get("email"), data.get("password")]):
        return jsonify({"error": "username, email and password required"}), 400

    try:
        user = auth_service.create_user(
            data["username"],
            data["email"],
            data["password"],
            full_name=data.get("full_name") or "",
            roles=data.get("roles") or [],
        )
        return jsonify({"user": _user_payload(user)}), 201
    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ValueError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.put("/<int:user_id>/roles")
@require_auth
@require_permission("MANAGE_USERS")
def set_roles_route(user_id: int):
    """Replace the user's roles. Active sessions are revoked so the change applies at once."""
    user = db.session.get(User, user_id)
    if not user:
        return jsonify({"error": "User not found"}), 404

    roles = (request.get_json(silent=True) or {}).get("roles")
    if not isinstance(roles, list):
        return jsonify({"error": "roles must be a list"}), 400

    unknown = [r for r in roles if r not in ROLES]
    if unknown:
        return jsonify({"error": f"Unknown roles: {', '.join(map(str, unknown))}"}), 400

    for role in set(auth_service.get_user_roles(user_id)) - set(roles):
        auth_service.revoke_role(user_id, role)
    for role in roles:
        auth_service.assign_role(user_id, role)

    session_service.revoke_all_user_sessions(user_id)
    return jsonify({"user": _user_payload(user)})
