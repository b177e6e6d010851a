# Overview: Flask API routes for company (issuer) settings.

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth, require_permission
from ..services import settings_service
from ..validation import ValidationError

settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("/company")
@require_auth
def get_company_route():
    """Readable by any operator; receipts print it."""
    company = settings_service.get_company()
    return {"company": company.to_dict() if company else None}


@settings_bp.put("/company")
@require_auth
@require_permission("MANAGE_SETTINGS")
def update_company_route():
    try:
        company = settings_service.upsert_company(
            request.get_json(silent=True),
            user_id=g.current_user.id,
        )
        return {"company": company.to_dict()}, 200
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to update company settings")
        return {"error": "Internal server error"}, 500
