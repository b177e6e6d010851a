# backend/nexa/routes/system.py
"""
System health endpoint.

Checks the database and the fiscal configuration. 503 when the database is
unreachable.
"""

import time

from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db
from ..models import SessionToken
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        active_sessions = db.session.query(SessionToken).filter(
            SessionToken.is_revoked.is_(False),
            SessionToken.expires_at > utcnow(),
        ).count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {"active_sessions": active_sessions},
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


def check_fiscal_health() -> dict:
    """Configuration only. The authority is never called from a health check."""
    mode = current_app.config.get("FISCAL_MODE")
    if mode == "sandbox":
        return {"status": "healthy", "details": {"mode": mode, "environment": "homologacao"}}
    if mode == "http" and current_app.config.get("FISCAL_ENDPOINT_URL"):
        return {"status": "healthy", "details": {"mode": mode}}
    return {"status": "degraded", "warning": f"Fiscal emission not configured (mode={mode})"}


@system_bp.get("/health")
def health():
    start_time = time.time()

    database_health = check_database_health()
    fiscal_health = check_fiscal_health()

    if database_health["status"] == "unhealthy":
        overall_status, http_status = "unhealthy", 503
    elif fiscal_health["status"] == "degraded":
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    return {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "fiscal": fiscal_health,
        },
    }, http_status
