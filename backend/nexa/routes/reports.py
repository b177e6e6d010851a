# Overview: Flask API routes for dashboard and sales reports.

from flask import Blueprint, request

from ..decorators import require_auth, require_permission
from ..services import reporting_service
from ..services.reporting_service import ReportError

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/dashboard")
@require_auth
@require_permission("VIEW_REPORTS")
def dashboard_route():
    data = reporting_service.dashboard()
    data["top_products"] = reporting_service.top_products(limit=5)
    return data


@reports_bp.get("/sales")
@require_auth
@require_permission("VIEW_REPORTS")
def sales_report_route():
    try:
        return reporting_service.sales_report(
            start=request.args.get("start"),
            end=request.args.get("end"),
            group_by=request.args.get("group_by", "day"),
        )
    except ReportError as e:
        return {"error": str(e)}, 400
