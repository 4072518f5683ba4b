# Overview: Flask API routes for financial reports.

"""
Reporting API routes

SECURITY: view_financial_reports on every endpoint except /activity, which
needs view_system_reports. Company users see their own company; a
super_admin without X-Company-ID sees platform totals.
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_permission
from ..permissions import Permission
from ..services import activity_service, reporting_service
from ..services.reporting_service import ReportError
from .common import query_filters


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/dashboard")
@require_auth
@require_permission(Permission.VIEW_FINANCIAL_REPORTS)
def dashboard_route():
    """Overview numbers; served from the cache for REPORT_CACHE_TTL seconds."""
    return jsonify(reporting_service.get_dashboard(g.company_id)), 200


@reports_bp.get("/profit-loss")
@require_auth
@require_permission(Permission.VIEW_FINANCIAL_REPORTS)
def profit_loss_route():
    filters = query_filters(dates=("from_date", "to_date"))
    try:
        report = reporting_service.profit_and_loss(g.company_id, **filters)
    except ReportError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(report), 200


@reports_bp.get("/invoice-status")
@require_auth
@require_permission(Permission.VIEW_FINANCIAL_REPORTS)
def invoice_status_route():
    return jsonify({"statuses": reporting_service.invoice_status_distribution(g.company_id)}), 200


@reports_bp.get("/aging")
@require_auth
@require_permission(Permission.VIEW_FINANCIAL_REPORTS)
def aging_route():
    filters = query_filters(dates=("as_of",))
    return jsonify(reporting_service.aging_report(g.company_id, **filters)), 200


@reports_bp.get("/activity")
@require_auth
@require_permission(Permission.VIEW_SYSTEM_REPORTS)
def activity_route():
    """
    Audit trail, newest first.

    Query params:
    - entity_type, entity_id: narrow to one record
    - limit: default 100, capped at 500
    """
    filters = query_filters(ints=("entity_id", "limit"))
    entries = activity_service.list_activity(
        company_id=g.company_id,
        entity_type=request.args.get("entity_type"),
        entity_id=filters["entity_id"],
        limit=filters["limit"] or 100,
    )
    return jsonify({"activity": [entry.to_dict() for entry in entries]}), 200
