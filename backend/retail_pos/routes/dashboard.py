# Overview: Flask API routes for the admin dashboard.

"""
Dashboard routes (admin only, VIEW_REPORTS).

Amounts are integer cents.
"""

from flask import Blueprint, request, jsonify, g

from ..services import dashboard_service
from ..decorators import require_auth, require_permission
from .helpers import handle_errors, parse_datetime_range

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("/kpis")
@require_auth
@require_permission("VIEW_REPORTS")
@handle_errors("Failed to compute dashboard KPIs")
def kpis_route():
    """Query params: start_date, end_date (default: this month to date)"""
    start, end = parse_datetime_range(request.args)
    return jsonify(dashboard_service.kpis(tenant_id=g.tenant_id, start=start, end=end))


@dashboard_bp.get("/low-stock")
@require_auth
@require_permission("VIEW_REPORTS")
@handle_errors("Failed to load low stock products")
def low_stock_route():
    items = dashboard_service.low_stock_products(tenant_id=g.tenant_id)
    return jsonify({"items": items, "count": len(items)})


@dashboard_bp.get("/sales-trend")
@require_auth
@require_permission("VIEW_REPORTS")
@handle_errors("Failed to load sales trend")
def sales_trend_route():
    days = request.args.get("days", 30, type=int)
    return jsonify({"items": dashboard_service.sales_trend(tenant_id=g.tenant_id, days=min(days, 366))})


@dashboard_bp.get("/daily-summary")
@require_auth
@require_permission("VIEW_REPORTS")
@handle_errors("Failed to load daily summary")
def daily_summary_route():
    return jsonify(dashboard_service.daily_summary(tenant_id=g.tenant_id))
