# Overview: Flask API routes for the current tenant's settings.

from flask import Blueprint, jsonify, g

from ..services import tenant_service
from ..decorators import require_auth, require_permission
from .helpers import handle_errors, json_body

tenant_bp = Blueprint("tenant", __name__, url_prefix="/api/tenant")


@tenant_bp.get("")
@require_auth
@handle_errors("Failed to load tenant")
def get_tenant_route():
    return jsonify(tenant_service.get_tenant(g.tenant_id).to_dict())


@tenant_bp.patch("/settings")
@require_auth
@require_permission("MANAGE_TENANT_SETTINGS")
@handle_errors("Failed to update tenant settings")
def update_settings_route():
    """Updatable: name, currency, low_stock_threshold, tax_rate_bps"""
    tenant = tenant_service.update_tenant_settings(g.tenant_id, json_body())
    return jsonify(tenant.to_dict())
