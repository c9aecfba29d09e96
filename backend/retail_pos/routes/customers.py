# Overview: Flask API routes for customers and their credit position.

from flask import Blueprint, request, jsonify, g

from ..services import customer_service
from ..services.customer_service import CUSTOMERS_PER_PAGE
from ..validation import parse_pagination
from ..decorators import require_auth, require_permission
from .helpers import handle_errors, json_body

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
@require_permission("VIEW_CUSTOMERS")
@handle_errors("Failed to list customers")
def list_customers_route():
    """Query params: search (name, phone, email), page, per_page (default 50)"""
    page, per_page = parse_pagination(request.args, default_per_page=CUSTOMERS_PER_PAGE)
    result = customer_service.list_customers(
        tenant_id=g.tenant_id,
        search=request.args.get("search"),
        page=page,
        per_page=per_page,
    )
    return jsonify(result)


@customers_bp.get("/<int:customer_id>")
@require_auth
@require_permission("VIEW_CUSTOMERS")
@handle_errors("Failed to get customer")
def get_customer_route(customer_id: int):
    customer = customer_service.get_customer(tenant_id=g.tenant_id, customer_id=customer_id)
    return jsonify(customer.to_dict())


@customers_bp.post("")
@require_auth
@require_permission("CREATE_CUSTOMER")
@handle_errors("Failed to create customer")
def create_customer_route():
    customer = customer_service.create_customer(tenant_id=g.tenant_id, payload=json_body())
    return jsonify(customer.to_dict()), 201


@customers_bp.put("/<int:customer_id>")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
@handle_errors("Failed to update customer")
def update_customer_route(customer_id: int):
    customer = customer_service.update_customer(
        tenant_id=g.tenant_id,
        customer_id=customer_id,
        payload=json_body(),
    )
    return jsonify(customer.to_dict())


@customers_bp.get("/<int:customer_id>/transactions")
@require_auth
@require_permission("VIEW_CUSTOMERS")
@handle_errors("Failed to load customer transactions")
def customer_transactions_route(customer_id: int):
    limit = request.args.get("limit", 10, type=int)
    rows = customer_service.customer_transactions(
        tenant_id=g.tenant_id,
        customer_id=customer_id,
        limit=max(1, min(limit, 100)),
    )
    return jsonify({"items": [t.to_dict() for t in rows], "count": len(rows)})


@customers_bp.get("/<int:customer_id>/credit")
@require_auth
@require_permission("VIEW_CUSTOMERS")
@handle_errors("Failed to load credit status")
def credit_status_route(customer_id: int):
    return jsonify(customer_service.credit_status(tenant_id=g.tenant_id, customer_id=customer_id))
