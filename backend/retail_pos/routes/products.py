# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/retail_pos/routes/products.py
"""
Product management routes with multi-tenant support.

MULTI-TENANT: All product operations are scoped to the caller's tenant.
The tenant_id is derived from g.tenant_id (set by @require_auth).

SECURITY: All routes require authentication.
- Read operations require VIEW_PRODUCTS permission
- Write operations require MANAGE_PRODUCTS permission
"""
from flask import Blueprint, request, jsonify, g

from ..services import products_service
from ..validation import parse_pagination
from ..decorators import require_auth, require_permission
from .helpers import handle_errors, json_body

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _flag(name: str) -> bool:
    return (request.args.get(name) or "").lower() in ("1", "true", "yes")


@products_bp.get("")
@require_auth
@require_permission("VIEW_PRODUCTS")
@handle_errors("Failed to list products")
def list_products_route():
    """
    List products.

    Query params:
    - search: matches name or SKU
    - category: exact category ("all" for any)
    - include_archived / archived_only: archive filters (archived hidden by default)
    - low_stock: only products at or below their threshold
    - page / per_page: pagination (default 20 per page)
    """
    page, per_page = parse_pagination(request.args)
    result = products_service.list_products(
        tenant_id=g.tenant_id,
        search=request.args.get("search"),
        category=request.args.get("category"),
        include_archived=_flag("include_archived"),
        archived_only=_flag("archived_only"),
        low_stock_only=_flag("low_stock"),
        page=page,
        per_page=per_page,
    )
    return jsonify(result)


@products_bp.get("/categories")
@require_auth
@require_permission("VIEW_PRODUCTS")
@handle_errors("Failed to list categories")
def categories_route():
    return jsonify({"categories": products_service.get_categories(tenant_id=g.tenant_id)})


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission("VIEW_PRODUCTS")
@handle_errors("Failed to get product")
def get_product_route(product_id: int):
    return jsonify(products_service.get_product(tenant_id=g.tenant_id, product_id=product_id).to_dict())


@products_bp.post("")
@require_auth
@require_permission("MANAGE_PRODUCTS")
@handle_errors("Failed to create product")
def create_product_route():
    """
    Create a new product.

    A stock_quantity in the payload is recorded as the initial restock.
    Returns 409 if the SKU already exists in the tenant.
    """
    product = products_service.create_product(
        tenant_id=g.tenant_id,
        payload=json_body(),
        user_id=g.current_user.id,
    )
    return jsonify(product.to_dict()), 201


@products_bp.put("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
@handle_errors("Failed to update product")
def update_product_route(product_id: int):
    """Partial update; stock changes go through /api/stock."""
    product = products_service.update_product(
        tenant_id=g.tenant_id,
        product_id=product_id,
        payload=json_body(),
    )
    return jsonify(product.to_dict())


@products_bp.post("/<int:product_id>/archive")
@require_auth
@require_permission("MANAGE_PRODUCTS")
@handle_errors("Failed to archive product")
def archive_product_route(product_id: int):
    product = products_service.set_archived(tenant_id=g.tenant_id, product_id=product_id, archived=True)
    return jsonify(product.to_dict())


@products_bp.post("/<int:product_id>/unarchive")
@require_auth
@require_permission("MANAGE_PRODUCTS")
@handle_errors("Failed to unarchive product")
def unarchive_product_route(product_id: int):
    product = products_service.set_archived(tenant_id=g.tenant_id, product_id=product_id, archived=False)
    return jsonify(product.to_dict())
