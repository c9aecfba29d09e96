# Overview: Flask API routes for purchase orders.

from flask import Blueprint, request, jsonify, g

from ..services import purchase_order_service
from ..validation import parse_pagination
from ..decorators import require_auth, require_permission
from .helpers import handle_errors, json_body

purchase_orders_bp = Blueprint("purchase_orders", __name__, url_prefix="/api/purchase-orders")


@purchase_orders_bp.get("")
@require_auth
@require_permission("MANAGE_PURCHASE_ORDERS")
@handle_errors("Failed to list purchase orders")
def list_purchase_orders_route():
    """Query params: status, search (PO number or supplier), page, per_page"""
    page, per_page = parse_pagination(request.args)
    result = purchase_order_service.list_purchase_orders(
        tenant_id=g.tenant_id,
        status=request.args.get("status"),
        search=request.args.get("search"),
        page=page,
        per_page=per_page,
    )
    return jsonify(result)


@purchase_orders_bp.get("/suppliers")
@require_auth
@require_permission("MANAGE_PURCHASE_ORDERS")
@handle_errors("Failed to list suppliers")
def suppliers_route():
    return jsonify({"suppliers": purchase_order_service.list_suppliers(tenant_id=g.tenant_id)})


@purchase_orders_bp.get("/<int:po_id>")
@require_auth
@require_permission("MANAGE_PURCHASE_ORDERS")
@handle_errors("Failed to get purchase order")
def get_purchase_order_route(po_id: int):
    po = purchase_order_service.get_purchase_order(tenant_id=g.tenant_id, po_id=po_id)
    return jsonify(po.to_dict(include_items=True))


@purchase_orders_bp.post("")
@require_auth
@require_permission("MANAGE_PURCHASE_ORDERS")
@handle_errors("Failed to create purchase order")
def create_purchase_order_route():
    """
    Request body:
    {
        "supplier_name": "Acme Wholesale",
        "supplier_contact": "0700 000 000",   (optional)
        "items": [{"product_id": 1, "quantity": 24, "cost_per_unit_cents": 80}],
        "notes": "...",                       (optional)
        "expected_date": "2024-02-01"         (optional)
    }
    """
    data = json_body()
    po = purchase_order_service.create_purchase_order(
        tenant_id=g.tenant_id,
        user_id=g.current_user.id,
        supplier_name=data.get("supplier_name"),
        items=data.get("items"),
        supplier_contact=data.get("supplier_contact"),
        notes=data.get("notes"),
        expected_date=data.get("expected_date"),
    )
    return jsonify(po.to_dict(include_items=True)), 201


@purchase_orders_bp.put("/<int:po_id>")
@require_auth
@require_permission("MANAGE_PURCHASE_ORDERS")
@handle_errors("Failed to update purchase order")
def update_purchase_order_route(po_id: int):
    po = purchase_order_service.update_purchase_order(tenant_id=g.tenant_id, po_id=po_id, payload=json_body())
    return jsonify(po.to_dict(include_items=True))


@purchase_orders_bp.post("/<int:po_id>/status")
@require_auth
@require_permission("MANAGE_PURCHASE_ORDERS")
@handle_errors("Failed to update purchase order status")
def update_status_route(po_id: int):
    """Request body: {"status": "draft" | "ordered" | "received"}"""
    po = purchase_order_service.update_status(
        tenant_id=g.tenant_id,
        po_id=po_id,
        status=json_body().get("status"),
        user_id=g.current_user.id,
    )
    return jsonify(po.to_dict(include_items=True))


@purchase_orders_bp.post("/<int:po_id>/restock")
@require_auth
@require_permission("MANAGE_PURCHASE_ORDERS")
@handle_errors("Failed to restock from purchase order")
def restock_route(po_id: int):
    po = purchase_order_service.restock_from_purchase_order(
        tenant_id=g.tenant_id, po_id=po_id, user_id=g.current_user.id
    )
    return jsonify(po.to_dict(include_items=True))


@purchase_orders_bp.delete("/<int:po_id>")
@require_auth
@require_permission("MANAGE_PURCHASE_ORDERS")
@handle_errors("Failed to delete purchase order")
def delete_purchase_order_route(po_id: int):
    purchase_order_service.delete_purchase_order(tenant_id=g.tenant_id, po_id=po_id)
    return jsonify({"ok": True})
