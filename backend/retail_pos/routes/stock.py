# Overview: Flask API routes for manual stock adjustments and stock history.

from flask import Blueprint, request, jsonify, g

from ..services import stock_service
from ..validation import parse_pagination
from ..decorators import require_auth, require_permission
from .helpers import handle_errors, json_body

stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


@stock_bp.post("/<int:product_id>/adjust")
@require_auth
@require_permission("ADJUST_STOCK")
@handle_errors("Failed to adjust stock")
def adjust_stock_route(product_id: int):
    """
    Request body:
    {
        "type": "restock" | "adjustment",
        "quantity": 10,          (restock: > 0; adjustment: signed, non-zero)
        "reason": "Damaged"      (optional)
    }
    """
    data = json_body()
    product, entry = stock_service.adjust_stock(
        tenant_id=g.tenant_id,
        product_id=product_id,
        adjustment_type=data.get("type"),
        quantity=data.get("quantity"),
        reason=data.get("reason"),
        user_id=g.current_user.id,
    )
    return jsonify({"product": product.to_dict(), "history": entry.to_dict()}), 201


@stock_bp.get("/<int:product_id>/history")
@require_auth
@require_permission("VIEW_STOCK_HISTORY")
@handle_errors("Failed to load stock history")
def stock_history_route(product_id: int):
    """Query params: type (sale|restock|return|adjustment|all), page, per_page"""
    page, per_page = parse_pagination(request.args)
    result = stock_service.get_stock_history(
        tenant_id=g.tenant_id,
        product_id=product_id,
        change_type=request.args.get("type"),
        page=page,
        per_page=per_page,
    )
    return jsonify(result)
