# Overview: Flask API routes for returns operations; parses input and returns JSON responses.

# backend/retail_pos/routes/returns.py
"""
Return Processing API Routes

DESIGN:
- Create returns against a prior transaction (pending)
- Admin approval restores stock; rejection leaves stock alone
- Approved or rejected returns can be reverted to pending

SECURITY:
- CREATE_RETURN / VIEW_RETURNS for staff
- APPROVE_RETURNS for approve, reject and revert
"""

from flask import Blueprint, request, jsonify, g

from ..services import return_service
from ..validation import parse_pagination
from ..decorators import require_auth, require_permission
from .helpers import handle_errors, json_body


returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")


@returns_bp.post("")
@require_auth
@require_permission("CREATE_RETURN")
@handle_errors("Failed to create return")
def create_return_route():
    """
    Create a new return (status: pending).

    Request body:
    {
        "transaction_id": 123,
        "reason": "Damaged packaging",
        "items": [{"transaction_item_id": 9, "quantity": 1}]
    }

    Returns:
        201: Return created with pending status
        400: Invalid input or quantity exceeds what can be returned
        404: Transaction not found
    """
    data = json_body()
    return_doc = return_service.create_return(
        tenant_id=g.tenant_id,
        transaction_id=data.get("transaction_id"),
        items=data.get("items"),
        user_id=g.current_user.id,
        reason=data.get("reason"),
    )
    return jsonify(return_doc.to_dict(include_items=True)), 201


@returns_bp.get("")
@require_auth
@require_permission("VIEW_RETURNS")
@handle_errors("Failed to list returns")
def list_returns_route():
    """Query params: status, search (return or transaction number), page, per_page"""
    page, per_page = parse_pagination(request.args)
    result = return_service.list_returns(
        tenant_id=g.tenant_id,
        status=request.args.get("status"),
        search=request.args.get("search"),
        page=page,
        per_page=per_page,
    )
    return jsonify(result)


@returns_bp.get("/<int:return_id>")
@require_auth
@require_permission("VIEW_RETURNS")
@handle_errors("Failed to get return")
def get_return_route(return_id: int):
    return_doc = return_service.get_return(tenant_id=g.tenant_id, return_id=return_id)
    return jsonify(return_doc.to_dict(include_items=True))


@returns_bp.post("/<int:return_id>/approve")
@require_auth
@require_permission("APPROVE_RETURNS")
@handle_errors("Failed to approve return")
def approve_return_route(return_id: int):
    return_doc = return_service.approve_return(
        tenant_id=g.tenant_id, return_id=return_id, user_id=g.current_user.id
    )
    return jsonify(return_doc.to_dict(include_items=True))


@returns_bp.post("/<int:return_id>/reject")
@require_auth
@require_permission("APPROVE_RETURNS")
@handle_errors("Failed to reject return")
def reject_return_route(return_id: int):
    return_doc = return_service.reject_return(
        tenant_id=g.tenant_id, return_id=return_id, user_id=g.current_user.id
    )
    return jsonify(return_doc.to_dict(include_items=True))


@returns_bp.post("/<int:return_id>/revert")
@require_auth
@require_permission("APPROVE_RETURNS")
@handle_errors("Failed to revert return")
def revert_return_route(return_id: int):
    """Move an approved or rejected return back to pending."""
    return_doc = return_service.revert_return_to_pending(
        tenant_id=g.tenant_id, return_id=return_id, user_id=g.current_user.id
    )
    return jsonify(return_doc.to_dict(include_items=True))
