# Overview: Flask API routes for tenant user administration.

"""
User management routes.

MULTI-TENANT: Admins only see and manage users of their own tenant.
SECURITY: MANAGE_USERS for everything except changing your own password.
"""

from flask import Blueprint, request, jsonify, g

from ..services import user_service
from ..validation import parse_pagination
from ..decorators import require_auth, require_permission
from .helpers import handle_errors, json_body

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_permission("MANAGE_USERS")
@handle_errors("Failed to list users")
def list_users_route():
    """Query params: role, search, page, per_page"""
    page, per_page = parse_pagination(request.args)
    result = user_service.list_users(
        tenant_id=g.tenant_id,
        role=request.args.get("role"),
        search=request.args.get("search"),
        page=page,
        per_page=per_page,
    )
    return jsonify(result)


@users_bp.get("/<int:user_id>")
@require_auth
@require_permission("MANAGE_USERS")
@handle_errors("Failed to get user")
def get_user_route(user_id: int):
    return jsonify(user_service.get_user(tenant_id=g.tenant_id, user_id=user_id).to_dict())


@users_bp.post("")
@require_auth
@require_permission("MANAGE_USERS")
@handle_errors("Failed to create user")
def create_user_route():
    """
    Request body:
    {"email": "...", "full_name": "...", "password": "...", "role": "admin|sales_person"}
    """
    data = json_body()
    user = user_service.create_user(
        tenant_id=g.tenant_id,
        email=data.get("email"),
        full_name=data.get("full_name"),
        password=data.get("password"),
        role=data.get("role", "sales_person"),
    )
    return jsonify(user.to_dict()), 201


@users_bp.patch("/<int:user_id>")
@require_auth
@require_permission("MANAGE_USERS")
@handle_errors("Failed to update user")
def update_user_route(user_id: int):
    user = user_service.update_user(
        tenant_id=g.tenant_id,
        user_id=user_id,
        payload=json_body(),
        acting_user_id=g.current_user.id,
    )
    return jsonify(user.to_dict())


@users_bp.delete("/<int:user_id>")
@require_auth
@require_permission("MANAGE_USERS")
@handle_errors("Failed to delete user")
def delete_user_route(user_id: int):
    user_service.delete_user(tenant_id=g.tenant_id, user_id=user_id, acting_user_id=g.current_user.id)
    return jsonify({"ok": True})


@users_bp.put("/<int:user_id>/password")
@require_auth
@require_permission("MANAGE_USERS")
@handle_errors("Failed to set user password")
def set_password_route(user_id: int):
    data = json_body()
    user_service.set_password(tenant_id=g.tenant_id, user_id=user_id, new_password=data.get("password"))
    return jsonify({"message": "Password updated"})


@users_bp.post("/me/password")
@require_auth
@handle_errors("Failed to change password")
def change_own_password_route():
    """Request body: {"current_password": "...", "new_password": "..."}"""
    data = json_body()
    user_service.change_own_password(
        user=g.current_user,
        current_password=data.get("current_password"),
        new_password=data.get("new_password"),
        current_session_id=g.session_context.session.id,
    )
    return jsonify({"message": "Password changed"})
