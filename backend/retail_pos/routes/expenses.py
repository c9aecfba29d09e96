# Overview: Flask API routes for expenses, expense categories and the audit trail.

from flask import Blueprint, request, jsonify, g

from ..services import expense_service
from ..validation import parse_pagination
from ..decorators import require_auth, require_permission
from .helpers import handle_errors, json_body, optional_int, parse_date_range

expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")


# =============================================================================
# CATEGORIES
# =============================================================================

@expenses_bp.get("/categories")
@require_auth
@require_permission("MANAGE_EXPENSES")
@handle_errors("Failed to list expense categories")
def list_categories_route():
    categories = expense_service.list_categories(tenant_id=g.tenant_id)
    return jsonify({"items": [c.to_dict() for c in categories], "count": len(categories)})


@expenses_bp.post("/categories")
@require_auth
@require_permission("MANAGE_EXPENSES")
@handle_errors("Failed to create expense category")
def create_category_route():
    category = expense_service.create_category(tenant_id=g.tenant_id, payload=json_body())
    return jsonify(category.to_dict()), 201


@expenses_bp.post("/categories/seed")
@require_auth
@require_permission("MANAGE_EXPENSES")
@handle_errors("Failed to seed expense categories")
def seed_categories_route():
    created = expense_service.seed_default_categories(tenant_id=g.tenant_id)
    return jsonify({"items": [c.to_dict() for c in created], "count": len(created)}), 201


@expenses_bp.delete("/categories/<int:category_id>")
@require_auth
@require_permission("MANAGE_EXPENSES")
@handle_errors("Failed to delete expense category")
def delete_category_route(category_id: int):
    expense_service.delete_category(tenant_id=g.tenant_id, category_id=category_id)
    return jsonify({"ok": True})


# =============================================================================
# EXPENSES
# =============================================================================

@expenses_bp.get("")
@require_auth
@require_permission("MANAGE_EXPENSES")
@handle_errors("Failed to list expenses")
def list_expenses_route():
    """Query params: category_id, start_date, end_date, search, page, per_page"""
    page, per_page = parse_pagination(request.args)
    start, end = parse_date_range(request.args)
    result = expense_service.list_expenses(
        tenant_id=g.tenant_id,
        category_id=optional_int(request.args, "category_id"),
        start=start,
        end=end,
        search=request.args.get("search"),
        page=page,
        per_page=per_page,
    )
    return jsonify(result)


@expenses_bp.get("/summary")
@require_auth
@require_permission("MANAGE_EXPENSES")
@handle_errors("Failed to load expense summary")
def expense_summary_route():
    start, end = parse_date_range(request.args)
    return jsonify(expense_service.expense_summary(tenant_id=g.tenant_id, start=start, end=end))


@expenses_bp.get("/<int:expense_id>")
@require_auth
@require_permission("MANAGE_EXPENSES")
@handle_errors("Failed to get expense")
def get_expense_route(expense_id: int):
    return jsonify(expense_service.get_expense(tenant_id=g.tenant_id, expense_id=expense_id).to_dict())


@expenses_bp.post("")
@require_auth
@require_permission("MANAGE_EXPENSES")
@handle_errors("Failed to create expense")
def create_expense_route():
    """
    Request body:
    {
        "category_id": 1,
        "amount_cents": 150000,
        "expense_date": "2024-01-31",
        "description": "January rent",   (optional)
        "receipt_reference": "RCPT-42"   (optional)
    }
    """
    expense = expense_service.create_expense(
        tenant_id=g.tenant_id,
        payload=json_body(),
        user_id=g.current_user.id,
    )
    return jsonify(expense.to_dict()), 201


@expenses_bp.put("/<int:expense_id>")
@require_auth
@require_permission("MANAGE_EXPENSES")
@handle_errors("Failed to update expense")
def update_expense_route(expense_id: int):
    expense = expense_service.update_expense(
        tenant_id=g.tenant_id,
        expense_id=expense_id,
        payload=json_body(),
        user_id=g.current_user.id,
    )
    return jsonify(expense.to_dict())


@expenses_bp.delete("/<int:expense_id>")
@require_auth
@require_permission("MANAGE_EXPENSES")
@handle_errors("Failed to delete expense")
def delete_expense_route(expense_id: int):
    expense_service.delete_expense(tenant_id=g.tenant_id, expense_id=expense_id, user_id=g.current_user.id)
    return jsonify({"ok": True})


@expenses_bp.get("/<int:expense_id>/audit")
@require_auth
@require_permission("MANAGE_EXPENSES")
@handle_errors("Failed to load expense audit history")
def expense_audit_route(expense_id: int):
    rows = expense_service.expense_audit_history(tenant_id=g.tenant_id, expense_id=expense_id)
    return jsonify({"items": [r.to_dict() for r in rows], "count": len(rows)})
