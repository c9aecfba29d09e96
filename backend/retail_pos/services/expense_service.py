# Overview: Expense categories, expenses and the expense audit trail.

"""
Expense Service

MULTI-TENANT: Categories and expenses are scoped to tenants via tenant_id.
Category names are unique within a tenant.

AUDIT: Every expense create/update/delete writes an ExpenseAudit row in the
same DB transaction. Updates record only the fields that actually changed.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Expense, ExpenseAudit, ExpenseCategory
from ..models.expenses import AUDIT_ACTION_CREATED, AUDIT_ACTION_DELETED, AUDIT_ACTION_UPDATED
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_expense,
    paginate,
    validate_payload,
)
from retail_pos.time_utils import to_iso_date
from .tenant_service import get_in_tenant

DEFAULT_CATEGORIES = (
    ("Rent", "Shop or office rent"),
    ("Utilities", "Electricity, water, internet"),
    ("Salaries", "Staff wages and salaries"),
    ("Supplies", "Packaging and shop supplies"),
    ("Transport", "Deliveries and travel"),
    ("Other", "Miscellaneous expenses"),
)

EXPENSE_POLICY = ModelValidationPolicy(
    writable_fields={"category_id", "amount_cents", "description", "receipt_reference", "expense_date"},
    required_on_create={"category_id", "amount_cents", "expense_date"},
)

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description"},
    required_on_create={"name"},
)


class ExpenseError(Exception):
    """Raised for expense operation errors."""
    pass


# =============================================================================
# CATEGORIES
# =============================================================================

def list_categories(*, tenant_id: int) -> list[ExpenseCategory]:
    return (
        db.session.query(ExpenseCategory)
        .filter(ExpenseCategory.tenant_id == tenant_id)
        .order_by(ExpenseCategory.name.asc())
        .all()
    )


def create_category(*, tenant_id: int, payload: dict) -> ExpenseCategory:
    patch = validate_payload(model=ExpenseCategory, payload=payload, policy=CATEGORY_POLICY, partial=False)

    existing = (
        db.session.query(ExpenseCategory.id)
        .filter(
            ExpenseCategory.tenant_id == tenant_id,
            func.lower(ExpenseCategory.name) == patch["name"].lower(),
        )
        .first()
    )
    if existing:
        raise ConflictError(f'Category "{patch["name"]}" already exists')

    category = ExpenseCategory(tenant_id=tenant_id, is_default=False, **patch)
    db.session.add(category)
    db.session.commit()
    return category


def delete_category(*, tenant_id: int, category_id: int) -> None:
    category = get_in_tenant(ExpenseCategory, category_id, tenant_id, label="Expense category")
    in_use = (
        db.session.query(func.count(Expense.id))
        .filter(Expense.tenant_id == tenant_id, Expense.category_id == category.id)
        .scalar()
    )
    if in_use:
        raise ExpenseError(f"Cannot delete category: {in_use} expense(s) use it")
    db.session.delete(category)
    db.session.commit()


def seed_default_categories(*, tenant_id: int, commit: bool = True) -> list[ExpenseCategory]:
    """Create the default categories that the tenant does not have yet."""
    existing = {
        name.lower()
        for (name,) in db.session.query(ExpenseCategory.name).filter(ExpenseCategory.tenant_id == tenant_id)
    }
    created = []
    for name, description in DEFAULT_CATEGORIES:
        if name.lower() in existing:
            continue
        category = ExpenseCategory(tenant_id=tenant_id, name=name, description=description, is_default=True)
        db.session.add(category)
        created.append(category)
    if commit:
        db.session.commit()
    return created


# =============================================================================
# EXPENSES
# =============================================================================

def _audit_value(value):
    if isinstance(value, date):
        return to_iso_date(value)
    return value


def _write_audit(*, tenant_id: int, expense_id: int, action: str, changes: dict | None, user_id: int | None) -> None:
    db.session.add(ExpenseAudit(
        tenant_id=tenant_id,
        expense_id=expense_id,
        action=action,
        changes=changes,
        changed_by=user_id,
    ))


def _snapshot(expense: Expense) -> dict:
    return {field: _audit_value(getattr(expense, field)) for field in sorted(EXPENSE_POLICY.writable_fields)}


def _validated_patch(tenant_id: int, payload: dict, *, partial: bool) -> dict:
    patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=partial)
    if not partial or "amount_cents" in patch:
        enforce_rules_expense(patch)
    if "category_id" in patch:
        if patch["category_id"] is None:
            raise ValidationError("Category is required")
        get_in_tenant(ExpenseCategory, patch["category_id"], tenant_id, label="Expense category")
    if "expense_date" in patch and patch["expense_date"] is None:
        raise ValidationError("Expense date is required")
    return patch


def list_expenses(
    *,
    tenant_id: int,
    category_id: int | None = None,
    start: date | None = None,
    end: date | None = None,
    search: str | None = None,
    page: int = 1,
    per_page: int = 20,
) -> dict:
    query = db.session.query(Expense).filter(Expense.tenant_id == tenant_id)
    if category_id is not None:
        query = query.filter(Expense.category_id == category_id)
    if start is not None:
        query = query.filter(Expense.expense_date >= start)
    if end is not None:
        query = query.filter(Expense.expense_date <= end)
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(or_(Expense.description.ilike(term), Expense.receipt_reference.ilike(term)))

    query = query.order_by(Expense.expense_date.desc(), Expense.id.desc())
    rows, pagination = paginate(query, page, per_page)
    return {
        "items": [e.to_dict() for e in rows],
        "count": len(rows),
        "pagination": pagination,
    }


def get_expense(*, tenant_id: int, expense_id: int) -> Expense:
    return get_in_tenant(Expense, expense_id, tenant_id, label="Expense")


def create_expense(*, tenant_id: int, payload: dict, user_id: int | None) -> Expense:
    patch = _validated_patch(tenant_id, payload, partial=False)

    expense = Expense(tenant_id=tenant_id, created_by=user_id, **patch)
    db.session.add(expense)
    db.session.flush()

    _write_audit(
        tenant_id=tenant_id,
        expense_id=expense.id,
        action=AUDIT_ACTION_CREATED,
        changes={k: {"old": None, "new": v} for k, v in _snapshot(expense).items()},
        user_id=user_id,
    )
    db.session.commit()
    return expense


def update_expense(*, tenant_id: int, expense_id: int, payload: dict, user_id: int | None) -> Expense:
    """Apply a patch; an audit row records the changed fields only."""
    patch = _validated_patch(tenant_id, payload, partial=True)
    expense = get_in_tenant(Expense, expense_id, tenant_id, label="Expense")

    changes = {}
    for field, new_value in patch.items():
        old_value = getattr(expense, field)
        if old_value != new_value:
            changes[field] = {"old": _audit_value(old_value), "new": _audit_value(new_value)}
            setattr(expense, field, new_value)

    if changes:
        _write_audit(
            tenant_id=tenant_id,
            expense_id=expense.id,
            action=AUDIT_ACTION_UPDATED,
            changes=changes,
            user_id=user_id,
        )
    db.session.commit()
    return expense


def delete_expense(*, tenant_id: int, expense_id: int, user_id: int | None) -> None:
    expense = get_in_tenant(Expense, expense_id, tenant_id, label="Expense")
    _write_audit(
        tenant_id=tenant_id,
        expense_id=expense.id,
        action=AUDIT_ACTION_DELETED,
        changes={k: {"old": v, "new": None} for k, v in _snapshot(expense).items()},
        user_id=user_id,
    )
    db.session.delete(expense)
    db.session.commit()


def expense_audit_history(*, tenant_id: int, expense_id: int) -> list[ExpenseAudit]:
    """Audit rows newest first. Works for deleted expenses too."""
    rows = (
        db.session.query(ExpenseAudit)
        .filter(ExpenseAudit.tenant_id == tenant_id, ExpenseAudit.expense_id == expense_id)
        .order_by(ExpenseAudit.changed_at.desc(), ExpenseAudit.id.desc())
        .all()
    )
    if not rows:
        # Same 404 (and cross-tenant logging) as the other lookups
        get_in_tenant(Expense, expense_id, tenant_id, label="Expense")
    return rows


def expense_total_cents(*, tenant_id: int, start: date | None = None, end: date | None = None) -> int:
    query = db.session.query(func.coalesce(func.sum(Expense.amount_cents), 0)).filter(Expense.tenant_id == tenant_id)
    if start is not None:
        query = query.filter(Expense.expense_date >= start)
    if end is not None:
        query = query.filter(Expense.expense_date <= end)
    return int(query.scalar() or 0)


def expense_summary(*, tenant_id: int, start: date | None = None, end: date | None = None) -> dict:
    """Totals for a date range, broken down per category (largest first)."""
    query = (
        db.session.query(
            ExpenseCategory.id,
            ExpenseCategory.name,
            func.coalesce(func.sum(Expense.amount_cents), 0),
            func.count(Expense.id),
        )
        .join(Expense, Expense.category_id == ExpenseCategory.id)
        .filter(Expense.tenant_id == tenant_id)
    )
    if start is not None:
        query = query.filter(Expense.expense_date >= start)
    if end is not None:
        query = query.filter(Expense.expense_date <= end)

    by_category = [
        {"category_id": cid, "name": name, "amount_cents": int(amount), "count": int(count)}
        for cid, name, amount, count in query.group_by(ExpenseCategory.id, ExpenseCategory.name).all()
    ]
    by_category.sort(key=lambda row: row["amount_cents"], reverse=True)

    return {
        "total_cents": sum(row["amount_cents"] for row in by_category),
        "count": sum(row["count"] for row in by_category),
        "by_category": by_category,
    }
