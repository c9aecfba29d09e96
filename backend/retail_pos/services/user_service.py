# Overview: Tenant user administration and password changes.

"""
User Management Service

Admins manage the users of their own tenant. Every lookup goes through
get_in_tenant, so a user id from another tenant is a plain 404.

RULES:
- an admin cannot delete or demote themselves (a tenant always keeps
  the admin that is using it)
- password changes revoke the user's other sessions
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import (
    DebtPayment,
    Expense,
    ExpenseAudit,
    Product,
    PurchaseOrder,
    Return,
    SecurityEvent,
    SessionToken,
    StockHistory,
    Transaction,
    User,
)
from ..models.auth import ROLE_ADMIN, VALID_ROLES
from ..validation import ValidationError, optional_text, paginate
from .auth_service import (
    _bcrypt_rounds,
    create_user as _create_user,
    hash_password,
    verify_password,
)
from .session_service import revoke_all_user_sessions
from .tenant_service import get_in_tenant

USER_UPDATABLE_FIELDS = {"full_name", "role", "is_active"}


class UserError(Exception):
    """Raised for user management errors."""
    pass


def list_users(
    *,
    tenant_id: int,
    role: str | None = None,
    search: str | None = None,
    page: int = 1,
    per_page: int = 20,
) -> dict:
    query = db.session.query(User).filter(User.tenant_id == tenant_id)
    if role and role != "all":
        if role not in VALID_ROLES:
            raise ValidationError(f"Invalid role filter: {role}")
        query = query.filter(User.role == role)
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(or_(User.full_name.ilike(term), User.email.ilike(term)))

    query = query.order_by(User.full_name.asc(), User.id.asc())
    rows, pagination = paginate(query, page, per_page)
    return {
        "items": [u.to_dict() for u in rows],
        "count": len(rows),
        "pagination": pagination,
    }


def get_user(*, tenant_id: int, user_id: int) -> User:
    return get_in_tenant(User, user_id, tenant_id, label="User")


def create_user(*, tenant_id: int, email: str, full_name: str, password: str, role: str) -> User:
    user = _create_user(tenant_id=tenant_id, email=email, full_name=full_name, password=password, role=role)
    current_app.logger.info("User %s created in tenant %s (role=%s)", user.id, tenant_id, role)
    return user


def update_user(*, tenant_id: int, user_id: int, payload: dict, acting_user_id: int) -> User:
    """Update full_name, role or is_active."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    unknown = sorted(set(payload) - USER_UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Field not allowed: {unknown[0]}")

    user = get_in_tenant(User, user_id, tenant_id, label="User")
    is_self = user.id == acting_user_id

    if "full_name" in payload:
        full_name = optional_text(payload["full_name"], "full_name")
        if not full_name:
            raise ValidationError("full_name cannot be blank")
        user.full_name = full_name

    if "role" in payload:
        role = payload["role"]
        if role not in VALID_ROLES:
            raise ValidationError(f"Invalid role: {role}. Must be one of: {', '.join(VALID_ROLES)}")
        if is_self and user.role == ROLE_ADMIN and role != ROLE_ADMIN:
            raise UserError("You cannot change your own role")
        user.role = role

    if "is_active" in payload:
        is_active = payload["is_active"]
        if not isinstance(is_active, bool):
            raise ValidationError("is_active must be a boolean")
        if is_self and not is_active:
            raise UserError("You cannot deactivate your own account")
        user.is_active = is_active

    db.session.commit()

    if user.is_active is False:
        revoke_all_user_sessions(user.id, reason="User deactivated")
    return user


def _has_activity(user_id: int) -> bool:
    """True when any business record points at the user."""
    columns = (
        Transaction.created_by,
        DebtPayment.recorded_by,
        Return.created_by,
        Return.approved_by,
        StockHistory.created_by,
        Product.created_by,
        PurchaseOrder.created_by,
        Expense.created_by,
        ExpenseAudit.changed_by,
    )
    for column in columns:
        if db.session.query(column).filter(column == user_id).first() is not None:
            return True
    return False


def delete_user(*, tenant_id: int, user_id: int, acting_user_id: int) -> None:
    user = get_in_tenant(User, user_id, tenant_id, label="User")
    if user.id == acting_user_id:
        raise UserError("You cannot delete your own account")

    if _has_activity(user.id):
        raise UserError("User has recorded activity and cannot be deleted; deactivate them instead")

    db.session.query(SessionToken).filter_by(user_id=user.id).delete(synchronize_session=False)
    db.session.query(SecurityEvent).filter_by(user_id=user.id).update({"user_id": None}, synchronize_session=False)
    db.session.delete(user)
    db.session.commit()
    current_app.logger.info("User %s deleted from tenant %s", user_id, tenant_id)


def set_password(*, tenant_id: int, user_id: int, new_password: str) -> User:
    """Admin sets another user's password; all of that user's sessions end."""
    user = get_in_tenant(User, user_id, tenant_id, label="User")
    user.password_hash = hash_password(new_password, rounds=_bcrypt_rounds())
    db.session.commit()
    revoke_all_user_sessions(user.id, reason="Password reset by admin")
    return user


def change_own_password(
    *,
    user: User,
    current_password: str,
    new_password: str,
    current_session_id: int | None = None,
) -> User:
    """Change the caller's password; other sessions are revoked."""
    if not verify_password(current_password or "", user.password_hash):
        raise UserError("Current password is incorrect")
    if current_password == new_password:
        raise UserError("New password must be different from the current password")

    user.password_hash = hash_password(new_password, rounds=_bcrypt_rounds())
    db.session.commit()
    revoke_all_user_sessions(user.id, reason="Password changed", except_session_id=current_session_id)
    return user
