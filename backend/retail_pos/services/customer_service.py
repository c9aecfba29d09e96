# Overview: Service-layer operations for customers and their credit terms.

"""
Customer Service

MULTI-TENANT: Customers are scoped to tenants via tenant_id.

CREDIT:
- is_credit_approved gates debt (pay later) checkouts
- credit_limit_cents caps total outstanding debt; NULL means unlimited
- outstanding debt is the sum of outstanding_balance_cents across the
  customer's debt_pending transactions
"""

from __future__ import annotations

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Customer, Transaction
from ..models.sales import TRANSACTION_STATUS_DEBT_PENDING
from ..validation import (
    ModelValidationPolicy,
    enforce_rules_customer,
    paginate,
    validate_payload,
)
from .tenant_service import get_in_tenant

CUSTOMERS_PER_PAGE = 50

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "email", "is_credit_approved", "credit_limit_cents"},
    required_on_create={"name"},
)


class CustomerError(Exception):
    """Raised when customer data fails validation."""
    pass


def list_customers(
    *,
    tenant_id: int,
    search: str | None = None,
    page: int = 1,
    per_page: int = CUSTOMERS_PER_PAGE,
) -> dict:
    """Customers ordered by name; search matches name, phone or email."""
    query = db.session.query(Customer).filter(Customer.tenant_id == tenant_id)
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(
            or_(Customer.name.ilike(term), Customer.phone.ilike(term), Customer.email.ilike(term))
        )
    query = query.order_by(Customer.name.asc(), Customer.id.asc())

    rows, pagination = paginate(query, page, per_page)
    return {
        "items": [c.to_dict() for c in rows],
        "count": len(rows),
        "pagination": pagination,
    }


def get_customer(*, tenant_id: int, customer_id: int) -> Customer:
    return get_in_tenant(Customer, customer_id, tenant_id, label="Customer")


def _normalize(patch: dict) -> dict:
    if "email" in patch and patch["email"]:
        email = patch["email"].lower()
        if "@" not in email:
            raise CustomerError("Invalid email address")
        patch["email"] = email
    for field in ("phone", "email"):
        if field in patch and patch[field] == "":
            patch[field] = None
    enforce_rules_customer(patch)
    return patch


def create_customer(*, tenant_id: int, payload: dict) -> Customer:
    patch = _normalize(validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False))

    customer = Customer(tenant_id=tenant_id, total_purchases_cents=0)
    for k, v in patch.items():
        setattr(customer, k, v)

    db.session.add(customer)
    db.session.commit()
    return customer


def update_customer(*, tenant_id: int, customer_id: int, payload: dict) -> Customer:
    patch = _normalize(validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True))

    customer = get_in_tenant(Customer, customer_id, tenant_id, label="Customer")
    for k, v in patch.items():
        setattr(customer, k, v)

    db.session.commit()
    return customer


def customer_transactions(*, tenant_id: int, customer_id: int, limit: int = 10) -> list[Transaction]:
    """Most recent transactions for a customer."""
    customer = get_in_tenant(Customer, customer_id, tenant_id, label="Customer")
    return (
        db.session.query(Transaction)
        .filter(Transaction.tenant_id == tenant_id, Transaction.customer_id == customer.id)
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .limit(limit)
        .all()
    )


def outstanding_debt_cents(tenant_id: int, customer_id: int) -> int:
    """Sum of open debt balances for a customer."""
    total = (
        db.session.query(func.coalesce(func.sum(Transaction.outstanding_balance_cents), 0))
        .filter(
            Transaction.tenant_id == tenant_id,
            Transaction.customer_id == customer_id,
            Transaction.status == TRANSACTION_STATUS_DEBT_PENDING,
            Transaction.outstanding_balance_cents > 0,
        )
        .scalar()
    )
    return int(total or 0)


def credit_status(*, tenant_id: int, customer_id: int) -> dict:
    """
    Credit position for a customer.

    available_credit_cents is None when the customer has no credit limit.
    """
    customer = get_in_tenant(Customer, customer_id, tenant_id, label="Customer")

    outstanding = outstanding_debt_cents(tenant_id, customer.id)
    pending = (
        db.session.query(func.count(Transaction.id))
        .filter(
            Transaction.tenant_id == tenant_id,
            Transaction.customer_id == customer.id,
            Transaction.status == TRANSACTION_STATUS_DEBT_PENDING,
            Transaction.outstanding_balance_cents > 0,
        )
        .scalar()
    )

    available = None
    if customer.credit_limit_cents is not None:
        available = max(0, customer.credit_limit_cents - outstanding)

    return {
        "customer_id": customer.id,
        "is_credit_approved": customer.is_credit_approved,
        "credit_limit_cents": customer.credit_limit_cents,
        "outstanding_debt_cents": outstanding,
        "available_credit_cents": available,
        "pending_transactions": int(pending or 0),
    }
