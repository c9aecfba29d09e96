# Overview: Customer credit ledger (debt transactions and debt payments).

"""
Debt Service

A debt is a Transaction with status debt_pending and a positive
outstanding_balance_cents. Payments are appended as DebtPayment rows and
reduce the balance; the transaction flips to completed at zero.

INVARIANTS:
- 0 <= outstanding_balance_cents <= total_cents
- total_cents == sum(payments) + outstanding_balance_cents
- a payment can never exceed the outstanding balance
"""

from __future__ import annotations

from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import func, or_

from ..extensions import db
from ..models import Customer, DebtPayment, Transaction
from ..models.sales import (
    DEBT_PAYMENT_METHODS,
    TRANSACTION_STATUS_COMPLETED,
    TRANSACTION_STATUS_DEBT_PENDING,
)
from ..validation import ValidationError, coerce_int, optional_text, paginate
from retail_pos.time_utils import start_of_day, start_of_month, to_naive_utc, to_utc_z, utcnow
from .concurrency import begin_write, run_with_retry
from .export_service import format_money
from .tenant_service import get_in_tenant

AGING_CURRENT = "current"
AGING_OVERDUE_30 = "overdue_30"
AGING_OVERDUE_60 = "overdue_60"
AGING_OVERDUE_90 = "overdue_90"
AGING_BUCKETS = (AGING_CURRENT, AGING_OVERDUE_30, AGING_OVERDUE_60, AGING_OVERDUE_90)

DEBT_SORT_FIELDS = ("date", "amount", "customer", "daysOverdue")


class DebtError(Exception):
    """Raised for debt ledger errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def days_overdue(created_at: datetime, now: datetime | None = None) -> int:
    """Whole days since the sale."""
    now = now or utcnow()
    return int((now - to_naive_utc(created_at)) // timedelta(days=1))


def aging_category(days: int) -> str:
    if days <= 30:
        return AGING_CURRENT
    if days <= 60:
        return AGING_OVERDUE_30
    if days <= 90:
        return AGING_OVERDUE_60
    return AGING_OVERDUE_90


def debt_to_dict(txn: Transaction, *, now: datetime | None = None, include_items: bool = False) -> dict:
    days = days_overdue(txn.created_at, now)
    data = txn.to_dict(include_items=include_items)
    data["days_overdue"] = days
    data["aging_category"] = aging_category(days)
    data["total_paid_cents"] = sum(p.amount_cents for p in txn.debt_payments)
    return data


def _open_debts_query(tenant_id: int):
    return db.session.query(Transaction).filter(
        Transaction.tenant_id == tenant_id,
        Transaction.status == TRANSACTION_STATUS_DEBT_PENDING,
        Transaction.outstanding_balance_cents > 0,
    )


def _filtered_debts_query(
    *,
    tenant_id: int,
    search: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    customer_id: int | None = None,
):
    query = _open_debts_query(tenant_id).outerjoin(Customer, Transaction.customer_id == Customer.id)
    if customer_id is not None:
        query = query.filter(Transaction.customer_id == customer_id)
    if start is not None:
        query = query.filter(Transaction.created_at >= start)
    if end is not None:
        query = query.filter(Transaction.created_at <= end)
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(
            or_(
                Transaction.transaction_number.ilike(term),
                Customer.name.ilike(term),
                Customer.phone.ilike(term),
            )
        )
    return query


def list_debts(
    *,
    tenant_id: int,
    search: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    customer_id: int | None = None,
    sort_by: str = "date",
    sort_order: str = "desc",
    page: int = 1,
    per_page: int = 20,
) -> dict:
    """
    Open debts with aging info.

    sort_by:
    - date: sale date
    - amount: outstanding balance
    - customer: customer name
    - daysOverdue: age of the debt (oldest first when desc)
    """
    if sort_by not in DEBT_SORT_FIELDS:
        raise ValidationError(f"sort_by must be one of: {', '.join(DEBT_SORT_FIELDS)}")
    if sort_order not in ("asc", "desc"):
        raise ValidationError("sort_order must be 'asc' or 'desc'")
    ascending = sort_order == "asc"

    query = _filtered_debts_query(
        tenant_id=tenant_id, search=search, start=start, end=end, customer_id=customer_id
    )

    if sort_by == "amount":
        column = Transaction.outstanding_balance_cents
    elif sort_by == "customer":
        column = Customer.name
    elif sort_by == "daysOverdue":
        # older sale == more days overdue
        column = Transaction.created_at
        ascending = not ascending
    else:
        column = Transaction.created_at
    query = query.order_by(column.asc() if ascending else column.desc(), Transaction.id.desc())

    rows, pagination = paginate(query, page, per_page)
    now = utcnow()
    return {
        "items": [debt_to_dict(t, now=now) for t in rows],
        "count": len(rows),
        "pagination": pagination,
    }


def debt_summary(*, tenant_id: int) -> dict:
    """Outstanding totals, aging buckets and collections for the tenant."""
    now = utcnow()
    aging = {bucket: 0 for bucket in AGING_BUCKETS}
    total_outstanding = 0
    customer_ids = set()

    for t in _open_debts_query(tenant_id).all():
        total_outstanding += t.outstanding_balance_cents
        if t.customer_id is not None:
            customer_ids.add(t.customer_id)
        aging[aging_category(days_overdue(t.created_at, now))] += t.outstanding_balance_cents

    month_start = start_of_month(now)
    today_start = start_of_day(now.date())

    collected_month = (
        db.session.query(func.coalesce(func.sum(DebtPayment.amount_cents), 0))
        .filter(DebtPayment.tenant_id == tenant_id, DebtPayment.payment_date >= month_start)
        .scalar()
    )
    collected_today = (
        db.session.query(func.coalesce(func.sum(DebtPayment.amount_cents), 0))
        .filter(DebtPayment.tenant_id == tenant_id, DebtPayment.payment_date >= today_start)
        .scalar()
    )

    return {
        "total_outstanding_cents": total_outstanding,
        "customer_count": len(customer_ids),
        "aging": aging,
        "collected_this_month_cents": int(collected_month or 0),
        "collected_today_cents": int(collected_today or 0),
    }


def debts_by_customer(*, tenant_id: int, search: str | None = None) -> list[dict]:
    """Open debts grouped per customer, largest outstanding first."""
    query = _open_debts_query(tenant_id).filter(Transaction.customer_id.isnot(None))
    if search:
        term = f"%{search.strip()}%"
        query = query.join(Customer, Transaction.customer_id == Customer.id).filter(
            or_(Customer.name.ilike(term), Customer.phone.ilike(term), Customer.email.ilike(term))
        )

    now = utcnow()
    groups: dict[int, dict] = {}
    for t in query.order_by(Transaction.created_at.asc()).all():
        group = groups.get(t.customer_id)
        if group is None:
            group = groups[t.customer_id] = {
                "customer": t.customer.to_dict(),
                "total_outstanding_cents": 0,
                "transaction_count": 0,
                "oldest_debt_date": to_utc_z(t.created_at),
                "debts": [],
            }
        group["total_outstanding_cents"] += t.outstanding_balance_cents
        group["transaction_count"] += 1
        group["debts"].append(debt_to_dict(t, now=now))

    return sorted(groups.values(), key=lambda g: g["total_outstanding_cents"], reverse=True)


def record_debt_payment(
    *,
    tenant_id: int,
    transaction_id: int,
    amount_cents,
    payment_method: str,
    user_id: int | None,
    notes: str | None = None,
    payment_date: datetime | None = None,
) -> tuple[DebtPayment, Transaction]:
    """
    Record a payment against a debt transaction.

    The transaction row is locked for the read-modify-write of the balance.

    Raises:
        DebtError: not a pending debt, or amount exceeds the balance
        ValidationError: bad amount or payment method
        NotFoundError: transaction not in tenant
    """
    amount = coerce_int(amount_cents, "amount_cents")
    if amount <= 0:
        raise ValidationError("Payment amount must be greater than zero")
    if payment_method not in DEBT_PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of: {', '.join(DEBT_PAYMENT_METHODS)}")

    def _op():
        begin_write()
        txn = get_in_tenant(Transaction, transaction_id, tenant_id, label="Transaction", lock=True)

        if txn.status != TRANSACTION_STATUS_DEBT_PENDING:
            raise DebtError("Transaction is not a pending debt")

        balance = txn.outstanding_balance_cents
        if amount > balance:
            raise DebtError(
                f"Payment amount ({amount}) exceeds outstanding balance ({balance})",
                details={"amount_cents": amount, "outstanding_balance_cents": balance},
            )

        payment = DebtPayment(
            tenant_id=tenant_id,
            transaction_id=txn.id,
            customer_id=txn.customer_id,
            amount_cents=amount,
            payment_method=payment_method,
            notes=optional_text(notes, "notes"),
            recorded_by=user_id,
            payment_date=payment_date or utcnow(),
        )
        db.session.add(payment)

        txn.outstanding_balance_cents = balance - amount
        if txn.outstanding_balance_cents == 0:
            txn.status = TRANSACTION_STATUS_COMPLETED

        db.session.commit()
        return payment, txn

    payment, txn = run_with_retry(_op)
    current_app.logger.info(
        "Debt payment recorded: %s amount=%s balance=%s",
        txn.transaction_number, payment.amount_cents, txn.outstanding_balance_cents,
    )
    return payment, txn


def payment_history(*, tenant_id: int, transaction_id: int) -> list[DebtPayment]:
    """Payments for a transaction, newest first."""
    txn = get_in_tenant(Transaction, transaction_id, tenant_id, label="Transaction")
    return (
        db.session.query(DebtPayment)
        .filter(DebtPayment.tenant_id == tenant_id, DebtPayment.transaction_id == txn.id)
        .order_by(DebtPayment.payment_date.desc(), DebtPayment.id.desc())
        .all()
    )


def get_debt(*, tenant_id: int, transaction_id: int) -> dict:
    txn = get_in_tenant(Transaction, transaction_id, tenant_id, label="Transaction")
    data = debt_to_dict(txn, include_items=True)
    data["payments"] = [p.to_dict() for p in txn.debt_payments]
    return data


def export_rows(*, tenant_id: int, **filters) -> list[dict]:
    """Flat rows for the debts CSV export."""
    now = utcnow()
    query = _filtered_debts_query(tenant_id=tenant_id, **filters).order_by(Transaction.created_at.desc())
    rows = []
    for t in query.all():
        days = days_overdue(t.created_at, now)
        rows.append({
            "Transaction Number": t.transaction_number,
            "Date": t.created_at,
            "Customer": t.customer.name if t.customer else "",
            "Phone": t.customer.phone if t.customer else "",
            "Total": format_money(t.total_cents),
            "Paid": format_money(sum(p.amount_cents for p in t.debt_payments)),
            "Outstanding": format_money(t.outstanding_balance_cents),
            "Days Overdue": days,
            "Aging": aging_category(days),
        })
    return rows
