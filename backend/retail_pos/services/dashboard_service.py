# Overview: Dashboard KPIs, low stock, sales trend and daily summary.

"""
Dashboard / Reporting Service

Revenue and profit come from completed transactions. Approved returns are
charged against the period of the ORIGINAL sale (kpis, sales_trend) so a
return never makes a past period look better than it was; the daily
summary uses the approval date instead, for end-of-day cash-up.

Profit uses the unit_cost_cents captured on each sale line, so later cost
edits do not rewrite history.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import func

from ..extensions import db
from ..models import Product, Return, Transaction
from ..models.returns import RETURN_STATUS_APPROVED
from ..models.sales import TRANSACTION_STATUS_COMPLETED
from retail_pos.time_utils import end_of_day, start_of_day, start_of_month, to_naive_utc, utcnow
from .expense_service import expense_total_cents

LOW_STOCK_LIMIT = 10


def _completed_transactions(tenant_id: int, start: datetime | None, end: datetime | None):
    query = db.session.query(Transaction).filter(
        Transaction.tenant_id == tenant_id,
        Transaction.status == TRANSACTION_STATUS_COMPLETED,
    )
    if start is not None:
        query = query.filter(Transaction.created_at >= start)
    if end is not None:
        query = query.filter(Transaction.created_at <= end)
    return query


def _transaction_profit(txn: Transaction) -> int:
    return sum((item.unit_price_cents - item.unit_cost_cents) * item.quantity for item in txn.items)


def _return_profit_loss(return_doc: Return) -> int:
    loss = 0
    for item in return_doc.items:
        unit_cost = item.transaction_item.unit_cost_cents if item.transaction_item else 0
        loss += (item.unit_price_cents - unit_cost) * item.quantity
    return loss


def _approved_returns_by_sale_date(tenant_id: int, start: datetime | None, end: datetime | None) -> list[Return]:
    query = (
        db.session.query(Return)
        .join(Transaction, Return.transaction_id == Transaction.id)
        .filter(Return.tenant_id == tenant_id, Return.status == RETURN_STATUS_APPROVED)
    )
    if start is not None:
        query = query.filter(Transaction.created_at >= start)
    if end is not None:
        query = query.filter(Transaction.created_at <= end)
    return query.all()


def _pct_change(current: int, previous: int) -> float:
    if previous <= 0:
        return 0.0
    return round((current - previous) / previous * 100, 2)


def low_stock_count(*, tenant_id: int) -> int:
    return (
        db.session.query(func.count(Product.id))
        .filter(
            Product.tenant_id == tenant_id,
            Product.is_archived.is_(False),
            Product.stock_quantity <= Product.low_stock_threshold,
        )
        .scalar()
        or 0
    )


def kpis(*, tenant_id: int, start: datetime | None = None, end: datetime | None = None) -> dict:
    """
    Headline numbers for a period (default: start of this month to now).

    total_revenue = gross - returns - expenses
    total_profit  = item margin - returns margin - expenses

    Changes compare gross revenue and sale counts against the preceding
    period of the same length.
    """
    now = utcnow()
    start = to_naive_utc(start) or start_of_month(now)
    end = to_naive_utc(end) or now

    transactions = _completed_transactions(tenant_id, start, end).all()
    gross_revenue = sum(t.total_cents for t in transactions)
    gross_profit = sum(_transaction_profit(t) for t in transactions)
    total_sales = len(transactions)

    returns = _approved_returns_by_sale_date(tenant_id, start, end)
    total_returns = sum(r.total_amount_cents for r in returns)
    returns_profit_loss = sum(_return_profit_loss(r) for r in returns)

    total_expenses = expense_total_cents(tenant_id=tenant_id, start=start.date(), end=end.date())

    period = end - start
    previous_start = start - period
    previous = (
        db.session.query(func.coalesce(func.sum(Transaction.total_cents), 0), func.count(Transaction.id))
        .filter(
            Transaction.tenant_id == tenant_id,
            Transaction.status == TRANSACTION_STATUS_COMPLETED,
            Transaction.created_at >= previous_start,
            Transaction.created_at < start,
        )
        .one()
    )
    previous_revenue, previous_sales = int(previous[0] or 0), int(previous[1] or 0)

    return {
        "period_start": start.isoformat(),
        "period_end": end.isoformat(),
        "gross_revenue_cents": gross_revenue,
        "total_returns_cents": total_returns,
        "total_expenses_cents": total_expenses,
        "total_revenue_cents": gross_revenue - total_returns - total_expenses,
        "total_profit_cents": gross_profit - returns_profit_loss - total_expenses,
        "total_sales": total_sales,
        "low_stock_count": low_stock_count(tenant_id=tenant_id),
        "revenue_change": _pct_change(gross_revenue, previous_revenue),
        "sales_change": _pct_change(total_sales, previous_sales),
        # No previous-period profit model yet
        "profit_change": 0.0,
    }


def low_stock_products(*, tenant_id: int, limit: int = LOW_STOCK_LIMIT) -> list[dict]:
    rows = (
        db.session.query(Product)
        .filter(
            Product.tenant_id == tenant_id,
            Product.is_archived.is_(False),
            Product.stock_quantity <= Product.low_stock_threshold,
        )
        .order_by(Product.stock_quantity.asc(), Product.name.asc())
        .limit(limit)
        .all()
    )
    return [
        {
            "id": p.id,
            "name": p.name,
            "sku": p.sku,
            "stock_quantity": p.stock_quantity,
            "low_stock_threshold": p.low_stock_threshold,
            "base_unit": p.base_unit,
        }
        for p in rows
    ]


def sales_trend(*, tenant_id: int, days: int = 30) -> list[dict]:
    """Daily revenue / profit / sale count, returns netted on the sale date."""
    if days <= 0:
        days = 30
    now = utcnow()
    start = start_of_day((now - timedelta(days=days)).date())

    grouped: dict[str, dict] = {}

    def bucket(dt: datetime) -> dict:
        key = to_naive_utc(dt).date().isoformat()
        return grouped.setdefault(key, {"date": key, "revenue": 0, "profit": 0, "sales": 0})

    for t in _completed_transactions(tenant_id, start, now).order_by(Transaction.created_at.asc()).all():
        row = bucket(t.created_at)
        row["revenue"] += t.total_cents
        row["profit"] += _transaction_profit(t)
        row["sales"] += 1

    for r in _approved_returns_by_sale_date(tenant_id, start, now):
        row = bucket(r.transaction.created_at)
        row["revenue"] -= r.total_amount_cents
        row["profit"] -= _return_profit_loss(r)

    return [grouped[key] for key in sorted(grouped)]


def daily_summary(*, tenant_id: int) -> dict:
    """Today's numbers; returns counted by approval date."""
    today = utcnow().date()
    day_start, day_end = start_of_day(today), end_of_day(today)

    transactions = _completed_transactions(tenant_id, day_start, day_end).all()

    returns = (
        db.session.query(Return)
        .filter(
            Return.tenant_id == tenant_id,
            Return.status == RETURN_STATUS_APPROVED,
            Return.approved_at >= day_start,
            Return.approved_at <= day_end,
        )
        .all()
    )

    return {
        "date": today.isoformat(),
        "gross_sales_cents": sum(t.total_cents for t in transactions),
        "gross_profit_cents": sum(_transaction_profit(t) for t in transactions),
        "returns_cents": sum(r.total_amount_cents for r in returns),
        "returns_profit_loss_cents": sum(_return_profit_loss(r) for r in returns),
        "expenses_cents": expense_total_cents(tenant_id=tenant_id, start=today, end=today),
        "transaction_count": len(transactions),
    }
