# Overview: Checkout (sale) processing and transaction lookups.

"""
Transaction Service - cart checkout

WHY: A checkout touches stock, the customer's purchase total and (for pay
later sales) the credit ledger. All of it runs in one DB transaction so a
sale either lands completely or not at all.

CONCURRENCY:
- begin_write() serializes writers on SQLite (BEGIN IMMEDIATE)
- products are locked in id order before their stock is checked
- run_with_retry retries lock / version conflicts
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import Customer, Transaction, TransactionItem
from ..models.inventory import STOCK_SALE
from ..models.sales import (
    DISCOUNT_FIXED,
    DISCOUNT_PERCENTAGE,
    PAYMENT_CASH,
    PAYMENT_DEBT,
    PAYMENT_METHODS,
    TRANSACTION_STATUS_COMPLETED,
    TRANSACTION_STATUS_DEBT_PENDING,
)
from ..validation import ValidationError, coerce_int, paginate
from .concurrency import begin_write, run_with_retry
from .customer_service import outstanding_debt_cents
from .document_service import DOC_TRANSACTION, next_document_number
from .stock_service import StockError, apply_stock_change, lock_products
from .export_service import format_money
from .tenant_service import get_in_tenant

TRANSACTION_STATUSES = (TRANSACTION_STATUS_COMPLETED, TRANSACTION_STATUS_DEBT_PENDING, "pending")


class TransactionError(Exception):
    """Raised for checkout errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def resolve_discount(subtotal_cents: int, discount_value: int, discount_type: str | None = None) -> tuple[str, int]:
    """
    Work out the discount type and amount for a cart.

    Without an explicit type, a value in (0, 100] is a percentage of the
    subtotal and anything larger is a fixed amount in cents.
    The amount never exceeds the subtotal.
    """
    if discount_value < 0:
        raise ValidationError("discount_value must be >= 0")

    if discount_type is None:
        discount_type = DISCOUNT_PERCENTAGE if 0 < discount_value <= 100 else DISCOUNT_FIXED

    if discount_type == DISCOUNT_PERCENTAGE:
        if discount_value > 100:
            raise ValidationError("Percentage discount cannot exceed 100")
        amount = (subtotal_cents * discount_value + 50) // 100
    elif discount_type == DISCOUNT_FIXED:
        amount = discount_value
    else:
        raise ValidationError(f"Invalid discount_type: {discount_type}")

    return discount_type, min(amount, subtotal_cents)


def _parse_cart(items) -> list[dict]:
    if not isinstance(items, list) or not items:
        raise TransactionError("Cart is empty")

    cart = []
    for idx, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{idx}] must be an object")
        if "product_id" not in raw:
            raise ValidationError(f"items[{idx}].product_id is required")
        product_id = coerce_int(raw["product_id"], f"items[{idx}].product_id")
        quantity = coerce_int(raw.get("quantity"), f"items[{idx}].quantity")
        if quantity <= 0:
            raise ValidationError(f"items[{idx}].quantity must be a positive integer")

        unit_price = raw.get("unit_price_cents")
        if unit_price is not None:
            unit_price = coerce_int(unit_price, f"items[{idx}].unit_price_cents")
            if unit_price < 0:
                raise ValidationError(f"items[{idx}].unit_price_cents must be >= 0")

        cart.append({"product_id": product_id, "quantity": quantity, "unit_price_cents": unit_price})
    return cart


def create_transaction(
    *,
    tenant_id: int,
    user_id: int | None,
    items,
    payment_method: str,
    customer_id: int | None = None,
    discount_value=0,
    discount_type: str | None = None,
    amount_tendered_cents=None,
) -> Transaction:
    """
    Check out a cart.

    - cash: amount_tendered_cents must cover the total; change is returned
    - debt: needs a credit-approved customer whose outstanding debt plus
      this total stays within their credit limit (if they have one)
    - mpesa / bank: completed immediately

    Raises:
        TransactionError: business rule failure (stock, credit, tender)
        ValidationError: malformed input
        NotFoundError: product or customer not in tenant
    """
    cart = _parse_cart(items)

    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")

    discount_value = coerce_int(discount_value or 0, "discount_value")
    if customer_id is not None:
        customer_id = coerce_int(customer_id, "customer_id")
    if amount_tendered_cents is not None:
        amount_tendered_cents = coerce_int(amount_tendered_cents, "amount_tendered_cents")

    if payment_method == PAYMENT_DEBT and customer_id is None:
        raise TransactionError("A customer is required for debt transactions")

    def _op():
        begin_write()

        customer = None
        if customer_id is not None:
            customer = get_in_tenant(Customer, customer_id, tenant_id, label="Customer", lock=True)

        products = lock_products(tenant_id, [line["product_id"] for line in cart])

        # Price the cart and check stock before touching anything
        requested: dict[int, int] = {}
        subtotal = 0
        for line in cart:
            product = products[line["product_id"]]
            if product.is_archived:
                raise TransactionError(f"Product {product.name} is archived and cannot be sold")

            unit_price = line["unit_price_cents"]
            if unit_price is None:
                if product.is_variable_price or product.price_cents is None:
                    raise TransactionError(f"A price is required for variable-price product {product.name}")
                unit_price = product.price_cents
            line["unit_price_cents"] = unit_price
            subtotal += unit_price * line["quantity"]
            requested[product.id] = requested.get(product.id, 0) + line["quantity"]

        insufficient = [
            {
                "product_id": pid,
                "product_name": products[pid].name,
                "requested_quantity": qty,
                "stock_quantity": products[pid].stock_quantity,
            }
            for pid, qty in requested.items()
            if products[pid].stock_quantity < qty
        ]
        if insufficient:
            raise TransactionError("Insufficient stock", details={"items": insufficient})

        resolved_type, discount_amount = resolve_discount(subtotal, discount_value, discount_type)
        total = max(0, subtotal - discount_amount)

        change = 0
        status = TRANSACTION_STATUS_COMPLETED
        outstanding = 0

        if payment_method == PAYMENT_CASH:
            if amount_tendered_cents is None or amount_tendered_cents < total:
                raise TransactionError(
                    "Amount tendered is less than the total",
                    details={"total_cents": total, "amount_tendered_cents": amount_tendered_cents},
                )
            change = amount_tendered_cents - total
        elif payment_method == PAYMENT_DEBT:
            if not customer.is_credit_approved:
                raise TransactionError("Customer is not approved for credit")
            if customer.credit_limit_cents is not None:
                current_debt = outstanding_debt_cents(tenant_id, customer.id)
                if current_debt + total > customer.credit_limit_cents:
                    raise TransactionError(
                        "Credit limit exceeded",
                        details={
                            "credit_limit_cents": customer.credit_limit_cents,
                            "outstanding_debt_cents": current_debt,
                            "available_credit_cents": max(0, customer.credit_limit_cents - current_debt),
                            "total_cents": total,
                        },
                    )
            status = TRANSACTION_STATUS_DEBT_PENDING
            outstanding = total

        txn = Transaction(
            tenant_id=tenant_id,
            transaction_number=next_document_number(tenant_id=tenant_id, document_type=DOC_TRANSACTION),
            customer_id=customer.id if customer else None,
            subtotal_cents=subtotal,
            discount_type=resolved_type,
            discount_value=discount_value,
            discount_amount_cents=discount_amount,
            total_cents=total,
            payment_method=payment_method,
            amount_tendered_cents=amount_tendered_cents,
            change_cents=change,
            status=status,
            outstanding_balance_cents=outstanding,
            created_by=user_id,
        )
        db.session.add(txn)
        db.session.flush()

        for line in cart:
            product = products[line["product_id"]]
            db.session.add(TransactionItem(
                tenant_id=tenant_id,
                transaction_id=txn.id,
                product_id=product.id,
                product_name=product.name,
                product_sku=product.sku,
                quantity=line["quantity"],
                unit_price_cents=line["unit_price_cents"],
                unit_cost_cents=product.cost_cents or 0,
                subtotal_cents=line["unit_price_cents"] * line["quantity"],
            ))
            try:
                apply_stock_change(
                    product,
                    quantity_change=-line["quantity"],
                    change_type=STOCK_SALE,
                    reason=f"Sale - Transaction {txn.transaction_number}",
                    reference_id=txn.id,
                    user_id=user_id,
                )
            except StockError as e:
                raise TransactionError(str(e), details=e.details) from e

        if customer is not None:
            customer.total_purchases_cents = (customer.total_purchases_cents or 0) + total

        db.session.commit()
        return txn

    txn = run_with_retry(_op)
    current_app.logger.info(
        "Sale completed: %s total=%s method=%s status=%s",
        txn.transaction_number, txn.total_cents, txn.payment_method, txn.status,
    )
    return txn


def _filtered_query(
    *,
    tenant_id: int,
    start: datetime | None = None,
    end: datetime | None = None,
    payment_method: str | None = None,
    status: str | None = None,
    customer_id: int | None = None,
    search: str | None = None,
):
    query = db.session.query(Transaction).filter(Transaction.tenant_id == tenant_id)
    if start is not None:
        query = query.filter(Transaction.created_at >= start)
    if end is not None:
        query = query.filter(Transaction.created_at <= end)
    if payment_method and payment_method != "all":
        if payment_method not in PAYMENT_METHODS:
            raise ValidationError(f"Invalid payment_method filter: {payment_method}")
        query = query.filter(Transaction.payment_method == payment_method)
    if status and status != "all":
        if status not in TRANSACTION_STATUSES:
            raise ValidationError(f"Invalid status filter: {status}")
        query = query.filter(Transaction.status == status)
    if customer_id is not None:
        query = query.filter(Transaction.customer_id == customer_id)
    if search:
        query = query.filter(Transaction.transaction_number.ilike(f"%{search.strip()}%"))
    return query.order_by(Transaction.created_at.desc(), Transaction.id.desc())


def list_transactions(*, tenant_id: int, page: int = 1, per_page: int = 20, **filters) -> dict:
    """Transactions newest first, filtered by date range, method, status, customer or number."""
    query = _filtered_query(tenant_id=tenant_id, **filters)
    rows, pagination = paginate(query, page, per_page)
    return {
        "items": [t.to_dict() for t in rows],
        "count": len(rows),
        "pagination": pagination,
    }


def get_transaction(*, tenant_id: int, transaction_id: int) -> dict:
    """Transaction detail with items, customer and debt payments."""
    txn = get_in_tenant(Transaction, transaction_id, tenant_id, label="Transaction")
    data = txn.to_dict(include_items=True)
    data["payments"] = [p.to_dict() for p in txn.debt_payments]
    return data


def export_rows(*, tenant_id: int, **filters) -> list[dict]:
    """Flat rows for the transactions CSV export."""
    rows = []
    for t in _filtered_query(tenant_id=tenant_id, **filters).all():
        rows.append({
            "Transaction Number": t.transaction_number,
            "Date": t.created_at,
            "Customer": t.customer.name if t.customer else "Walk-in",
            "Items": sum(item.quantity for item in t.items),
            "Subtotal": format_money(t.subtotal_cents),
            "Discount": format_money(t.discount_amount_cents),
            "Total": format_money(t.total_cents),
            "Payment Method": t.payment_method,
            "Status": t.status,
            "Outstanding": format_money(t.outstanding_balance_cents),
            "Cashier": t.creator.full_name if t.creator else "",
        })
    return rows
