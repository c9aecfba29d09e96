"""
Return Processing Service

WHY: A return reverses part of a prior sale. It is requested by staff and
only touches stock once an admin approves it.

LIFECYCLE:
1. Create return (pending) - quantities checked against what was sold
2. Approve (stock restored) or reject (no stock effect)
3. Revert to pending - an approved revert takes the restored stock back out

DESIGN PRINCIPLES:
- Returns reference the original Transaction and its line items
- Unit price comes from the sale line, never the current product price
- Every stock effect is a StockHistory row written with the status change
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func, or_

from ..extensions import db
from ..models import Return, ReturnItem, Transaction, TransactionItem
from ..models.inventory import STOCK_ADJUSTMENT, STOCK_RETURN
from ..models.returns import (
    RETURN_STATUS_APPROVED,
    RETURN_STATUS_PENDING,
    RETURN_STATUS_REJECTED,
    RETURN_STATUSES,
)
from ..validation import ValidationError, coerce_int, optional_text, paginate
from retail_pos.time_utils import utcnow
from .concurrency import begin_write, run_with_retry
from .document_service import DOC_RETURN, next_document_number
from .stock_service import StockError, apply_stock_change, lock_products
from .tenant_service import get_in_tenant


class ReturnError(Exception):
    """Raised for return operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


# =============================================================================
# RETURN CREATION
# =============================================================================

def _already_returned(transaction_item_ids: list[int]) -> dict[int, int]:
    """Quantities already claimed by pending or approved returns, per sale line."""
    rows = (
        db.session.query(ReturnItem.transaction_item_id, func.coalesce(func.sum(ReturnItem.quantity), 0))
        .join(Return, ReturnItem.return_id == Return.id)
        .filter(
            ReturnItem.transaction_item_id.in_(transaction_item_ids),
            Return.status.in_((RETURN_STATUS_PENDING, RETURN_STATUS_APPROVED)),
        )
        .group_by(ReturnItem.transaction_item_id)
        .all()
    )
    return {item_id: int(qty) for item_id, qty in rows}


def create_return(
    *,
    tenant_id: int,
    transaction_id,
    items,
    user_id: int | None,
    reason: str | None = None,
) -> Return:
    """
    Create a pending return against a transaction.

    Args:
        items: [{"transaction_item_id": int, "quantity": int}, ...]

    Raises:
        ReturnError: quantity exceeds what can still be returned
        ValidationError: malformed items
        NotFoundError: transaction not in tenant
    """
    transaction_id = coerce_int(transaction_id, "transaction_id")
    if not isinstance(items, list) or not items:
        raise ValidationError("At least one item is required")

    requested: dict[int, int] = {}
    for idx, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{idx}] must be an object")
        item_id = coerce_int(raw.get("transaction_item_id"), f"items[{idx}].transaction_item_id")
        quantity = coerce_int(raw.get("quantity"), f"items[{idx}].quantity")
        if quantity <= 0:
            raise ValidationError(f"items[{idx}].quantity must be greater than zero")
        requested[item_id] = requested.get(item_id, 0) + quantity

    def _op():
        begin_write()
        txn = get_in_tenant(Transaction, transaction_id, tenant_id, label="Transaction", lock=True)

        sale_lines = {item.id: item for item in txn.items}
        unknown = [item_id for item_id in requested if item_id not in sale_lines]
        if unknown:
            raise ReturnError(
                "Return items must belong to the original transaction",
                details={"transaction_item_ids": unknown},
            )

        returned = _already_returned(list(requested))
        too_many = []
        for item_id, quantity in requested.items():
            line = sale_lines[item_id]
            returnable = line.quantity - returned.get(item_id, 0)
            if quantity > returnable:
                too_many.append({
                    "transaction_item_id": item_id,
                    "product_name": line.product_name,
                    "requested_quantity": quantity,
                    "returnable_quantity": returnable,
                })
        if too_many:
            raise ReturnError("Return quantity exceeds purchased quantity", details={"items": too_many})

        return_doc = Return(
            tenant_id=tenant_id,
            return_number=next_document_number(tenant_id=tenant_id, document_type=DOC_RETURN),
            transaction_id=txn.id,
            status=RETURN_STATUS_PENDING,
            reason=optional_text(reason, "reason"),
            created_by=user_id,
        )
        db.session.add(return_doc)
        db.session.flush()

        total = 0
        for item_id, quantity in requested.items():
            line: TransactionItem = sale_lines[item_id]
            subtotal = line.unit_price_cents * quantity
            total += subtotal
            db.session.add(ReturnItem(
                return_id=return_doc.id,
                transaction_item_id=line.id,
                product_id=line.product_id,
                product_name=line.product_name,
                quantity=quantity,
                unit_price_cents=line.unit_price_cents,
                subtotal_cents=subtotal,
            ))
        return_doc.total_amount_cents = total

        db.session.commit()
        return return_doc

    return run_with_retry(_op)


# =============================================================================
# RETURN APPROVAL / REJECTION / REVERT
# =============================================================================

def _load_for_update(tenant_id: int, return_id: int) -> Return:
    return get_in_tenant(Return, return_id, tenant_id, label="Return", lock=True)


def _apply_item_stock(return_doc: Return, *, sign: int, change_type: str, reason: str, user_id: int | None) -> None:
    products = lock_products(return_doc.tenant_id, [item.product_id for item in return_doc.items])
    for item in return_doc.items:
        try:
            apply_stock_change(
                products[item.product_id],
                quantity_change=sign * item.quantity,
                change_type=change_type,
                reason=reason,
                reference_id=return_doc.id,
                user_id=user_id,
            )
        except StockError as e:
            raise ReturnError(
                f"Cannot revert return: stock for {item.product_name} would go negative",
                details=e.details,
            ) from e


def approve_return(*, tenant_id: int, return_id: int, user_id: int) -> Return:
    """
    Approve a pending return and restore its stock.

    Raises:
        ReturnError: If return not pending
    """
    def _op():
        begin_write()
        return_doc = _load_for_update(tenant_id, return_id)
        if return_doc.status != RETURN_STATUS_PENDING:
            raise ReturnError(f"Can only approve pending returns. Return has status: {return_doc.status}")

        _apply_item_stock(
            return_doc,
            sign=1,
            change_type=STOCK_RETURN,
            reason=f"Return approved: {return_doc.return_number}",
            user_id=user_id,
        )

        return_doc.status = RETURN_STATUS_APPROVED
        return_doc.approved_by = user_id
        return_doc.approved_at = utcnow()

        db.session.commit()
        return return_doc

    return_doc = run_with_retry(_op)
    current_app.logger.info("Return approved: %s", return_doc.return_number)
    return return_doc


def reject_return(*, tenant_id: int, return_id: int, user_id: int) -> Return:
    """Reject a pending return. Stock is not touched."""
    def _op():
        return_doc = _load_for_update(tenant_id, return_id)
        if return_doc.status != RETURN_STATUS_PENDING:
            raise ReturnError(f"Can only reject pending returns. Return has status: {return_doc.status}")

        return_doc.status = RETURN_STATUS_REJECTED
        return_doc.approved_by = user_id
        return_doc.approved_at = utcnow()

        db.session.commit()
        return return_doc

    return_doc = run_with_retry(_op)
    current_app.logger.info("Return rejected: %s", return_doc.return_number)
    return return_doc


def revert_return_to_pending(*, tenant_id: int, return_id: int, user_id: int | None) -> Return:
    """
    Move an approved or rejected return back to pending.

    Approved: the restored stock is removed again (adjustment history).
    If any product no longer has that stock, nothing changes.
    """
    def _op():
        begin_write()
        return_doc = _load_for_update(tenant_id, return_id)

        if return_doc.status == RETURN_STATUS_APPROVED:
            _apply_item_stock(
                return_doc,
                sign=-1,
                change_type=STOCK_ADJUSTMENT,
                reason=f"Return reverted: {return_doc.return_number}",
                user_id=user_id,
            )
        elif return_doc.status != RETURN_STATUS_REJECTED:
            raise ReturnError("Only approved or rejected returns can be reverted")

        return_doc.status = RETURN_STATUS_PENDING
        return_doc.approved_by = None
        return_doc.approved_at = None

        db.session.commit()
        return return_doc

    return_doc = run_with_retry(_op)
    current_app.logger.info("Return reverted to pending: %s", return_doc.return_number)
    return return_doc


# =============================================================================
# RETURN QUERIES
# =============================================================================

def list_returns(
    *,
    tenant_id: int,
    status: str | None = None,
    search: str | None = None,
    page: int = 1,
    per_page: int = 20,
) -> dict:
    query = (
        db.session.query(Return)
        .join(Transaction, Return.transaction_id == Transaction.id)
        .filter(Return.tenant_id == tenant_id)
    )
    if status and status != "all":
        if status not in RETURN_STATUSES:
            raise ValidationError(f"Invalid status filter: {status}")
        query = query.filter(Return.status == status)
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(or_(Return.return_number.ilike(term), Transaction.transaction_number.ilike(term)))

    query = query.order_by(Return.created_at.desc(), Return.id.desc())
    rows, pagination = paginate(query, page, per_page)
    return {
        "items": [r.to_dict() for r in rows],
        "count": len(rows),
        "pagination": pagination,
    }


def get_return(*, tenant_id: int, return_id: int) -> Return:
    return get_in_tenant(Return, return_id, tenant_id, label="Return")
