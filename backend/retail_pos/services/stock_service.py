# Overview: Stock mutations and the stock history log.

"""
Stock Service

Every change to Product.stock_quantity goes through apply_stock_change(),
which runs inside the caller's DB transaction on a locked product row and
appends the matching StockHistory entry.

INVARIANT: stock_quantity never goes below zero. A change that would make
it negative raises StockError and the caller's whole operation rolls back.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Product, StockHistory
from ..models.inventory import (
    STOCK_ADJUSTMENT,
    STOCK_HISTORY_TYPES,
    STOCK_RESTOCK,
)
from ..validation import ValidationError, coerce_int, optional_text, paginate
from .concurrency import begin_write, run_with_retry
from .tenant_service import get_in_tenant


class StockError(Exception):
    """Raised for stock operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def lock_product(tenant_id: int, product_id: int) -> Product:
    """Load and row-lock a product within the tenant (NotFoundError if absent)."""
    return get_in_tenant(Product, product_id, tenant_id, label="Product", lock=True)


def lock_products(tenant_id: int, product_ids) -> dict[int, Product]:
    """
    Lock several products in ascending id order.

    A fixed lock order keeps two multi-item operations from deadlocking
    against each other.
    """
    locked: dict[int, Product] = {}
    for product_id in sorted(set(product_ids)):
        locked[product_id] = lock_product(tenant_id, product_id)
    return locked


def apply_stock_change(
    product: Product,
    *,
    quantity_change: int,
    change_type: str,
    reason: str | None,
    reference_id: int | None = None,
    user_id: int | None = None,
) -> StockHistory:
    """
    Apply a signed quantity change to a locked product and log it.

    Does not commit; the caller owns the transaction.
    """
    if change_type not in STOCK_HISTORY_TYPES:
        raise StockError(f"Invalid stock change type: {change_type}")

    new_quantity = product.stock_quantity + quantity_change
    if new_quantity < 0:
        raise StockError(
            "Stock quantity cannot be negative",
            details={
                "product_id": product.id,
                "product_name": product.name,
                "stock_quantity": product.stock_quantity,
                "quantity_change": quantity_change,
            },
        )

    product.stock_quantity = new_quantity

    entry = StockHistory(
        tenant_id=product.tenant_id,
        product_id=product.id,
        type=change_type,
        quantity_change=quantity_change,
        quantity_after=new_quantity,
        reason=reason,
        reference_id=reference_id,
        created_by=user_id,
    )
    db.session.add(entry)
    return entry


def adjust_stock(
    *,
    tenant_id: int,
    product_id: int,
    adjustment_type: str,
    quantity,
    reason: str | None,
    user_id: int | None,
) -> tuple[Product, StockHistory]:
    """
    Manual stock adjustment.

    - restock: quantity must be a positive integer and is added
    - adjustment: quantity is a signed, non-zero delta

    Raises StockError("Stock quantity cannot be negative") if the result
    would go below zero.
    """
    if adjustment_type not in (STOCK_RESTOCK, STOCK_ADJUSTMENT):
        raise ValidationError("type must be 'restock' or 'adjustment'")

    quantity = coerce_int(quantity, "quantity")
    if adjustment_type == STOCK_RESTOCK and quantity <= 0:
        raise ValidationError("Restock quantity must be greater than zero")
    if adjustment_type == STOCK_ADJUSTMENT and quantity == 0:
        raise ValidationError("Adjustment quantity must be non-zero")

    reason = optional_text(reason, "reason")
    default_reason = "Manual restock" if adjustment_type == STOCK_RESTOCK else "Manual adjustment"

    def _op():
        begin_write()
        product = lock_product(tenant_id, product_id)
        entry = apply_stock_change(
            product,
            quantity_change=quantity,
            change_type=adjustment_type,
            reason=reason or default_reason,
            user_id=user_id,
        )
        db.session.commit()
        return product, entry

    product, entry = run_with_retry(_op)
    current_app.logger.info(
        "Stock %s on product %s: %+d -> %s", adjustment_type, product.id, quantity, product.stock_quantity
    )
    return product, entry


def get_stock_history(
    *,
    tenant_id: int,
    product_id: int,
    change_type: str | None = None,
    page: int = 1,
    per_page: int = 20,
) -> dict:
    """Stock history for a product, newest first."""
    product = get_in_tenant(Product, product_id, tenant_id, label="Product")

    query = db.session.query(StockHistory).filter(
        StockHistory.tenant_id == tenant_id,
        StockHistory.product_id == product.id,
    )
    if change_type and change_type != "all":
        if change_type not in STOCK_HISTORY_TYPES:
            raise ValidationError(f"Invalid type filter: {change_type}")
        query = query.filter(StockHistory.type == change_type)

    query = query.order_by(StockHistory.created_at.desc(), StockHistory.id.desc())
    rows, pagination = paginate(query, page, per_page)

    return {
        "product": product.to_dict(),
        "items": [row.to_dict() for row in rows],
        "count": len(rows),
        "pagination": pagination,
    }
