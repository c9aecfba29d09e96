# Overview: Purchase orders to suppliers and restocking on receipt.

"""
Purchase Order Service

LIFECYCLE:
    draft -> ordered -> received -> completed

Marking a PO received restocks every item and completes the PO in the same
DB transaction, so stock is never added twice and never half-added.
Completed POs are final.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import Product, PurchaseOrder, PurchaseOrderItem
from ..models.inventory import STOCK_RESTOCK
from ..models.purchasing import (
    PO_STATUS_COMPLETED,
    PO_STATUS_DRAFT,
    PO_STATUS_ORDERED,
    PO_STATUS_RECEIVED,
    PO_STATUSES,
)
from ..validation import ValidationError, coerce_int, optional_text, paginate
from retail_pos.time_utils import parse_iso_date, utcnow
from .concurrency import begin_write, run_with_retry
from .document_service import DOC_PURCHASE_ORDER, next_document_number
from .stock_service import apply_stock_change, lock_products
from .tenant_service import get_in_tenant

EDITABLE_STATUSES = (PO_STATUS_DRAFT, PO_STATUS_ORDERED)


class PurchaseOrderError(Exception):
    """Raised for purchase order operation errors."""
    pass


def _parse_expected_date(value):
    if value in (None, ""):
        return None
    try:
        return parse_iso_date(value)
    except (TypeError, ValueError):
        raise ValidationError("expected_date must be an ISO-8601 date")


def _build_items(tenant_id: int, items) -> list[PurchaseOrderItem]:
    if not isinstance(items, list) or not items:
        raise ValidationError("At least one item is required")

    built = []
    for idx, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{idx}] must be an object")
        product_id = coerce_int(raw.get("product_id"), f"items[{idx}].product_id")
        quantity = coerce_int(raw.get("quantity"), f"items[{idx}].quantity")
        cost = coerce_int(raw.get("cost_per_unit_cents"), f"items[{idx}].cost_per_unit_cents")
        if quantity <= 0:
            raise ValidationError(f"items[{idx}].quantity must be greater than zero")
        if cost < 0:
            raise ValidationError(f"items[{idx}].cost_per_unit_cents must be >= 0")

        product = get_in_tenant(Product, product_id, tenant_id, label="Product")
        built.append(PurchaseOrderItem(
            product_id=product.id,
            product_name=optional_text(raw.get("product_name"), f"items[{idx}].product_name") or product.name,
            quantity=quantity,
            cost_per_unit_cents=cost,
            total_cost_cents=quantity * cost,
        ))
    return built


def list_purchase_orders(
    *,
    tenant_id: int,
    status: str | None = None,
    search: str | None = None,
    page: int = 1,
    per_page: int = 20,
) -> dict:
    query = db.session.query(PurchaseOrder).filter(PurchaseOrder.tenant_id == tenant_id)
    if status and status != "all":
        if status not in PO_STATUSES:
            raise ValidationError(f"Invalid status filter: {status}")
        query = query.filter(PurchaseOrder.status == status)
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(or_(PurchaseOrder.po_number.ilike(term), PurchaseOrder.supplier_name.ilike(term)))

    query = query.order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc())
    rows, pagination = paginate(query, page, per_page)
    return {
        "items": [po.to_dict() for po in rows],
        "count": len(rows),
        "pagination": pagination,
    }


def get_purchase_order(*, tenant_id: int, po_id: int) -> PurchaseOrder:
    return get_in_tenant(PurchaseOrder, po_id, tenant_id, label="Purchase order")


def create_purchase_order(
    *,
    tenant_id: int,
    user_id: int | None,
    supplier_name: str | None,
    items,
    supplier_contact: str | None = None,
    notes: str | None = None,
    expected_date=None,
) -> PurchaseOrder:
    """Create a draft purchase order; the total is the sum of item totals."""
    supplier_name = optional_text(supplier_name, "supplier_name")
    if not supplier_name:
        raise ValidationError("Supplier name is required")
    supplier_contact = optional_text(supplier_contact, "supplier_contact")
    notes = optional_text(notes, "notes")
    expected = _parse_expected_date(expected_date)

    def _op():
        po_items = _build_items(tenant_id, items)
        po = PurchaseOrder(
            tenant_id=tenant_id,
            po_number=next_document_number(tenant_id=tenant_id, document_type=DOC_PURCHASE_ORDER),
            supplier_name=supplier_name,
            supplier_contact=supplier_contact,
            status=PO_STATUS_DRAFT,
            notes=notes,
            expected_date=expected,
            total_cost_cents=sum(item.total_cost_cents for item in po_items),
            created_by=user_id,
        )
        po.items = po_items
        db.session.add(po)
        db.session.commit()
        return po

    return run_with_retry(_op)


def update_purchase_order(*, tenant_id: int, po_id: int, payload: dict) -> PurchaseOrder:
    """
    Update header fields and optionally replace the items wholesale.

    Only draft and ordered POs can be edited.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    allowed = {"supplier_name", "supplier_contact", "notes", "expected_date", "items"}
    unknown = sorted(set(payload) - allowed)
    if unknown:
        raise ValidationError(f"Field not allowed: {unknown[0]}")

    po = get_in_tenant(PurchaseOrder, po_id, tenant_id, label="Purchase order")
    if po.status not in EDITABLE_STATUSES:
        raise PurchaseOrderError(f"Cannot edit a purchase order with status {po.status}")

    if "supplier_name" in payload:
        name = optional_text(payload["supplier_name"], "supplier_name")
        if not name:
            raise ValidationError("Supplier name is required")
        po.supplier_name = name
    if "supplier_contact" in payload:
        po.supplier_contact = optional_text(payload["supplier_contact"], "supplier_contact")
    if "notes" in payload:
        po.notes = optional_text(payload["notes"], "notes")
    if "expected_date" in payload:
        po.expected_date = _parse_expected_date(payload["expected_date"])

    if "items" in payload:
        po.items = _build_items(tenant_id, payload["items"])
        po.total_cost_cents = sum(item.total_cost_cents for item in po.items)

    db.session.commit()
    return po


def _restock_and_complete(po: PurchaseOrder, user_id: int | None) -> None:
    products = lock_products(po.tenant_id, [item.product_id for item in po.items])
    for item in po.items:
        apply_stock_change(
            products[item.product_id],
            quantity_change=item.quantity,
            change_type=STOCK_RESTOCK,
            reason=f"Restock from PO {po.po_number}",
            reference_id=po.id,
            user_id=user_id,
        )
    po.status = PO_STATUS_COMPLETED
    po.received_at = utcnow()


def update_status(*, tenant_id: int, po_id: int, status: str, user_id: int | None) -> PurchaseOrder:
    """
    Change a PO's status.

    'received' restocks every item and completes the PO. 'completed' cannot
    be set directly, and completed POs cannot change status.
    """
    if status not in PO_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(PO_STATUSES)}")
    if status == PO_STATUS_COMPLETED:
        raise PurchaseOrderError("Mark the purchase order as received to complete it")

    def _op():
        begin_write()
        po = get_in_tenant(PurchaseOrder, po_id, tenant_id, label="Purchase order", lock=True)
        if po.status == PO_STATUS_COMPLETED:
            raise PurchaseOrderError("Completed purchase orders cannot change status")

        if status == PO_STATUS_RECEIVED:
            _restock_and_complete(po, user_id)
        else:
            po.status = status

        db.session.commit()
        return po

    po = run_with_retry(_op)
    if po.status == PO_STATUS_COMPLETED:
        current_app.logger.info("PO received: %s (%s items)", po.po_number, len(po.items))
    return po


def restock_from_purchase_order(*, tenant_id: int, po_id: int, user_id: int | None) -> PurchaseOrder:
    """Restock a PO that is sitting in received status and complete it."""
    def _op():
        begin_write()
        po = get_in_tenant(PurchaseOrder, po_id, tenant_id, label="Purchase order", lock=True)
        if po.status != PO_STATUS_RECEIVED:
            raise PurchaseOrderError("Purchase order must be in received status to restock")
        _restock_and_complete(po, user_id)
        db.session.commit()
        return po

    po = run_with_retry(_op)
    current_app.logger.info("PO received: %s (%s items)", po.po_number, len(po.items))
    return po


def list_suppliers(*, tenant_id: int) -> list[dict]:
    """Unique supplier name/contact pairs, sorted by name."""
    rows = (
        db.session.query(PurchaseOrder.supplier_name, PurchaseOrder.supplier_contact)
        .filter(PurchaseOrder.tenant_id == tenant_id)
        .distinct()
        .order_by(PurchaseOrder.supplier_name.asc())
        .all()
    )
    return [{"supplier_name": name, "supplier_contact": contact} for name, contact in rows]


def delete_purchase_order(*, tenant_id: int, po_id: int) -> None:
    po = get_in_tenant(PurchaseOrder, po_id, tenant_id, label="Purchase order")
    if po.status != PO_STATUS_DRAFT:
        raise PurchaseOrderError("Only draft purchase orders can be deleted")
    db.session.delete(po)
    db.session.commit()
