# backend/retail_pos/services/products_service.py
"""
Products Service with Multi-Tenant Support

MULTI-TENANT: All product operations are tenant-scoped.
- SKUs are unique within a tenant
- Products are archived, never hard-deleted (sales history references them)
- stock_quantity is only set directly at creation; afterwards it changes
  through stock_service (sales, restocks, returns, adjustments)
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import Product, Tenant
from ..models.inventory import STOCK_RESTOCK
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_product,
    paginate,
    validate_payload,
)
from .stock_service import apply_stock_change
from .tenant_service import get_in_tenant

PRODUCT_MUTABLE_FIELDS = {
    "sku",
    "name",
    "description",
    "category",
    "price_cents",
    "cost_cents",
    "is_variable_price",
    "base_unit",
    "purchase_unit",
    "unit_conversion_ratio",
    "low_stock_threshold",
    "image_url",
}

PRODUCT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_MUTABLE_FIELDS | {"stock_quantity"},
    required_on_create={"sku", "name"},
)

PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_MUTABLE_FIELDS,
)


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _ensure_sku_free(tenant_id: int, sku: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Product.id).filter(Product.tenant_id == tenant_id, Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise ConflictError("SKU already exists for this business.")


def list_products(
    *,
    tenant_id: int,
    search: str | None = None,
    category: str | None = None,
    include_archived: bool = False,
    archived_only: bool = False,
    low_stock_only: bool = False,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Tenant-scoped product listing with optional pagination.

    search matches name or SKU (case-insensitive). Archived products are
    hidden unless include_archived / archived_only is set.

    Returns:
        Dict with 'items', 'count', and pagination metadata if paginated.
    """
    base_query = db.session.query(Product).filter(Product.tenant_id == tenant_id)

    if archived_only:
        base_query = base_query.filter(Product.is_archived.is_(True))
    elif not include_archived:
        base_query = base_query.filter(Product.is_archived.is_(False))

    if search:
        term = f"%{search.strip()}%"
        base_query = base_query.filter(or_(Product.name.ilike(term), Product.sku.ilike(term)))

    if category and category != "all":
        base_query = base_query.filter(Product.category == category)

    if low_stock_only:
        base_query = base_query.filter(Product.stock_quantity <= Product.low_stock_threshold)

    base_query = base_query.order_by(Product.name.asc(), Product.id.asc())

    # If no pagination requested, return all items
    if page is None:
        products = base_query.all()
        return {
            "items": [p.to_dict() for p in products],
            "count": len(products),
        }

    products, pagination = paginate(base_query, page, per_page or 20)
    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": pagination,
    }


def get_product(*, tenant_id: int, product_id: int) -> Product:
    return get_in_tenant(Product, product_id, tenant_id, label="Product")


def create_product(*, tenant_id: int, payload: dict, user_id: int | None = None) -> Product:
    """
    Create a product.

    An initial stock_quantity > 0 is recorded as a restock with reason
    "Initial stock". low_stock_threshold defaults to the tenant setting.

    Raises:
        ValidationError: bad input
        ConflictError: SKU already exists in the tenant
    """
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_CREATE_POLICY, partial=False)
    is_variable = bool(patch.get("is_variable_price", False))
    if not is_variable and patch.get("price_cents") is None:
        raise ValidationError("price_cents is required unless is_variable_price is true")
    enforce_rules_product(patch, is_variable_price=is_variable)

    _ensure_sku_free(tenant_id, patch["sku"])

    tenant = db.session.query(Tenant).filter_by(id=tenant_id).first()

    p = Product(tenant_id=tenant_id, created_by=user_id, stock_quantity=0)
    apply_product_patch(p, patch)
    if "low_stock_threshold" not in patch and tenant is not None:
        p.low_stock_threshold = tenant.low_stock_threshold

    db.session.add(p)
    db.session.flush()  # ensure p.id exists before the history row

    initial_stock = patch.get("stock_quantity") or 0
    if initial_stock > 0:
        apply_stock_change(
            p,
            quantity_change=initial_stock,
            change_type=STOCK_RESTOCK,
            reason="Initial stock",
            user_id=user_id,
        )

    db.session.commit()
    current_app.logger.info("Product %s created (sku=%s)", p.id, p.sku)
    return p


def update_product(*, tenant_id: int, product_id: int, payload: dict) -> Product:
    """
    Update a product.

    Raises:
        NotFoundError: product not in tenant
        ConflictError: new SKU already exists in the tenant
    """
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)

    p = get_in_tenant(Product, product_id, tenant_id, label="Product")

    is_variable = patch.get("is_variable_price", p.is_variable_price)
    enforce_rules_product(patch, is_variable_price=is_variable)
    if not is_variable and "price_cents" not in patch and p.price_cents is None:
        raise ValidationError("price_cents is required unless is_variable_price is true")

    if "sku" in patch and patch["sku"] != p.sku:
        _ensure_sku_free(tenant_id, patch["sku"], exclude_id=p.id)

    apply_product_patch(p, patch)
    db.session.commit()
    return p


def set_archived(*, tenant_id: int, product_id: int, archived: bool) -> Product:
    """
    Archive (or unarchive) a product.

    Soft-delete only: preserve IDs and historical references.
    """
    p = get_in_tenant(Product, product_id, tenant_id, label="Product")
    p.is_archived = archived
    db.session.commit()
    return p


def get_categories(*, tenant_id: int) -> list[str]:
    """Distinct non-empty product categories, sorted."""
    rows = (
        db.session.query(Product.category)
        .filter(
            Product.tenant_id == tenant_id,
            Product.category.isnot(None),
            Product.category != "",
        )
        .distinct()
        .all()
    )
    return sorted(row[0] for row in rows)
