from __future__ import annotations

from ..extensions import db
from retail_pos.time_utils import to_utc_z, utcnow

STOCK_SALE = "sale"
STOCK_RESTOCK = "restock"
STOCK_RETURN = "return"
STOCK_ADJUSTMENT = "adjustment"
STOCK_HISTORY_TYPES = (STOCK_SALE, STOCK_RESTOCK, STOCK_RETURN, STOCK_ADJUSTMENT)


class Product(db.Model):
    """
    Product master data with its current stock level.

    MULTI-TENANT: Products are scoped to tenants via tenant_id.
    SKUs are unique within a tenant.

    stock_quantity is the authoritative on-hand count in base units.
    Every change to it is mirrored by a StockHistory row written in the
    same database transaction (see stock_service.apply_stock_change).
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "sku", name="uq_products_tenant_sku"),
        db.Index("ix_products_tenant_name", "tenant_id", "name"),
        db.Index("ix_products_tenant_archived", "tenant_id", "is_archived"),
        db.CheckConstraint("stock_quantity >= 0", name="ck_products_stock_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(128), nullable=True, index=True)

    # Authoritative storage in cents. NULL price only for variable-price items.
    price_cents = db.Column(db.Integer, nullable=True)
    cost_cents = db.Column(db.Integer, nullable=True)
    is_variable_price = db.Column(db.Boolean, nullable=False, default=False)

    base_unit = db.Column(db.String(32), nullable=False, default="piece")
    purchase_unit = db.Column(db.String(32), nullable=True)
    unit_conversion_ratio = db.Column(db.Float, nullable=False, default=1.0)

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=10)

    is_archived = db.Column(db.Boolean, nullable=False, default=False)
    image_url = db.Column(db.String(1024), nullable=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        onupdate=utcnow,
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r} tenant_id={self.tenant_id}>"

    @property
    def is_low_stock(self) -> bool:
        return self.stock_quantity <= self.low_stock_threshold

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "price_cents": self.price_cents,
            "cost_cents": self.cost_cents,
            "is_variable_price": self.is_variable_price,
            "base_unit": self.base_unit,
            "purchase_unit": self.purchase_unit,
            "unit_conversion_ratio": self.unit_conversion_ratio,
            "stock_quantity": self.stock_quantity,
            "low_stock_threshold": self.low_stock_threshold,
            "is_low_stock": self.is_low_stock,
            "is_archived": self.is_archived,
            "image_url": self.image_url,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockHistory(db.Model):
    """
    Append-only log of stock quantity changes.

    quantity_change is signed (sales are negative). quantity_after is the
    product's stock_quantity right after the change was applied.
    reference_id points at the transaction / return / purchase order that
    caused the change, when there is one.
    """
    __tablename__ = "stock_history"
    __table_args__ = (
        db.Index("ix_stock_history_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    type = db.Column(db.String(32), nullable=False, index=True)
    quantity_change = db.Column(db.Integer, nullable=False)
    quantity_after = db.Column(db.Integer, nullable=False)

    reason = db.Column(db.String(255), nullable=True)
    reference_id = db.Column(db.Integer, nullable=True, index=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now(), index=True)

    product = db.relationship("Product", backref=db.backref("stock_history", lazy=True))
    creator = db.relationship("User", foreign_keys=[created_by])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "type": self.type,
            "quantity_change": self.quantity_change,
            "quantity_after": self.quantity_after,
            "reason": self.reason,
            "reference_id": self.reference_id,
            "created_by": self.created_by,
            "created_by_name": self.creator.full_name if self.creator else None,
            "created_at": to_utc_z(self.created_at),
        }
