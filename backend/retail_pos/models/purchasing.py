from __future__ import annotations

from ..extensions import db
from retail_pos.time_utils import to_iso_date, to_utc_z, utcnow

PO_STATUS_DRAFT = "draft"
PO_STATUS_ORDERED = "ordered"
PO_STATUS_RECEIVED = "received"
PO_STATUS_COMPLETED = "completed"
PO_STATUSES = (PO_STATUS_DRAFT, PO_STATUS_ORDERED, PO_STATUS_RECEIVED, PO_STATUS_COMPLETED)


class PurchaseOrder(db.Model):
    """
    Purchase order placed with a supplier.

    LIFECYCLE: draft -> ordered -> received -> completed
    Receiving restocks every line and completes the order in one step.
    """
    __tablename__ = "purchase_orders"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "po_number", name="uq_purchase_orders_tenant_number"),
        db.Index("ix_purchase_orders_tenant_status", "tenant_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    po_number = db.Column(db.String(64), nullable=False)

    supplier_name = db.Column(db.String(255), nullable=False)
    supplier_contact = db.Column(db.String(255), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=PO_STATUS_DRAFT, index=True)
    total_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)
    expected_date = db.Column(db.Date, nullable=True)
    received_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now(), onupdate=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "po_number": self.po_number,
            "supplier_name": self.supplier_name,
            "supplier_contact": self.supplier_contact,
            "status": self.status,
            "total_cost_cents": self.total_cost_cents,
            "notes": self.notes,
            "expected_date": to_iso_date(self.expected_date),
            "received_at": to_utc_z(self.received_at) if self.received_at else None,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class PurchaseOrderItem(db.Model):
    __tablename__ = "purchase_order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    purchase_order_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    cost_per_unit_cents = db.Column(db.Integer, nullable=False)
    total_cost_cents = db.Column(db.Integer, nullable=False)

    purchase_order = db.relationship(
        "PurchaseOrder",
        backref=db.backref("items", lazy=True, order_by="PurchaseOrderItem.id", cascade="all, delete-orphan"),
    )
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_order_id": self.purchase_order_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "cost_per_unit_cents": self.cost_per_unit_cents,
            "total_cost_cents": self.total_cost_cents,
        }
