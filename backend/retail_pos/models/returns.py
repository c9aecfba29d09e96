from __future__ import annotations

from ..extensions import db
from retail_pos.time_utils import to_utc_z, utcnow

RETURN_STATUS_PENDING = "pending"
RETURN_STATUS_APPROVED = "approved"
RETURN_STATUS_REJECTED = "rejected"
RETURN_STATUSES = (RETURN_STATUS_PENDING, RETURN_STATUS_APPROVED, RETURN_STATUS_REJECTED)


class Return(db.Model):
    """
    Return request against a prior transaction.

    LIFECYCLE:
    - pending -> approved: stock restored
    - pending -> rejected: no stock effect
    - approved/rejected -> pending: revert (approved reverts undo the restock)

    approved_by / approved_at record who decided the return, for both
    approvals and rejections.
    """
    __tablename__ = "returns"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "return_number", name="uq_returns_tenant_number"),
        db.Index("ix_returns_tenant_status", "tenant_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    return_number = db.Column(db.String(64), nullable=False)

    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=RETURN_STATUS_PENDING, index=True)
    reason = db.Column(db.Text, nullable=True)
    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    approved_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now(), onupdate=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    transaction = db.relationship("Transaction", backref=db.backref("returns", lazy=True))
    creator = db.relationship("User", foreign_keys=[created_by])
    approver = db.relationship("User", foreign_keys=[approved_by])
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "return_number": self.return_number,
            "transaction_id": self.transaction_id,
            "transaction_number": self.transaction.transaction_number if self.transaction else None,
            "status": self.status,
            "reason": self.reason,
            "total_amount_cents": self.total_amount_cents,
            "created_by": self.created_by,
            "created_by_name": self.creator.full_name if self.creator else None,
            "approved_by": self.approved_by,
            "approved_by_name": self.approver.full_name if self.approver else None,
            "approved_at": to_utc_z(self.approved_at) if self.approved_at else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class ReturnItem(db.Model):
    """Line item on a return; unit price is copied from the sale line."""
    __tablename__ = "return_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    return_id = db.Column(db.Integer, db.ForeignKey("returns.id"), nullable=False, index=True)
    transaction_item_id = db.Column(db.Integer, db.ForeignKey("transaction_items.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    subtotal_cents = db.Column(db.Integer, nullable=False)

    return_doc = db.relationship(
        "Return",
        backref=db.backref("items", lazy=True, order_by="ReturnItem.id"),
    )
    transaction_item = db.relationship("TransactionItem")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "return_id": self.return_id,
            "transaction_item_id": self.transaction_item_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "subtotal_cents": self.subtotal_cents,
        }
