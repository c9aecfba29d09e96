from __future__ import annotations

from ..extensions import db
from retail_pos.time_utils import to_utc_z, utcnow


class Customer(db.Model):
    """
    Customer master data with purchase totals and credit terms.

    MULTI-TENANT: Customers are scoped to tenants via tenant_id.

    CREDIT:
    - is_credit_approved gates debt (pay later) checkouts
    - credit_limit_cents caps the customer's total outstanding debt;
      NULL means no limit
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_tenant_name", "tenant_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)

    # Denormalized aggregate (updated when sales are completed)
    total_purchases_cents = db.Column(db.Integer, nullable=False, default=0)

    is_credit_approved = db.Column(db.Boolean, nullable=False, default=False)
    credit_limit_cents = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now(), onupdate=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "total_purchases_cents": self.total_purchases_cents,
            "is_credit_approved": self.is_credit_approved,
            "credit_limit_cents": self.credit_limit_cents,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }

    def to_summary_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
        }
