from __future__ import annotations

from ..extensions import db
from retail_pos.time_utils import to_utc_z


class Tenant(db.Model):
    """
    Multi-tenant root: every business account is a Tenant.

    WHY: Shared-database multi-tenancy with strict isolation.
    Users, products, customers, sales and expenses all carry tenant_id.
    No data may cross tenant boundaries.

    Per-tenant settings (currency, default low-stock threshold, tax rate)
    live directly on the row.
    """
    __tablename__ = "tenants"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)

    currency = db.Column(db.String(8), nullable=False, default="KES")
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=10)
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)  # Basis points (e.g., 1600 = 16%)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Tenant id={self.id} name={self.name!r}>"

    def settings_dict(self) -> dict:
        return {
            "currency": self.currency,
            "low_stock_threshold": self.low_stock_threshold,
            "tax_rate_bps": self.tax_rate_bps,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "settings": self.settings_dict(),
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
