from __future__ import annotations

from ..extensions import db
from retail_pos.time_utils import to_iso_date, to_utc_z, utcnow

AUDIT_ACTION_CREATED = "created"
AUDIT_ACTION_UPDATED = "updated"
AUDIT_ACTION_DELETED = "deleted"


class ExpenseCategory(db.Model):
    __tablename__ = "expense_categories"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "name", name="uq_expense_categories_tenant_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text, nullable=True)
    is_default = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "description": self.description,
            "is_default": self.is_default,
            "created_at": to_utc_z(self.created_at),
        }


class Expense(db.Model):
    """
    Business expense (rent, utilities, salaries, ...).

    Every update and delete is mirrored by an ExpenseAudit row.
    """
    __tablename__ = "expenses"
    __table_args__ = (
        db.Index("ix_expenses_tenant_date", "tenant_id", "expense_date"),
        db.CheckConstraint("amount_cents > 0", name="ck_expenses_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    category_id = db.Column(db.Integer, db.ForeignKey("expense_categories.id"), nullable=False, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    description = db.Column(db.Text, nullable=True)
    receipt_reference = db.Column(db.String(255), nullable=True)
    expense_date = db.Column(db.Date, nullable=False)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now(), onupdate=utcnow)

    category = db.relationship("ExpenseCategory", backref=db.backref("expenses", lazy=True))
    creator = db.relationship("User", foreign_keys=[created_by])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "category_id": self.category_id,
            "category_name": self.category.name if self.category else None,
            "amount_cents": self.amount_cents,
            "description": self.description,
            "receipt_reference": self.receipt_reference,
            "expense_date": to_iso_date(self.expense_date),
            "created_by": self.created_by,
            "created_by_name": self.creator.full_name if self.creator else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ExpenseAudit(db.Model):
    """
    Append-only change log for expenses.

    changes holds JSON: {"field": {"old": ..., "new": ...}}.
    expense_id is kept as a plain integer so audit rows outlive deletes.
    """
    __tablename__ = "expense_audits"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    expense_id = db.Column(db.Integer, nullable=False, index=True)
    action = db.Column(db.String(16), nullable=False)
    changes = db.Column(db.JSON, nullable=True)

    changed_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    changed_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    changer = db.relationship("User", foreign_keys=[changed_by])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "expense_id": self.expense_id,
            "action": self.action,
            "changes": self.changes,
            "changed_by": self.changed_by,
            "changed_by_name": self.changer.full_name if self.changer else None,
            "changed_at": to_utc_z(self.changed_at),
        }
