from __future__ import annotations

from ..extensions import db
from retail_pos.time_utils import to_utc_z, utcnow

PAYMENT_CASH = "cash"
PAYMENT_MPESA = "mpesa"
PAYMENT_BANK = "bank"
PAYMENT_DEBT = "debt"
PAYMENT_METHODS = (PAYMENT_CASH, PAYMENT_MPESA, PAYMENT_BANK, PAYMENT_DEBT)
# Methods accepted when settling an outstanding debt
DEBT_PAYMENT_METHODS = (PAYMENT_CASH, PAYMENT_MPESA, PAYMENT_BANK)

TRANSACTION_STATUS_PENDING = "pending"
TRANSACTION_STATUS_COMPLETED = "completed"
TRANSACTION_STATUS_DEBT_PENDING = "debt_pending"

DISCOUNT_PERCENTAGE = "percentage"
DISCOUNT_FIXED = "fixed"


class Transaction(db.Model):
    """
    A completed checkout (sale).

    STATUS:
    - completed: paid in full at checkout (cash, mpesa, bank)
    - debt_pending: pay-later sale; outstanding_balance_cents is reduced by
      DebtPayment rows and the status flips to completed at zero
    - pending: reserved for sales that have not been settled yet

    INVARIANT: 0 <= outstanding_balance_cents <= total_cents
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "transaction_number", name="uq_transactions_tenant_number"),
        db.Index("ix_transactions_tenant_status_created", "tenant_id", "status", "created_at"),
        db.CheckConstraint("outstanding_balance_cents >= 0", name="ck_transactions_balance_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    transaction_number = db.Column(db.String(64), nullable=False)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    subtotal_cents = db.Column(db.Integer, nullable=False)
    discount_type = db.Column(db.String(16), nullable=False, default=DISCOUNT_FIXED)
    discount_value = db.Column(db.Integer, nullable=False, default=0)
    discount_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)

    payment_method = db.Column(db.String(16), nullable=False, index=True)
    amount_tendered_cents = db.Column(db.Integer, nullable=True)
    change_cents = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default=TRANSACTION_STATUS_COMPLETED, index=True)
    outstanding_balance_cents = db.Column(db.Integer, nullable=False, default=0)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now(), index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now(), onupdate=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("transactions", lazy=True))
    creator = db.relationship("User", foreign_keys=[created_by])
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "transaction_number": self.transaction_number,
            "customer_id": self.customer_id,
            "customer": self.customer.to_summary_dict() if self.customer else None,
            "subtotal_cents": self.subtotal_cents,
            "discount_type": self.discount_type,
            "discount_value": self.discount_value,
            "discount_amount_cents": self.discount_amount_cents,
            "total_cents": self.total_cents,
            "payment_method": self.payment_method,
            "amount_tendered_cents": self.amount_tendered_cents,
            "change_cents": self.change_cents,
            "status": self.status,
            "outstanding_balance_cents": self.outstanding_balance_cents,
            "created_by": self.created_by,
            "created_by_name": self.creator.full_name if self.creator else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class TransactionItem(db.Model):
    """
    Line item on a transaction.

    product_name / product_sku / unit_cost_cents are snapshots taken at
    checkout so reports stay stable when the product is edited later.
    """
    __tablename__ = "transaction_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    product_sku = db.Column(db.String(64), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    subtotal_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    transaction = db.relationship(
        "Transaction",
        backref=db.backref("items", lazy=True, order_by="TransactionItem.id"),
    )
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "product_sku": self.product_sku,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "unit_cost_cents": self.unit_cost_cents,
            "subtotal_cents": self.subtotal_cents,
        }


class DebtPayment(db.Model):
    """
    Append-only record of a payment made against a debt transaction.

    Sum of amount_cents for a transaction + its outstanding_balance_cents
    always equals the transaction total.
    """
    __tablename__ = "debt_payments"
    __table_args__ = (
        db.Index("ix_debt_payments_tenant_date", "tenant_id", "payment_date"),
        db.CheckConstraint("amount_cents > 0", name="ck_debt_payments_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    payment_method = db.Column(db.String(16), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    recorded_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    payment_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    transaction = db.relationship(
        "Transaction",
        backref=db.backref("debt_payments", lazy=True, order_by="DebtPayment.payment_date.desc()"),
    )
    recorder = db.relationship("User", foreign_keys=[recorded_by])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "customer_id": self.customer_id,
            "amount_cents": self.amount_cents,
            "payment_method": self.payment_method,
            "notes": self.notes,
            "recorded_by": self.recorded_by,
            "recorded_by_name": self.recorder.full_name if self.recorder else None,
            "payment_date": to_utc_z(self.payment_date),
            "created_at": to_utc_z(self.created_at),
        }
