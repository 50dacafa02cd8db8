from __future__ import annotations

from ..extensions import db
from sarupaa.time_utils import to_utc_z


class CustomerType(db.Model):
    """
    Pricing tier for customers (retail, wholesale, ...).

    discount_percent is clamped to 0..100 on write. Names are unique
    case-insensitively (checked in catalog_service).
    """
    __tablename__ = "customer_types"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)
    discount_percent = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self, customer_count: int | None = None) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "discount_percent": self.discount_percent,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
        if customer_count is not None:
            data["customer_count"] = customer_count
        return data


class Customer(db.Model):
    """
    Customer master data with a denormalized receivable balance.

    INVARIANT: balance_cents == SUM(debit_cents - credit_cents) over the
    customer's ledger rows. A positive balance is money the customer owes.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_active", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False, index=True)
    business_name = db.Column(db.String(255), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True)
    mobile = db.Column(db.String(64), nullable=True)
    address = db.Column(db.Text, nullable=True)
    city = db.Column(db.String(128), nullable=True)

    customer_type_id = db.Column(db.Integer, db.ForeignKey("customer_types.id"), nullable=True, index=True)

    credit_limit_cents = db.Column(db.Integer, nullable=False, default=0)
    opening_balance_cents = db.Column(db.Integer, nullable=False, default=0)
    balance_cents = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    customer_type = db.relationship("CustomerType", backref=db.backref("customers", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "business_name": self.business_name,
            "email": self.email,
            "phone": self.phone,
            "mobile": self.mobile,
            "address": self.address,
            "city": self.city,
            "customer_type_id": self.customer_type_id,
            "customer_type": self.customer_type.to_dict() if self.customer_type else None,
            "credit_limit_cents": self.credit_limit_cents,
            "opening_balance_cents": self.opening_balance_cents,
            "balance_cents": self.balance_cents,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class CustomerLedger(db.Model):
    """Append-only customer ledger; same shape as SupplierLedger."""
    __tablename__ = "customer_ledger"
    __table_args__ = (
        db.Index("ix_customer_ledger_customer_date", "customer_id", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    debit_cents = db.Column(db.Integer, nullable=False, default=0)
    credit_cents = db.Column(db.Integer, nullable=False, default=0)
    balance_cents = db.Column(db.Integer, nullable=False, default=0)
    description = db.Column(db.String(255), nullable=True)

    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)
    payment_id = db.Column(db.Integer, db.ForeignKey("payments.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("ledger_rows", lazy=True))
    sale = db.relationship("Sale")
    payment = db.relationship("Payment")

    @property
    def delta_cents(self) -> int:
        return (self.debit_cents or 0) - (self.credit_cents or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "date": to_utc_z(self.date),
            "debit_cents": self.debit_cents,
            "credit_cents": self.credit_cents,
            "delta_cents": self.delta_cents,
            "balance_cents": self.balance_cents,
            "description": self.description,
            "sale_id": self.sale_id,
            "invoice_no": self.sale.invoice_no if self.sale else None,
            "payment_id": self.payment_id,
        }


class Payment(db.Model):
    """
    Money received from a customer.

    Tied to a sale when taken at the counter, or to the customer only when
    collected against an outstanding balance. Refunds on returns are negative.
    """
    __tablename__ = "payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    payment_type = db.Column(db.String(32), nullable=False, default="cash")
    reference = db.Column(db.String(64), nullable=True, index=True)
    notes = db.Column(db.Text, nullable=True)
    date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    # Set when a balance collection is reversed; the row itself is kept
    reversed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", backref=db.backref("payments", lazy=True))
    customer = db.relationship("Customer", backref=db.backref("payments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "customer_id": self.customer_id,
            "user_id": self.user_id,
            "amount_cents": self.amount_cents,
            "payment_type": self.payment_type,
            "reference": self.reference,
            "notes": self.notes,
            "date": to_utc_z(self.date),
            "reversed_at": to_utc_z(self.reversed_at),
        }
