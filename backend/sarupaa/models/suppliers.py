from __future__ import annotations

from ..extensions import db
from sarupaa.time_utils import to_utc_z


class Supplier(db.Model):
    """
    Supplier master data with a denormalized running balance.

    INVARIANT: balance_cents == SUM(debit_cents - credit_cents) over the
    supplier's ledger rows. The balance only moves through
    ledger_service.post_supplier_entry, which writes both in one transaction.
    A positive balance is money owed to the supplier.
    """
    __tablename__ = "suppliers"
    __table_args__ = (
        db.Index("ix_suppliers_active", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False, index=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True)
    address = db.Column(db.Text, nullable=True)
    city = db.Column(db.String(128), nullable=True)

    opening_balance_cents = db.Column(db.Integer, nullable=False, default=0)
    balance_cents = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "city": self.city,
            "opening_balance_cents": self.opening_balance_cents,
            "balance_cents": self.balance_cents,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class SupplierLedger(db.Model):
    """
    Append-only supplier ledger.

    Row delta is debit_cents - credit_cents; balance_cents is the supplier's
    running balance immediately after this row was posted.
    """
    __tablename__ = "supplier_ledger"
    __table_args__ = (
        db.Index("ix_supplier_ledger_supplier_date", "supplier_id", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)

    date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    debit_cents = db.Column(db.Integer, nullable=False, default=0)
    credit_cents = db.Column(db.Integer, nullable=False, default=0)
    balance_cents = db.Column(db.Integer, nullable=False, default=0)
    description = db.Column(db.String(255), nullable=True)

    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=True, index=True)
    payment_id = db.Column(db.Integer, db.ForeignKey("supplier_payments.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    supplier = db.relationship("Supplier", backref=db.backref("ledger_rows", lazy=True))
    purchase = db.relationship("Purchase")

    @property
    def delta_cents(self) -> int:
        return (self.debit_cents or 0) - (self.credit_cents or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supplier_id": self.supplier_id,
            "date": to_utc_z(self.date),
            "debit_cents": self.debit_cents,
            "credit_cents": self.credit_cents,
            "delta_cents": self.delta_cents,
            "balance_cents": self.balance_cents,
            "description": self.description,
            "purchase_id": self.purchase_id,
            "invoice_no": self.purchase.invoice_no if self.purchase else None,
            "payment_id": self.payment_id,
        }


class SupplierPayment(db.Model):
    """Money paid to (positive) or refunded by (negative) a supplier."""
    __tablename__ = "supplier_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    payment_type = db.Column(db.String(32), nullable=False, default="cash")
    reference = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    supplier = db.relationship("Supplier", backref=db.backref("payments", lazy=True))
    purchase = db.relationship("Purchase", backref=db.backref("supplier_payments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supplier_id": self.supplier_id,
            "supplier": self.supplier.name if self.supplier else None,
            "purchase_id": self.purchase_id,
            "invoice_no": self.purchase.invoice_no if self.purchase else None,
            "user_id": self.user_id,
            "amount_cents": self.amount_cents,
            "payment_type": self.payment_type,
            "reference": self.reference,
            "notes": self.notes,
            "date": to_utc_z(self.date),
        }
