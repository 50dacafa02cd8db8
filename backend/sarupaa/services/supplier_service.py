# Overview: Service-layer operations for suppliers; encapsulates business logic and database work.

"""
Supplier Service

Suppliers carry a payable balance that only moves through ledger rows
(purchases, returns, payments, opening balance). Delete is refused while
any of those rows exist.
"""

from __future__ import annotations

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Purchase, Supplier, SupplierLedger, SupplierPayment
from ..validation import (
    IntegrityBlockedError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    coerce_int,
    parse_cents,
)
from . import accounting_service, ledger_service
from .accounting_service import ACCOUNTS_PAYABLE, CASH_AT_BANK, CASH_IN_HAND
from .concurrency import lock_for_update
from .pagination import paginate
from sarupaa.time_utils import parse_iso_datetime, utcnow


SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email", "phone", "address", "city", "opening_balance_cents", "is_active"},
    required_on_create={"name"},
)

SUPPLIER_MUTABLE_FIELDS = {"name", "email", "phone", "address", "city", "is_active"}


def get_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if not supplier:
        raise NotFoundError("Supplier not found")
    return supplier


def list_suppliers(*, search: str | None = None, page: int | None = None, limit: int | None = None):
    """Active suppliers by name, each paired with its purchase count."""
    purchase_count = (
        db.session.query(func.count(Purchase.id))
        .filter(Purchase.supplier_id == Supplier.id)
        .correlate(Supplier)
        .scalar_subquery()
    )
    q = db.session.query(Supplier, purchase_count).filter(Supplier.is_active.is_(True))
    if search:
        like = f"%{search}%"
        q = q.filter(or_(Supplier.name.ilike(like), Supplier.phone.ilike(like)))
    q = q.order_by(Supplier.name.asc(), Supplier.id.asc())
    return paginate(q, page, limit or 50)


def create_supplier(*, patch: dict) -> Supplier:
    """
    Create a supplier. A positive opening balance is posted as an
    "Opening Balance" debit row so the ledger and balance agree from the start.
    """
    opening = patch.pop("opening_balance_cents", None) or 0
    try:
        supplier = Supplier(balance_cents=0, opening_balance_cents=opening)
        for key, value in patch.items():
            if key in SUPPLIER_MUTABLE_FIELDS:
                setattr(supplier, key, value)
        db.session.add(supplier)
        db.session.flush()

        if opening > 0:
            ledger_service.post_supplier_entry(
                supplier_id=supplier.id,
                debit_cents=opening,
                description="Opening Balance",
            )

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return supplier


def update_supplier(*, supplier_id: int, patch: dict) -> Supplier:
    """Update contact fields. Balances never change here."""
    supplier = get_supplier(supplier_id)
    if "opening_balance_cents" in patch:
        raise ValidationError("opening_balance_cents cannot be changed after creation")
    for key, value in patch.items():
        if key in SUPPLIER_MUTABLE_FIELDS:
            setattr(supplier, key, value)
    db.session.commit()
    return supplier


def delete_supplier(*, supplier_id: int) -> None:
    supplier = get_supplier(supplier_id)

    purchases = db.session.query(func.count(Purchase.id)).filter(Purchase.supplier_id == supplier.id).scalar()
    if purchases:
        raise IntegrityBlockedError(f"Cannot delete supplier. It has {purchases} purchases.")
    entries = db.session.query(func.count(SupplierLedger.id)).filter(SupplierLedger.supplier_id == supplier.id).scalar()
    if entries:
        raise IntegrityBlockedError(f"Cannot delete supplier. It has {entries} ledger entries.")
    payments = db.session.query(func.count(SupplierPayment.id)).filter(SupplierPayment.supplier_id == supplier.id).scalar()
    if payments:
        raise IntegrityBlockedError(f"Cannot delete supplier. It has {payments} payments.")

    db.session.delete(supplier)
    db.session.commit()


def recent_activity(supplier_id: int) -> dict:
    """Ten latest purchases and twenty latest ledger rows."""
    purchases = (
        db.session.query(Purchase)
        .filter(Purchase.supplier_id == supplier_id)
        .order_by(Purchase.created_at.desc(), Purchase.id.desc())
        .limit(10)
        .all()
    )
    entries = (
        db.session.query(SupplierLedger)
        .filter(SupplierLedger.supplier_id == supplier_id)
        .order_by(SupplierLedger.created_at.desc(), SupplierLedger.id.desc())
        .limit(20)
        .all()
    )
    return {"purchases": purchases, "ledger": entries}


def supplier_purchases(*, supplier_id: int, unpaid_only: bool = False) -> list[Purchase]:
    get_supplier(supplier_id)
    q = db.session.query(Purchase).filter(
        Purchase.supplier_id == supplier_id,
        Purchase.is_return.is_(False),
    )
    if unpaid_only:
        q = q.filter(Purchase.due_cents > 0)
    return q.order_by(Purchase.date.desc(), Purchase.id.desc()).all()


def list_payments(*, supplier_id: int | None = None, page: int | None = None, limit: int | None = None):
    q = db.session.query(SupplierPayment)
    if supplier_id is not None:
        q = q.filter(SupplierPayment.supplier_id == supplier_id)
    q = q.order_by(SupplierPayment.date.desc(), SupplierPayment.id.desc())
    return paginate(q, page, limit)


def record_payment(
    *,
    supplier_id,
    amount_cents,
    user_id: int | None = None,
    payment_type: str = "cash",
    reference: str | None = None,
    notes: str | None = None,
    date=None,
) -> tuple[SupplierPayment, Supplier, int]:
    """
    Pay down a supplier's outstanding balance.

    Returns (payment, supplier, previous_balance_cents). The payment row,
    ledger credit, balance decrement and the Dr Accounts Payable / Cr Cash
    posting commit together.
    """
    if supplier_id in (None, ""):
        raise ValidationError("Supplier ID is required")
    amount = parse_cents("amount_cents", amount_cents, default=0)
    if amount <= 0:
        raise ValidationError("Valid payment amount is required")
    payment_type = payment_type or "cash"

    try:
        supplier = lock_for_update(
            db.session.query(Supplier).filter(Supplier.id == coerce_int("supplier_id", supplier_id))
        ).first()
        if not supplier:
            raise NotFoundError("Supplier not found")
        # Checked against the locked row; the ledger post below re-locks it
        previous = supplier.balance_cents or 0
        if amount > previous:
            raise ValidationError("Payment amount cannot exceed outstanding balance")

        occurred_at = (parse_iso_datetime(date) if isinstance(date, str) else date) or utcnow()

        payment = SupplierPayment(
            supplier_id=supplier.id,
            user_id=user_id,
            amount_cents=amount,
            payment_type=payment_type,
            reference=reference,
            notes=notes,
            date=occurred_at,
        )
        db.session.add(payment)
        db.session.flush()

        ledger_service.post_supplier_entry(
            supplier_id=supplier.id,
            credit_cents=amount,
            description=f"Payment: {reference or 'Cash payment'}",
            payment_id=payment.id,
            date=occurred_at,
        )

        accounting_service.post_between(
            ACCOUNTS_PAYABLE,
            CASH_IN_HAND if payment_type == "cash" else CASH_AT_BANK,
            amount,
            f"Supplier payment to {supplier.name}",
            user_id=user_id,
            date=occurred_at,
        )

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return payment, supplier, previous
