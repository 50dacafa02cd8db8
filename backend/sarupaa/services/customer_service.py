# Overview: Service-layer operations for customers; encapsulates business logic and database work.

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Customer, CustomerLedger, CustomerType, Payment, Sale
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    parse_cents,
)
from . import accounting_service, document_service, ledger_service
from .accounting_service import ACCOUNTS_RECEIVABLE, CASH_AT_BANK, CASH_IN_HAND
from .concurrency import lock_for_update
from .pagination import paginate
from sarupaa.time_utils import end_of_day, to_utc_z, utcnow


CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "business_name", "email", "phone", "mobile", "address", "city",
        "customer_type_id", "credit_limit_cents", "opening_balance_cents", "is_active",
    },
    required_on_create={"name"},
)

CUSTOMER_MUTABLE_FIELDS = {
    "name", "business_name", "email", "phone", "mobile", "address", "city",
    "customer_type_id", "credit_limit_cents", "is_active",
}


@dataclass
class Collection:
    payment: Payment
    entry: CustomerLedger
    reference: str
    balance_after_cents: int


def get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if not customer:
        raise NotFoundError("Customer not found")
    return customer


def activity_counts(customer_id: int) -> dict:
    def _count(model) -> int:
        return db.session.query(func.count(model.id)).filter(model.customer_id == customer_id).scalar() or 0

    return {
        "sales": _count(Sale),
        "ledger": _count(CustomerLedger),
        "payments": _count(Payment),
    }


def list_customers(
    *,
    search: str | None = None,
    has_balance: bool = False,
    page: int | None = None,
    limit: int | None = None,
):
    q = db.session.query(Customer).filter(Customer.is_active.is_(True))
    if search:
        like = f"%{search}%"
        q = q.filter(or_(
            Customer.name.ilike(like),
            Customer.phone.ilike(like),
            Customer.email.ilike(like),
            Customer.mobile.ilike(like),
            Customer.business_name.ilike(like),
        ))
    if has_balance:
        q = q.filter(Customer.balance_cents > 0)
    q = q.order_by(Customer.name.asc(), Customer.id.asc())
    return paginate(q, page, limit or 50)


def _check_customer_type(patch: dict) -> None:
    type_id = patch.get("customer_type_id")
    if type_id is not None and not db.session.get(CustomerType, type_id):
        raise NotFoundError("Customer type not found")


def create_customer(*, patch: dict) -> Customer:
    """Create a customer; a positive opening balance is posted as a debit row."""
    _check_customer_type(patch)
    opening = patch.pop("opening_balance_cents", None) or 0
    try:
        customer = Customer(balance_cents=0, opening_balance_cents=opening)
        for key, value in patch.items():
            if key in CUSTOMER_MUTABLE_FIELDS:
                setattr(customer, key, value)
        db.session.add(customer)
        db.session.flush()

        if opening > 0:
            ledger_service.post_customer_entry(
                customer_id=customer.id,
                debit_cents=opening,
                description="Opening Balance",
            )

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return customer


def update_customer(*, customer_id: int, patch: dict) -> Customer:
    customer = get_customer(customer_id)
    if "opening_balance_cents" in patch:
        raise ValidationError("opening_balance_cents cannot be changed after creation")
    _check_customer_type(patch)
    for key, value in patch.items():
        if key in CUSTOMER_MUTABLE_FIELDS:
            setattr(customer, key, value)
    db.session.commit()
    return customer


def customer_sales(*, customer_id: int, page: int | None = None, limit: int | None = None):
    get_customer(customer_id)
    q = (
        db.session.query(Sale)
        .filter(Sale.customer_id == customer_id)
        .order_by(Sale.date.desc(), Sale.id.desc())
    )
    return paginate(q, page, limit or 100)


def record_collection(
    *,
    customer_id: int,
    amount_cents,
    user_id: int | None = None,
    payment_type: str = "cash",
    note: str | None = None,
) -> Collection:
    """
    Cash received against a customer's outstanding balance.

    Writes the Payment (reference COL-yyyymmdd-NNNN), a ledger credit and the
    Dr Cash / Cr Accounts Receivable posting in one transaction.
    """
    amount = parse_cents("amount_cents", amount_cents, default=0)
    if amount <= 0:
        raise ValidationError("Invalid amount")
    payment_type = payment_type or "cash"

    try:
        customer = get_customer(customer_id)
        now = utcnow()
        reference = document_service.next_collection_reference(now)

        payment = Payment(
            customer_id=customer.id,
            user_id=user_id,
            amount_cents=amount,
            payment_type=payment_type,
            reference=reference,
            notes="Cash collection",
            date=now,
        )
        db.session.add(payment)
        db.session.flush()

        entry = ledger_service.post_customer_entry(
            customer_id=customer.id,
            credit_cents=amount,
            description=note or "Cash collection",
            payment_id=payment.id,
            date=now,
        )

        accounting_service.post_between(
            CASH_IN_HAND if payment_type == "cash" else CASH_AT_BANK,
            ACCOUNTS_RECEIVABLE,
            amount,
            f"Cash collection from {customer.name} - {reference}",
            user_id=user_id,
            date=now,
        )

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return Collection(
        payment=payment,
        entry=entry,
        reference=reference,
        balance_after_cents=customer.balance_cents,
    )


# =============================================================================
# Collections (customer ledger credits backed by a Payment)
# =============================================================================

def _collections_query():
    return db.session.query(CustomerLedger).filter(
        CustomerLedger.credit_cents > 0,
        CustomerLedger.payment_id.isnot(None),
    )


def collection_to_dict(entry: CustomerLedger) -> dict:
    payment = entry.payment
    customer = entry.customer
    return {
        "id": entry.id,
        "date": to_utc_z(entry.date),
        "amount_cents": entry.credit_cents,
        "customer_id": entry.customer_id,
        "customer": {
            "id": customer.id,
            "name": customer.name,
            "balance_cents": customer.balance_cents,
        },
        "description": entry.description,
        "reference": payment.reference or f"COL-{entry.id:08d}",
        "balance_after_cents": entry.balance_cents,
        "payment_id": entry.payment_id,
        "payment_type": payment.payment_type,
        "sale_id": entry.sale_id,
        "invoice_no": entry.sale.invoice_no if entry.sale else None,
        "reversed": payment.reversed_at is not None,
    }


def list_collections(
    *,
    customer_id: int | None = None,
    from_date=None,
    to_date=None,
    page: int | None = None,
    limit: int | None = None,
):
    """Every collection, newest first; to_date covers the whole day."""
    q = _collections_query()
    if customer_id is not None:
        q = q.filter(CustomerLedger.customer_id == customer_id)
    if from_date is not None:
        q = q.filter(CustomerLedger.date >= from_date)
    if to_date is not None:
        q = q.filter(CustomerLedger.date <= end_of_day(to_date))
    q = q.order_by(CustomerLedger.date.desc(), CustomerLedger.id.desc())
    return paginate(q, page, limit)


def get_collection(entry_id: int) -> CustomerLedger:
    entry = _collections_query().filter(CustomerLedger.id == entry_id).first()
    if not entry:
        raise NotFoundError("Collection not found")
    return entry


def reverse_collection(*, entry_id: int, user_id: int | None = None) -> CustomerLedger:
    """
    Undo a collection with compensating entries.

    The collected ledger row and its Payment stay; the Payment is marked reversed,
    a debit row puts the amount back on the customer and Dr Accounts
    Receivable / Cr Cash takes it out of the till. Returns the new debit row.
    """
    try:
        entry = get_collection(entry_id)
        payment = lock_for_update(db.session.query(Payment).filter(Payment.id == entry.payment_id)).first()
        if payment.reversed_at is not None:
            raise ValidationError("Collection has already been reversed")

        now = utcnow()
        payment.reversed_at = now
        reference = payment.reference or f"COL-{entry.id:08d}"

        reversal = ledger_service.post_customer_entry(
            customer_id=entry.customer_id,
            debit_cents=entry.credit_cents,
            description=f"Reversed collection {reference}",
            payment_id=payment.id,
            date=now,
        )

        accounting_service.post_between(
            ACCOUNTS_RECEIVABLE,
            CASH_IN_HAND if payment.payment_type == "cash" else CASH_AT_BANK,
            entry.credit_cents,
            f"Reverted collection for {entry.customer.name} - {reference}",
            user_id=user_id,
            date=now,
        )

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return reversal
