# Overview: Service-layer operations for party ledgers; encapsulates business logic and database work.

from __future__ import annotations

from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Optional

from sqlalchemy import func

from ..extensions import db
from ..models import Customer, CustomerLedger, Supplier, SupplierLedger
from ..validation import NotFoundError, ValidationError
from .concurrency import lock_for_update
from sarupaa.time_utils import end_of_day, utcnow
"""
Party Ledger Invariants (authoritative)

- Supplier and customer ledgers are append-only.
- Row delta is debit_cents - credit_cents; for suppliers a positive balance
  is owed to the supplier, for customers it is owed by the customer.
- party.balance_cents == SUM(delta) over the party's rows at all times.
- A ledger row and its balance change are written in the same DB transaction
  with the party row locked. Posting functions flush only; the caller commits
  (or rolls back) the whole business event.
- balance_cents on the row is the party balance immediately after the row.
"""


@dataclass
class Reconciliation:
    party_id: int
    name: str
    stored_cents: int
    ledger_cents: int
    changed: bool

    @property
    def difference_cents(self) -> int:
        return self.stored_cents - self.ledger_cents

    def to_dict(self) -> dict:
        data = asdict(self)
        data["difference_cents"] = self.difference_cents
        return data


def _post_entry(
    *,
    party_model,
    ledger_model,
    party_fk: str,
    party_id: int,
    debit_cents: int,
    credit_cents: int,
    description: str | None,
    date: Optional[datetime],
    refs: dict,
):
    if debit_cents < 0 or credit_cents < 0:
        raise ValidationError("debit and credit amounts must be >= 0")
    if debit_cents == 0 and credit_cents == 0:
        raise ValidationError("ledger entry must carry a debit or a credit")

    party = lock_for_update(
        db.session.query(party_model).filter(party_model.id == party_id)
    ).first()
    if not party:
        raise NotFoundError(f"{party_model.__name__} not found")

    party.balance_cents = (party.balance_cents or 0) + debit_cents - credit_cents

    row = ledger_model(
        date=date or utcnow(),
        debit_cents=debit_cents,
        credit_cents=credit_cents,
        balance_cents=party.balance_cents,
        description=description,
        **{party_fk: party.id},
        **refs,
    )
    db.session.add(row)
    db.session.flush()
    return row


def post_supplier_entry(
    *,
    supplier_id: int,
    debit_cents: int = 0,
    credit_cents: int = 0,
    description: str | None = None,
    purchase_id: int | None = None,
    payment_id: int | None = None,
    date: Optional[datetime] = None,
) -> SupplierLedger:
    """Append a supplier ledger row and move the supplier balance by debit - credit."""
    return _post_entry(
        party_model=Supplier,
        ledger_model=SupplierLedger,
        party_fk="supplier_id",
        party_id=supplier_id,
        debit_cents=debit_cents,
        credit_cents=credit_cents,
        description=description,
        date=date,
        refs={"purchase_id": purchase_id, "payment_id": payment_id},
    )


def post_customer_entry(
    *,
    customer_id: int,
    debit_cents: int = 0,
    credit_cents: int = 0,
    description: str | None = None,
    sale_id: int | None = None,
    payment_id: int | None = None,
    date: Optional[datetime] = None,
) -> CustomerLedger:
    """Append a customer ledger row and move the customer balance by debit - credit."""
    return _post_entry(
        party_model=Customer,
        ledger_model=CustomerLedger,
        party_fk="customer_id",
        party_id=customer_id,
        debit_cents=debit_cents,
        credit_cents=credit_cents,
        description=description,
        date=date,
        refs={"sale_id": sale_id, "payment_id": payment_id},
    )


def post_supplier_delta(*, supplier_id: int, delta_cents: int, **kwargs) -> SupplierLedger | None:
    """Post a signed delta as a debit (> 0) or credit (< 0). Zero posts nothing."""
    if delta_cents == 0:
        return None
    if delta_cents > 0:
        return post_supplier_entry(supplier_id=supplier_id, debit_cents=delta_cents, **kwargs)
    return post_supplier_entry(supplier_id=supplier_id, credit_cents=-delta_cents, **kwargs)


def supplier_ledger_balance(supplier_id: int) -> int:
    total = db.session.query(
        func.coalesce(func.sum(SupplierLedger.debit_cents - SupplierLedger.credit_cents), 0)
    ).filter(SupplierLedger.supplier_id == supplier_id).scalar()
    return int(total or 0)


def customer_ledger_balance(customer_id: int) -> int:
    total = db.session.query(
        func.coalesce(func.sum(CustomerLedger.debit_cents - CustomerLedger.credit_cents), 0)
    ).filter(CustomerLedger.customer_id == customer_id).scalar()
    return int(total or 0)


def _ledger_query(ledger_model, party_fk: str, party_id: int, from_date, to_date):
    q = db.session.query(ledger_model).filter(getattr(ledger_model, party_fk) == party_id)
    if from_date is not None:
        q = q.filter(ledger_model.date >= from_date)
    if to_date is not None:
        q = q.filter(ledger_model.date <= end_of_day(to_date))
    return q.order_by(ledger_model.date.asc(), ledger_model.id.asc())


def supplier_ledger(supplier_id: int, *, from_date=None, to_date=None) -> list[SupplierLedger]:
    """Supplier ledger rows, oldest first (inclusive date bounds)."""
    return _ledger_query(SupplierLedger, "supplier_id", supplier_id, from_date, to_date).all()


def customer_ledger(customer_id: int, *, from_date=None, to_date=None) -> list[CustomerLedger]:
    """Customer ledger rows, oldest first (inclusive date bounds)."""
    return _ledger_query(CustomerLedger, "customer_id", customer_id, from_date, to_date).all()


def _reconcile(party, ledger_cents: int, apply: bool) -> Reconciliation:
    stored = party.balance_cents or 0
    changed = stored != ledger_cents
    if changed and apply:
        party.balance_cents = ledger_cents
        db.session.flush()
    return Reconciliation(
        party_id=party.id,
        name=party.name,
        stored_cents=stored,
        ledger_cents=ledger_cents,
        changed=changed,
    )


def reconcile_supplier(supplier_id: int, *, apply: bool = True) -> Reconciliation:
    """
    Recompute a supplier balance from its ledger rows.

    When apply is true a mismatched stored balance is overwritten (flush
    only; the caller commits).
    """
    supplier = lock_for_update(
        db.session.query(Supplier).filter(Supplier.id == supplier_id)
    ).first()
    if not supplier:
        raise NotFoundError("Supplier not found")
    return _reconcile(supplier, supplier_ledger_balance(supplier_id), apply)


def reconcile_customer(customer_id: int, *, apply: bool = True) -> Reconciliation:
    """Customer counterpart of reconcile_supplier."""
    customer = lock_for_update(
        db.session.query(Customer).filter(Customer.id == customer_id)
    ).first()
    if not customer:
        raise NotFoundError("Customer not found")
    return _reconcile(customer, customer_ledger_balance(customer_id), apply)
