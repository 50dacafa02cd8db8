"""
Party ledger tests.

Verifies:
- Each ledger row moves the party balance by debit - credit
- Row balance_cents is the running balance after the row
- Reconciliation rewrites drifted balances from the ledger
"""

import pytest

from sarupaa.services import ledger_service
from sarupaa.validation import NotFoundError, ValidationError


def test_supplier_entries_track_running_balance(db_session, supplier):
    first = ledger_service.post_supplier_entry(supplier_id=supplier.id, debit_cents=1000, description="Purchase")
    second = ledger_service.post_supplier_entry(supplier_id=supplier.id, credit_cents=400, description="Payment")
    db_session.commit()

    assert first.balance_cents == 1000
    assert second.balance_cents == 600
    assert supplier.balance_cents == 600
    assert ledger_service.supplier_ledger_balance(supplier.id) == 600
    assert [row.id for row in ledger_service.supplier_ledger(supplier.id)] == [first.id, second.id]


def test_supplier_delta_sign(db_session, supplier):
    assert ledger_service.post_supplier_delta(supplier_id=supplier.id, delta_cents=0) is None

    row = ledger_service.post_supplier_delta(supplier_id=supplier.id, delta_cents=-250, description="Return")
    db_session.commit()

    assert row.debit_cents == 0
    assert row.credit_cents == 250
    assert supplier.balance_cents == -250


def test_customer_entry_debit_and_credit_on_one_row(db_session, customer):
    row = ledger_service.post_customer_entry(
        customer_id=customer.id, debit_cents=1000, credit_cents=300, description="Sale",
    )
    db_session.commit()

    assert row.balance_cents == 700
    assert customer.balance_cents == 700
    assert ledger_service.customer_ledger_balance(customer.id) == 700


def test_entry_validation(db_session, supplier):
    with pytest.raises(ValidationError):
        ledger_service.post_supplier_entry(supplier_id=supplier.id)
    with pytest.raises(ValidationError):
        ledger_service.post_supplier_entry(supplier_id=supplier.id, debit_cents=-1)
    with pytest.raises(NotFoundError):
        ledger_service.post_supplier_entry(supplier_id=9999, debit_cents=1)


def test_reconcile_supplier_overwrites_drift(db_session, supplier):
    ledger_service.post_supplier_entry(supplier_id=supplier.id, debit_cents=900)
    supplier.balance_cents = 12345
    db_session.commit()

    report = ledger_service.reconcile_supplier(supplier.id, apply=False)
    assert report.changed
    assert report.difference_cents == 12345 - 900
    assert supplier.balance_cents == 12345

    report = ledger_service.reconcile_supplier(supplier.id)
    db_session.commit()
    assert report.to_dict()["ledger_cents"] == 900
    assert supplier.balance_cents == 900

    assert not ledger_service.reconcile_supplier(supplier.id).changed


def test_reconcile_customer(db_session, customer):
    ledger_service.post_customer_entry(customer_id=customer.id, debit_cents=500)
    customer.balance_cents = 0
    db_session.commit()

    report = ledger_service.reconcile_customer(customer.id)
    db_session.commit()

    assert report.stored_cents == 0
    assert customer.balance_cents == 500
