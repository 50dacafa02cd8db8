"""
Supplier tests.

Verifies:
- Opening balances are posted to the ledger
- Payments reduce the balance and never exceed it
- Delete is refused once the supplier has history
"""

from datetime import datetime

import pytest
from sqlalchemy import text

from sarupaa.services import accounting_service, ledger_service, supplier_service
from sarupaa.services.accounting_service import ACCOUNTS_PAYABLE, CASH_AT_BANK
from sarupaa.validation import IntegrityBlockedError, ValidationError


def test_opening_balance_posted(db_session):
    supplier = supplier_service.create_supplier(patch={"name": "Zed Traders", "opening_balance_cents": 2500})

    assert supplier.balance_cents == 2500
    rows = ledger_service.supplier_ledger(supplier.id)
    assert [(r.debit_cents, r.description) for r in rows] == [(2500, "Opening Balance")]


def test_opening_balance_is_immutable(db_session):
    supplier = supplier_service.create_supplier(patch={"name": "Zed Traders"})
    with pytest.raises(ValidationError):
        supplier_service.update_supplier(supplier_id=supplier.id, patch={"opening_balance_cents": 1})


def test_payment_reduces_balance(db_session, accounts):
    supplier = supplier_service.create_supplier(patch={"name": "Zed Traders", "opening_balance_cents": 2500})

    payment, supplier, previous = supplier_service.record_payment(
        supplier_id=supplier.id,
        amount_cents=1000,
        payment_type="bank",
        reference="CHQ-77",
    )

    assert previous == 2500
    assert supplier.balance_cents == 1500
    assert ledger_service.supplier_ledger(supplier.id)[-1].description == "Payment: CHQ-77"
    assert accounting_service.system_account(ACCOUNTS_PAYABLE).balance_cents == 1000
    assert accounting_service.system_account(CASH_AT_BANK).balance_cents == -1000
    assert payment.amount_cents == 1000


def test_payment_cannot_exceed_balance(db_session, accounts):
    supplier = supplier_service.create_supplier(patch={"name": "Zed Traders", "opening_balance_cents": 100})

    with pytest.raises(ValidationError) as exc:
        supplier_service.record_payment(supplier_id=supplier.id, amount_cents=101)
    assert str(exc.value) == "Payment amount cannot exceed outstanding balance"

    with pytest.raises(ValidationError):
        supplier_service.record_payment(supplier_id=supplier.id, amount_cents=0)
    with pytest.raises(ValidationError):
        supplier_service.record_payment(supplier_id=None, amount_cents=10)
    assert supplier.balance_cents == 100


def test_delete_guard(db_session):
    unused = supplier_service.create_supplier(patch={"name": "Unused"})
    supplier_service.delete_supplier(supplier_id=unused.id)

    used = supplier_service.create_supplier(patch={"name": "Used", "opening_balance_cents": 1})
    with pytest.raises(IntegrityBlockedError):
        supplier_service.delete_supplier(supplier_id=used.id)


def test_supplier_endpoints(client, admin_headers):
    resp = client.post(
        "/api/suppliers",
        json={"name": "Zed Traders", "opening_balance_cents": 800},
        headers=admin_headers,
    )
    assert resp.status_code == 201
    supplier_id = resp.json["id"]

    resp = client.post(
        "/api/suppliers/payments",
        json={"supplier_id": supplier_id, "amount_cents": 300},
        headers=admin_headers,
    )
    assert resp.status_code == 201
    assert resp.json["previous_balance_cents"] == 800
    assert resp.json["new_balance_cents"] == 500

    resp = client.get(f"/api/suppliers/{supplier_id}/ledger", headers=admin_headers)
    assert resp.status_code == 200
    assert [row["balance_cents"] for row in resp.json["data"]] == [800, 500]

    resp = client.get(f"/api/suppliers/payments?supplier_id={supplier_id}", headers=admin_headers)
    assert resp.json["total"] == 1

    resp = client.delete(f"/api/suppliers/{supplier_id}", headers=admin_headers)
    assert resp.status_code == 400


def test_ledger_date_filter_includes_whole_end_day(client, admin_headers, db_session, supplier):
    ledger_service.post_supplier_entry(
        supplier_id=supplier.id,
        debit_cents=900,
        description="Late delivery",
        date=datetime(2026, 3, 14, 23, 15),
    )
    db_session.commit()

    resp = client.get(
        f"/api/suppliers/{supplier.id}/ledger?to_date=2026-03-14",
        headers=admin_headers,
    )
    assert resp.status_code == 200
    assert [row["debit_cents"] for row in resp.json["data"]] == [900]


def test_payment_checks_the_locked_balance(db_session, accounts, supplier):
    ledger_service.post_supplier_entry(supplier_id=supplier.id, debit_cents=100, description="Opening Balance")
    db_session.commit()
    assert supplier.balance_cents == 100

    # Another writer lowers the balance behind this session's back
    db_session.execute(
        text("UPDATE suppliers SET balance_cents = 50 WHERE id = :id"),
        {"id": supplier.id},
    )

    with pytest.raises(ValidationError) as exc:
        supplier_service.record_payment(supplier_id=supplier.id, amount_cents=80)
    assert str(exc.value) == "Payment amount cannot exceed outstanding balance"
