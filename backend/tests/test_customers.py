"""
Customer tests.

Verifies:
- Opening balances are posted to the ledger
- Collections credit the ledger under a daily COL reference
- Customer endpoints
"""

import re
from datetime import datetime

import pytest

from sarupaa.services import accounting_service, customer_service, ledger_service
from sarupaa.services.accounting_service import ACCOUNTS_RECEIVABLE, CASH_IN_HAND
from sarupaa.validation import NotFoundError, ValidationError


def test_opening_balance_posted(db_session):
    customer = customer_service.create_customer(patch={"name": "Nimal", "opening_balance_cents": 4000})

    assert customer.balance_cents == 4000
    assert ledger_service.customer_ledger_balance(customer.id) == 4000


def test_unknown_customer_type(db_session):
    with pytest.raises(NotFoundError):
        customer_service.create_customer(patch={"name": "Nimal", "customer_type_id": 42})


def test_collection(db_session, accounts):
    customer = customer_service.create_customer(patch={"name": "Nimal", "opening_balance_cents": 4000})

    first = customer_service.record_collection(customer_id=customer.id, amount_cents=1500)
    second = customer_service.record_collection(customer_id=customer.id, amount_cents=500)

    assert re.fullmatch(r"COL-\d{8}-0001", first.reference)
    assert second.reference.endswith("-0002")
    assert second.balance_after_cents == 2000
    assert first.entry.credit_cents == 1500
    assert first.payment.notes == "Cash collection"

    assert accounting_service.system_account(CASH_IN_HAND).balance_cents == 2000
    assert accounting_service.system_account(ACCOUNTS_RECEIVABLE).balance_cents == -2000


def test_collection_validation(db_session, customer, accounts):
    with pytest.raises(ValidationError):
        customer_service.record_collection(customer_id=customer.id, amount_cents=0)
    with pytest.raises(NotFoundError):
        customer_service.record_collection(customer_id=9999, amount_cents=100)


def test_search_and_balance_filter(db_session):
    customer_service.create_customer(patch={"name": "Nimal", "mobile": "0771234567", "opening_balance_cents": 10})
    customer_service.create_customer(patch={"name": "Kamal"})

    assert customer_service.list_customers(search="0771").total == 1
    assert customer_service.list_customers(has_balance=True).items[0].name == "Nimal"
    assert customer_service.list_customers().total == 2


def test_customer_endpoints(client, admin_headers):
    resp = client.post(
        "/api/customers",
        json={"name": "Nimal", "opening_balance_cents": 3000},
        headers=admin_headers,
    )
    assert resp.status_code == 201
    customer_id = resp.json["id"]

    resp = client.post(
        f"/api/customers/{customer_id}/collections",
        json={"amount_cents": 1000, "note": "Paid at counter"},
        headers=admin_headers,
    )
    assert resp.status_code == 201
    assert resp.json["balance_cents"] == 2000
    assert resp.json["reference"].startswith("COL-")

    resp = client.get(f"/api/customers/{customer_id}/ledger", headers=admin_headers)
    assert resp.status_code == 200
    assert [row["balance_cents"] for row in resp.json["data"]] == [3000, 2000]

    resp = client.get(f"/api/customers/{customer_id}", headers=admin_headers)
    assert resp.json["counts"]["payments"] == 1

    resp = client.post(
        f"/api/customers/{customer_id}/collections",
        json={"amount_cents": -5},
        headers=admin_headers,
    )
    assert resp.status_code == 400

    resp = client.post("/api/customers", json={"name": "X", "opening_balance_cents": -1}, headers=admin_headers)
    assert resp.status_code == 400


def test_ledger_date_filter_includes_whole_end_day(client, admin_headers, db_session, customer):
    ledger_service.post_customer_entry(
        customer_id=customer.id,
        debit_cents=2500,
        description="Afternoon sale",
        date=datetime(2026, 3, 14, 15, 30),
    )
    db_session.commit()

    resp = client.get(
        f"/api/customers/{customer.id}/ledger?from_date=2026-03-14&to_date=2026-03-14",
        headers=admin_headers,
    )
    assert resp.status_code == 200
    assert [row["debit_cents"] for row in resp.json["data"]] == [2500]

    resp = client.get(
        f"/api/customers/{customer.id}/ledger?from_date=2026-03-01&to_date=2026-03-13",
        headers=admin_headers,
    )
    assert resp.json["data"] == []
