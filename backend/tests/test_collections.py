"""
Collection tests.

Verifies:
- Only payment-backed ledger credits are listed as collections
- Reversal puts the amount back on the customer and out of the till
- Reversal is admin only and happens once
"""

import pytest
from sqlalchemy import func

from sarupaa.models import Account, CustomerLedger
from sarupaa.services import accounting_service, customer_service, sale_service, stock_service
from sarupaa.services.accounting_service import ACCOUNTS_RECEIVABLE, CASH_IN_HAND
from sarupaa.validation import NotFoundError, ValidationError


def _balance(code: str) -> int:
    return accounting_service.system_account(code).balance_cents


@pytest.fixture
def collected(db_session, accounts, customer, product):
    """A credit sale of 1600, a 500 collection and 300 collected with a later sale."""
    stock_service.record_movement(product_id=product.id, quantity=10, movement_type="opening", cost_price_cents=500)
    db_session.commit()

    def _sale(quantity, **kwargs):
        return sale_service.create_sale(
            user_id=None,
            store_id=None,
            customer_id=customer.id,
            items=[{"product_id": product.id, "quantity": quantity, "unit_price_cents": 800}],
            **kwargs,
        )

    _sale(2, is_cash_sale=False)
    collection = customer_service.record_collection(customer_id=customer.id, amount_cents=500)
    sale = _sale(1, collection_cents=300)
    return collection, sale


def test_list_collections(db_session, collected, customer):
    collection, sale = collected

    page = customer_service.list_collections()
    rows = [customer_service.collection_to_dict(entry) for entry in page.items]

    assert page.total == 2
    assert [row["amount_cents"] for row in rows] == [300, 500]
    assert rows[0]["invoice_no"] == sale.invoice_no
    assert rows[0]["reference"] == f"Collection with {sale.invoice_no}"
    assert rows[1]["reference"] == collection.reference
    assert rows[1]["balance_after_cents"] == 1100
    assert rows[1]["customer"] == {"id": customer.id, "name": "Walk-in Regular", "balance_cents": 800}
    assert not rows[1]["reversed"]

    assert customer_service.list_collections(customer_id=customer.id + 1).total == 0
    assert customer_service.list_collections(to_date=collection.entry.date).total == 2


def test_get_collection_refuses_sale_rows(db_session, collected):
    sale_row = db_session.query(CustomerLedger).filter(CustomerLedger.debit_cents > 0).one()

    with pytest.raises(NotFoundError):
        customer_service.get_collection(sale_row.id)


def test_reverse_collection(db_session, collected, customer):
    collection, _ = collected
    cash_before = _balance(CASH_IN_HAND)
    receivable_before = _balance(ACCOUNTS_RECEIVABLE)

    reversal = customer_service.reverse_collection(entry_id=collection.entry.id, user_id=None)

    assert reversal.debit_cents == 500
    assert reversal.payment_id == collection.payment.id
    assert customer.balance_cents == 1300
    assert collection.payment.reversed_at is not None
    assert _balance(CASH_IN_HAND) == cash_before - 500
    assert _balance(ACCOUNTS_RECEIVABLE) == receivable_before + 500
    assert db_session.query(func.sum(Account.balance_cents)).scalar() == 0

    # The reversed row stays listed, flagged
    entry = customer_service.get_collection(collection.entry.id)
    assert customer_service.collection_to_dict(entry)["reversed"]
    assert customer_service.list_collections().total == 2

    with pytest.raises(ValidationError, match="already been reversed"):
        customer_service.reverse_collection(entry_id=collection.entry.id, user_id=None)
    assert customer.balance_cents == 1300


def test_collection_endpoints(client, admin_headers, collected):
    collection, _ = collected

    resp = client.get("/api/collections", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json["total"] == 2
    assert resp.json["page"] == 1

    resp = client.get("/api/collections?from_date=someday", headers=admin_headers)
    assert resp.status_code == 400

    resp = client.get(f"/api/collections/{collection.entry.id}", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json["amount_cents"] == 500

    resp = client.get("/api/collections/999999", headers=admin_headers)
    assert resp.status_code == 404


def test_reverse_endpoint(client, admin_headers, clerk_headers, collected):
    collection, _ = collected
    url = f"/api/collections/{collection.entry.id}"

    resp = client.delete(url, headers=clerk_headers)
    assert resp.status_code == 403

    resp = client.delete(url, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json["message"] == "Collection of 5.00 from Walk-in Regular reversed."
    assert resp.json["collection"]["reversed"] is True
    assert resp.json["reversal"]["debit_cents"] == 500
    assert resp.json["balance_cents"] == 1300

    resp = client.delete(url, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json["error"] == "Collection has already been reversed"

    resp = client.delete("/api/collections/999999", headers=admin_headers)
    assert resp.status_code == 404
