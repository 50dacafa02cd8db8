"""
Sale tests.

Verifies:
- Sales are refused past current stock and write nothing
- Cash sales post revenue, tax and cost of goods sold
- Credit sales debit the customer ledger with the unpaid part
- Returns restore stock and credit the customer
"""

import re

import pytest
from sqlalchemy import func

from sarupaa.models import Account, Payment, Sale, Transaction
from sarupaa.services import accounting_service, ledger_service, sale_service, stock_service
from sarupaa.services.accounting_service import (
    ACCOUNTS_RECEIVABLE,
    CASH_IN_HAND,
    COST_OF_GOODS_SOLD,
    INVENTORY,
    SALES_REVENUE,
    TAX_PAYABLE,
)
from sarupaa.services.stock_service import InsufficientStockError
from sarupaa.validation import NotFoundError, ValidationError


@pytest.fixture
def stocked(db_session, product):
    stock_service.record_movement(product_id=product.id, quantity=10, movement_type="opening", cost_price_cents=500)
    db_session.commit()
    return product


def _sale(product, quantity=2, **kwargs):
    params = {
        "user_id": None,
        "store_id": None,
        "items": [{"product_id": product.id, "quantity": quantity, "unit_price_cents": 800}],
    }
    params.update(kwargs)
    return sale_service.create_sale(**params)


def _balance(code: str) -> int:
    return accounting_service.system_account(code).balance_cents


def test_cash_sale(db_session, stocked, accounts):
    sale = _sale(stocked)

    assert re.fullmatch(r"INV\d{6}00001", sale.invoice_no)
    assert sale.total_cents == 1600
    assert sale.paid_cents == 1600
    assert sale.due_cents == 0
    assert stock_service.current_stock(stocked.id) == 8

    assert _balance(CASH_IN_HAND) == 1600
    assert _balance(SALES_REVENUE) == -1600
    assert _balance(COST_OF_GOODS_SOLD) == 1000
    assert _balance(INVENTORY) == -1000
    assert db_session.query(func.sum(Account.balance_cents)).scalar() == 0

    payment = db_session.query(Payment).one()
    assert payment.amount_cents == 1600


def test_invoice_numbers_increase(db_session, stocked, accounts):
    first = _sale(stocked, quantity=1)
    second = _sale(stocked, quantity=1)
    assert int(second.invoice_no[-5:]) == int(first.invoice_no[-5:]) + 1


def test_insufficient_stock_writes_nothing(db_session, stocked, accounts):
    with pytest.raises(InsufficientStockError) as exc:
        _sale(stocked, quantity=11)
    assert str(exc.value) == 'Insufficient stock for "Widget". Available: 10, Requested: 11'

    assert db_session.query(Sale).count() == 0
    assert db_session.query(Transaction).count() == 0
    assert stock_service.current_stock(stocked.id) == 10


def test_duplicate_lines_are_checked_against_stock_together(db_session, stocked, accounts):
    line = {"product_id": stocked.id, "quantity": 8, "unit_price_cents": 800}
    with pytest.raises(InsufficientStockError) as exc:
        _sale(stocked, items=[dict(line), dict(line)])
    assert str(exc.value) == 'Insufficient stock for "Widget". Available: 10, Requested: 16'

    assert db_session.query(Sale).count() == 0
    assert stock_service.current_stock(stocked.id) == 10


def test_duplicate_lines_within_stock_are_accepted(db_session, stocked, accounts):
    line = {"product_id": stocked.id, "quantity": 5, "unit_price_cents": 800}
    sale = _sale(stocked, items=[dict(line), dict(line)])

    assert sale.total_cents == 8000
    assert stock_service.current_stock(stocked.id) == 0


@pytest.mark.parametrize("quantity", [-3, 0])
def test_non_positive_quantity_is_refused(db_session, stocked, accounts, quantity):
    with pytest.raises(ValidationError) as exc:
        _sale(stocked, quantity=quantity)
    assert str(exc.value) == "quantity must be > 0"

    assert db_session.query(Sale).count() == 0
    assert stock_service.current_stock(stocked.id) == 10


def test_sale_tax_and_discount(db_session, make_product, accounts):
    taxed = make_product("Taxed", tax_bps=1000)
    stock_service.record_movement(product_id=taxed.id, quantity=5, movement_type="opening")
    db_session.commit()

    sale = _sale(taxed, quantity=1, discount_percent=10)

    assert sale.subtotal_cents == 800
    assert sale.tax_cents == 80
    assert sale.discount_cents == 80
    assert sale.total_cents == 800
    assert _balance(TAX_PAYABLE) == -80


def test_credit_sale_debits_customer(db_session, stocked, customer, accounts):
    sale = _sale(stocked, customer_id=customer.id, is_cash_sale=False, paid_cents=600)

    assert sale.due_cents == 1000
    assert customer.balance_cents == 1000
    row = ledger_service.customer_ledger(customer.id)[0]
    assert (row.debit_cents, row.credit_cents) == (1600, 600)

    assert _balance(ACCOUNTS_RECEIVABLE) == 1000
    assert _balance(CASH_IN_HAND) == 600
    assert not ledger_service.reconcile_customer(customer.id, apply=False).changed


def test_credit_sale_requires_customer(db_session, stocked, accounts):
    with pytest.raises(ValidationError):
        _sale(stocked, is_cash_sale=False)
    with pytest.raises(NotFoundError):
        _sale(stocked, customer_id=9999)


def test_collection_with_sale(db_session, stocked, customer, accounts):
    _sale(stocked, customer_id=customer.id, is_cash_sale=False)
    assert customer.balance_cents == 1600

    _sale(stocked, quantity=1, customer_id=customer.id, collection_cents=1000)

    assert customer.balance_cents == 600
    collected = db_session.query(Payment).filter_by(notes="old_balance_collection").one()
    assert collected.amount_cents == 1000


def test_sale_return(db_session, stocked, customer, accounts):
    _sale(stocked, customer_id=customer.id, is_cash_sale=False)

    ret = _sale(stocked, quantity=1, customer_id=customer.id, is_return=True, is_cash_sale=False)

    assert ret.is_return
    assert stock_service.current_stock(stocked.id) == 9
    assert ret.items[0].quantity == -1
    assert customer.balance_cents == 1600 - 800
    assert db_session.query(func.sum(Account.balance_cents)).scalar() == 0


def test_sale_endpoints(client, admin_headers, stocked):
    resp = client.post(
        "/api/sales",
        json={"items": [{"product_id": stocked.id, "quantity": 3, "unit_price_cents": 800}]},
        headers=admin_headers,
    )
    assert resp.status_code == 201
    sale_id = resp.json["id"]

    resp = client.get(f"/api/sales/{sale_id}", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json["total_cents"] == 2400

    resp = client.post(
        "/api/sales",
        json={"items": [{"product_id": stocked.id, "quantity": 30, "unit_price_cents": 800}]},
        headers=admin_headers,
    )
    assert resp.status_code == 400
    assert "Insufficient stock" in resp.json["error"]

    resp = client.get("/api/sales", headers=admin_headers)
    assert resp.json["total"] == 1
