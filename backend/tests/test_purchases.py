"""
Purchase tests.

Verifies:
- A credit purchase raises the supplier balance by the unsettled amount
- Stock, weighted average cost and postings move together
- Returns reverse stock and balance and are refused past stock
- Failed purchases write nothing
"""

import pytest
from sqlalchemy import func

from sarupaa.models import Account, Purchase, SupplierLedger, SupplierPayment, Transaction
from sarupaa.services import accounting_service, ledger_service, purchase_service, stock_service
from sarupaa.services.accounting_service import ACCOUNTS_PAYABLE, CASH_IN_HAND, INVENTORY
from sarupaa.services.stock_service import InsufficientStockError
from sarupaa.validation import ConflictError, NotFoundError, ValidationError


def _purchase(supplier, product, **kwargs):
    params = {
        "user_id": None,
        "store_id": None,
        "supplier_id": supplier.id if supplier else None,
        "items": [{"product_id": product.id, "quantity": 10, "unit_price_cents": 100}],
    }
    params.update(kwargs)
    return purchase_service.create_purchase(**params)


def test_credit_purchase_moves_supplier_balance(db_session, supplier, product, accounts):
    purchase = _purchase(supplier, product, invoice_no="2881", paid_cents=500)

    assert purchase.invoice_no == "2881"
    assert purchase.total_cents == 1000
    assert purchase.due_cents == 500
    assert purchase.status == "pending"

    rows = ledger_service.supplier_ledger(supplier.id)
    assert len(rows) == 1
    assert rows[0].delta_cents == 500
    assert rows[0].description == "Purchase: 2881"
    assert supplier.balance_cents == 500

    report = ledger_service.reconcile_supplier(supplier.id, apply=False)
    assert not report.changed
    assert report.ledger_cents == supplier.balance_cents

    payment = db_session.query(SupplierPayment).one()
    assert payment.amount_cents == 500


def test_purchase_stock_cost_and_postings(db_session, supplier, product, accounts):
    stock_service.record_movement(product_id=product.id, quantity=10, movement_type="opening")
    db_session.commit()

    _purchase(
        supplier,
        product,
        items=[{"product_id": product.id, "quantity": 10, "unit_price_cents": 700, "sale_price_cents": 999}],
        paid_cents=3000,
    )

    assert stock_service.current_stock(product.id) == 20
    # (10 x 500 + 10 x 700) / 20
    assert product.cost_price_cents == 600
    assert product.sale_price_cents == 999

    assert accounting_service.system_account(INVENTORY).balance_cents == 7000
    assert accounting_service.system_account(CASH_IN_HAND).balance_cents == -3000
    assert accounting_service.system_account(ACCOUNTS_PAYABLE).balance_cents == -4000
    assert db_session.query(func.sum(Account.balance_cents)).scalar() == 0


def test_purchase_tax_from_product_rate(db_session, supplier, make_product, accounts):
    taxed = make_product("Taxed", tax_bps=1700)
    purchase = _purchase(
        supplier,
        taxed,
        items=[{"product_id": taxed.id, "quantity": 3, "unit_price_cents": 333}],
    )
    # 999 x 17% = 169.83 -> 170
    assert purchase.tax_cents == 170
    assert purchase.total_cents == 1169


def test_header_tax_overrides_item_tax(db_session, supplier, product, accounts):
    purchase = _purchase(supplier, product, tax_cents=55)
    assert purchase.tax_cents == 55
    assert purchase.total_cents == 1055


def test_generated_invoice_numbers(db_session, supplier, product, accounts):
    assert purchase_service.next_invoice_preview() == "000001"
    first = _purchase(supplier, product)
    second = _purchase(supplier, product)

    assert first.invoice_no == "000001"
    assert second.invoice_no == "000002"


def test_duplicate_invoice_refused(db_session, supplier, product, accounts):
    _purchase(supplier, product, invoice_no="INV-1")

    with pytest.raises(ConflictError):
        _purchase(supplier, product, invoice_no="INV-1")
    assert db_session.query(Purchase).count() == 1


def test_purchase_return(db_session, supplier, product, accounts):
    _purchase(supplier, product)
    assert supplier.balance_cents == 1000

    ret = _purchase(
        supplier,
        product,
        items=[{"product_id": product.id, "quantity": 4, "unit_price_cents": 100}],
        paid_cents=100,
        is_return=True,
    )

    assert ret.is_return
    assert stock_service.current_stock(product.id) == 6
    assert supplier.balance_cents == 1000 - 300
    refund = db_session.query(SupplierPayment).filter_by(purchase_id=ret.id).one()
    assert refund.amount_cents == -100

    with pytest.raises(InsufficientStockError):
        _purchase(
            supplier,
            product,
            items=[{"product_id": product.id, "quantity": 7, "unit_price_cents": 100}],
            is_return=True,
        )


def test_purchase_return_duplicate_lines_checked_together(db_session, supplier, product, accounts):
    _purchase(supplier, product)

    line = {"product_id": product.id, "quantity": 6, "unit_price_cents": 100}
    with pytest.raises(InsufficientStockError) as exc:
        _purchase(supplier, product, items=[dict(line), dict(line)], is_return=True)
    assert str(exc.value) == 'Cannot return "Widget". Stock available: 10, Trying to return: 12'

    assert db_session.query(Purchase).filter_by(is_return=True).count() == 0
    assert stock_service.current_stock(product.id) == 10
    assert supplier.balance_cents == 1000


def test_failed_purchase_writes_nothing(db_session, supplier, product, accounts):
    with pytest.raises(NotFoundError):
        _purchase(
            supplier,
            product,
            items=[
                {"product_id": product.id, "quantity": 1, "unit_price_cents": 100},
                {"product_id": 9999, "quantity": 1, "unit_price_cents": 100},
            ],
        )

    assert db_session.query(Purchase).count() == 0
    assert db_session.query(SupplierLedger).count() == 0
    assert db_session.query(Transaction).count() == 0
    assert stock_service.current_stock(product.id) == 0


def test_validation(db_session, supplier, product, accounts):
    with pytest.raises(ValidationError):
        _purchase(supplier, product, items=[])
    with pytest.raises(ValidationError):
        _purchase(supplier, product, paid_cents=5000)
    with pytest.raises(ValidationError):
        _purchase(None, product)


def test_weighted_average_cost():
    assert purchase_service.weighted_average_cost(500, 10, 700, 10) == 600
    # Negative stock carries no value
    assert purchase_service.weighted_average_cost(500, -5, 700, 10) == 700
    assert purchase_service.weighted_average_cost(0, 0, 0, 0) == 0


def test_purchase_endpoints(client, admin_headers, supplier, product):
    resp = client.post(
        "/api/purchases",
        json={
            "supplier_id": supplier.id,
            "invoice_no": "2881",
            "items": [{"product_id": product.id, "quantity": 5, "unit_price_cents": 200}],
            "paid_cents": 500,
        },
        headers=admin_headers,
    )
    assert resp.status_code == 201
    assert resp.json["due_cents"] == 500
    assert len(resp.json["items"]) == 1

    resp = client.get("/api/purchases?invoice_no=288", headers=admin_headers)
    assert resp.json["total"] == 1

    resp = client.get(f"/api/suppliers/{supplier.id}/purchases?unpaid_only=true", headers=admin_headers)
    assert len(resp.json["data"]) == 1

    resp = client.post("/api/purchases", json={"items": []}, headers=admin_headers)
    assert resp.status_code == 400
