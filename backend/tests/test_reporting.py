"""
Reporting tests.

Verifies:
- Period reports net returns out of revenue, cost and top products
- Stock position counts low and out-of-stock products
- Expenses group by category, with uncategorized ones kept apart
- Tax statistics are sales tax less purchase tax
"""

from datetime import datetime

import pytest

from sarupaa.services import (
    accounting_service,
    expense_service,
    purchase_service,
    reporting_service,
    sale_service,
    stock_service,
)
from sarupaa.time_utils import utcnow


def _sale(product, quantity, **kwargs):
    return sale_service.create_sale(
        user_id=None,
        store_id=None,
        items=[{"product_id": product.id, "quantity": quantity, "unit_price_cents": 800}],
        **kwargs,
    )


@pytest.fixture
def trading(db_session, accounts, supplier, make_product):
    """Two sales and a return of Widget, a purchase of Gadget and two expenses."""
    widget = make_product("Widget")
    stock_service.record_movement(product_id=widget.id, quantity=10, movement_type="opening", cost_price_cents=500)

    gadget = make_product("Gadget", cost=100)
    gadget.min_stock = 10

    empty = make_product("Empty")
    stock_service.record_movement(product_id=empty.id, quantity=2, movement_type="opening", cost_price_cents=500)
    stock_service.record_movement(product_id=empty.id, quantity=-2, movement_type="adjustment", cost_price_cents=500)
    db_session.commit()

    _sale(widget, 2)
    _sale(widget, 3)
    _sale(widget, 1, is_return=True)

    purchase_service.create_purchase(
        user_id=None,
        store_id=None,
        supplier_id=supplier.id,
        items=[{"product_id": gadget.id, "quantity": 10, "unit_price_cents": 100}],
    )

    rent = expense_service.create_category(patch={"name": "Rent"})
    expense_service.create_expense(patch={"amount_cents": 700, "category_id": rent.id}, user_id=None)
    expense_service.create_expense(patch={"amount_cents": 300}, user_id=None)

    return widget, gadget


def test_sales_report_nets_returns(trading):
    widget, _ = trading

    report = reporting_service.period_report(now=utcnow())["sales_report"]

    assert report["total_sales"] == 2
    assert report["total_returns"] == 1
    assert report["revenue_cents"] == 1600 + 2400 - 800
    assert report["cost_cents"] == 1000 + 1500 - 500
    assert report["gross_profit_cents"] == 1200
    assert report["top_products"] == [
        {"product_id": widget.id, "name": "Widget", "quantity": 4, "revenue_cents": 3200},
    ]
    assert len(report["daily_sales"]) == 1
    assert report["daily_sales"][0]["total_cents"] == 3200
    assert report["daily_sales"][0]["count"] == 3


def test_purchase_inventory_and_expense_sections(trading, supplier):
    report = reporting_service.period_report(now=utcnow())

    assert report["purchase_report"] == {
        "total_purchases": 1,
        "total_amount_cents": 1000,
        "top_suppliers": [{"supplier_id": supplier.id, "name": "Acme Wholesale", "amount_cents": 1000}],
    }

    # Widget 6 x 500, Gadget 10 x 100, Empty at zero
    assert report["inventory_report"] == {
        "total_products": 3,
        "total_value_cents": 4000,
        "low_stock_count": 1,
        "out_of_stock_count": 1,
    }

    assert report["expense_report"] == {
        "total_expenses_cents": 1000,
        "by_category": [
            {"category": "Rent", "amount_cents": 700},
            {"category": "Uncategorized", "amount_cents": 300},
        ],
    }


def test_period_outside_activity_is_empty(trading):
    report = reporting_service.period_report(start="2020-01-01", end="2020-01-31")

    assert report["from"] == "2020-01-01T00:00:00Z"
    assert report["to"].startswith("2020-01-31T23:59:59")
    assert report["sales_report"]["revenue_cents"] == 0
    assert report["sales_report"]["top_products"] == []
    assert report["purchase_report"]["total_purchases"] == 0
    assert report["expense_report"] == {"total_expenses_cents": 0, "by_category": []}


def test_period_report_rejects_bad_dates(db_session):
    with pytest.raises(ValueError):
        reporting_service.period_report(start="yesterday")


def test_dashboard(trading):
    dashboard = reporting_service.dashboard(now=utcnow())

    assert dashboard["today_sales"] == {"total_cents": 4000, "count": 2}
    assert dashboard["month_sales"] == {"total_cents": 4000, "count": 2}
    assert dashboard["total_products"] == 3
    assert dashboard["total_customers"] == 0
    assert dashboard["today_expenses_cents"] == 1000
    assert dashboard["cash_in_hand_cents"] == accounting_service.cash_in_hand()["balance_cents"]
    assert [sale["total_cents"] for sale in dashboard["recent_sales"]] == [2400, 1600]
    assert dashboard["recent_sales"][0]["customer"] == "Walk-in"
    assert len(dashboard["daily_sales"]) == 7
    assert dashboard["daily_sales"][-1]["total_cents"] == 4000


def test_tax_stats_nets_purchase_tax(db_session, accounts, supplier, make_product):
    taxed = make_product("Taxed", tax_bps=1000)
    stock_service.record_movement(product_id=taxed.id, quantity=5, movement_type="opening", cost_price_cents=500)
    db_session.commit()

    now = utcnow()
    _sale(taxed, 1)
    purchase_service.create_purchase(
        user_id=None,
        store_id=None,
        supplier_id=supplier.id,
        items=[{"product_id": taxed.id, "quantity": 1, "unit_price_cents": 100}],
        tax_cents=30,
    )
    purchase_service.create_purchase(
        user_id=None,
        store_id=None,
        supplier_id=supplier.id,
        items=[{"product_id": taxed.id, "quantity": 1, "unit_price_cents": 100}],
        tax_cents=20,
        date=datetime(now.year - 1, 6, 1),
    )

    stats = reporting_service.tax_stats(now=now)

    assert stats["this_year_cents"] == 80 - 30
    assert stats["this_month_cents"] == 50
    assert stats["last_year_cents"] == -20
    assert stats["daily_tax"][-1] == {"date": now.date().isoformat(), "tax_cents": 50}
    assert len(stats["monthly_tax"]) == 12
    assert stats["monthly_tax"][now.month - 1]["tax_cents"] == 50


def test_report_endpoints(client, admin_headers, trading):
    resp = client.get("/api/reports", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json["sales_report"]["revenue_cents"] == 3200

    resp = client.get("/api/reports?from=2020-01-01&to=2020-01-31", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json["sales_report"]["total_sales"] == 0

    resp = client.get("/api/reports?from=someday", headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json["error"] == "from and to must be ISO-8601 dates"

    resp = client.get("/api/dashboard", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json["today_sales"]["count"] == 2

    resp = client.get("/api/tax/stats", headers=admin_headers)
    assert resp.status_code == 200
    assert len(resp.json["monthly_tax"]) == 12
