# Overview: Service-layer operations for reporting; read-only queries over sales, purchases, stock and expenses.

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import case, func

from ..extensions import db
from ..models import (
    Customer,
    Expense,
    ExpenseCategory,
    Inventory,
    Product,
    Purchase,
    Sale,
    SaleItem,
    Supplier,
)
from . import accounting_service
from sarupaa.time_utils import end_of_day, parse_iso_datetime, to_utc_z, utcnow


MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]

TOP_PRODUCTS = 10
TOP_SUPPLIERS = 5
RECENT_SALES = 10


def _day_start(value: datetime) -> datetime:
    return datetime(value.year, value.month, value.day)


def _month_start(year: int, month: int) -> datetime:
    # month may run past 12 or below 1
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1
    return datetime(year, month, 1)


def _month_range(year: int, month: int) -> tuple[datetime, datetime]:
    start = _month_start(year, month)
    return start, _month_start(year, month + 1) - timedelta(microseconds=1)


def _parse_range(start, end, now: datetime) -> tuple[datetime, datetime]:
    """Defaults to the current month so far; a bare end date covers that whole day."""
    start_dt = parse_iso_datetime(start) if isinstance(start, str) else start
    end_dt = parse_iso_datetime(end) if isinstance(end, str) else end
    start_dt = start_dt or _month_start(now.year, now.month)
    end_dt = end_of_day(end_dt) if end_dt else now
    return start_dt, end_dt


def _signed(column, model):
    """column, negated on return documents."""
    return case((model.is_return.is_(True), -column), else_=column)


def _sum_sales(column, start: datetime, end: datetime) -> int:
    total = db.session.query(func.coalesce(func.sum(column), 0)).filter(
        Sale.date >= start,
        Sale.date <= end,
        Sale.is_return.is_(False),
    ).scalar()
    return int(total or 0)


def _sum_purchases(column, start: datetime, end: datetime) -> int:
    total = db.session.query(func.coalesce(func.sum(column), 0)).filter(
        Purchase.date >= start,
        Purchase.date <= end,
        Purchase.is_return.is_(False),
    ).scalar()
    return int(total or 0)


# =============================================================================
# Period report
# =============================================================================

def sales_report(start: datetime, end: datetime) -> dict:
    """
    Completed sales in [start, end].

    Returns subtract from revenue, cost and product quantities.
    """
    in_range = (Sale.date >= start, Sale.date <= end, Sale.status == "completed")

    counts = db.session.query(
        func.coalesce(func.sum(case((Sale.is_return.is_(False), 1), else_=0)), 0),
        func.coalesce(func.sum(case((Sale.is_return.is_(True), 1), else_=0)), 0),
        func.coalesce(func.sum(_signed(Sale.total_cents, Sale)), 0),
    ).filter(*in_range).one()
    sales_count, returns_count, revenue = (int(v or 0) for v in counts)

    # SaleItem quantities are already negative on returns
    cost = db.session.query(
        func.coalesce(func.sum(SaleItem.cost_price_cents * SaleItem.quantity), 0)
    ).join(Sale, Sale.id == SaleItem.sale_id).filter(*in_range).scalar()
    cost = int(cost or 0)

    top = (
        db.session.query(
            Product.id,
            Product.name,
            func.sum(SaleItem.quantity).label("quantity"),
            func.sum(_signed(SaleItem.total_cents, SaleItem)).label("revenue"),
        )
        .join(SaleItem, SaleItem.product_id == Product.id)
        .join(Sale, Sale.id == SaleItem.sale_id)
        .filter(*in_range)
        .group_by(Product.id, Product.name)
        .order_by(func.sum(_signed(SaleItem.total_cents, SaleItem)).desc(), Product.id.asc())
        .limit(TOP_PRODUCTS)
        .all()
    )

    day = func.date(Sale.date)
    daily = (
        db.session.query(
            day.label("day"),
            func.sum(_signed(Sale.total_cents, Sale)),
            func.count(Sale.id),
        )
        .filter(*in_range)
        .group_by(day)
        .order_by(day)
        .all()
    )

    return {
        "total_sales": sales_count,
        "total_returns": returns_count,
        "revenue_cents": revenue,
        "cost_cents": cost,
        "gross_profit_cents": revenue - cost,
        "top_products": [
            {
                "product_id": product_id,
                "name": name,
                "quantity": int(quantity or 0),
                "revenue_cents": int(amount or 0),
            }
            for product_id, name, quantity, amount in top
        ],
        "daily_sales": [
            {"date": str(d), "total_cents": int(total or 0), "count": int(count or 0)}
            for d, total, count in daily
        ],
    }


def purchase_report(start: datetime, end: datetime) -> dict:
    in_range = (Purchase.date >= start, Purchase.date <= end)

    count, amount = db.session.query(
        func.coalesce(func.sum(case((Purchase.is_return.is_(False), 1), else_=0)), 0),
        func.coalesce(func.sum(_signed(Purchase.total_cents, Purchase)), 0),
    ).filter(*in_range).one()

    top = (
        db.session.query(
            Supplier.id,
            Supplier.name,
            func.sum(_signed(Purchase.total_cents, Purchase)).label("amount"),
        )
        .join(Purchase, Purchase.supplier_id == Supplier.id)
        .filter(*in_range)
        .group_by(Supplier.id, Supplier.name)
        .order_by(func.sum(_signed(Purchase.total_cents, Purchase)).desc(), Supplier.id.asc())
        .limit(TOP_SUPPLIERS)
        .all()
    )

    return {
        "total_purchases": int(count or 0),
        "total_amount_cents": int(amount or 0),
        "top_suppliers": [
            {"supplier_id": supplier_id, "name": name, "amount_cents": int(total or 0)}
            for supplier_id, name, total in top
        ],
    }


def inventory_report() -> dict:
    """Stock position over every product that has inventory rows."""
    rows = (
        db.session.query(
            Product.min_stock,
            func.sum(Inventory.quantity),
            func.sum(Inventory.quantity * Inventory.cost_price_cents),
        )
        .join(Inventory, Inventory.product_id == Product.id)
        .group_by(Product.id, Product.min_stock)
        .all()
    )

    low = out = value = 0
    for min_stock, quantity, stock_value in rows:
        quantity = int(quantity or 0)
        value += int(stock_value or 0)
        if quantity <= 0:
            out += 1
        elif quantity <= (min_stock or 0):
            low += 1

    return {
        "total_products": len(rows),
        "total_value_cents": value,
        "low_stock_count": low,
        "out_of_stock_count": out,
    }


def expense_report(start: datetime, end: datetime) -> dict:
    category = func.coalesce(ExpenseCategory.name, "Uncategorized")
    rows = (
        db.session.query(category.label("category"), func.sum(Expense.amount_cents))
        .outerjoin(ExpenseCategory, ExpenseCategory.id == Expense.category_id)
        .filter(Expense.date >= start, Expense.date <= end)
        .group_by(category)
        .order_by(category)
        .all()
    )
    by_category = [{"category": name, "amount_cents": int(total or 0)} for name, total in rows]
    return {
        "total_expenses_cents": sum(row["amount_cents"] for row in by_category),
        "by_category": by_category,
    }


def period_report(*, start=None, end=None, now: datetime | None = None) -> dict:
    """
    Sales, purchases, stock and expenses for a period (GET /api/reports).

    Raises ValueError on unparseable dates.
    """
    now = now or utcnow()
    start_dt, end_dt = _parse_range(start, end, now)
    return {
        "from": to_utc_z(start_dt),
        "to": to_utc_z(end_dt),
        "sales_report": sales_report(start_dt, end_dt),
        "purchase_report": purchase_report(start_dt, end_dt),
        "inventory_report": inventory_report(),
        "expense_report": expense_report(start_dt, end_dt),
    }


# =============================================================================
# Dashboard
# =============================================================================

def dashboard(*, now: datetime | None = None) -> dict:
    now = now or utcnow()
    today = _day_start(now)
    today_end = end_of_day(today)
    month_start, month_end = _month_range(now.year, now.month)

    def _sales(start, end) -> dict:
        count = db.session.query(func.count(Sale.id)).filter(
            Sale.date >= start, Sale.date <= end, Sale.is_return.is_(False),
        ).scalar()
        return {"total_cents": _sum_sales(Sale.total_cents, start, end), "count": int(count or 0)}

    today_expenses = db.session.query(func.coalesce(func.sum(Expense.amount_cents), 0)).filter(
        Expense.date >= today, Expense.date <= today_end,
    ).scalar()

    recent = (
        db.session.query(Sale)
        .filter(Sale.is_return.is_(False))
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .limit(RECENT_SALES)
        .all()
    )

    daily = []
    for offset in range(6, -1, -1):
        day = today - timedelta(days=offset)
        daily.append({
            "date": day.date().isoformat(),
            "total_cents": _sum_sales(Sale.total_cents, day, end_of_day(day)),
        })

    return {
        "today_sales": _sales(today, today_end),
        "month_sales": _sales(month_start, month_end),
        "total_products": db.session.query(func.count(Product.id)).filter(Product.is_active.is_(True)).scalar(),
        "total_customers": db.session.query(func.count(Customer.id)).filter(Customer.is_active.is_(True)).scalar(),
        "today_expenses_cents": int(today_expenses or 0),
        "cash_in_hand_cents": accounting_service.cash_in_hand()["balance_cents"],
        "recent_sales": [
            {
                "id": sale.id,
                "invoice_no": sale.invoice_no,
                "customer": sale.customer.name if sale.customer else "Walk-in",
                "total_cents": sale.total_cents,
                "date": to_utc_z(sale.date),
            }
            for sale in recent
        ],
        "daily_sales": daily,
    }


# =============================================================================
# Tax
# =============================================================================

def net_tax(start: datetime, end: datetime) -> int:
    """Tax charged on sales less tax paid on purchases (returns excluded)."""
    return _sum_sales(Sale.tax_cents, start, end) - _sum_purchases(Purchase.tax_cents, start, end)


def tax_stats(*, now: datetime | None = None) -> dict:
    now = now or utcnow()
    year = now.year
    today = _day_start(now)

    this_year = (datetime(year, 1, 1), _month_start(year + 1, 1) - timedelta(microseconds=1))
    last_year = (datetime(year - 1, 1, 1), datetime(year, 1, 1) - timedelta(microseconds=1))

    daily = []
    for offset in range(6, -1, -1):
        day = today - timedelta(days=offset)
        daily.append({"date": day.date().isoformat(), "tax_cents": net_tax(day, end_of_day(day))})

    monthly = [
        {"month": MONTH_NAMES[month - 1], "tax_cents": net_tax(*_month_range(year, month))}
        for month in range(1, 13)
    ]

    return {
        "this_year_cents": net_tax(*this_year),
        "last_year_cents": net_tax(*last_year),
        "this_month_cents": net_tax(*_month_range(year, now.month)),
        "last_month_cents": net_tax(*_month_range(year, now.month - 1)),
        "daily_tax": daily,
        "monthly_tax": monthly,
    }
