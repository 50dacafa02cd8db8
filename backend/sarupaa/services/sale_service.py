# Overview: Service-layer operations for sales; encapsulates business logic and database work.

from __future__ import annotations

from dataclasses import dataclass

from ..extensions import db
from ..models import Customer, Payment, Product, Sale, SaleItem, TransactionGroup
from ..validation import (
    NotFoundError,
    ValidationError,
    coerce_int,
    parse_bool,
    parse_cents,
    parse_positive_int,
)
from . import accounting_service, document_service, ledger_service, stock_service
from .accounting_service import (
    ACCOUNTS_RECEIVABLE,
    CASH_AT_BANK,
    CASH_IN_HAND,
    COST_OF_GOODS_SOLD,
    INVENTORY,
    SALES_REVENUE,
    TAX_PAYABLE,
)
from .concurrency import lock_for_update
from .pagination import paginate
from .purchase_service import rate_of
from sarupaa.time_utils import end_of_day, parse_iso_datetime, utcnow
"""
Sale posting (authoritative)

Amounts on the Sale header are positive for sales and returns alike;
is_return carries the direction. SaleItem quantities are negative on returns.

Customer ledger:
- credit sale: debit total, credit paid (delta = due)
- return: credit total - refund (the part not handed back in cash)
- collection taken with the sale: credit collection

Double-entry (per sale, grouped under one TransactionGroup):
- revenue (subtotal - discount) and tax to Cash (cash sale) or Accounts
  Receivable (credit sale); the paid part of a credit sale moves AR -> Cash
- COGS at cost x quantity: Dr Cost of Goods Sold / Cr Inventory
Returns post the reversing entries.
"""


@dataclass
class _Line:
    product: Product
    quantity: int
    unit_price_cents: int
    cost_price_cents: int
    discount_cents: int
    tax_cents: int

    @property
    def net_cents(self) -> int:
        return self.unit_price_cents * self.quantity - self.discount_cents


def _parse_lines(items) -> list[_Line]:
    if not isinstance(items, list) or not items:
        raise ValidationError("No items in sale")

    lines = []
    for raw in items:
        if not isinstance(raw, dict) or raw.get("product_id") in (None, ""):
            raise ValidationError("Each item must have a product_id")
        unit_price = raw.get("unit_price_cents")
        if unit_price in (None, "") or coerce_int("unit_price_cents", unit_price) <= 0:
            raise ValidationError("Each item must have a valid unit_price_cents")

        product_id = coerce_int("product_id", raw["product_id"])
        product = lock_for_update(db.session.query(Product).filter(Product.id == product_id)).first()
        if not product:
            raise NotFoundError(f"Product {product_id} not found")

        # Returns are signalled by is_return, never by a negative quantity
        quantity = parse_positive_int("quantity", raw.get("quantity", 1))

        cost = raw.get("cost_price_cents")
        lines.append(_Line(
            product=product,
            quantity=quantity,
            unit_price_cents=coerce_int("unit_price_cents", unit_price),
            cost_price_cents=(
                parse_cents("cost_price_cents", cost) if cost not in (None, "")
                else product.cost_price_cents or 0
            ),
            discount_cents=parse_cents("discount_cents", raw.get("discount_cents"), default=0),
            tax_cents=parse_cents("tax_cents", raw.get("tax_cents"), default=0),
        ))
    return lines


def create_sale(
    *,
    user_id: int | None,
    store_id: int | None,
    customer_id=None,
    items,
    discount_cents=0,
    discount_percent=0,
    tax_cents=0,
    paid_cents=0,
    payment_type: str = "cash",
    is_cash_sale=True,
    is_return=False,
    collection_cents=0,
    notes: str | None = None,
) -> Sale:
    """
    Record a sale or customer return and every balance it moves.

    Raises ValidationError (InsufficientStockError when a sale line exceeds
    stock) and NotFoundError. Nothing is written on failure.
    """
    is_return = parse_bool(is_return)
    is_cash_sale = parse_bool(is_cash_sale, default=True)
    payment_type = payment_type or "cash"

    try:
        customer = None
        if customer_id not in (None, ""):
            customer = db.session.get(Customer, coerce_int("customer_id", customer_id))
            if not customer:
                raise NotFoundError("Customer not found")

        lines = _parse_lines(items)

        if not is_return:
            stock_service.ensure_lines_available(
                ((line.product, line.quantity) for line in lines), verb="sell"
            )

        discount_percent = coerce_int("discount_percent", discount_percent or 0)
        if not 0 <= discount_percent <= 100:
            raise ValidationError("discount_percent must be between 0 and 100")
        header_tax = parse_cents("tax_cents", tax_cents, default=0)
        collection = parse_cents("collection_cents", collection_cents, default=0)

        for line in lines:
            if not line.tax_cents:
                line.tax_cents = rate_of(line.net_cents, line.product.tax_rate_bps or 0)
        tax = header_tax if header_tax > 0 else sum(line.tax_cents for line in lines)

        subtotal = sum(line.net_cents for line in lines)
        discount = parse_cents("discount_cents", discount_cents, default=0)
        if not discount and discount_percent:
            discount = rate_of(subtotal, discount_percent * 100)

        total = subtotal - discount + tax
        if total < 0:
            raise ValidationError("discount_cents cannot exceed the sale total")

        paid = total if is_cash_sale else parse_cents("paid_cents", paid_cents, default=0)
        if paid > total:
            raise ValidationError("paid_cents cannot exceed the sale total")
        due = total - paid

        if due and customer is None:
            raise ValidationError("customer_id is required unless the sale is fully paid")
        if collection and customer is None:
            raise ValidationError("customer_id is required to take a collection")

        now = utcnow()
        invoice_no = document_service.next_sale_invoice_no(now)

        sale = Sale(
            invoice_no=invoice_no,
            customer_id=customer.id if customer else None,
            user_id=user_id,
            store_id=store_id,
            date=now,
            subtotal_cents=subtotal,
            discount_cents=discount,
            discount_percent=discount_percent,
            tax_cents=tax,
            total_cents=total,
            paid_cents=paid,
            due_cents=due,
            status="completed",
            payment_type=payment_type,
            is_cash_sale=is_cash_sale,
            is_return=is_return,
            notes=notes,
        )
        db.session.add(sale)
        db.session.flush()

        for line in lines:
            db.session.add(SaleItem(
                sale_id=sale.id,
                product_id=line.product.id,
                quantity=-line.quantity if is_return else line.quantity,
                unit_price_cents=line.unit_price_cents,
                cost_price_cents=line.cost_price_cents,
                discount_cents=line.discount_cents,
                tax_cents=line.tax_cents,
                total_cents=line.net_cents + line.tax_cents,
                is_return=is_return,
                created_at=now,
            ))
            stock_service.record_movement(
                product_id=line.product.id,
                quantity=line.quantity if is_return else -line.quantity,
                movement_type="sale_return" if is_return else "sale",
                cost_price_cents=line.cost_price_cents,
                notes=f"Return: {invoice_no}" if is_return else f"Sale: {invoice_no}",
                sale_id=sale.id,
                created_at=now,
            )

        if paid > 0:
            db.session.add(Payment(
                sale_id=sale.id,
                customer_id=customer.id if customer else None,
                user_id=user_id,
                amount_cents=-paid if is_return else paid,
                payment_type=payment_type,
                date=now,
            ))

        if customer is not None:
            if is_return:
                if due > 0:
                    ledger_service.post_customer_entry(
                        customer_id=customer.id,
                        credit_cents=due,
                        description=f"Return {invoice_no}",
                        sale_id=sale.id,
                        date=now,
                    )
            elif due > 0:
                ledger_service.post_customer_entry(
                    customer_id=customer.id,
                    debit_cents=total,
                    credit_cents=paid,
                    description=f"Sale {invoice_no}",
                    sale_id=sale.id,
                    date=now,
                )

            if collection > 0:
                collected = Payment(
                    sale_id=sale.id,
                    customer_id=customer.id,
                    user_id=user_id,
                    amount_cents=collection,
                    payment_type=payment_type,
                    reference=f"Collection with {invoice_no}",
                    notes="old_balance_collection",
                    date=now,
                )
                db.session.add(collected)
                db.session.flush()
                ledger_service.post_customer_entry(
                    customer_id=customer.id,
                    credit_cents=collection,
                    description=f"Collection with sale {invoice_no}",
                    sale_id=sale.id,
                    payment_id=collected.id,
                    date=now,
                )

        group = TransactionGroup(reference=invoice_no, description=f"{'Return' if is_return else 'Sale'} {invoice_no}", date=now)
        db.session.add(group)
        db.session.flush()

        _post_sale_accounting(
            sale=sale,
            lines=lines,
            net_revenue=subtotal - discount,
            collection=collection,
            refs={"sale_id": sale.id, "group_id": group.id, "user_id": user_id, "date": now},
        )

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return sale


def _post_sale_accounting(*, sale: Sale, lines: list[_Line], net_revenue: int, collection: int, refs: dict) -> None:
    post = accounting_service.post_between
    cash_code = CASH_IN_HAND if sale.payment_type == "cash" else CASH_AT_BANK
    invoice_no = sale.invoice_no
    cost = sum(line.cost_price_cents * line.quantity for line in lines)

    if sale.is_return:
        post(SALES_REVENUE, ACCOUNTS_RECEIVABLE, net_revenue, f"Return {invoice_no} - Revenue reversal", **refs)
        post(TAX_PAYABLE, ACCOUNTS_RECEIVABLE, sale.tax_cents, f"Return {invoice_no} - Tax reversal", **refs)
        post(ACCOUNTS_RECEIVABLE, cash_code, sale.paid_cents, f"Return {invoice_no} - Refund", **refs)
        post(INVENTORY, COST_OF_GOODS_SOLD, cost, f"Return {invoice_no} - COGS reversal", **refs)
    else:
        debit_code = cash_code if sale.is_cash_sale else ACCOUNTS_RECEIVABLE
        post(debit_code, SALES_REVENUE, net_revenue, f"Sale {invoice_no} - Revenue", **refs)
        post(debit_code, TAX_PAYABLE, sale.tax_cents, f"Sale {invoice_no} - Tax collected", **refs)
        if not sale.is_cash_sale:
            post(cash_code, ACCOUNTS_RECEIVABLE, sale.paid_cents, f"Sale {invoice_no} - Payment received", **refs)
        post(COST_OF_GOODS_SOLD, INVENTORY, cost, f"Sale {invoice_no} - COGS", **refs)

    post(cash_code, ACCOUNTS_RECEIVABLE, collection, f"Collection with sale {invoice_no}", **refs)


def list_sales(
    *,
    page: int | None = None,
    limit: int | None = None,
    start_date=None,
    end_date=None,
    customer_id: int | None = None,
):
    q = db.session.query(Sale)
    if start_date and end_date:
        start = parse_iso_datetime(start_date) if isinstance(start_date, str) else start_date
        end = parse_iso_datetime(end_date) if isinstance(end_date, str) else end_date
        q = q.filter(Sale.date >= start, Sale.date <= end_of_day(end))
    if customer_id is not None:
        q = q.filter(Sale.customer_id == customer_id)
    q = q.order_by(Sale.created_at.desc(), Sale.id.desc())
    return paginate(q, page, limit)


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if not sale:
        raise NotFoundError("Sale not found")
    return sale
