# Overview: Service-layer operations for purchases; encapsulates business logic and database work.

from __future__ import annotations

from dataclasses import dataclass

from ..extensions import db
from ..models import Product, Purchase, PurchaseItem, Supplier, SupplierPayment
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    coerce_int,
    parse_bool,
    parse_cents,
    parse_positive_int,
)
from . import accounting_service, document_service, ledger_service, stock_service
from .accounting_service import ACCOUNTS_PAYABLE, CASH_AT_BANK, CASH_IN_HAND, INVENTORY
from .concurrency import lock_for_update
from .pagination import paginate
from sarupaa.time_utils import end_of_day, parse_iso_datetime, utcnow
"""
Purchase posting (authoritative)

One purchase (or purchase return) is one DB transaction:
- header + line items
- one Inventory row per line (+qty, or -qty for returns)
- weighted average cost / sale price update per product (purchases only)
- supplier ledger row + balance change for the unsettled part
- SupplierPayment for money paid (negative when refunded on a return)
- double-entry postings against Inventory, Cash and Accounts Payable

Supplier delta: +due for a purchase, -due for a return, where due is the
part not settled in cash (total - paid).
"""


@dataclass
class _Line:
    product: Product
    quantity: int
    unit_price_cents: int
    freight_in_cents: int
    discount_cents: int
    tax_cents: int | None
    sale_price_cents: int | None

    @property
    def subtotal_cents(self) -> int:
        return self.unit_price_cents * self.quantity + self.freight_in_cents


def rate_of(amount_cents: int, rate_bps: int) -> int:
    """amount * rate (basis points), nearest cent half-up."""
    return (amount_cents * rate_bps + 5_000) // 10_000


def weighted_average_cost(prev_cost_cents: int, prev_stock: int, unit_cost_cents: int, quantity: int) -> int:
    """
    New weighted average cost after receiving quantity at unit_cost_cents.

    Negative previous stock carries no value. Nearest cent, half-up.
    """
    base = max(prev_stock, 0)
    units = base + quantity
    if units <= 0:
        return unit_cost_cents
    value = prev_cost_cents * base + unit_cost_cents * quantity
    return (value + units // 2) // units


def _parse_lines(items) -> list[_Line]:
    if not isinstance(items, list) or not items:
        raise ValidationError("At least one item is required")

    lines = []
    for index, raw in enumerate(items, start=1):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object")
        if raw.get("product_id") in (None, ""):
            raise ValidationError(f"items[{index}].product_id is required")
        product_id = coerce_int("product_id", raw["product_id"])
        product = lock_for_update(db.session.query(Product).filter(Product.id == product_id)).first()
        if not product:
            raise NotFoundError(f"Product {product_id} not found")

        sale_price = raw.get("sale_price_cents")
        lines.append(_Line(
            product=product,
            quantity=parse_positive_int("quantity", raw.get("quantity")),
            unit_price_cents=parse_cents("unit_price_cents", raw.get("unit_price_cents")),
            freight_in_cents=parse_cents("freight_in_cents", raw.get("freight_in_cents"), default=0),
            discount_cents=parse_cents("discount_cents", raw.get("discount_cents"), default=0),
            tax_cents=parse_cents("tax_cents", raw.get("tax_cents"), default=0) or None,
            sale_price_cents=parse_cents("sale_price_cents", sale_price, default=0) or None,
        ))
    return lines


def _resolve_invoice_no(invoice_no) -> str:
    if invoice_no is not None and str(invoice_no).strip():
        invoice_no = str(invoice_no).strip()
        if db.session.query(Purchase.id).filter_by(invoice_no=invoice_no).first():
            raise ConflictError(f"Invoice number {invoice_no} already exists. Please use a different number.")
        return invoice_no
    return document_service.next_purchase_invoice_no()


def next_invoice_preview() -> str:
    return document_service.preview_purchase_invoice_no()


def create_purchase(
    *,
    user_id: int | None,
    store_id: int | None,
    supplier_id=None,
    items,
    discount_cents=0,
    tax_cents=0,
    paid_cents=0,
    invoice_no=None,
    date=None,
    notes: str | None = None,
    payment_type: str = "cash",
    is_return=False,
) -> Purchase:
    """
    Record a purchase or purchase return and every balance it moves.

    Raises ValidationError (including InsufficientStockError for returns),
    ConflictError for a duplicate invoice number and NotFoundError for an
    unknown supplier or product. Nothing is written on failure.
    """
    is_return = parse_bool(is_return)
    payment_type = payment_type or "cash"

    try:
        supplier = None
        if supplier_id not in (None, ""):
            supplier = db.session.get(Supplier, coerce_int("supplier_id", supplier_id))
            if not supplier:
                raise NotFoundError("Supplier not found")

        lines = _parse_lines(items)
        discount = parse_cents("discount_cents", discount_cents, default=0)
        header_tax = parse_cents("tax_cents", tax_cents, default=0)
        paid = parse_cents("paid_cents", paid_cents, default=0)

        if is_return:
            stock_service.ensure_lines_available(
                ((line.product, line.quantity) for line in lines), verb="return"
            )

        # Header tax wins; otherwise item tax, else the product's rate
        if header_tax > 0:
            tax = header_tax
        else:
            tax = 0
            for line in lines:
                if line.tax_cents is None:
                    line.tax_cents = rate_of(line.subtotal_cents, line.product.tax_rate_bps or 0)
                tax += line.tax_cents

        subtotal = sum(line.subtotal_cents for line in lines)
        total = subtotal - discount + tax
        if total < 0:
            raise ValidationError("discount_cents cannot exceed the purchase total")
        if paid > total:
            raise ValidationError("paid_cents cannot exceed the purchase total")
        due = total - paid

        if due and supplier is None:
            raise ValidationError("supplier_id is required unless the purchase is fully paid")

        occurred_at = parse_iso_datetime(date) if isinstance(date, str) else date
        occurred_at = occurred_at or utcnow()

        purchase = Purchase(
            invoice_no=_resolve_invoice_no(invoice_no),
            supplier_id=supplier.id if supplier else None,
            user_id=user_id,
            store_id=store_id,
            date=occurred_at,
            subtotal_cents=subtotal,
            discount_cents=discount,
            tax_cents=tax,
            total_cents=total,
            paid_cents=paid,
            due_cents=due,
            status="completed" if due <= 0 else "pending",
            payment_type=payment_type,
            is_return=is_return,
            notes=notes,
        )
        db.session.add(purchase)
        db.session.flush()

        label = "Purchase Return" if is_return else "Purchase"
        for line in lines:
            db.session.add(PurchaseItem(
                purchase_id=purchase.id,
                product_id=line.product.id,
                quantity=line.quantity,
                unit_price_cents=line.unit_price_cents,
                freight_in_cents=line.freight_in_cents,
                discount_cents=line.discount_cents,
                tax_cents=line.tax_cents or 0,
                total_cents=line.subtotal_cents + (line.tax_cents or 0),
                is_return=is_return,
                created_at=utcnow(),
            ))

            prev_stock = stock_service.current_stock(line.product.id)
            stock_service.record_movement(
                product_id=line.product.id,
                quantity=-line.quantity if is_return else line.quantity,
                movement_type="purchase_return" if is_return else "purchase",
                cost_price_cents=line.unit_price_cents,
                notes=f"{label}: {purchase.invoice_no}",
                purchase_id=purchase.id,
            )

            if not is_return:
                line.product.cost_price_cents = weighted_average_cost(
                    line.product.cost_price_cents or 0,
                    prev_stock,
                    line.unit_price_cents,
                    line.quantity,
                )
                if line.sale_price_cents:
                    line.product.sale_price_cents = line.sale_price_cents

        if supplier is not None:
            ledger_service.post_supplier_delta(
                supplier_id=supplier.id,
                delta_cents=-due if is_return else due,
                description=f"{label}: {purchase.invoice_no}",
                purchase_id=purchase.id,
                date=occurred_at,
            )

            if paid > 0:
                db.session.add(SupplierPayment(
                    supplier_id=supplier.id,
                    purchase_id=purchase.id,
                    user_id=user_id,
                    amount_cents=-paid if is_return else paid,
                    payment_type=payment_type,
                    notes="Refund received for purchase return" if is_return else None,
                    date=occurred_at,
                ))

        cash_code = CASH_IN_HAND if payment_type == "cash" else CASH_AT_BANK
        refs = {"purchase_id": purchase.id, "user_id": user_id, "date": occurred_at}
        if is_return:
            accounting_service.post_between(cash_code, INVENTORY, paid, f"Purchase return refund: {purchase.invoice_no}", **refs)
            accounting_service.post_between(ACCOUNTS_PAYABLE, INVENTORY, due, f"Purchase return: {purchase.invoice_no}", **refs)
        else:
            accounting_service.post_between(INVENTORY, cash_code, paid, f"Purchase payment: {purchase.invoice_no}", **refs)
            accounting_service.post_between(INVENTORY, ACCOUNTS_PAYABLE, due, f"Purchase on credit: {purchase.invoice_no}", **refs)

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return purchase


def list_purchases(
    *,
    page: int | None = None,
    limit: int | None = None,
    date=None,
    invoice_no: str | None = None,
    supplier_id: int | None = None,
    is_return: bool | None = None,
):
    q = db.session.query(Purchase)
    if date:
        day = parse_iso_datetime(date) if isinstance(date, str) else date
        q = q.filter(Purchase.date >= day, Purchase.date <= end_of_day(day))
    if invoice_no:
        q = q.filter(Purchase.invoice_no.ilike(f"%{invoice_no}%"))
    if supplier_id is not None:
        q = q.filter(Purchase.supplier_id == supplier_id)
    if is_return is not None:
        q = q.filter(Purchase.is_return.is_(is_return))
    q = q.order_by(Purchase.date.desc(), Purchase.id.desc())
    return paginate(q, page, limit)


def get_purchase(purchase_id: int) -> Purchase:
    purchase = db.session.get(Purchase, purchase_id)
    if not purchase:
        raise NotFoundError("Purchase not found")
    return purchase
