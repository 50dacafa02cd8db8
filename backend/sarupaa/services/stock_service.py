# Overview: Service-layer operations for stock; encapsulates business logic and database work.

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import func

from ..extensions import db
from ..models import Inventory, Product, PurchaseItem, SaleItem
from ..validation import NotFoundError, ValidationError, parse_positive_int
from sarupaa.time_utils import utcnow
"""
Stock invariants (authoritative)

- A product's current stock is SUM(Inventory.quantity) over its rows.
- Purchase and sale line items are already mirrored into Inventory rows by
  the services that create them. Folding PurchaseItem/SaleItem sums into the
  figure counts every movement twice; legacy_stock() reproduces that figure
  only so the audit can show the difference.
- Stock is never clamped. A negative sum is a data-quality alarm reported by
  audit_service, not silently corrected.
- Outbound movements requested by a user (sales, purchase returns, manual
  subtract adjustments) are refused when they exceed current stock.
"""


ADJUST_ADD = "add"
ADJUST_SUBTRACT = ("subtract", "remove")


class InsufficientStockError(ValidationError):
    """Requested outbound quantity exceeds current stock."""


@dataclass
class Adjustment:
    row: Inventory
    price_used_cents: int
    price_source: str


def current_stock(product_id: int) -> int:
    """SUM(Inventory.quantity) for the product; 0 when it has no rows."""
    total = db.session.query(
        func.coalesce(func.sum(Inventory.quantity), 0)
    ).filter(Inventory.product_id == product_id).scalar()
    return int(total or 0)


def current_stock_map(product_ids) -> dict[int, int]:
    """Grouped current_stock for many products at once (missing ids map to 0)."""
    ids = list(product_ids)
    if not ids:
        return {}
    rows = (
        db.session.query(Inventory.product_id, func.sum(Inventory.quantity))
        .filter(Inventory.product_id.in_(ids))
        .group_by(Inventory.product_id)
        .all()
    )
    stock = {product_id: 0 for product_id in ids}
    for product_id, total in rows:
        stock[product_id] = int(total or 0)
    return stock


def stock_breakdown(product_id: int) -> dict[str, int]:
    """Per movement type sums for a product."""
    rows = (
        db.session.query(Inventory.type, func.sum(Inventory.quantity))
        .filter(Inventory.product_id == product_id)
        .group_by(Inventory.type)
        .all()
    )
    return {movement_type: int(total or 0) for movement_type, total in rows}


def legacy_stock(product_id: int) -> int:
    """Historical double-counting figure: inventory + purchased - sold."""
    purchased = db.session.query(
        func.coalesce(func.sum(PurchaseItem.quantity), 0)
    ).filter(PurchaseItem.product_id == product_id, PurchaseItem.is_return.is_(False)).scalar()
    sold = db.session.query(
        func.coalesce(func.sum(SaleItem.quantity), 0)
    ).filter(SaleItem.product_id == product_id, SaleItem.is_return.is_(False)).scalar()
    return current_stock(product_id) + int(purchased or 0) - int(sold or 0)


def ensure_available(product: Product, quantity: int, *, verb: str = "sell") -> int:
    """Raise InsufficientStockError when quantity exceeds current stock; returns the stock."""
    available = current_stock(product.id)
    if available < quantity:
        if verb == "sell":
            raise InsufficientStockError(
                f'Insufficient stock for "{product.name}". Available: {available}, Requested: {quantity}'
            )
        if verb == "return":
            raise InsufficientStockError(
                f'Cannot return "{product.name}". Stock available: {available}, Trying to return: {quantity}'
            )
        raise InsufficientStockError(
            f'Cannot subtract {quantity} from "{product.name}". Current stock: {available}'
        )
    return available


def ensure_lines_available(lines, *, verb: str = "sell") -> None:
    """
    ensure_available over (product, quantity) pairs, summed per product.

    Several lines for the same product are checked against its stock together.
    """
    products: dict[int, Product] = {}
    totals: dict[int, int] = {}
    for product, quantity in lines:
        products[product.id] = product
        totals[product.id] = totals.get(product.id, 0) + quantity
    for product_id, quantity in totals.items():
        ensure_available(products[product_id], quantity, verb=verb)


def record_movement(
    *,
    product_id: int,
    quantity: int,
    movement_type: str,
    cost_price_cents: int = 0,
    notes: str | None = None,
    purchase_id: int | None = None,
    sale_id: int | None = None,
    created_at=None,
) -> Inventory:
    """Append one Inventory row. Flush only; the caller commits."""
    row = Inventory(
        product_id=product_id,
        quantity=quantity,
        cost_price_cents=cost_price_cents,
        type=movement_type,
        notes=notes,
        purchase_id=purchase_id,
        sale_id=sale_id,
        created_at=created_at or utcnow(),
    )
    db.session.add(row)
    db.session.flush()
    return row


def latest_purchase_price_cents(product_id: int) -> int | None:
    """Unit price on the most recent non-return purchase line, if any."""
    item = (
        db.session.query(PurchaseItem)
        .filter(PurchaseItem.product_id == product_id, PurchaseItem.is_return.is_(False))
        .order_by(PurchaseItem.created_at.desc(), PurchaseItem.id.desc())
        .first()
    )
    return item.unit_price_cents if item else None


def adjust_stock(
    *,
    product_id: int,
    quantity,
    direction: str,
    notes: str | None = None,
) -> Adjustment:
    """
    Manual stock adjustment.

    direction 'add' posts +quantity; 'subtract'/'remove' posts -quantity and
    is refused when it exceeds current stock. The row is costed at the latest
    purchase price, falling back to the product's cost price.
    """
    quantity = parse_positive_int("quantity", quantity)
    if direction != ADJUST_ADD and direction not in ADJUST_SUBTRACT:
        raise ValidationError("type must be 'add' or 'subtract'")

    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError("Product not found")

    try:
        if direction in ADJUST_SUBTRACT:
            ensure_available(product, quantity, verb="subtract")

        latest = latest_purchase_price_cents(product.id)
        price = latest if latest is not None else product.cost_price_cents
        source = "Latest Purchase" if latest is not None else "Product Default"

        signed = quantity if direction == ADJUST_ADD else -quantity
        row = record_movement(
            product_id=product.id,
            quantity=signed,
            movement_type="adjustment",
            cost_price_cents=price,
            notes=notes or f"Stock {'added' if direction == ADJUST_ADD else 'subtracted'}",
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return Adjustment(row=row, price_used_cents=price, price_source=source)


def list_inventory(*, product_id: int | None = None, limit: int | None = None) -> list[Inventory]:
    """Inventory rows, newest first."""
    q = db.session.query(Inventory)
    if product_id is not None:
        q = q.filter(Inventory.product_id == product_id)
    q = q.order_by(Inventory.created_at.desc(), Inventory.id.desc())
    if limit:
        q = q.limit(limit)
    return q.all()


def get_inventory_row(row_id: int) -> Inventory:
    row = db.session.get(Inventory, row_id)
    if not row:
        raise NotFoundError("Inventory record not found")
    return row
