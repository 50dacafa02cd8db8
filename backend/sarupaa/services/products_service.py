# Overview: Service-layer operations for products; encapsulates business logic and database work.

"""
Product master data.

Products carry no stored quantity: listings attach SUM(Inventory.quantity)
from stock_service. Barcodes left blank on create are allocated from the
barcode sequence inside the same transaction as the product insert.
"""

from __future__ import annotations

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Brand, Category, Inventory, Product, PurchaseItem, SaleItem, Unit
from ..validation import (
    ConflictError,
    IntegrityBlockedError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    coerce_int,
)
from . import barcode_service, stock_service
from .pagination import paginate


PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku", "barcode", "name", "description",
        "category_id", "brand_id", "unit_id",
        "cost_price_cents", "sale_price_cents", "tax_rate_bps", "min_stock",
        "is_active",
    },
    required_on_create={"name"},
)


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError("Product not found")
    return product


def list_products(
    *,
    search: str | None = None,
    category_id: int | None = None,
    page: int | None = None,
    limit: int | None = None,
):
    """Active products by name; the page items are (product, stock) pairs."""
    q = db.session.query(Product).filter(Product.is_active.is_(True))
    if search:
        like = f"%{search}%"
        q = q.filter(or_(Product.name.ilike(like), Product.sku.ilike(like), Product.barcode.ilike(like)))
    if category_id is not None:
        q = q.filter(Product.category_id == category_id)
    q = q.order_by(Product.name.asc(), Product.id.asc())

    result = paginate(q, page, limit or 50)
    stock = stock_service.current_stock_map(p.id for p in result.items)
    result.items = [(p, stock.get(p.id, 0)) for p in result.items]
    return result


def _check_references(patch: dict) -> None:
    for key, model, label in (
        ("category_id", Category, "Category"),
        ("brand_id", Brand, "Brand"),
        ("unit_id", Unit, "Unit"),
    ):
        ref = patch.get(key)
        if ref is not None and db.session.get(model, ref) is None:
            raise ValidationError(f"{label} not found")


def _check_unique(patch: dict, exclude_id: int | None = None) -> None:
    for key, label in (("sku", "SKU"), ("barcode", "Barcode")):
        value = patch.get(key)
        if not value:
            continue
        q = db.session.query(Product).filter(getattr(Product, key) == value)
        if exclude_id is not None:
            q = q.filter(Product.id != exclude_id)
        existing = q.first()
        if existing:
            raise ConflictError(f'{label} "{value}" already exists for product "{existing.name}"')


def create_product(*, patch: dict, opening_stock=None) -> Product:
    """
    Create a product.

    Without a barcode one is allocated from the sequence. A positive
    opening_stock is posted as an 'opening' inventory row at the product's
    cost price.
    """
    quantity = 0
    if opening_stock not in (None, ""):
        quantity = coerce_int("opening_stock", opening_stock)
        if quantity < 0:
            raise ValidationError("opening_stock must be >= 0")

    _check_unique(patch)
    _check_references(patch)

    try:
        product = Product(**patch)
        if not product.barcode:
            product.barcode = barcode_service.allocate_barcode()
        db.session.add(product)
        db.session.flush()

        if quantity > 0:
            stock_service.record_movement(
                product_id=product.id,
                quantity=quantity,
                movement_type="opening",
                cost_price_cents=product.cost_price_cents or 0,
                notes="Opening stock",
            )

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return product


def update_product(*, product_id: int, patch: dict) -> Product:
    product = get_product(product_id)
    _check_unique(patch, exclude_id=product.id)
    _check_references(patch)
    for key, value in patch.items():
        setattr(product, key, value)
    db.session.commit()
    return product


def deactivate_product(*, product_id: int) -> Product:
    product = get_product(product_id)
    product.is_active = False
    db.session.commit()
    return product


def delete_product(*, product_id: int) -> None:
    """Hard delete; refused once the product has any stock or document history."""
    product = get_product(product_id)
    for model in (Inventory, PurchaseItem, SaleItem):
        count = db.session.query(func.count(model.id)).filter(model.product_id == product.id).scalar()
        if count:
            raise IntegrityBlockedError(
                "Cannot delete product with existing inventory, purchases, or sales history"
            )
    db.session.delete(product)
    db.session.commit()


def latest_price(product_id: int) -> dict:
    """Latest non-return purchase price beside the product's own prices."""
    product = get_product(product_id)
    item = (
        db.session.query(PurchaseItem)
        .filter(PurchaseItem.product_id == product.id, PurchaseItem.is_return.is_(False))
        .order_by(PurchaseItem.created_at.desc(), PurchaseItem.id.desc())
        .first()
    )
    purchase = item.purchase if item else None
    return {
        "latest_purchase_price_cents": item.unit_price_cents if item else None,
        "latest_purchase_date": purchase.date if purchase else None,
        "latest_purchase_invoice": purchase.invoice_no if purchase else None,
        "latest_purchase_vendor": purchase.supplier.name if purchase and purchase.supplier else None,
        "current_cost_price_cents": product.cost_price_cents,
        "current_sale_price_cents": product.sale_price_cents,
        "price_source": "Latest Purchase" if item else "Product Default",
    }
