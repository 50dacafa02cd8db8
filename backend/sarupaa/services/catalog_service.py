# Overview: Service-layer operations for brands, categories, units and customer types.

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Brand, Category, Customer, CustomerType, Product, Unit
from ..validation import (
    ConflictError,
    IntegrityBlockedError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    coerce_int,
)


BRAND_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "is_active"},
    required_on_create={"name"},
)

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "parent_id", "is_active"},
    required_on_create={"name"},
)

UNIT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "short_name"},
    required_on_create={"name", "short_name"},
)


def _name_taken(model, name: str, exclude_id: int | None = None) -> bool:
    q = db.session.query(model.id).filter(func.lower(model.name) == name.strip().lower())
    if exclude_id is not None:
        q = q.filter(model.id != exclude_id)
    return q.first() is not None


def _product_counts(column) -> dict[int, int]:
    rows = (
        db.session.query(column, func.count(Product.id))
        .filter(column.isnot(None))
        .group_by(column)
        .all()
    )
    return {owner_id: count for owner_id, count in rows}


def _apply(obj, patch: dict) -> None:
    for key, value in patch.items():
        setattr(obj, key, value)


# =============================================================================
# Brands
# =============================================================================

def list_brands() -> list[tuple[Brand, int]]:
    """Active brands by name with their product counts."""
    counts = _product_counts(Product.brand_id)
    brands = db.session.query(Brand).filter(Brand.is_active.is_(True)).order_by(Brand.name.asc()).all()
    return [(brand, counts.get(brand.id, 0)) for brand in brands]


def get_brand(brand_id: int) -> Brand:
    brand = db.session.get(Brand, brand_id)
    if not brand:
        raise NotFoundError("Brand not found")
    return brand


def create_brand(*, patch: dict) -> Brand:
    if _name_taken(Brand, patch["name"]):
        raise ConflictError(f'Brand "{patch["name"]}" already exists')
    brand = Brand()
    _apply(brand, patch)
    db.session.add(brand)
    db.session.commit()
    return brand


def update_brand(*, brand_id: int, patch: dict) -> Brand:
    brand = get_brand(brand_id)
    if "name" in patch and _name_taken(Brand, patch["name"], exclude_id=brand.id):
        raise ConflictError(f'Brand "{patch["name"]}" already exists')
    _apply(brand, patch)
    db.session.commit()
    return brand


def delete_brand(*, brand_id: int) -> None:
    """Hard delete, refused while any product references the brand."""
    brand = get_brand(brand_id)
    product_count = db.session.query(func.count(Product.id)).filter(Product.brand_id == brand.id).scalar()
    if product_count:
        raise IntegrityBlockedError(f"Cannot delete brand. It has {product_count} products assigned.")
    db.session.delete(brand)
    db.session.commit()


# =============================================================================
# Categories
# =============================================================================

def list_categories() -> list[tuple[Category, int]]:
    counts = _product_counts(Product.category_id)
    categories = (
        db.session.query(Category)
        .filter(Category.is_active.is_(True))
        .order_by(Category.name.asc())
        .all()
    )
    return [(category, counts.get(category.id, 0)) for category in categories]


def get_category(category_id: int) -> Category:
    category = db.session.get(Category, category_id)
    if not category:
        raise NotFoundError("Category not found")
    return category


def _check_parent(parent_id: int | None, category_id: int | None = None) -> None:
    if parent_id is None:
        return
    if category_id is not None and parent_id == category_id:
        raise ValidationError("A category cannot be its own parent")
    parent = get_category(parent_id)
    # Walk up to reject cycles
    seen = set()
    while parent is not None and parent.id not in seen:
        if category_id is not None and parent.parent_id == category_id:
            raise ValidationError("A category cannot be nested under its own sub-category")
        seen.add(parent.id)
        parent = parent.parent


def create_category(*, patch: dict) -> Category:
    if _name_taken(Category, patch["name"]):
        raise ConflictError(f'Category "{patch["name"]}" already exists')
    _check_parent(patch.get("parent_id"))
    category = Category()
    _apply(category, patch)
    db.session.add(category)
    db.session.commit()
    return category


def update_category(*, category_id: int, patch: dict) -> Category:
    category = get_category(category_id)
    if "name" in patch and _name_taken(Category, patch["name"], exclude_id=category.id):
        raise ConflictError(f'Category "{patch["name"]}" already exists')
    if "parent_id" in patch:
        _check_parent(patch["parent_id"], category.id)
    _apply(category, patch)
    db.session.commit()
    return category


def delete_category(*, category_id: int) -> None:
    """Hard delete, refused while products or sub-categories reference it."""
    category = get_category(category_id)
    product_count = db.session.query(func.count(Product.id)).filter(Product.category_id == category.id).scalar()
    if product_count:
        raise IntegrityBlockedError(f"Cannot delete category. It has {product_count} products assigned.")
    child_count = db.session.query(func.count(Category.id)).filter(Category.parent_id == category.id).scalar()
    if child_count:
        raise IntegrityBlockedError(f"Cannot delete category. It has {child_count} sub-categories.")
    db.session.delete(category)
    db.session.commit()


def category_stats() -> dict:
    active = db.session.query(func.count(Product.id)).filter(Product.is_active.is_(True))
    return {
        "total_products": active.scalar() or 0,
        "uncategorized_products": active.filter(Product.category_id.is_(None)).scalar() or 0,
    }


# =============================================================================
# Units
# =============================================================================

def list_units() -> list[Unit]:
    return db.session.query(Unit).order_by(Unit.name.asc()).all()


def create_unit(*, patch: dict) -> Unit:
    if _name_taken(Unit, patch["name"]):
        raise ConflictError(f'Unit "{patch["name"]}" already exists')
    unit = Unit()
    _apply(unit, patch)
    db.session.add(unit)
    db.session.commit()
    return unit


# =============================================================================
# Customer types
# =============================================================================

def _clamp_discount(value) -> int:
    return max(0, min(100, coerce_int("discount_percent", value)))


def _customer_counts() -> dict[int, int]:
    rows = (
        db.session.query(Customer.customer_type_id, func.count(Customer.id))
        .filter(Customer.customer_type_id.isnot(None))
        .group_by(Customer.customer_type_id)
        .all()
    )
    return {type_id: count for type_id, count in rows}


def list_customer_types() -> list[tuple[CustomerType, int]]:
    counts = _customer_counts()
    types = db.session.query(CustomerType).order_by(CustomerType.name.asc()).all()
    return [(ct, counts.get(ct.id, 0)) for ct in types]


def get_customer_type(type_id: int) -> tuple[CustomerType, int]:
    ct = db.session.get(CustomerType, type_id)
    if not ct:
        raise NotFoundError("Customer type not found")
    return ct, _customer_counts().get(ct.id, 0)


def create_customer_type(*, name, discount_percent=0, description=None, is_active=True) -> CustomerType:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Type name is required")
    if _name_taken(CustomerType, name):
        raise ConflictError("A customer type with this name already exists")
    ct = CustomerType(
        name=name.strip(),
        description=description,
        discount_percent=_clamp_discount(discount_percent or 0),
        is_active=bool(is_active),
    )
    db.session.add(ct)
    db.session.commit()
    return ct


def update_customer_type(*, type_id: int, name=None, discount_percent=None, description=None, is_active=None) -> CustomerType:
    ct, _ = get_customer_type(type_id)
    if name:
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Type name is required")
        if _name_taken(CustomerType, name, exclude_id=ct.id):
            raise ConflictError("A customer type with this name already exists")
        ct.name = name.strip()
    if discount_percent is not None:
        ct.discount_percent = _clamp_discount(discount_percent)
    if description is not None:
        ct.description = description
    if is_active is not None:
        ct.is_active = bool(is_active)
    db.session.commit()
    return ct
