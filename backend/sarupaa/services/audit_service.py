# Overview: Read-mostly audit and repair operations behind the `flask audit` commands.

"""
Data-quality audits.

Reports never change data. The repair operations (balance overrides and
ledger reconciliation with apply=True) commit once for the whole batch and
roll back on any failure.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import func

from ..extensions import db
from ..models import Customer, Inventory, Product, Purchase, Supplier
from ..validation import ValidationError
from . import ledger_service, stock_service


BREAKDOWN_TYPES = ("opening", "purchase", "sale", "sale_return")


@dataclass
class StockCheck:
    query: str
    product_id: int | None
    name: str | None
    stock: int | None
    legacy_stock: int | None

    @property
    def found(self) -> bool:
        return self.product_id is not None

    def to_dict(self) -> dict:
        return {
            "query": self.query,
            "found": self.found,
            "product_id": self.product_id,
            "name": self.name,
            "stock": self.stock,
            "legacy_stock": self.legacy_stock,
        }


def _stock_sums():
    return (
        db.session.query(Product, func.coalesce(func.sum(Inventory.quantity), 0).label("stock"))
        .outerjoin(Inventory, Inventory.product_id == Product.id)
        .group_by(Product.id)
    )


def negative_stock_report() -> list[dict]:
    """Products whose inventory sum is below zero, with per-type sums."""
    rows = _stock_sums().having(func.coalesce(func.sum(Inventory.quantity), 0) < 0).order_by(Product.name.asc()).all()
    report = []
    for product, stock in rows:
        breakdown = stock_service.stock_breakdown(product.id)
        report.append({
            "product_id": product.id,
            "name": product.name,
            "stock": int(stock),
            "breakdown": {key: breakdown.get(key, 0) for key in BREAKDOWN_TYPES},
        })
    return report


def non_positive_stock() -> list[tuple[Product, int]]:
    rows = _stock_sums().having(func.coalesce(func.sum(Inventory.quantity), 0) <= 0).order_by(Product.name.asc()).all()
    return [(product, int(stock)) for product, stock in rows]


def stock_cross_check(names) -> list[StockCheck]:
    """Inventory-only stock beside the legacy double-counted figure for each named product."""
    results = []
    for name in names:
        product = (
            db.session.query(Product)
            .filter(Product.name.ilike(f"%{name}%"))
            .order_by(Product.name.asc())
            .first()
        )
        if product is None:
            results.append(StockCheck(query=name, product_id=None, name=None, stock=None, legacy_stock=None))
            continue
        results.append(StockCheck(
            query=name,
            product_id=product.id,
            name=product.name,
            stock=stock_service.current_stock(product.id),
            legacy_stock=stock_service.legacy_stock(product.id),
        ))
    return results


def supplier_balance_totals() -> dict:
    """Sum of non-return purchase dues against the sum of supplier balances."""
    purchase_due = db.session.query(
        func.coalesce(func.sum(Purchase.due_cents), 0)
    ).filter(Purchase.is_return.is_(False)).scalar()
    balances = db.session.query(func.coalesce(func.sum(Supplier.balance_cents), 0)).scalar()
    purchase_due = int(purchase_due or 0)
    balances = int(balances or 0)
    return {
        "purchase_due_cents": purchase_due,
        "supplier_balance_cents": balances,
        "difference_cents": balances - purchase_due,
        "match": purchase_due == balances,
    }


def override_supplier_balances(balances: dict) -> dict:
    """
    Overwrite named supplier balances with hand-computed values.

    Names match case-insensitively. Unknown names are reported and skipped;
    the rest commit together.
    """
    updated, missing = [], []
    try:
        for name, cents in balances.items():
            supplier = (
                db.session.query(Supplier)
                .filter(func.lower(Supplier.name) == name.strip().lower())
                .first()
            )
            if supplier is None:
                missing.append(name)
                continue
            if not isinstance(cents, int) or isinstance(cents, bool):
                raise ValidationError(f"Balance for {name} must be integer cents")
            updated.append({"supplier_id": supplier.id, "name": supplier.name, "old_cents": supplier.balance_cents, "new_cents": cents})
            supplier.balance_cents = cents
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return {"updated": updated, "missing": missing, "totals": supplier_balance_totals()}


def _reconcile_all(model, reconcile, apply: bool) -> list:
    ids = [party_id for (party_id,) in db.session.query(model.id).order_by(model.id.asc()).all()]
    try:
        results = [reconcile(party_id, apply=apply) for party_id in ids]
        if apply:
            db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return [r for r in results if r.difference_cents != 0]


def reconcile_all_suppliers(*, apply: bool = False) -> list:
    """Mismatched suppliers; balances are rewritten from the ledger only when apply is set."""
    return _reconcile_all(Supplier, ledger_service.reconcile_supplier, apply)


def reconcile_all_customers(*, apply: bool = False) -> list:
    return _reconcile_all(Customer, ledger_service.reconcile_customer, apply)
