from __future__ import annotations

from ..extensions import db
from sarupaa.time_utils import to_utc_z


INVENTORY_TYPES = (
    "opening",
    "purchase",
    "purchase_return",
    "sale",
    "sale_return",
    "adjustment",
)


class Inventory(db.Model):
    """
    One stock movement for a product.

    Quantity is signed: stock in is positive, stock out negative. A product's
    current stock is SUM(quantity) over its rows and nothing else; purchase
    and sale line items are already reflected here and must never be added
    on top.

    IMMUTABLE: Rows are appended by stock_service and never updated.
    """
    __tablename__ = "inventory"
    __table_args__ = (
        db.Index("ix_inventory_product_type", "product_id", "type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)

    type = db.Column(db.String(32), nullable=False, index=True)
    notes = db.Column(db.String(255), nullable=True)

    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=True, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    product = db.relationship("Product", backref=db.backref("inventory_rows", lazy=True))

    def to_dict(self, include_product: bool = False) -> dict:
        data = {
            "id": self.id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "cost_price_cents": self.cost_price_cents,
            "type": self.type,
            "notes": self.notes,
            "purchase_id": self.purchase_id,
            "sale_id": self.sale_id,
            "created_at": to_utc_z(self.created_at),
        }
        if include_product and self.product is not None:
            product = self.product
            data["product"] = {
                "id": product.id,
                "name": product.name,
                "sku": product.sku,
                "category": product.category.name if product.category else None,
                "unit": product.unit.short_name if product.unit else None,
            }
        return data
