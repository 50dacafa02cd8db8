"""
Stock tests.

Verifies:
- Stock is the sum of inventory movements
- Outbound movements are refused past current stock
- Manual adjustments are costed at the latest purchase price
"""

import pytest

from sarupaa.services import stock_service
from sarupaa.services.stock_service import InsufficientStockError
from sarupaa.validation import NotFoundError, ValidationError


def test_stock_is_sum_of_movements(db_session, product):
    assert stock_service.current_stock(product.id) == 0

    stock_service.record_movement(product_id=product.id, quantity=10, movement_type="opening")
    stock_service.record_movement(product_id=product.id, quantity=-3, movement_type="sale")
    stock_service.record_movement(product_id=product.id, quantity=2, movement_type="sale_return")
    db_session.commit()

    assert stock_service.current_stock(product.id) == 9
    assert stock_service.stock_breakdown(product.id) == {
        "opening": 10,
        "sale": -3,
        "sale_return": 2,
    }


def test_stock_map_includes_products_without_rows(db_session, make_product):
    a = make_product("A")
    b = make_product("B")
    stock_service.record_movement(product_id=a.id, quantity=4, movement_type="opening")
    db_session.commit()

    assert stock_service.current_stock_map([a.id, b.id]) == {a.id: 4, b.id: 0}
    assert stock_service.current_stock_map([]) == {}


def test_ensure_available_messages(db_session, product):
    stock_service.record_movement(product_id=product.id, quantity=2, movement_type="opening")
    db_session.commit()

    assert stock_service.ensure_available(product, 2) == 2

    with pytest.raises(InsufficientStockError) as exc:
        stock_service.ensure_available(product, 5)
    assert str(exc.value) == 'Insufficient stock for "Widget". Available: 2, Requested: 5'

    with pytest.raises(InsufficientStockError) as exc:
        stock_service.ensure_available(product, 3, verb="return")
    assert "Trying to return: 3" in str(exc.value)


def test_adjust_add_uses_product_cost_without_purchases(db_session, product):
    adjustment = stock_service.adjust_stock(product_id=product.id, quantity=5, direction="add")

    assert adjustment.row.quantity == 5
    assert adjustment.row.type == "adjustment"
    assert adjustment.price_used_cents == 500
    assert adjustment.price_source == "Product Default"
    assert stock_service.current_stock(product.id) == 5


def test_adjust_subtract_refused_past_stock(db_session, product):
    stock_service.adjust_stock(product_id=product.id, quantity=1, direction="add")

    with pytest.raises(InsufficientStockError):
        stock_service.adjust_stock(product_id=product.id, quantity=2, direction="subtract")

    stock_service.adjust_stock(product_id=product.id, quantity=1, direction="remove")
    assert stock_service.current_stock(product.id) == 0


def test_adjust_validation(db_session, product):
    with pytest.raises(ValidationError):
        stock_service.adjust_stock(product_id=product.id, quantity=0, direction="add")
    with pytest.raises(ValidationError):
        stock_service.adjust_stock(product_id=product.id, quantity=1, direction="sideways")
    with pytest.raises(NotFoundError):
        stock_service.adjust_stock(product_id=9999, quantity=1, direction="add")


def test_adjust_endpoint(client, admin_headers, product):
    resp = client.post(
        "/api/inventory/adjust",
        json={"product_id": product.id, "quantity": 3, "type": "add", "notes": "Recount"},
        headers=admin_headers,
    )
    assert resp.status_code == 201
    assert resp.json["stock"] == 3
    assert resp.json["price_source"] == "Product Default"

    resp = client.post(
        "/api/inventory/adjust",
        json={"product_id": product.id, "quantity": 10, "type": "subtract"},
        headers=admin_headers,
    )
    assert resp.status_code == 400
    assert "Current stock: 3" in resp.json["error"]

    resp = client.post("/api/inventory/adjust", json={"quantity": 1}, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json["error"] == "product_id is required"
