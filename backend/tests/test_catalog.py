"""
Catalog tests: brands, categories, units and customer types.

Verifies:
- Names are unique case-insensitively
- Deletes are refused while products (or sub-categories) reference the row
- Category parents cannot form cycles
"""

import pytest

from sarupaa.services import catalog_service
from sarupaa.validation import ConflictError, IntegrityBlockedError, ValidationError


def test_brand_duplicate_name(db_session):
    catalog_service.create_brand(patch={"name": "Nestle"})

    with pytest.raises(ConflictError) as exc:
        catalog_service.create_brand(patch={"name": "nestle"})
    assert str(exc.value) == 'Brand "nestle" already exists'


def test_brand_delete_guard(db_session, make_product):
    brand = catalog_service.create_brand(patch={"name": "Nestle"})
    product = make_product("Milo")
    product.brand_id = brand.id
    db_session.commit()

    with pytest.raises(IntegrityBlockedError) as exc:
        catalog_service.delete_brand(brand_id=brand.id)
    assert str(exc.value) == "Cannot delete brand. It has 1 products assigned."

    product.brand_id = None
    db_session.commit()
    catalog_service.delete_brand(brand_id=brand.id)
    assert catalog_service.list_brands() == []


def test_category_delete_guards(db_session):
    parent = catalog_service.create_category(patch={"name": "Drinks"})
    child = catalog_service.create_category(patch={"name": "Juice", "parent_id": parent.id})

    with pytest.raises(IntegrityBlockedError) as exc:
        catalog_service.delete_category(category_id=parent.id)
    assert "1 sub-categories" in str(exc.value)

    catalog_service.delete_category(category_id=child.id)
    catalog_service.delete_category(category_id=parent.id)


def test_category_duplicate_name(db_session):
    catalog_service.create_category(patch={"name": "Drinks"})

    with pytest.raises(ConflictError) as exc:
        catalog_service.create_category(patch={"name": "DRINKS"})
    assert str(exc.value) == 'Category "DRINKS" already exists'

    other = catalog_service.create_category(patch={"name": "Snacks"})
    with pytest.raises(ConflictError):
        catalog_service.update_category(category_id=other.id, patch={"name": "drinks"})


def test_category_cycle_refused(db_session):
    parent = catalog_service.create_category(patch={"name": "Drinks"})
    child = catalog_service.create_category(patch={"name": "Juice", "parent_id": parent.id})

    with pytest.raises(ValidationError):
        catalog_service.update_category(category_id=parent.id, patch={"parent_id": parent.id})
    with pytest.raises(ValidationError):
        catalog_service.update_category(category_id=parent.id, patch={"parent_id": child.id})


def test_category_stats(db_session, make_product):
    category = catalog_service.create_category(patch={"name": "Snacks"})
    chips = make_product("Chips")
    chips.category_id = category.id
    make_product("Loose")
    db_session.commit()

    assert catalog_service.category_stats() == {"total_products": 2, "uncategorized_products": 1}


def test_unit_duplicate(db_session):
    catalog_service.create_unit(patch={"name": "Kilogram", "short_name": "kg"})
    with pytest.raises(ConflictError):
        catalog_service.create_unit(patch={"name": "kilogram", "short_name": "KG"})


def test_customer_type_discount_clamped(db_session):
    ct = catalog_service.create_customer_type(name="Wholesale", discount_percent=150)
    assert ct.discount_percent == 100

    with pytest.raises(ConflictError):
        catalog_service.create_customer_type(name="wholesale")
    with pytest.raises(ValidationError):
        catalog_service.create_customer_type(name="  ")

    updated = catalog_service.update_customer_type(type_id=ct.id, discount_percent=-5)
    assert updated.discount_percent == 0


def test_brand_endpoints(client, admin_headers):
    resp = client.post("/api/brands", json={"name": "Nestle"}, headers=admin_headers)
    assert resp.status_code == 201

    resp = client.post("/api/brands", json={"name": "NESTLE"}, headers=admin_headers)
    assert resp.status_code == 400

    resp = client.get("/api/brands", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json["data"][0]["product_count"] == 0


def test_customer_type_endpoints(client, admin_headers):
    resp = client.post(
        "/api/customer-types",
        json={"name": "Retail", "discount_percent": 5},
        headers=admin_headers,
    )
    assert resp.status_code == 201

    resp = client.get("/api/customer-types", headers=admin_headers)
    assert resp.json["total"] == 1


def test_brand_delete_endpoint_refuses_assigned_brand(client, admin_headers, db_session, make_product):
    resp = client.post("/api/brands", json={"name": "Nestle"}, headers=admin_headers)
    brand_id = resp.json["id"]
    product = make_product("Milo")
    product.brand_id = brand_id
    db_session.commit()

    resp = client.delete(f"/api/brands/{brand_id}", headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json["error"] == "Cannot delete brand. It has 1 products assigned."

    resp = client.get("/api/brands", headers=admin_headers)
    assert [(b["id"], b["product_count"]) for b in resp.json["data"]] == [(brand_id, 1)]

    product.brand_id = None
    db_session.commit()
    resp = client.delete(f"/api/brands/{brand_id}", headers=admin_headers)
    assert resp.status_code == 200
    assert client.get("/api/brands", headers=admin_headers).json["data"] == []


def test_category_duplicate_endpoint(client, admin_headers):
    resp = client.post("/api/categories", json={"name": "Drinks"}, headers=admin_headers)
    assert resp.status_code == 201

    resp = client.post("/api/categories", json={"name": "drinks"}, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json["error"] == 'Category "drinks" already exists'
