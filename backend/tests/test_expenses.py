"""Expense and expense category tests."""

import pytest

from sarupaa.services import expense_service
from sarupaa.validation import ConflictError, NotFoundError, ValidationError


def test_create_defaults(db_session, admin):
    expense = expense_service.create_expense(patch={"amount_cents": 1200, "description": "Tea"}, user_id=admin.id)

    assert expense.payment_type == "cash"
    assert expense.date is not None
    assert expense.user_id == admin.id


def test_amount_must_be_positive(db_session):
    with pytest.raises(ValidationError):
        expense_service.create_expense(patch={"amount_cents": 0}, user_id=None)


def test_unknown_category(db_session):
    with pytest.raises(ValidationError):
        expense_service.create_expense(patch={"amount_cents": 10, "category_id": 42}, user_id=None)


def test_category_duplicate(db_session):
    expense_service.create_category(patch={"name": "Utilities"})
    with pytest.raises(ConflictError):
        expense_service.create_category(patch={"name": "Utilities"})


def test_update_and_delete(db_session):
    expense = expense_service.create_expense(patch={"amount_cents": 100}, user_id=None)

    expense_service.update_expense(expense_id=expense.id, patch={"amount_cents": 250})
    assert expense_service.get_expense(expense.id).amount_cents == 250

    expense_service.delete_expense(expense_id=expense.id)
    with pytest.raises(NotFoundError):
        expense_service.get_expense(expense.id)


def test_expense_endpoints(client, admin_headers):
    resp = client.post("/api/expenses/categories", json={"name": "Rent"}, headers=admin_headers)
    assert resp.status_code == 201
    category_id = resp.json["category"]["id"]

    resp = client.post(
        "/api/expenses",
        json={"amount_cents": 50000, "category_id": category_id, "date": "2024-03-01"},
        headers=admin_headers,
    )
    assert resp.status_code == 201
    expense_id = resp.json["expense"]["id"]

    resp = client.post("/api/expenses", json={"description": "No amount"}, headers=admin_headers)
    assert resp.status_code == 400

    resp = client.get("/api/expenses", headers=admin_headers)
    assert len(resp.json["data"]) == 1

    resp = client.delete(f"/api/expenses/{expense_id}", headers=admin_headers)
    assert resp.status_code == 200
    resp = client.delete(f"/api/expenses/{expense_id}", headers=admin_headers)
    assert resp.status_code == 404
