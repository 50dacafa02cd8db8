# Overview: Service-layer operations for expenses; encapsulates business logic and database work.

from __future__ import annotations

from ..extensions import db
from ..models import Expense, ExpenseCategory
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_rules_expense,
)
from sarupaa.time_utils import utcnow


EXPENSE_POLICY = ModelValidationPolicy(
    writable_fields={"category_id", "amount_cents", "description", "payment_type", "reference", "date"},
    required_on_create={"amount_cents"},
)

EXPENSE_CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description"},
    required_on_create={"name"},
)


def list_expenses() -> list[Expense]:
    return db.session.query(Expense).order_by(Expense.created_at.desc(), Expense.id.desc()).all()


def get_expense(expense_id: int) -> Expense:
    expense = db.session.get(Expense, expense_id)
    if not expense:
        raise NotFoundError("Expense not found")
    return expense


def _check_category(patch: dict) -> None:
    category_id = patch.get("category_id")
    if category_id is not None and db.session.get(ExpenseCategory, category_id) is None:
        raise ValidationError("Expense category not found")


def create_expense(*, patch: dict, user_id: int | None) -> Expense:
    """Record an expense against the authenticated user."""
    enforce_rules_expense(patch)
    _check_category(patch)
    expense = Expense(user_id=user_id, **patch)
    if expense.date is None:
        expense.date = utcnow()
    if not expense.payment_type:
        expense.payment_type = "cash"
    db.session.add(expense)
    db.session.commit()
    return expense


def update_expense(*, expense_id: int, patch: dict) -> Expense:
    expense = get_expense(expense_id)
    enforce_rules_expense(patch)
    _check_category(patch)
    for key, value in patch.items():
        setattr(expense, key, value)
    db.session.commit()
    return expense


def delete_expense(*, expense_id: int) -> None:
    expense = get_expense(expense_id)
    db.session.delete(expense)
    db.session.commit()


def list_categories() -> list[ExpenseCategory]:
    return db.session.query(ExpenseCategory).order_by(ExpenseCategory.name.asc()).all()


def create_category(*, patch: dict) -> ExpenseCategory:
    if db.session.query(ExpenseCategory.id).filter(ExpenseCategory.name == patch["name"]).first():
        raise ConflictError(f'Expense category "{patch["name"]}" already exists')
    category = ExpenseCategory(**patch)
    db.session.add(category)
    db.session.commit()
    return category
