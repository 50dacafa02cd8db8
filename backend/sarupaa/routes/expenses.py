# Overview: Flask API routes for expenses; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..models import Expense, ExpenseCategory
from ..services import expense_service
from ..services.expense_service import EXPENSE_CATEGORY_POLICY, EXPENSE_POLICY
from ..validation import NotFoundError, validate_payload


expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")


@expenses_bp.get("")
@require_auth
def list_expenses_route():
    return jsonify({"data": [e.to_dict() for e in expense_service.list_expenses()]})


@expenses_bp.post("")
@require_auth
def create_expense_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=False)
        expense = expense_service.create_expense(patch=patch, user_id=g.current_user.id)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create expense")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"expense": expense.to_dict()}), 201


@expenses_bp.put("/<int:expense_id>")
@require_auth
def update_expense_route(expense_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=True)
        expense = expense_service.update_expense(expense_id=expense_id, patch=patch)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update expense")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"expense": expense.to_dict()})


@expenses_bp.delete("/<int:expense_id>")
@require_auth
def delete_expense_route(expense_id: int):
    try:
        expense_service.delete_expense(expense_id=expense_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"message": "Expense deleted successfully"})


@expenses_bp.get("/categories")
@require_auth
def list_expense_categories_route():
    return jsonify({"categories": [c.to_dict() for c in expense_service.list_categories()]})


@expenses_bp.post("/categories")
@require_auth
def create_expense_category_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=ExpenseCategory, payload=payload, policy=EXPENSE_CATEGORY_POLICY, partial=False)
        category = expense_service.create_category(patch=patch)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"category": category.to_dict()}), 201
