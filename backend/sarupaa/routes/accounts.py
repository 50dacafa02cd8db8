# Overview: Flask API routes for chart of accounts and journal transactions.

"""
Accounts and transactions.

SECURITY: All routes require authentication. Creating accounts or posting
manual transactions additionally requires ADMINISTRATOR or MANAGER.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_ADMINISTRATOR, ROLE_MANAGER
from ..services import accounting_service
from ..validation import NotFoundError


accounts_bp = Blueprint("accounts", __name__, url_prefix="/api/accounts")
transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


@accounts_bp.get("")
@require_auth
def list_accounts_route():
    accounts, groups = accounting_service.list_accounts()
    return jsonify({
        "accounts": [a.to_dict() for a in accounts],
        "groups": [grp.to_dict() for grp in groups],
    })


@accounts_bp.post("")
@require_auth
@require_role(ROLE_ADMINISTRATOR, ROLE_MANAGER)
def create_account_route():
    data = request.get_json(silent=True) or {}
    try:
        account = accounting_service.create_account(
            code=data.get("code"),
            name=data.get("name"),
            group_id=data.get("group_id"),
            account_type=data.get("type"),
            description=data.get("description"),
        )
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create account")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"account": account.to_dict()}), 201


@accounts_bp.get("/cash-in-hand")
@require_auth
def cash_in_hand_route():
    return jsonify(accounting_service.cash_in_hand())


@transactions_bp.get("")
@require_auth
def list_transactions_route():
    limit = request.args.get("limit", 100, type=int)
    limit = min(max(limit, 1), 500)
    transactions = accounting_service.list_transactions(limit=limit)
    return jsonify({"transactions": [t.to_dict() for t in transactions]})


@transactions_bp.post("")
@require_auth
@require_role(ROLE_ADMINISTRATOR, ROLE_MANAGER)
def create_transaction_route():
    """
    Manual journal entry.

    Request body:
    {
        "debit_account_id": 1,
        "credit_account_id": 2,
        "amount_cents": 1000,
        "description": "..."
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        tx = accounting_service.create_manual_transaction(
            debit_account_id=data.get("debit_account_id"),
            credit_account_id=data.get("credit_account_id"),
            amount_cents=data.get("amount_cents"),
            description=data.get("description"),
            user_id=g.current_user.id,
        )
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create transaction")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"transaction": tx.to_dict()}), 201
