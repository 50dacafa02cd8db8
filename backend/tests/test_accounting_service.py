"""
Double-entry tests.

Verifies:
- Every posting moves two accounts by equal and opposite amounts
- Invalid postings are refused and write nothing
- Account and manual journal endpoints
"""

import pytest
from sqlalchemy import func

from sarupaa.extensions import db
from sarupaa.models import Account, Transaction
from sarupaa.services import accounting_service
from sarupaa.services.accounting_service import CASH_IN_HAND, SALES_REVENUE
from sarupaa.validation import ConflictError, NotFoundError, ValidationError


def _total_balance() -> int:
    return int(db.session.query(func.coalesce(func.sum(Account.balance_cents), 0)).scalar())


def test_seed_is_idempotent(db_session):
    created = accounting_service.seed_chart_of_accounts()
    assert created == len([a for _, _, accounts in accounting_service.CHART_OF_ACCOUNTS for a in accounts])
    assert accounting_service.seed_chart_of_accounts() == 0


def test_post_between_is_zero_sum(db_session, accounts):
    tx = accounting_service.post_between(CASH_IN_HAND, SALES_REVENUE, 1500, "Sale")
    db_session.commit()

    assert tx.amount_cents == 1500
    assert accounting_service.system_account(CASH_IN_HAND).balance_cents == 1500
    assert accounting_service.system_account(SALES_REVENUE).balance_cents == -1500
    assert _total_balance() == 0


def test_post_between_negative_amount_swaps_sides(db_session, accounts):
    tx = accounting_service.post_between(CASH_IN_HAND, SALES_REVENUE, -200, "Refund")
    db_session.commit()

    assert tx.debit_account.code == SALES_REVENUE
    assert tx.credit_account.code == CASH_IN_HAND
    assert tx.amount_cents == 200


def test_post_between_skips_zero_and_missing_accounts(db_session):
    assert accounting_service.post_between(CASH_IN_HAND, SALES_REVENUE, 0, "Nothing") is None
    # No chart of accounts seeded
    assert accounting_service.post_between(CASH_IN_HAND, SALES_REVENUE, 100, "Sale") is None
    assert db_session.query(Transaction).count() == 0


def test_post_transaction_validation(db_session, accounts):
    cash = accounting_service.system_account(CASH_IN_HAND)

    with pytest.raises(ValidationError):
        accounting_service.post_transaction(debit_account_id=cash.id, credit_account_id=cash.id, amount_cents=100)
    with pytest.raises(ValidationError):
        accounting_service.post_transaction(debit_account_id=cash.id, credit_account_id=cash.id + 1, amount_cents=0)
    with pytest.raises(NotFoundError):
        accounting_service.post_transaction(debit_account_id=cash.id, credit_account_id=9999, amount_cents=100)


def test_create_account_rejects_duplicate_code(db_session, accounts):
    account = accounting_service.create_account(code="6001", name="Rent", account_type="expense")
    assert account.balance_cents == 0

    with pytest.raises(ConflictError):
        accounting_service.create_account(code="6001", name="Rent again", account_type="expense")
    with pytest.raises(ValidationError):
        accounting_service.create_account(code="6002", name="Odd", account_type="weird")


def test_cash_in_hand_reads_system_account(db_session, accounts):
    accounting_service.post_between(CASH_IN_HAND, SALES_REVENUE, 700, "Sale")
    db_session.commit()

    result = accounting_service.cash_in_hand()
    assert result["balance_cents"] == 700
    assert result["account_name"] == "Cash in Hand"


def test_cash_in_hand_falls_back_to_calculation(db_session):
    result = accounting_service.cash_in_hand()
    assert result["account_id"] is None
    assert result["balance_cents"] == 0
    assert result["breakdown"]["cash_sales_cents"] == 0


def test_manual_transaction_endpoint(client, admin_headers):
    cash = accounting_service.system_account(CASH_IN_HAND)
    revenue = accounting_service.system_account(SALES_REVENUE)

    resp = client.post(
        "/api/transactions",
        json={
            "debit_account_id": cash.id,
            "credit_account_id": revenue.id,
            "amount_cents": 2500,
            "description": "Opening float",
        },
        headers=admin_headers,
    )
    assert resp.status_code == 201
    assert resp.json["transaction"]["amount_cents"] == 2500

    resp = client.get("/api/transactions", headers=admin_headers)
    assert resp.status_code == 200
    assert len(resp.json["transactions"]) == 1

    resp = client.get("/api/accounts/cash-in-hand", headers=admin_headers)
    assert resp.json["balance_cents"] == 2500


def test_manual_transaction_requires_manager(client, clerk_headers, accounts):
    resp = client.post(
        "/api/transactions",
        json={"debit_account_id": 1, "credit_account_id": 2, "amount_cents": 1},
        headers=clerk_headers,
    )
    assert resp.status_code == 403
