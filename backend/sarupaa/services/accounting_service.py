# Overview: Service-layer operations for double-entry accounting; encapsulates business logic and database work.

from __future__ import annotations

from datetime import datetime
from typing import Optional

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Account, AccountGroup, Expense, Payment, Sale, Transaction
from ..models.accounting import ACCOUNT_TYPES
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    coerce_int,
    parse_cents,
)
from .concurrency import lock_for_update
from sarupaa.time_utils import utcnow
"""
Double-Entry Invariants (authoritative)

- A Transaction names one debit account, one different credit account and a
  positive amount.
- Posting applies debit.balance += amount and credit.balance -= amount, so
  the sum of balance changes across all accounts is zero per transaction.
- The Transaction row and both balance updates happen in one DB transaction
  with both account rows locked. post_transaction flushes only; the caller
  commits the business event it belongs to.
"""


CASH_IN_HAND = "1001"
CASH_AT_BANK = "1002"
ACCOUNTS_RECEIVABLE = "1003"
INVENTORY = "1004"
ACCOUNTS_PAYABLE = "2001"
TAX_PAYABLE = "2002"
SALES_REVENUE = "4001"
COST_OF_GOODS_SOLD = "5001"

# (group name, group type, [(code, name), ...])
CHART_OF_ACCOUNTS = [
    ("Current Assets", "asset", [
        (CASH_IN_HAND, "Cash in Hand"),
        (CASH_AT_BANK, "Cash at Bank"),
        (ACCOUNTS_RECEIVABLE, "Accounts Receivable"),
        (INVENTORY, "Inventory"),
    ]),
    ("Current Liabilities", "liability", [
        (ACCOUNTS_PAYABLE, "Accounts Payable"),
        (TAX_PAYABLE, "Tax Payable"),
    ]),
    ("Owner's Equity", "equity", [
        ("3001", "Owner's Capital"),
    ]),
    ("Revenue", "income", [
        (SALES_REVENUE, "Sales Revenue"),
    ]),
    ("Cost of Sales", "expense", [
        (COST_OF_GOODS_SOLD, "Cost of Goods Sold"),
    ]),
]


def seed_chart_of_accounts() -> int:
    """Create any missing system groups/accounts. Returns number of accounts created."""
    created = 0
    for group_name, group_type, accounts in CHART_OF_ACCOUNTS:
        group = db.session.query(AccountGroup).filter_by(name=group_name).first()
        if not group:
            group = AccountGroup(name=group_name, type=group_type, is_system=True)
            db.session.add(group)
            db.session.flush()
        for code, name in accounts:
            if db.session.query(Account.id).filter_by(code=code).first():
                continue
            db.session.add(Account(
                code=code,
                name=name,
                group_id=group.id,
                type=group_type,
                balance_cents=0,
                is_system=True,
            ))
            created += 1
    db.session.commit()
    return created


def system_account(code: str) -> Account | None:
    return db.session.query(Account).filter_by(code=code).first()


def post_transaction(
    *,
    debit_account_id: int,
    credit_account_id: int,
    amount_cents,
    description: str | None = None,
    date: Optional[datetime] = None,
    purchase_id: int | None = None,
    sale_id: int | None = None,
    group_id: int | None = None,
    user_id: int | None = None,
) -> Transaction:
    """
    Post one balanced transaction. Flush only; the caller commits.

    Raises ValidationError for a non-positive amount or identical accounts
    and NotFoundError for an unknown account.
    """
    amount = coerce_int("amount_cents", amount_cents)
    if amount <= 0:
        raise ValidationError("amount_cents must be > 0")
    debit_account_id = coerce_int("debit_account_id", debit_account_id)
    credit_account_id = coerce_int("credit_account_id", credit_account_id)
    if debit_account_id == credit_account_id:
        raise ValidationError("Debit and credit accounts must differ")

    # Lock in id order so two postings over the same pair cannot deadlock
    locked = {
        account.id: account
        for account in lock_for_update(
            db.session.query(Account)
            .filter(Account.id.in_([debit_account_id, credit_account_id]))
            .order_by(Account.id)
        ).all()
    }
    debit = locked.get(debit_account_id)
    credit = locked.get(credit_account_id)
    if not debit:
        raise NotFoundError("Debit account not found")
    if not credit:
        raise NotFoundError("Credit account not found")

    tx = Transaction(
        debit_account_id=debit.id,
        credit_account_id=credit.id,
        amount_cents=amount,
        description=description,
        date=date or utcnow(),
        purchase_id=purchase_id,
        sale_id=sale_id,
        group_id=group_id,
        user_id=user_id,
    )
    db.session.add(tx)

    debit.balance_cents = (debit.balance_cents or 0) + amount
    credit.balance_cents = (credit.balance_cents or 0) - amount

    db.session.flush()
    return tx


def post_between(
    debit_code: str,
    credit_code: str,
    amount_cents: int,
    description: str,
    **refs,
) -> Transaction | None:
    """
    Post between two system accounts identified by code.

    Automatic postings are skipped (with a warning) when the chart of
    accounts lacks one of the accounts, or when the amount is zero.
    """
    if not amount_cents:
        return None
    if amount_cents < 0:
        debit_code, credit_code = credit_code, debit_code
        amount_cents = -amount_cents

    debit = system_account(debit_code)
    credit = system_account(credit_code)
    if not debit or not credit:
        current_app.logger.warning(
            "Skipping posting %r: system account %s missing",
            description,
            debit_code if not debit else credit_code,
        )
        return None

    return post_transaction(
        debit_account_id=debit.id,
        credit_account_id=credit.id,
        amount_cents=amount_cents,
        description=description,
        **refs,
    )


def create_manual_transaction(
    *,
    debit_account_id,
    credit_account_id,
    amount_cents,
    description: str | None = None,
    user_id: int | None = None,
) -> Transaction:
    """Manual journal entry (POST /api/transactions)."""
    if debit_account_id in (None, "") or credit_account_id in (None, ""):
        raise ValidationError("debit_account_id and credit_account_id are required")
    if amount_cents in (None, ""):
        raise ValidationError("amount_cents is required")
    try:
        tx = post_transaction(
            debit_account_id=debit_account_id,
            credit_account_id=credit_account_id,
            amount_cents=amount_cents,
            description=description or None,
            user_id=user_id,
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return tx


def list_transactions(*, limit: int = 100) -> list[Transaction]:
    return (
        db.session.query(Transaction)
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .limit(limit)
        .all()
    )


def list_accounts() -> tuple[list[Account], list[AccountGroup]]:
    accounts = db.session.query(Account).order_by(Account.type.asc(), Account.code.asc()).all()
    groups = db.session.query(AccountGroup).order_by(AccountGroup.name.asc()).all()
    return accounts, groups


def create_account(*, code, name, group_id=None, account_type=None, description=None) -> Account:
    code = (code or "").strip() if isinstance(code, str) else code
    if not code:
        raise ValidationError("code is required")
    if not name or not str(name).strip():
        raise ValidationError("name is required")
    code = str(code)

    if db.session.query(Account.id).filter_by(code=code).first():
        raise ConflictError("Account code already exists")

    group = None
    if group_id not in (None, ""):
        group = db.session.get(AccountGroup, coerce_int("group_id", group_id))
        if not group:
            raise NotFoundError("Account group not found")

    account_type = account_type or (group.type if group else None)
    if account_type not in ACCOUNT_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(ACCOUNT_TYPES)}")

    account = Account(
        code=code,
        name=str(name).strip(),
        group_id=group.id if group else None,
        type=account_type,
        description=description,
        balance_cents=0,
    )
    db.session.add(account)
    db.session.commit()
    return account


def cash_in_hand() -> dict:
    """
    Cash position.

    Uses the Cash in Hand account when present; otherwise derives it from
    cash sale payments and collections minus cash expenses and cash refunds.
    """
    account = system_account(CASH_IN_HAND)
    if account is None:
        account = (
            db.session.query(Account)
            .filter(func.lower(Account.name).in_(["cash in hand", "cash-in-hand", "cash"]))
            .first()
        )
    if account is not None:
        return {
            "balance_cents": account.balance_cents,
            "account_name": account.name,
            "account_id": account.id,
        }

    def _sum(column, *criteria) -> int:
        return int(db.session.query(func.coalesce(func.sum(column), 0)).filter(*criteria).scalar() or 0)

    cash_sales = _sum(
        Payment.amount_cents,
        Payment.payment_type == "cash",
        Payment.sale_id.isnot(None),
        Payment.amount_cents > 0,
        Payment.reversed_at.is_(None),
    )
    cash_collections = _sum(
        Payment.amount_cents,
        Payment.payment_type == "cash",
        Payment.sale_id.is_(None),
        Payment.customer_id.isnot(None),
        Payment.reversed_at.is_(None),
    )
    cash_expenses = _sum(Expense.amount_cents, Expense.payment_type == "cash")
    cash_returns = _sum(Sale.total_cents, Sale.is_return.is_(True), Sale.payment_type == "cash")

    return {
        "balance_cents": cash_sales + cash_collections - cash_expenses - cash_returns,
        "account_name": "Cash in Hand (Calculated)",
        "account_id": None,
        "breakdown": {
            "cash_sales_cents": cash_sales,
            "cash_collections_cents": cash_collections,
            "cash_expenses_cents": cash_expenses,
            "cash_returns_cents": cash_returns,
        },
    }
