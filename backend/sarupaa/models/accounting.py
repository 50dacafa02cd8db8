from __future__ import annotations

from ..extensions import db
from sarupaa.time_utils import to_utc_z


ACCOUNT_TYPES = ("asset", "liability", "equity", "income", "expense")


class AccountGroup(db.Model):
    __tablename__ = "account_groups"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, unique=True)
    type = db.Column(db.String(16), nullable=False)
    is_system = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "is_system": self.is_system,
        }


class Account(db.Model):
    """
    Chart-of-accounts entry.

    balance_cents moves only through accounting_service.post_transaction:
    debit account += amount, credit account -= amount.
    """
    __tablename__ = "accounts"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False, unique=True, index=True)
    name = db.Column(db.String(128), nullable=False)
    group_id = db.Column(db.Integer, db.ForeignKey("account_groups.id"), nullable=True, index=True)
    type = db.Column(db.String(16), nullable=False)
    description = db.Column(db.Text, nullable=True)

    balance_cents = db.Column(db.Integer, nullable=False, default=0)
    is_system = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    group = db.relationship("AccountGroup", backref=db.backref("accounts", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "group_id": self.group_id,
            "group": self.group.name if self.group else None,
            "type": self.type,
            "description": self.description,
            "balance_cents": self.balance_cents,
            "is_system": self.is_system,
            "is_active": self.is_active,
        }


class TransactionGroup(db.Model):
    """Groups the postings generated by one business document."""
    __tablename__ = "transaction_groups"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    reference = db.Column(db.String(64), nullable=True, index=True)
    description = db.Column(db.String(255), nullable=True)
    date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "reference": self.reference,
            "description": self.description,
            "date": to_utc_z(self.date),
        }


class Transaction(db.Model):
    """
    One double-entry posting.

    IMMUTABLE: amount_cents > 0 and the two accounts differ; the balance
    changes it caused sum to zero.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_transactions_amount_positive"),
        db.CheckConstraint("debit_account_id <> credit_account_id", name="ck_transactions_distinct_accounts"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    debit_account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)
    credit_account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(255), nullable=True)
    date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=True, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)
    group_id = db.Column(db.Integer, db.ForeignKey("transaction_groups.id"), nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    debit_account = db.relationship("Account", foreign_keys=[debit_account_id])
    credit_account = db.relationship("Account", foreign_keys=[credit_account_id])
    group = db.relationship("TransactionGroup", backref=db.backref("transactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "debit_account_id": self.debit_account_id,
            "debit_account": {
                "code": self.debit_account.code,
                "name": self.debit_account.name,
            } if self.debit_account else None,
            "credit_account_id": self.credit_account_id,
            "credit_account": {
                "code": self.credit_account.code,
                "name": self.credit_account.name,
            } if self.credit_account else None,
            "amount_cents": self.amount_cents,
            "description": self.description,
            "date": to_utc_z(self.date),
            "purchase_id": self.purchase_id,
            "sale_id": self.sale_id,
            "group_id": self.group_id,
            "user_id": self.user_id,
        }
