from __future__ import annotations

from ..extensions import db
from poscore.time_utils import to_utc_z


class CashBankAccount(db.Model):
    """
    Cash drawer or bank account whose balance moves with sales and refunds.

    ACCOUNT TYPES:
    - CASH: Physical till / cash in hand
    - BANK: Card, UPI and transfer settlements
    """
    __tablename__ = "cash_bank_accounts"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_cash_bank_accounts_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    account_type = db.Column(db.String(16), nullable=False, index=True)
    balance_cents = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "account_type": self.account_type,
            "balance_cents": self.balance_cents,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }


class CashBankTransaction(db.Model):
    """Append-only balance movement; balance_after is the account balance once applied."""
    __tablename__ = "cash_bank_transactions"
    __table_args__ = (
        db.CheckConstraint("amount_cents >= 0", name="ck_cash_bank_tx_amount_non_negative"),
        db.Index("ix_cash_bank_tx_account_created", "account_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("cash_bank_accounts.id"), nullable=False, index=True)

    # CREDIT (cash in) or DEBIT (cash out)
    direction = db.Column(db.String(8), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    balance_after_cents = db.Column(db.Integer, nullable=False)

    # INVOICE or RETURN
    reference_type = db.Column(db.String(16), nullable=True)
    reference_id = db.Column(db.Integer, nullable=True)

    actor_user_id = db.Column(db.Integer, nullable=True)
    note = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    account = db.relationship("CashBankAccount", backref=db.backref("transactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "direction": self.direction,
            "amount_cents": self.amount_cents,
            "balance_after_cents": self.balance_after_cents,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "actor_user_id": self.actor_user_id,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }
