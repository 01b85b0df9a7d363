# Overview: Service-layer operations for the cash/bank ledger; encapsulates business logic and database work.

from __future__ import annotations

from ..extensions import db
from ..models import CashBankAccount, CashBankTransaction
from .concurrency import lock_for_update
from .errors import InvalidRequest, NotFound
"""
Cash/bank ledger invariants (authoritative)

- Balances only move through credit() and debit(); each call appends one
  CashBankTransaction recording the amount and the resulting balance.
- Entries are append-only (no updates/deletes).
- credit()/debit() flush but never commit: they are written inside the same
  DB transaction as the invoice or return they settle.
- Debits may take a balance below zero (bank overdraft, till shortfall);
  the shortfall stays visible in balance_after_cents.
"""


ACCOUNT_TYPE_CASH = "CASH"
ACCOUNT_TYPE_BANK = "BANK"
ACCOUNT_TYPES = (ACCOUNT_TYPE_CASH, ACCOUNT_TYPE_BANK)

DIRECTION_CREDIT = "CREDIT"
DIRECTION_DEBIT = "DEBIT"

# Settlement account type per payment/refund method
PAYMENT_METHOD_ACCOUNT_TYPES = {
    "CASH": ACCOUNT_TYPE_CASH,
    "CARD": ACCOUNT_TYPE_BANK,
    "UPI": ACCOUNT_TYPE_BANK,
    "BANK_TRANSFER": ACCOUNT_TYPE_BANK,
}
PAYMENT_METHODS = tuple(PAYMENT_METHOD_ACCOUNT_TYPES)


def normalize_payment_method(value: str | None) -> str:
    method = (value or "").strip().upper()
    if method not in PAYMENT_METHOD_ACCOUNT_TYPES:
        raise InvalidRequest(
            f"Unknown payment method {value!r}",
            details={"allowed": list(PAYMENT_METHODS)},
        )
    return method


def resolve_account(payment_method: str, account_id: int | None = None) -> CashBankAccount:
    """
    Pick the account a payment or refund settles against and lock it.

    An explicit account_id wins; otherwise the first active account whose type
    matches the method (CASH -> CASH, everything else -> BANK).
    """
    query = db.session.query(CashBankAccount).filter(CashBankAccount.is_active.is_(True))
    if account_id is not None:
        query = query.filter(CashBankAccount.id == account_id)
    else:
        account_type = PAYMENT_METHOD_ACCOUNT_TYPES[payment_method]
        query = query.filter(CashBankAccount.account_type == account_type).order_by(CashBankAccount.id)

    account = lock_for_update(query).populate_existing().first()
    if account is None:
        raise NotFound(
            "No active cash/bank account for this payment",
            details={"payment_method": payment_method, "account_id": account_id},
        )
    return account


def credit(
    account: CashBankAccount,
    amount_cents: int,
    *,
    reference_type: str | None = None,
    reference_id: int | None = None,
    actor_user_id: int | None = None,
    note: str | None = None,
) -> CashBankTransaction:
    """Cash in: add amount_cents to the account balance."""
    return _post(
        account,
        DIRECTION_CREDIT,
        amount_cents,
        reference_type=reference_type,
        reference_id=reference_id,
        actor_user_id=actor_user_id,
        note=note,
    )


def debit(
    account: CashBankAccount,
    amount_cents: int,
    *,
    reference_type: str | None = None,
    reference_id: int | None = None,
    actor_user_id: int | None = None,
    note: str | None = None,
) -> CashBankTransaction:
    """Cash out: subtract amount_cents from the account balance."""
    return _post(
        account,
        DIRECTION_DEBIT,
        amount_cents,
        reference_type=reference_type,
        reference_id=reference_id,
        actor_user_id=actor_user_id,
        note=note,
    )


def _post(account, direction, amount_cents, **reference) -> CashBankTransaction:
    if not isinstance(amount_cents, int) or isinstance(amount_cents, bool) or amount_cents < 0:
        raise InvalidRequest("Ledger amount must be a non-negative integer (cents)")

    sign = 1 if direction == DIRECTION_CREDIT else -1
    # ORM update: version_id_col turns a concurrent balance change into StaleDataError
    account.balance_cents = account.balance_cents + sign * amount_cents

    entry = CashBankTransaction(
        account_id=account.id,
        direction=direction,
        amount_cents=amount_cents,
        balance_after_cents=account.balance_cents,
        **reference,
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def create_account(name: str, account_type: str, opening_balance_cents: int = 0) -> CashBankAccount:
    """Create a cash/bank account (flush only)."""
    account_type = (account_type or "").strip().upper()
    if account_type not in ACCOUNT_TYPES:
        raise InvalidRequest(f"Unknown account type {account_type!r}", details={"allowed": list(ACCOUNT_TYPES)})
    account = CashBankAccount(name=name, account_type=account_type, balance_cents=opening_balance_cents)
    db.session.add(account)
    db.session.flush()
    return account


def list_accounts(include_inactive: bool = False) -> list[CashBankAccount]:
    query = db.session.query(CashBankAccount)
    if not include_inactive:
        query = query.filter(CashBankAccount.is_active.is_(True))
    return query.order_by(CashBankAccount.id).all()


def get_account_transactions(account_id: int, limit: int = 50) -> list[CashBankTransaction]:
    return (
        db.session.query(CashBankTransaction)
        .filter_by(account_id=account_id)
        .order_by(CashBankTransaction.id.desc())
        .limit(limit)
        .all()
    )
