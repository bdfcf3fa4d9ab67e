from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Union

from calendar_utils import coerce_date, suppression_start
from models import Account, Transaction, TransactionType


@dataclass(frozen=True)
class CreditBalance:
    account_id: int
    balance_cents: int
    has_recent_payment: bool


def reconstruct_credit_balance(
    account: Account,
    transactions: Iterable[Transaction],
    now: Union[date, datetime],
) -> CreditBalance:
    """Replay a credit account's history into what is currently owed.

    Charges (expenses) raise the balance and payments (income) lower it. The
    replay is a plain sum, so transaction order never matters. A payment dated
    within the trailing suppression window marks the card as recently paid.
    """
    window_start = suppression_start(now)
    balance = account.initial_balance_cents or 0
    has_recent_payment = False
    for txn in transactions:
        if txn.account_id != account.id:
            continue
        if txn.type == TransactionType.expense:
            balance += txn.amount_cents
            continue
        balance -= txn.amount_cents
        paid_on = coerce_date(txn.date)
        if paid_on is not None and paid_on >= window_start:
            has_recent_payment = True
    return CreditBalance(
        account_id=account.id,
        balance_cents=balance,
        has_recent_payment=has_recent_payment,
    )
