import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Iterable, Optional, Sequence, Union

from balances import CreditBalance, reconstruct_credit_balance
from calendar_utils import (
    Urgency,
    as_datetime,
    classify_urgency,
    coerce_date,
    days_until,
    due_soon_limit,
    next_monthly_occurrence,
    suppression_start,
    urgency_label,
)
from models import Account, AccountType, Liability, Transaction, TransactionType

logger = logging.getLogger(__name__)

PAYMENT_TOKEN = "payment"


class PaymentSource(str, Enum):
    liability = "liability"
    credit = "credit"


@dataclass(frozen=True)
class UpcomingPayment:
    source_id: int
    source: PaymentSource
    name: str
    amount_cents: int
    due_date: date

    def days_until(self, now: Union[date, datetime]) -> int:
        return days_until(self.due_date, now)

    def urgency(self, now: Union[date, datetime]) -> Urgency:
        return classify_urgency(self.days_until(now))

    def label(self, now: Union[date, datetime]) -> str:
        return urgency_label(self.days_until(now))


@dataclass(frozen=True)
class DebtSummary:
    total_outstanding_cents: int
    upcoming: list[UpcomingPayment] = field(default_factory=list)
    credit_balances: list[CreditBalance] = field(default_factory=list)

    @property
    def total_due_soon_cents(self) -> int:
        return sum(item.amount_cents for item in self.upcoming)


def is_payment_suppressed(
    liability: Liability,
    transactions: Iterable[Transaction],
    now: Union[date, datetime],
) -> bool:
    """True when a recent expense looks like a payment toward ``liability``.

    The match is textual: the description must contain the liability name and
    the word "payment", ignoring case.
    """
    name = (liability.name or "").lower()
    window_start = suppression_start(now)
    for txn in transactions:
        if txn.type != TransactionType.expense:
            continue
        description = (txn.description or "").lower()
        if name not in description or PAYMENT_TOKEN not in description:
            continue
        paid_on = coerce_date(txn.date)
        if paid_on is not None and paid_on >= window_start:
            return True
    return False


def installment_due(liability: Liability) -> int:
    balance = liability.current_balance_cents or 0
    installment = liability.installment_amount_cents
    if installment and installment > 0:
        return min(installment, balance)
    return balance


def _liability_candidates(
    liabilities: Sequence[Liability],
    transactions: Sequence[Transaction],
    now: Union[date, datetime],
) -> list[UpcomingPayment]:
    limit = due_soon_limit(now)
    upcoming: list[UpcomingPayment] = []
    for liability in liabilities:
        if (liability.current_balance_cents or 0) <= 0:
            continue
        due = coerce_date(liability.due_date)
        if due is None:
            if liability.due_date is not None:
                logger.warning(
                    f"debt_summary: skipping liability={liability.id} "
                    f"malformed_due_date={liability.due_date!r}"
                )
            continue
        if as_datetime(due) > limit:
            continue
        if is_payment_suppressed(liability, transactions, now):
            continue
        upcoming.append(
            UpcomingPayment(
                source_id=liability.id,
                source=PaymentSource.liability,
                name=liability.name,
                amount_cents=installment_due(liability),
                due_date=due,
            )
        )
    return upcoming


def _credit_candidates(
    balances: Sequence[tuple[Account, CreditBalance]],
    now: Union[date, datetime],
) -> list[UpcomingPayment]:
    limit = due_soon_limit(now)
    upcoming: list[UpcomingPayment] = []
    for account, credit in balances:
        if credit.balance_cents <= 0 or credit.has_recent_payment:
            continue
        day = account.payment_day
        if not day or not 1 <= day <= 31:
            continue
        next_due = next_monthly_occurrence(day, now)
        if next_due > limit:
            continue
        upcoming.append(
            UpcomingPayment(
                source_id=account.id,
                source=PaymentSource.credit,
                name=f"{account.name} (Credit)",
                amount_cents=credit.balance_cents,
                due_date=next_due.date(),
            )
        )
    return upcoming


def summarize_debt(
    liabilities: Sequence[Liability],
    accounts: Sequence[Account],
    transactions: Sequence[Transaction],
    now: Union[date, datetime],
) -> DebtSummary:
    by_account: dict[Optional[int], list[Transaction]] = defaultdict(list)
    for txn in transactions:
        by_account[txn.account_id].append(txn)

    balances: list[tuple[Account, CreditBalance]] = []
    for account in accounts:
        if account.type != AccountType.credit:
            continue
        credit = reconstruct_credit_balance(account, by_account.get(account.id, ()), now)
        balances.append((account, credit))

    manual = _liability_candidates(liabilities, transactions, now)
    credit = _credit_candidates(balances, now)
    # stable sort keeps liabilities ahead of cards that fall due the same day
    upcoming = sorted(manual + credit, key=lambda item: item.due_date)

    total_outstanding = sum(l.current_balance_cents or 0 for l in liabilities)
    total_outstanding += sum(c.balance_cents for _, c in balances)
    return DebtSummary(
        total_outstanding_cents=total_outstanding,
        upcoming=upcoming,
        credit_balances=[c for _, c in balances],
    )
