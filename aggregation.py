from dataclasses import dataclass
from typing import Iterable, Mapping, Optional

from calendar_utils import coerce_date
from models import Account, AccountType, Category, Transaction, TransactionType

OTHER_CATEGORY = "Other"
TOP_EXPENSE_LIMIT = 3


@dataclass(frozen=True)
class Summary:
    income_cents: int
    expense_cents: int

    @property
    def net_cents(self) -> int:
        return self.income_cents - self.expense_cents


@dataclass(frozen=True)
class CategoryTotal:
    name: str
    value_cents: int


@dataclass
class MonthBucket:
    sort_key: str
    label: str
    income_cents: int = 0
    expense_cents: int = 0


def is_credit_payment(
    txn: Transaction, accounts_by_id: Mapping[int, Account]
) -> bool:
    """Income booked on a credit account pays the card down; it is not revenue."""
    if txn.type != TransactionType.income:
        return False
    account: Optional[Account] = accounts_by_id.get(txn.account_id)
    return account is not None and account.type == AccountType.credit


def summarize(
    transactions: Iterable[Transaction], accounts_by_id: Mapping[int, Account]
) -> Summary:
    income = 0
    expense = 0
    for txn in transactions:
        if txn.type == TransactionType.expense:
            expense += txn.amount_cents
        elif not is_credit_payment(txn, accounts_by_id):
            income += txn.amount_cents
    return Summary(income_cents=income, expense_cents=expense)


def gross_margin(income: int, expense: int) -> float:
    if income <= 0:
        return 0.0
    return (income - expense) / income * 100


def margin_health(margin: float) -> str:
    if margin > 20:
        return "Healthy"
    if margin > 0:
        return "Thin"
    return "Loss"


def category_name(
    category_id: Optional[int], categories_by_id: Mapping[int, Category]
) -> str:
    category = categories_by_id.get(category_id)
    if category is None or not category.name:
        return OTHER_CATEGORY
    return category.name


def top_expense_categories(
    transactions: Iterable[Transaction],
    categories_by_id: Mapping[int, Category],
    n: int = TOP_EXPENSE_LIMIT,
) -> list[CategoryTotal]:
    totals: dict[str, int] = {}
    for txn in transactions:
        if txn.type != TransactionType.expense:
            continue
        name = category_name(txn.category_id, categories_by_id)
        totals[name] = totals.get(name, 0) + txn.amount_cents

    # sorted() is stable, so equal totals keep first-seen order
    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return [CategoryTotal(name=name, value_cents=value) for name, value in ranked[:n]]


def monthly_series(
    transactions: Iterable[Transaction], accounts_by_id: Mapping[int, Account]
) -> list[MonthBucket]:
    buckets: dict[str, MonthBucket] = {}
    for txn in transactions:
        txn_date = coerce_date(txn.date)
        if txn_date is None:
            continue
        key = f"{txn_date.year:04d}-{txn_date.month:02d}"
        bucket = buckets.get(key)
        if bucket is None:
            bucket = MonthBucket(sort_key=key, label=txn_date.strftime("%b %y"))
            buckets[key] = bucket
        if txn.type == TransactionType.expense:
            bucket.expense_cents += txn.amount_cents
        elif not is_credit_payment(txn, accounts_by_id):
            bucket.income_cents += txn.amount_cents
    return sorted(buckets.values(), key=lambda b: b.sort_key)
