from datetime import date

from csv_utils import export_transactions, sanitize_csv_value
from models import Account, AccountType, Category, Transaction, TransactionType


def test_formula_and_shell_prefixes_are_neutralised() -> None:
    assert sanitize_csv_value("=1+1") == "\t=1+1"
    assert sanitize_csv_value(" -42") == "\t-42"
    assert sanitize_csv_value("cmd /c calc") == "\tcmd /c calc"
    assert sanitize_csv_value("https://example.com") == "\thttps://example.com"


def test_ordinary_text_is_left_alone() -> None:
    assert sanitize_csv_value("Sheep shearing") == "Sheep shearing"
    assert sanitize_csv_value("  Hay  ") == "Hay"
    assert sanitize_csv_value("") == ""
    assert sanitize_csv_value(None) == ""


def test_export_resolves_names_and_falls_back_to_other() -> None:
    account = Account(id=1, name="Co-op Card", type=AccountType.credit)
    category = Category(id=1, name="Feed", type=TransactionType.expense)
    txns = [
        Transaction(
            date=date(2024, 6, 1),
            type=TransactionType.expense,
            amount_cents=12_345,
            category_id=1,
            account_id=1,
            description="Pellets",
        ),
        Transaction(
            date=date(2024, 6, 2),
            type=TransactionType.income,
            amount_cents=500,
            category_id=9,
            account_id=None,
            description="",
        ),
    ]

    lines = export_transactions(txns, {1: category}, {1: account}).splitlines()

    assert lines == [
        "Date,Type,Amount,Category,Account,Description",
        "2024-06-01,expense,123.45,Feed,Co-op Card,Pellets",
        "2024-06-02,income,5.00,Other,,",
    ]
