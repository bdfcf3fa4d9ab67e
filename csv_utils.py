import csv
import re
from io import StringIO
from typing import Mapping, Sequence

from aggregation import category_name
from models import Account, Category, Transaction

EXPORT_HEADER = ["Date", "Type", "Amount", "Category", "Account", "Description"]

# spreadsheet apps evaluate cells starting with these
FORMULA_PREFIXES = ("=", "+", "-", "@", "\t", "\r")
SHELL_LIKE = re.compile(r"^(cmd|powershell|bash|sh)\b|^https?://", re.IGNORECASE)


def sanitize_csv_value(value: str) -> str:
    """Prefix a tab to free text that a spreadsheet could run as a formula."""
    text = (value or "").strip()
    if not text:
        return ""
    if text.startswith(FORMULA_PREFIXES) or SHELL_LIKE.match(text):
        return "\t" + text
    return text


def export_transactions(
    transactions: Sequence[Transaction],
    categories_by_id: Mapping[int, Category],
    accounts_by_id: Mapping[int, Account],
) -> str:
    buffer = StringIO()
    writer = csv.writer(buffer)
    writer.writerow(EXPORT_HEADER)
    for txn in transactions:
        account = accounts_by_id.get(txn.account_id)
        writer.writerow(
            [
                txn.date.isoformat(),
                txn.type.value,
                f"{txn.amount_cents / 100:.2f}",
                sanitize_csv_value(category_name(txn.category_id, categories_by_id)),
                sanitize_csv_value(account.name if account else ""),
                sanitize_csv_value(txn.description),
            ]
        )
    return buffer.getvalue()
