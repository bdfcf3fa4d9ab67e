from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Iterable, Mapping, Optional, Sequence

from ledger import LedgerSnapshot

TRANSACTION_FIELDS = ("description", "category_name", "date", "amount")
ANIMAL_FIELDS = ("name", "breed", "tag")
ANIMAL_LOG_FIELDS = ("species_name", "note", "type", "date")
INVENTORY_FIELDS = ("name", "sku", "description")
ASSET_FIELDS = ("name", "category", "description", "purchase_date")
LIABILITY_FIELDS = ("name", "category", "description", "due_date")

DEFAULT_FIELDS: dict[str, Sequence[str]] = {
    "transactions": TRANSACTION_FIELDS,
    "animals": ANIMAL_FIELDS,
    "animal_logs": ANIMAL_LOG_FIELDS,
    "inventory": INVENTORY_FIELDS,
    "assets": ASSET_FIELDS,
    "liabilities": LIABILITY_FIELDS,
}


@dataclass
class SearchResults:
    transactions: list = field(default_factory=list)
    animals: list = field(default_factory=list)
    animal_logs: list = field(default_factory=list)
    inventory: list = field(default_factory=list)
    assets: list = field(default_factory=list)
    liabilities: list = field(default_factory=list)

    @property
    def total(self) -> int:
        return (
            len(self.transactions)
            + len(self.animals)
            + len(self.animal_logs)
            + len(self.inventory)
            + len(self.assets)
            + len(self.liabilities)
        )


def plain_amount(cents: int) -> str:
    """Render cents the way a bare number prints: 1250 -> "12.5", 1200 -> "12"."""
    return format(Decimal(cents) / Decimal(100), "f")


def _text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def contains_query(values: Iterable, query: str) -> bool:
    return any(query in _text(value).lower() for value in values)


def _filter(
    items: Sequence, fields: Sequence[str], query: str, extra=None
) -> list:
    matched = []
    for item in items:
        resolved = extra(item) if extra else {}
        values = [
            resolved[name] if name in resolved else getattr(item, name, None)
            for name in fields
        ]
        if contains_query(values, query):
            matched.append(item)
    return matched


def search(
    query: Optional[str],
    ledger: LedgerSnapshot,
    fields: Optional[Mapping[str, Sequence[str]]] = None,
) -> Optional[SearchResults]:
    """Case-insensitive substring search across every ledger entity kind.

    ``fields`` overrides the matched attributes per result kind (keys as in
    ``DEFAULT_FIELDS``); kinds left out keep their defaults.

    Returns None when the query is blank: an inactive search, as opposed to a
    search with no hits.
    """
    if not query or not query.strip():
        return None
    q = query.lower()
    chosen = {**DEFAULT_FIELDS, **(fields or {})}

    categories = ledger.categories_by_id()
    species = ledger.species_by_id()

    def transaction_extra(txn) -> dict:
        category = categories.get(txn.category_id)
        return {
            "category_name": category.name if category else None,
            "amount": plain_amount(txn.amount_cents),
        }

    def log_extra(log) -> dict:
        animal = species.get(log.species_id)
        return {"species_name": animal.name if animal else None}

    return SearchResults(
        transactions=_filter(
            ledger.transactions, chosen["transactions"], q, transaction_extra
        ),
        animals=_filter(ledger.animal_species, chosen["animals"], q),
        animal_logs=_filter(ledger.animal_logs, chosen["animal_logs"], q, log_extra),
        inventory=_filter(ledger.inventory_items, chosen["inventory"], q),
        assets=_filter(ledger.assets, chosen["assets"], q),
        liabilities=_filter(ledger.liabilities, chosen["liabilities"], q),
    )
