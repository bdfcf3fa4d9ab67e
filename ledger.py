from dataclasses import dataclass
from typing import Iterable, Sequence

from models import (
    Account,
    AnimalLog,
    AnimalSpecies,
    Asset,
    Category,
    InventoryItem,
    Liability,
    Transaction,
)


def index_by_id(items: Iterable) -> dict:
    return {item.id: item for item in items}


@dataclass(frozen=True)
class LedgerSnapshot:
    """Read-only bundle of everything the dashboard derives its figures from."""

    transactions: Sequence[Transaction] = ()
    categories: Sequence[Category] = ()
    accounts: Sequence[Account] = ()
    liabilities: Sequence[Liability] = ()
    assets: Sequence[Asset] = ()
    animal_species: Sequence[AnimalSpecies] = ()
    animal_logs: Sequence[AnimalLog] = ()
    inventory_items: Sequence[InventoryItem] = ()
    farm_name: str = ""

    def categories_by_id(self) -> dict[int, Category]:
        return index_by_id(self.categories)

    def accounts_by_id(self) -> dict[int, Account]:
        return index_by_id(self.accounts)

    def species_by_id(self) -> dict[int, AnimalSpecies]:
        return index_by_id(self.animal_species)
