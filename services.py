from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from aggregation import (
    CategoryTotal,
    MonthBucket,
    Summary,
    gross_margin,
    margin_health,
    monthly_series,
    summarize,
    top_expense_categories,
)
from alerts import DebtSummary, summarize_debt
from config import get_settings
from ledger import LedgerSnapshot
from models import (
    Account,
    AccountType,
    AnimalLog,
    AnimalSpecies,
    Asset,
    Category,
    FarmProfile,
    InventoryItem,
    InventoryMovement,
    Liability,
    Transaction,
)
from periods import Period
from schemas import (
    AccountIn,
    AccountRecord,
    AnimalLogIn,
    AnimalLogRecord,
    AnimalSpeciesIn,
    AnimalSpeciesRecord,
    AssetIn,
    AssetRecord,
    CategoryIn,
    CategoryRecord,
    FarmState,
    InventoryItemIn,
    InventoryItemRecord,
    InventoryMovementIn,
    InventoryMovementRecord,
    LiabilityIn,
    LiabilityRecord,
    TransactionIn,
    TransactionRecord,
)

logger = logging.getLogger(__name__)


def get_current_user_id() -> int:
    return 1


def local_now() -> datetime:
    settings = get_settings()
    return datetime.now(ZoneInfo(settings.timezone)).replace(tzinfo=None)


class CategoryService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def list_all(self) -> list[Category]:
        stmt = (
            select(Category)
            .where(Category.user_id == self.user_id)
            .order_by(Category.type, Category.name)
        )
        return self.session.scalars(stmt).all()

    def get(self, category_id: int) -> Category:
        category = self.session.get(Category, category_id)
        if not category or category.user_id != self.user_id:
            raise ValueError("Category not found")
        return category

    def _ensure_unique(self, data: CategoryIn, exclude_id: Optional[int] = None):
        stmt = select(Category).where(
            Category.user_id == self.user_id,
            Category.type == data.type,
            func.lower(Category.name) == data.name.strip().lower(),
        )
        if exclude_id is not None:
            stmt = stmt.where(Category.id != exclude_id)
        if self.session.scalar(stmt):
            raise ValueError("Category with this name already exists")

    def create(self, data: CategoryIn) -> Category:
        self._ensure_unique(data)
        category = Category(
            user_id=self.user_id,
            name=data.name.strip(),
            type=data.type,
            color=data.color,
        )
        self.session.add(category)
        self.session.commit()
        self.session.refresh(category)
        return category

    def update(self, category_id: int, data: CategoryIn) -> Category:
        category = self.get(category_id)
        self._ensure_unique(data, exclude_id=category_id)
        category.name = data.name.strip()
        category.type = data.type
        category.color = data.color
        self.session.commit()
        self.session.refresh(category)
        return category

    def delete(self, category_id: int) -> None:
        category = self.get(category_id)
        # ledger entries stay; they fall back to "Other" on the dashboard
        self.session.execute(
            update(Transaction)
            .where(
                Transaction.user_id == self.user_id,
                Transaction.category_id == category.id,
            )
            .values(category_id=None)
        )
        self.session.delete(category)
        self.session.commit()


class AccountService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def list_all(self) -> list[Account]:
        stmt = (
            select(Account)
            .where(Account.user_id == self.user_id)
            .order_by(Account.name, Account.id)
        )
        return self.session.scalars(stmt).all()

    def get(self, account_id: int) -> Account:
        account = self.session.get(Account, account_id)
        if not account or account.user_id != self.user_id:
            raise ValueError("Account not found")
        return account

    def create(self, data: AccountIn) -> Account:
        account = Account(
            user_id=self.user_id,
            name=data.name.strip(),
            type=data.type,
            initial_balance_cents=data.initial_balance_cents,
            payment_day=data.payment_day if data.type == AccountType.credit else None,
        )
        self.session.add(account)
        self.session.commit()
        self.session.refresh(account)
        return account

    def delete(self, account_id: int) -> None:
        account = self.get(account_id)
        self.session.execute(
            update(Transaction)
            .where(
                Transaction.user_id == self.user_id,
                Transaction.account_id == account.id,
            )
            .values(account_id=None)
        )
        self.session.delete(account)
        self.session.commit()


class TransactionService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def list(
        self,
        period: Optional[Period] = None,
        *,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .where(Transaction.user_id == self.user_id)
            .order_by(Transaction.date.desc(), Transaction.id.desc())
        )
        if period is not None and not period.is_unbounded:
            stmt = stmt.where(Transaction.date.between(period.start, period.end))
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        return self.session.scalars(stmt).all()

    def _validate_references(self, data: TransactionIn) -> None:
        if data.category_id is not None:
            category = CategoryService(self.session, self.user_id).get(
                data.category_id
            )
            if category.type != data.type:
                raise ValueError("Category type mismatch")
        if data.account_id is not None:
            AccountService(self.session, self.user_id).get(data.account_id)

    def create(self, data: TransactionIn) -> Transaction:
        self._validate_references(data)
        txn = Transaction(
            user_id=self.user_id,
            date=data.date,
            type=data.type,
            amount_cents=data.amount_cents,
            category_id=data.category_id,
            account_id=data.account_id,
            description=data.description.strip(),
        )
        self.session.add(txn)
        self.session.commit()
        self.session.refresh(txn)
        return txn

    def get(self, transaction_id: int) -> Transaction:
        txn = self.session.get(Transaction, transaction_id)
        if not txn or txn.user_id != self.user_id:
            raise ValueError("Transaction not found")
        return txn

    def delete(self, transaction_id: int) -> None:
        txn = self.get(transaction_id)
        self.session.delete(txn)
        self.session.commit()


class LiabilityService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def list_all(self) -> list[Liability]:
        stmt = (
            select(Liability)
            .where(Liability.user_id == self.user_id)
            .order_by(Liability.due_date.is_(None), Liability.due_date, Liability.id)
        )
        return self.session.scalars(stmt).all()

    def get(self, liability_id: int) -> Liability:
        liability = self.session.get(Liability, liability_id)
        if not liability or liability.user_id != self.user_id:
            raise ValueError("Liability not found")
        return liability

    def create(self, data: LiabilityIn) -> Liability:
        liability = Liability(user_id=self.user_id, **data.model_dump())
        liability.name = liability.name.strip()
        self.session.add(liability)
        self.session.commit()
        self.session.refresh(liability)
        return liability

    def update(self, liability_id: int, data: LiabilityIn) -> Liability:
        liability = self.get(liability_id)
        for key, value in data.model_dump().items():
            setattr(liability, key, value)
        liability.name = liability.name.strip()
        self.session.commit()
        self.session.refresh(liability)
        return liability

    def delete(self, liability_id: int) -> None:
        self.session.delete(self.get(liability_id))
        self.session.commit()


class FarmRecordService:
    """Assets, livestock and inventory bookkeeping."""

    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def _all(self, model, *order_by):
        stmt = select(model).where(model.user_id == self.user_id)
        if order_by:
            stmt = stmt.order_by(*order_by)
        return self.session.scalars(stmt).all()

    def _add(self, record):
        self.session.add(record)
        self.session.commit()
        self.session.refresh(record)
        return record

    def list_assets(self) -> list[Asset]:
        return self._all(Asset, Asset.name, Asset.id)

    def create_asset(self, data: AssetIn) -> Asset:
        return self._add(Asset(user_id=self.user_id, **data.model_dump()))

    def list_species(self) -> list[AnimalSpecies]:
        return self._all(AnimalSpecies, AnimalSpecies.name, AnimalSpecies.id)

    def create_species(self, data: AnimalSpeciesIn) -> AnimalSpecies:
        return self._add(AnimalSpecies(user_id=self.user_id, **data.model_dump()))

    def list_animal_logs(self) -> list[AnimalLog]:
        return self._all(AnimalLog, AnimalLog.date.desc(), AnimalLog.id.desc())

    def create_animal_log(self, data: AnimalLogIn) -> AnimalLog:
        species = self.session.get(AnimalSpecies, data.species_id)
        if not species or species.user_id != self.user_id:
            raise ValueError("Animal species not found")
        return self._add(AnimalLog(user_id=self.user_id, **data.model_dump()))

    def list_inventory(self) -> list[InventoryItem]:
        return self._all(InventoryItem, InventoryItem.name, InventoryItem.id)

    def create_inventory_item(self, data: InventoryItemIn) -> InventoryItem:
        return self._add(InventoryItem(user_id=self.user_id, **data.model_dump()))

    def list_movements(self) -> list[InventoryMovement]:
        return self._all(
            InventoryMovement, InventoryMovement.date.desc(), InventoryMovement.id.desc()
        )

    def record_movement(self, data: InventoryMovementIn) -> InventoryMovement:
        item = self.session.get(InventoryItem, data.item_id)
        if not item or item.user_id != self.user_id:
            raise ValueError("Inventory item not found")
        if item.quantity + data.quantity < 0:
            raise ValueError("Not enough stock for this movement")
        item.quantity += data.quantity
        return self._add(InventoryMovement(user_id=self.user_id, **data.model_dump()))


class LedgerService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def farm_name(self) -> str:
        profile = self.session.scalar(
            select(FarmProfile).where(FarmProfile.user_id == self.user_id)
        )
        return profile.name if profile else ""

    def set_farm_name(self, name: str) -> None:
        profile = self.session.scalar(
            select(FarmProfile).where(FarmProfile.user_id == self.user_id)
        )
        if profile is None:
            profile = FarmProfile(user_id=self.user_id, name=name)
            self.session.add(profile)
        else:
            profile.name = name

    def snapshot(self) -> LedgerSnapshot:
        records = FarmRecordService(self.session, self.user_id)
        return LedgerSnapshot(
            transactions=TransactionService(self.session, self.user_id).list(),
            categories=CategoryService(self.session, self.user_id).list_all(),
            accounts=AccountService(self.session, self.user_id).list_all(),
            liabilities=LiabilityService(self.session, self.user_id).list_all(),
            assets=records.list_assets(),
            animal_species=records.list_species(),
            animal_logs=records.list_animal_logs(),
            inventory_items=records.list_inventory(),
            farm_name=self.farm_name(),
        )


@dataclass(frozen=True)
class Dashboard:
    farm_name: str
    period: Period
    now: datetime
    summary: Summary
    gross_margin: float
    margin_health: str
    top_expenses: list[CategoryTotal]
    monthly: list[MonthBucket]
    debt: DebtSummary


class DashboardService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def build(
        self,
        period: Period,
        *,
        now: datetime,
        ledger: Optional[LedgerSnapshot] = None,
    ) -> Dashboard:
        ledger = ledger or LedgerService(self.session, self.user_id).snapshot()
        accounts_by_id = ledger.accounts_by_id()

        transactions = [t for t in ledger.transactions if period.contains(t.date)]

        summary = summarize(transactions, accounts_by_id)
        margin = gross_margin(summary.income_cents, summary.expense_cents)
        # debt always looks at the full history, whatever period is on screen
        debt = summarize_debt(
            ledger.liabilities, ledger.accounts, ledger.transactions, now
        )
        return Dashboard(
            farm_name=ledger.farm_name,
            period=period,
            now=now,
            summary=summary,
            gross_margin=margin,
            margin_health=margin_health(margin),
            top_expenses=top_expense_categories(
                transactions, ledger.categories_by_id()
            ),
            monthly=monthly_series(transactions, accounts_by_id),
            debt=debt,
        )


class FarmStateService:
    """Converts the whole database into a FarmState document and back."""

    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def export_state(self) -> FarmState:
        records = FarmRecordService(self.session, self.user_id)
        snap = LedgerService(self.session, self.user_id).snapshot()
        return FarmState(
            farm_name=snap.farm_name,
            transactions=[TransactionRecord.model_validate(t) for t in snap.transactions],
            categories=[CategoryRecord.model_validate(c) for c in snap.categories],
            accounts=[AccountRecord.model_validate(a) for a in snap.accounts],
            animal_species=[
                AnimalSpeciesRecord.model_validate(s) for s in snap.animal_species
            ],
            animal_logs=[AnimalLogRecord.model_validate(l) for l in snap.animal_logs],
            inventory_items=[
                InventoryItemRecord.model_validate(i) for i in snap.inventory_items
            ],
            inventory_movements=[
                InventoryMovementRecord.model_validate(m)
                for m in records.list_movements()
            ],
            assets=[AssetRecord.model_validate(a) for a in snap.assets],
            liabilities=[LiabilityRecord.model_validate(l) for l in snap.liabilities],
        )

    def _clear(self) -> None:
        for model in (
            InventoryMovement,
            InventoryItem,
            AnimalLog,
            AnimalSpecies,
            Transaction,
            Category,
            Account,
            Asset,
            Liability,
        ):
            self.session.execute(
                delete(model)
                .where(model.user_id == self.user_id)
                .execution_options(synchronize_session=False)
            )
        # imported rows reuse their ids; stale instances must not shadow them
        self.session.expunge_all()

    def import_state(self, state: FarmState) -> None:
        """Replace every record of the current user with ``state``.

        Runs in a single transaction. References to categories or accounts
        that are not part of the document are cleared rather than rejected.
        """
        try:
            self._clear()
            self.session.flush()

            category_ids = {c.id for c in state.categories}
            account_ids = {a.id for a in state.accounts}
            species_ids = {s.id for s in state.animal_species}
            item_ids = {i.id for i in state.inventory_items}

            self.session.add_all(
                Category(user_id=self.user_id, **c.model_dump())
                for c in state.categories
            )
            self.session.add_all(
                Account(user_id=self.user_id, **a.model_dump()) for a in state.accounts
            )
            self.session.add_all(
                AnimalSpecies(user_id=self.user_id, **s.model_dump())
                for s in state.animal_species
            )
            self.session.add_all(
                InventoryItem(user_id=self.user_id, **i.model_dump())
                for i in state.inventory_items
            )
            self.session.add_all(
                Asset(user_id=self.user_id, **a.model_dump()) for a in state.assets
            )
            self.session.add_all(
                Liability(user_id=self.user_id, **l.model_dump())
                for l in state.liabilities
            )
            self.session.flush()

            dangling = 0
            for t in state.transactions:
                values = t.model_dump()
                for key, known in (
                    ("category_id", category_ids),
                    ("account_id", account_ids),
                ):
                    if values[key] is not None and values[key] not in known:
                        values[key] = None
                        dangling += 1
                self.session.add(Transaction(user_id=self.user_id, **values))

            skipped = 0
            for log in state.animal_logs:
                if log.species_id not in species_ids:
                    skipped += 1
                    continue
                self.session.add(AnimalLog(user_id=self.user_id, **log.model_dump()))
            for movement in state.inventory_movements:
                if movement.item_id not in item_ids:
                    skipped += 1
                    continue
                self.session.add(
                    InventoryMovement(user_id=self.user_id, **movement.model_dump())
                )

            LedgerService(self.session, self.user_id).set_farm_name(state.farm_name)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        logger.info(
            f"state_import: user={self.user_id} "
            f"transactions={len(state.transactions)} "
            f"cleared_references={dangling} skipped_records={skipped}"
        )
