from datetime import date

from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from database import Base
from models import AccountType, TransactionType
from schemas import (
    AccountIn,
    AnimalLogIn,
    AnimalSpeciesIn,
    AssetIn,
    CategoryIn,
    FarmState,
    InventoryItemIn,
    InventoryMovementIn,
    LiabilityIn,
    TransactionIn,
)
from services import (
    AccountService,
    CategoryService,
    FarmRecordService,
    FarmStateService,
    LedgerService,
    LiabilityService,
    TransactionService,
)


def _session() -> Session:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    return Session(engine)


def _seed(session: Session) -> None:
    feed = CategoryService(session).create(
        CategoryIn(name="Feed", type=TransactionType.expense, color="#aa7722")
    )
    card = AccountService(session).create(
        AccountIn(name="Farm Visa", type=AccountType.credit, payment_day=20)
    )
    TransactionService(session).create(
        TransactionIn(
            date=date(2024, 6, 2),
            type=TransactionType.expense,
            amount_cents=4_500,
            category_id=feed.id,
            account_id=card.id,
            description="Layer pellets",
        )
    )
    LiabilityService(session).create(
        LiabilityIn(
            name="Tractor Loan",
            current_balance_cents=900_000,
            due_date=date(2024, 7, 1),
            installment_amount_cents=45_000,
        )
    )
    records = FarmRecordService(session)
    records.create_asset(AssetIn(name="Compact tractor", value_cents=1_800_000))
    goats = records.create_species(AnimalSpeciesIn(name="Goats", head_count=12))
    records.create_animal_log(
        AnimalLogIn(species_id=goats.id, date=date(2024, 6, 3), type="kidding")
    )
    hay = records.create_inventory_item(InventoryItemIn(name="Hay", quantity=40))
    records.record_movement(
        InventoryMovementIn(item_id=hay.id, date=date(2024, 6, 4), quantity=-5)
    )
    LedgerService(session).set_farm_name("Willow Creek")
    session.commit()


def test_export_then_import_into_fresh_database_preserves_everything() -> None:
    with _session() as source:
        _seed(source)
        exported = FarmStateService(source).export_state()

    payload = exported.model_dump(mode="json")
    assert payload["transactions"][0]["date"] == "2024-06-02"

    with _session() as target:
        FarmStateService(target).import_state(FarmState.model_validate(payload))
        restored = FarmStateService(target).export_state()

    assert restored == exported
    assert restored.farm_name == "Willow Creek"
    assert restored.inventory_items[0].quantity == 35


def test_import_replaces_existing_records() -> None:
    with _session() as session:
        _seed(session)
        state = FarmState(farm_name="Fresh Start")

        FarmStateService(session).import_state(state)

        after = FarmStateService(session).export_state()
        assert after.farm_name == "Fresh Start"
        assert after.transactions == []
        assert after.categories == []
        assert after.liabilities == []
        assert after.inventory_movements == []


def test_import_clears_dangling_references(caplog) -> None:
    state = FarmState.model_validate(
        {
            "farm_name": "Hillside",
            "categories": [{"id": 3, "name": "Vet", "type": "expense"}],
            "transactions": [
                {
                    "id": 1,
                    "date": "2024-05-01",
                    "type": "expense",
                    "amount_cents": 2_000,
                    "category_id": 3,
                    "account_id": 9,
                },
                {
                    "id": 2,
                    "date": "2024-05-02",
                    "type": "expense",
                    "amount_cents": 1_000,
                    "category_id": 8,
                },
            ],
            "animal_logs": [
                {"id": 1, "species_id": 4, "date": "2024-05-03", "type": "count"}
            ],
        }
    )

    with _session() as session:
        with caplog.at_level("INFO", logger="services"):
            FarmStateService(session).import_state(state)

        restored = FarmStateService(session).export_state()

    by_id = {t.id: t for t in restored.transactions}
    assert by_id[1].category_id == 3
    assert by_id[1].account_id is None
    assert by_id[2].category_id is None
    assert restored.animal_logs == []
    assert "cleared_references=2" in caplog.text
    assert "skipped_records=1" in caplog.text


def test_malformed_liability_due_date_loads_as_missing() -> None:
    state = FarmState.model_validate(
        {
            "liabilities": [
                {
                    "id": 1,
                    "name": "Family Loan",
                    "current_balance_cents": 20_000,
                    "due_date": "whenever",
                }
            ]
        }
    )

    assert state.liabilities[0].due_date is None
