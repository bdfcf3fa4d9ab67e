import datetime as dt
from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from calendar_utils import coerce_date
from models import AccountType, TransactionType


class CategoryIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    type: TransactionType
    color: Optional[str] = Field(default=None, max_length=9)


class AccountIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    type: AccountType = AccountType.standard
    initial_balance_cents: int = 0
    payment_day: Optional[int] = Field(default=None, ge=1, le=31)


class TransactionIn(BaseModel):
    date: date
    type: TransactionType
    amount_cents: int = Field(..., ge=0)
    category_id: Optional[int] = None
    account_id: Optional[int] = None
    description: str = Field(default="", max_length=200)


class LiabilityIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    category: Optional[str] = Field(default=None, max_length=60)
    description: Optional[str] = None
    current_balance_cents: int = Field(..., ge=0)
    due_date: Optional[date] = None
    installment_amount_cents: Optional[int] = Field(default=None, ge=0)


class AssetIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    category: Optional[str] = Field(default=None, max_length=60)
    description: Optional[str] = None
    purchase_date: Optional[date] = None
    value_cents: int = Field(default=0, ge=0)


class AnimalSpeciesIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    breed: Optional[str] = Field(default=None, max_length=100)
    tag: Optional[str] = Field(default=None, max_length=50)
    head_count: int = Field(default=0, ge=0)


class AnimalLogIn(BaseModel):
    species_id: int
    date: date
    type: str = Field(..., min_length=1, max_length=40)
    note: Optional[str] = None
    quantity: int = 0


class InventoryItemIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    sku: Optional[str] = Field(default=None, max_length=60)
    description: Optional[str] = None
    unit: Optional[str] = Field(default=None, max_length=20)
    quantity: int = 0
    unit_cost_cents: int = Field(default=0, ge=0)


class InventoryMovementIn(BaseModel):
    item_id: int
    date: date
    quantity: int
    note: Optional[str] = None


class FarmProfileIn(BaseModel):
    name: str = Field(..., max_length=120)


class SyncIn(BaseModel):
    email: str = Field(..., min_length=1, max_length=320)


class SuggestionIn(BaseModel):
    description: str = Field(..., min_length=1, max_length=200)
    type: Optional[TransactionType] = None


# Serialized farm state. Every record keeps its id so references survive a
# push/pull round trip.


class _Record(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int


class CategoryRecord(_Record):
    name: str
    type: TransactionType
    color: Optional[str] = None


class AccountRecord(_Record):
    name: str
    type: AccountType = AccountType.standard
    initial_balance_cents: int = 0
    payment_day: Optional[int] = Field(default=None, ge=1, le=31)


class TransactionRecord(_Record):
    date: dt.date
    type: TransactionType
    amount_cents: int = Field(..., ge=0)
    category_id: Optional[int] = None
    account_id: Optional[int] = None
    description: str = ""


class LiabilityRecord(_Record):
    name: str
    category: Optional[str] = None
    description: Optional[str] = None
    current_balance_cents: int = Field(default=0, ge=0)
    due_date: Optional[dt.date] = None
    installment_amount_cents: Optional[int] = None

    @field_validator("due_date", mode="before")
    @classmethod
    def _lenient_due_date(cls, value):
        # an unreadable due date only drops the liability from alerts
        return coerce_date(value)


class AssetRecord(_Record):
    name: str
    category: Optional[str] = None
    description: Optional[str] = None
    purchase_date: Optional[dt.date] = None
    value_cents: int = 0

    @field_validator("purchase_date", mode="before")
    @classmethod
    def _lenient_purchase_date(cls, value):
        return coerce_date(value)


class AnimalSpeciesRecord(_Record):
    name: str
    breed: Optional[str] = None
    tag: Optional[str] = None
    head_count: int = 0


class AnimalLogRecord(_Record):
    species_id: int
    date: dt.date
    type: str
    note: Optional[str] = None
    quantity: int = 0


class InventoryItemRecord(_Record):
    name: str
    sku: Optional[str] = None
    description: Optional[str] = None
    unit: Optional[str] = None
    quantity: int = 0
    unit_cost_cents: int = 0


class InventoryMovementRecord(_Record):
    item_id: int
    date: dt.date
    quantity: int
    note: Optional[str] = None


class FarmState(BaseModel):
    farm_name: str = ""
    transactions: list[TransactionRecord] = Field(default_factory=list)
    categories: list[CategoryRecord] = Field(default_factory=list)
    accounts: list[AccountRecord] = Field(default_factory=list)
    animal_species: list[AnimalSpeciesRecord] = Field(default_factory=list)
    animal_logs: list[AnimalLogRecord] = Field(default_factory=list)
    inventory_items: list[InventoryItemRecord] = Field(default_factory=list)
    inventory_movements: list[InventoryMovementRecord] = Field(default_factory=list)
    assets: list[AssetRecord] = Field(default_factory=list)
    liabilities: list[LiabilityRecord] = Field(default_factory=list)
