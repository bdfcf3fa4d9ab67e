import logging
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, Response
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from alerts import DebtSummary
from cloud_sync import CloudSyncError, CloudSyncService
from config import get_settings
from csrf import generate_csrf_token, require_csrf
from csv_utils import export_transactions
from database import SessionLocal, create_schema
from periods import Period, resolve_period
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
    FarmProfileIn,
    FarmState,
    InventoryItemIn,
    InventoryItemRecord,
    InventoryMovementIn,
    InventoryMovementRecord,
    LiabilityIn,
    LiabilityRecord,
    SuggestionIn,
    SyncIn,
    TransactionIn,
    TransactionRecord,
)
from search import search
from services import (
    AccountService,
    CategoryService,
    Dashboard,
    DashboardService,
    FarmRecordService,
    FarmStateService,
    LedgerService,
    LiabilityService,
    TransactionService,
    local_now,
)
from suggestions import CategorySuggestionService, SuggestionUnavailable

logging.basicConfig(level=get_settings().log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_schema()
    logger.info("Farm Ledger started")
    yield


app = FastAPI(title="Farm Ledger", lifespan=lifespan)
BASE_DIR = Path(__file__).resolve().parent
templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))


def _load_app_version() -> str:
    try:
        import tomllib
    except Exception:
        return "unknown"
    try:
        with open(BASE_DIR / "pyproject.toml", "rb") as f:
            data = tomllib.load(f)
        return str(data.get("project", {}).get("version", "unknown"))
    except Exception:
        return "unknown"


APP_VERSION = _load_app_version()


def format_currency(cents: int) -> str:
    sign = "-" if cents < 0 else ""
    return f"{sign}${abs(cents) / 100:,.2f}"


templates.env.filters["currency"] = format_currency
templates.env.globals["csrf_token"] = generate_csrf_token
templates.env.globals["app_version"] = APP_VERSION


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_suggestion_service() -> CategorySuggestionService:
    return CategorySuggestionService()


def get_now() -> datetime:
    return local_now()


def period_from_request(request: Request, now: datetime) -> Period:
    try:
        return resolve_period(
            request.query_params.get("period"),
            request.query_params.get("start"),
            request.query_params.get("end"),
            today=now.date(),
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def render(request: Request, template: str, context: dict[str, object]) -> HTMLResponse:
    return templates.TemplateResponse(request, template, context)


def debt_payload(debt: DebtSummary, now: datetime) -> dict:
    return {
        "total_outstanding_cents": debt.total_outstanding_cents,
        "total_due_soon_cents": debt.total_due_soon_cents,
        "upcoming": [
            {
                "source_id": item.source_id,
                "source": item.source.value,
                "name": item.name,
                "amount_cents": item.amount_cents,
                "due_date": item.due_date.isoformat(),
                "days_until": item.days_until(now),
                "urgency": item.urgency(now).value,
                "label": item.label(now),
            }
            for item in debt.upcoming
        ],
    }


def dashboard_payload(dashboard: Dashboard) -> dict:
    summary = dashboard.summary
    return {
        "farm_name": dashboard.farm_name,
        "period": {
            "slug": dashboard.period.slug,
            "start": dashboard.period.start.isoformat(),
            "end": dashboard.period.end.isoformat(),
        },
        "summary": {
            "income_cents": summary.income_cents,
            "expense_cents": summary.expense_cents,
            "net_cents": summary.net_cents,
        },
        "gross_margin": round(dashboard.gross_margin, 1),
        "margin_health": dashboard.margin_health,
        "top_expenses": [
            {"name": item.name, "value_cents": item.value_cents}
            for item in dashboard.top_expenses
        ],
        "monthly": [
            {
                "sort_key": bucket.sort_key,
                "label": bucket.label,
                "income_cents": bucket.income_cents,
                "expense_cents": bucket.expense_cents,
            }
            for bucket in dashboard.monthly
        ],
        "debt": debt_payload(dashboard.debt, dashboard.now),
    }


def _dump(record_cls, items) -> list[dict]:
    return [record_cls.model_validate(item).model_dump(mode="json") for item in items]


def _status_for(exc: ValueError) -> int:
    return 404 if "not found" in str(exc).lower() else 400


@app.get("/", response_class=HTMLResponse)
def dashboard(
    request: Request, db: Session = Depends(get_db), now: datetime = Depends(get_now)
):
    period = period_from_request(request, now)
    ledger = LedgerService(db).snapshot()
    data = DashboardService(db).build(period, now=now, ledger=ledger)
    query = request.query_params.get("q", "")
    results = search(query, ledger)
    return render(
        request,
        "dashboard.html",
        {
            "dashboard": data,
            "now": now,
            "query": query,
            "results": results,
        },
    )


@app.get("/api/dashboard")
def api_dashboard(
    request: Request, db: Session = Depends(get_db), now: datetime = Depends(get_now)
):
    period = period_from_request(request, now)
    return dashboard_payload(DashboardService(db).build(period, now=now))


@app.get("/api/search")
def api_search(q: str = "", db: Session = Depends(get_db)):
    ledger = LedgerService(db).snapshot()
    results = search(q, ledger)
    if results is None:
        return {"active": False}
    return {
        "active": True,
        "total": results.total,
        "transactions": _dump(TransactionRecord, results.transactions),
        "animals": _dump(AnimalSpeciesRecord, results.animals),
        "animal_logs": _dump(AnimalLogRecord, results.animal_logs),
        "inventory": _dump(InventoryItemRecord, results.inventory),
        "assets": _dump(AssetRecord, results.assets),
        "liabilities": _dump(LiabilityRecord, results.liabilities),
    }


@app.get("/api/csrf-token")
def api_csrf_token():
    return {"token": generate_csrf_token()}


@app.put("/api/farm", status_code=204, dependencies=[Depends(require_csrf)])
def api_set_farm_name(data: FarmProfileIn, db: Session = Depends(get_db)):
    LedgerService(db).set_farm_name(data.name.strip())
    db.commit()
    return Response(status_code=204)


@app.get("/api/categories")
def api_categories(db: Session = Depends(get_db)):
    return _dump(CategoryRecord, CategoryService(db).list_all())


@app.post("/api/categories", status_code=201, dependencies=[Depends(require_csrf)])
def api_create_category(data: CategoryIn, db: Session = Depends(get_db)):
    try:
        category = CategoryService(db).create(data)
    except ValueError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc
    return CategoryRecord.model_validate(category).model_dump(mode="json")


@app.put("/api/categories/{category_id}", dependencies=[Depends(require_csrf)])
def api_update_category(
    category_id: int, data: CategoryIn, db: Session = Depends(get_db)
):
    try:
        category = CategoryService(db).update(category_id, data)
    except ValueError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc
    return CategoryRecord.model_validate(category).model_dump(mode="json")


@app.delete(
    "/api/categories/{category_id}",
    status_code=204,
    dependencies=[Depends(require_csrf)],
)
def api_delete_category(category_id: int, db: Session = Depends(get_db)):
    try:
        CategoryService(db).delete(category_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204)


@app.post("/api/categories/suggest", dependencies=[Depends(require_csrf)])
async def api_suggest_category(
    data: SuggestionIn,
    db: Session = Depends(get_db),
    suggester: CategorySuggestionService = Depends(get_suggestion_service),
):
    categories = CategoryService(db).list_all()
    if data.type is not None:
        categories = [c for c in categories if c.type == data.type]
    try:
        category = await suggester.suggest_category(data.description, categories)
    except SuggestionUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    if category is None:
        return {"category": None}
    return {"category": CategoryRecord.model_validate(category).model_dump(mode="json")}


@app.get("/api/accounts")
def api_accounts(db: Session = Depends(get_db)):
    return _dump(AccountRecord, AccountService(db).list_all())


@app.post("/api/accounts", status_code=201, dependencies=[Depends(require_csrf)])
def api_create_account(data: AccountIn, db: Session = Depends(get_db)):
    account = AccountService(db).create(data)
    return AccountRecord.model_validate(account).model_dump(mode="json")


@app.delete(
    "/api/accounts/{account_id}", status_code=204, dependencies=[Depends(require_csrf)]
)
def api_delete_account(account_id: int, db: Session = Depends(get_db)):
    try:
        AccountService(db).delete(account_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204)


@app.get("/api/transactions")
def api_transactions(
    request: Request, db: Session = Depends(get_db), now: datetime = Depends(get_now)
):
    period = period_from_request(request, now)
    try:
        page = max(int(request.query_params.get("page", "1")), 1)
        limit = min(max(int(request.query_params.get("limit", "50")), 1), 200)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid paging") from exc
    items = TransactionService(db).list(
        period, limit=limit + 1, offset=(page - 1) * limit
    )
    has_more = len(items) > limit
    return {
        "items": _dump(TransactionRecord, items[:limit]),
        "page": page,
        "limit": limit,
        "has_more": has_more,
    }


@app.post("/api/transactions", status_code=201, dependencies=[Depends(require_csrf)])
def api_create_transaction(data: TransactionIn, db: Session = Depends(get_db)):
    try:
        txn = TransactionService(db).create(data)
    except ValueError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc
    return TransactionRecord.model_validate(txn).model_dump(mode="json")


@app.delete(
    "/api/transactions/{transaction_id}",
    status_code=204,
    dependencies=[Depends(require_csrf)],
)
def api_delete_transaction(transaction_id: int, db: Session = Depends(get_db)):
    try:
        TransactionService(db).delete(transaction_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204)


@app.get("/transactions/export.csv")
def export_transactions_endpoint(
    request: Request, db: Session = Depends(get_db), now: datetime = Depends(get_now)
):
    period = period_from_request(request, now)
    ledger = LedgerService(db).snapshot()
    rows = [t for t in ledger.transactions if period.contains(t.date)]
    content = export_transactions(
        rows, ledger.categories_by_id(), ledger.accounts_by_id()
    )
    filename = f"ledger-{period.slug}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/api/liabilities")
def api_liabilities(db: Session = Depends(get_db)):
    return _dump(LiabilityRecord, LiabilityService(db).list_all())


@app.post("/api/liabilities", status_code=201, dependencies=[Depends(require_csrf)])
def api_create_liability(data: LiabilityIn, db: Session = Depends(get_db)):
    liability = LiabilityService(db).create(data)
    return LiabilityRecord.model_validate(liability).model_dump(mode="json")


@app.put("/api/liabilities/{liability_id}", dependencies=[Depends(require_csrf)])
def api_update_liability(
    liability_id: int, data: LiabilityIn, db: Session = Depends(get_db)
):
    try:
        liability = LiabilityService(db).update(liability_id, data)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return LiabilityRecord.model_validate(liability).model_dump(mode="json")


@app.delete(
    "/api/liabilities/{liability_id}",
    status_code=204,
    dependencies=[Depends(require_csrf)],
)
def api_delete_liability(liability_id: int, db: Session = Depends(get_db)):
    try:
        LiabilityService(db).delete(liability_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204)


@app.get("/api/assets")
def api_assets(db: Session = Depends(get_db)):
    return _dump(AssetRecord, FarmRecordService(db).list_assets())


@app.post("/api/assets", status_code=201, dependencies=[Depends(require_csrf)])
def api_create_asset(data: AssetIn, db: Session = Depends(get_db)):
    asset = FarmRecordService(db).create_asset(data)
    return AssetRecord.model_validate(asset).model_dump(mode="json")


@app.get("/api/animals")
def api_animals(db: Session = Depends(get_db)):
    return _dump(AnimalSpeciesRecord, FarmRecordService(db).list_species())


@app.post("/api/animals", status_code=201, dependencies=[Depends(require_csrf)])
def api_create_animal(data: AnimalSpeciesIn, db: Session = Depends(get_db)):
    species = FarmRecordService(db).create_species(data)
    return AnimalSpeciesRecord.model_validate(species).model_dump(mode="json")


@app.get("/api/animal-logs")
def api_animal_logs(db: Session = Depends(get_db)):
    return _dump(AnimalLogRecord, FarmRecordService(db).list_animal_logs())


@app.post("/api/animal-logs", status_code=201, dependencies=[Depends(require_csrf)])
def api_create_animal_log(data: AnimalLogIn, db: Session = Depends(get_db)):
    try:
        log = FarmRecordService(db).create_animal_log(data)
    except ValueError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc
    return AnimalLogRecord.model_validate(log).model_dump(mode="json")


@app.get("/api/inventory")
def api_inventory(db: Session = Depends(get_db)):
    return _dump(InventoryItemRecord, FarmRecordService(db).list_inventory())


@app.post("/api/inventory", status_code=201, dependencies=[Depends(require_csrf)])
def api_create_inventory_item(data: InventoryItemIn, db: Session = Depends(get_db)):
    item = FarmRecordService(db).create_inventory_item(data)
    return InventoryItemRecord.model_validate(item).model_dump(mode="json")


@app.get("/api/inventory-movements")
def api_inventory_movements(db: Session = Depends(get_db)):
    return _dump(InventoryMovementRecord, FarmRecordService(db).list_movements())


@app.post(
    "/api/inventory-movements", status_code=201, dependencies=[Depends(require_csrf)]
)
def api_record_movement(data: InventoryMovementIn, db: Session = Depends(get_db)):
    try:
        movement = FarmRecordService(db).record_movement(data)
    except ValueError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc
    return InventoryMovementRecord.model_validate(movement).model_dump(mode="json")


@app.get("/api/state")
def api_state(db: Session = Depends(get_db)):
    return FarmStateService(db).export_state().model_dump(mode="json")


@app.post("/api/sync/push", status_code=204, dependencies=[Depends(require_csrf)])
async def api_sync_push(data: SyncIn, db: Session = Depends(get_db)):
    state = FarmStateService(db).export_state()
    await CloudSyncService(db).push(data.email, state.model_dump(mode="json"))
    return Response(status_code=204)


@app.post("/api/sync/pull", dependencies=[Depends(require_csrf)])
async def api_sync_pull(data: SyncIn, db: Session = Depends(get_db)):
    try:
        payload: Optional[dict] = await CloudSyncService(db).pull(data.email)
    except CloudSyncError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if payload is None:
        raise HTTPException(status_code=404, detail="No saved farm for this identity")
    try:
        state = FarmState.model_validate(payload)
        FarmStateService(db).import_state(state)
    except (ValidationError, IntegrityError) as exc:
        raise HTTPException(
            status_code=400, detail="Saved farm state could not be restored"
        ) from exc
    return {
        "farm_name": state.farm_name,
        "transactions": len(state.transactions),
        "categories": len(state.categories),
        "accounts": len(state.accounts),
        "liabilities": len(state.liabilities),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)
