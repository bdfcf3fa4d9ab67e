from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from csrf import CSRF_HEADER, generate_csrf_token
from database import Base, build_engine
from main import app, get_db, get_now, get_suggestion_service
from suggestions import SuggestionUnavailable

NOW = datetime(2024, 6, 15, 9, 0)


class FakeSuggester:
    def __init__(self, answer=None, unavailable=False):
        self.answer = answer
        self.unavailable = unavailable
        self.seen = []

    async def suggest_category(self, description, categories):
        self.seen.append((description, [c.name for c in categories]))
        if self.unavailable:
            raise SuggestionUnavailable("Category suggestions are not configured")
        for category in categories:
            if category.name == self.answer:
                return category
        return None


@pytest.fixture()
def client():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(engine)
    TestingSession = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    def override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_now] = lambda: NOW
    test_client = TestClient(app)
    test_client.headers[CSRF_HEADER] = generate_csrf_token()
    yield test_client
    app.dependency_overrides.clear()


def _seed(client: TestClient) -> dict:
    feed = client.post(
        "/api/categories", json={"name": "Feed", "type": "expense"}
    ).json()
    sales = client.post(
        "/api/categories", json={"name": "Lamb Sales", "type": "income"}
    ).json()
    card = client.post(
        "/api/accounts",
        json={"name": "Farm Visa", "type": "credit", "payment_day": 20},
    ).json()
    client.post(
        "/api/transactions",
        json={
            "date": "2024-06-03",
            "type": "income",
            "amount_cents": 50_000,
            "category_id": sales["id"],
            "description": "Lamb sales",
        },
    )
    client.post(
        "/api/transactions",
        json={
            "date": "2024-06-04",
            "type": "expense",
            "amount_cents": 12_000,
            "category_id": feed["id"],
            "account_id": card["id"],
            "description": "=SUM(A1) pellets",
        },
    )
    client.post(
        "/api/liabilities",
        json={
            "name": "Feed Supplier",
            "current_balance_cents": 50_000,
            "due_date": "2024-06-20",
            "installment_amount_cents": 20_000,
        },
    )
    return {"feed": feed, "sales": sales, "card": card}


def test_mutations_require_csrf_token(client: TestClient) -> None:
    response = client.post(
        "/api/categories",
        json={"name": "Feed", "type": "expense"},
        headers={CSRF_HEADER: "forged"},
    )

    assert response.status_code == 400
    assert client.get("/api/categories").json() == []


def test_dashboard_summary_and_debt(client: TestClient) -> None:
    _seed(client)

    data = client.get("/api/dashboard", params={"period": "this_month"}).json()

    assert data["summary"] == {
        "income_cents": 50_000,
        "expense_cents": 12_000,
        "net_cents": 38_000,
    }
    assert data["gross_margin"] == 76.0
    assert data["margin_health"] == "Healthy"
    assert data["top_expenses"] == [{"name": "Feed", "value_cents": 12_000}]
    assert [b["sort_key"] for b in data["monthly"]] == ["2024-06"]
    debt = data["debt"]
    assert debt["total_outstanding_cents"] == 62_000
    assert debt["total_due_soon_cents"] == 32_000
    assert [(i["name"], i["source"]) for i in debt["upcoming"]] == [
        ("Feed Supplier", "liability"),
        ("Farm Visa (Credit)", "credit"),
    ]
    assert debt["upcoming"][0]["label"] == "Due in 5d"


def test_unknown_period_is_rejected(client: TestClient) -> None:
    response = client.get("/api/dashboard", params={"period": "next_decade"})

    assert response.status_code == 400


def test_category_type_mismatch_is_a_bad_request(client: TestClient) -> None:
    ids = _seed(client)

    response = client.post(
        "/api/transactions",
        json={
            "date": "2024-06-05",
            "type": "expense",
            "amount_cents": 100,
            "category_id": ids["sales"]["id"],
        },
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Category type mismatch"


def test_delete_missing_records_returns_404(client: TestClient) -> None:
    assert client.delete("/api/categories/999").status_code == 404
    assert client.delete("/api/transactions/999").status_code == 404
    assert client.delete("/api/liabilities/999").status_code == 404


def test_search_distinguishes_inactive_from_empty(client: TestClient) -> None:
    _seed(client)

    assert client.get("/api/search", params={"q": ""}).json() == {"active": False}

    empty = client.get("/api/search", params={"q": "zebra"}).json()
    assert empty["active"] is True
    assert empty["total"] == 0

    hits = client.get("/api/search", params={"q": "FEED"}).json()
    assert [t["description"] for t in hits["transactions"]] == ["=SUM(A1) pellets"]
    assert [l["name"] for l in hits["liabilities"]] == ["Feed Supplier"]


def test_csv_export_neutralises_formulas(client: TestClient) -> None:
    _seed(client)

    response = client.get("/transactions/export.csv", params={"period": "all"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    lines = response.text.strip().splitlines()
    assert lines[0] == "Date,Type,Amount,Category,Account,Description"
    assert lines[1].startswith("2024-06-04,expense,120.00,Feed,Farm Visa,")
    assert "\t=SUM(A1) pellets" in lines[1]


def test_transactions_are_paged(client: TestClient) -> None:
    _seed(client)

    page = client.get("/api/transactions", params={"limit": 1}).json()

    assert page["has_more"] is True
    assert [t["date"] for t in page["items"]] == ["2024-06-04"]


def test_sync_push_and_pull_restores_state(client: TestClient) -> None:
    ids = _seed(client)
    client.put("/api/farm", json={"name": "Willow Creek"})

    assert client.post("/api/sync/push", json={"email": "Ann@Example.com"}).status_code == 204

    client.delete(f"/api/categories/{ids['feed']['id']}")
    assert len(client.get("/api/categories").json()) == 1

    response = client.post("/api/sync/pull", json={"email": " ann@example.com "})

    assert response.status_code == 200
    assert response.json()["farm_name"] == "Willow Creek"
    assert response.json()["transactions"] == 2
    names = sorted(c["name"] for c in client.get("/api/categories").json())
    assert names == ["Feed", "Lamb Sales"]
    state = client.get("/api/state").json()
    assert state["farm_name"] == "Willow Creek"


def test_pull_without_saved_state_is_404(client: TestClient) -> None:
    response = client.post("/api/sync/pull", json={"email": "nobody@example.com"})

    assert response.status_code == 404


def test_suggest_category_returns_matching_category(client: TestClient) -> None:
    _seed(client)
    fake = FakeSuggester(answer="Feed")
    app.dependency_overrides[get_suggestion_service] = lambda: fake

    response = client.post(
        "/api/categories/suggest",
        json={"description": "20 bags of layer pellets", "type": "expense"},
    )

    assert response.status_code == 200
    assert response.json()["category"]["name"] == "Feed"
    assert fake.seen == [("20 bags of layer pellets", ["Feed"])]


def test_suggest_category_unconfigured_is_503(client: TestClient) -> None:
    _seed(client)
    app.dependency_overrides[get_suggestion_service] = lambda: FakeSuggester(
        unavailable=True
    )

    response = client.post(
        "/api/categories/suggest", json={"description": "diesel"}
    )

    assert response.status_code == 503


def test_dashboard_page_renders(client: TestClient) -> None:
    _seed(client)
    client.put("/api/farm", json={"name": "Willow Creek"})

    page = client.get("/", params={"period": "this_month"})

    assert page.status_code == 200
    assert "Willow Creek" in page.text
    assert "Feed Supplier" in page.text
    assert "Due in 5d" in page.text


def test_dashboard_page_shows_search_results(client: TestClient) -> None:
    _seed(client)

    page = client.get("/", params={"q": "pellets"})

    assert page.status_code == 200
    assert "1 result for" in page.text


def test_startup_creates_schema(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = []
    monkeypatch.setattr("main.create_schema", lambda: calls.append(True))

    with TestClient(app):
        assert calls == [True]

    assert calls == [True]
