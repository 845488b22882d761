from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base
from main import app, get_db
from models import Asset, User
from scheduler import snapshot_previous_day
from services import FinancialReportsService
from temporal import TemporalContext, local_today


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    with factory() as session:
        session.add(User(id=1, name="Ana", timezone="Asia/Tokyo"))
        session.commit()
    return factory


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_income_statement_endpoint(client) -> None:
    category = client.post("/api/categories", json={"name": "Food", "type": "expense"})
    assert category.status_code == 201
    category_id = category.json()["id"]

    income = client.post(
        "/api/transactions",
        json={"date": "2024-01-31", "type": "income", "amount_cents": 50000},
    )
    assert income.status_code == 201
    assert income.json()["date"] == "2024-01-31"
    client.post(
        "/api/transactions",
        json={
            "date": "2024-01-05",
            "type": "expense",
            "amount_cents": 15000,
            "category_id": category_id,
        },
    )

    response = client.get(
        "/api/financial-reports/income-statement",
        params={"start": "2024-01-01", "end": "2024-01-31"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["period"] == {"slug": "custom", "start": "2024-01-01", "end": "2024-01-31"}
    assert body["net_income_cents"] == 35000
    assert body["net_income_margin"] == pytest.approx(70.0)
    assert body["expenses"]["categories"][0]["category_name"] == "Food"


def test_inverted_period_is_bad_request(client) -> None:
    response = client.get(
        "/api/financial-reports/income-statement",
        params={"period": "custom", "start": "2024-02-01", "end": "2024-01-01"},
    )
    assert response.status_code == 400


def test_missing_transaction_is_not_found(client) -> None:
    assert client.delete("/api/transactions/999").status_code == 404
    assert client.post("/api/financial/debts/999/paid").status_code == 404


def test_balance_sheet_switches_to_snapshot(client, session_factory) -> None:
    created = client.post(
        "/api/financial/assets",
        json={"name": "Savings", "value_cents": 120000, "type": "liquid"},
    )
    with session_factory() as session:
        row = session.get(Asset, created.json()["id"])
        row.created_at = datetime(2024, 1, 1)
        session.commit()
    params = {"date": "2024-06-30"}

    computed = client.get("/api/financial-reports/balance-sheet", params=params)
    assert computed.status_code == 200
    assert computed.json()["source"] == "computed"
    assert computed.json()["assets"]["total_cents"] == 120000

    snapshot = client.post("/api/financial-reports/snapshots", params=params)
    assert snapshot.status_code == 201
    assert snapshot.json()["date"] == "2024-06-30"
    assert snapshot.json()["net_worth_cents"] == 120000

    stored = client.get("/api/financial-reports/balance-sheet", params=params)
    assert stored.json()["source"] == "snapshot"
    assert stored.json()["assets"]["liquid"] == []
    assert stored.json()["net_worth_cents"] == 120000

    live = client.get(
        "/api/financial-reports/balance-sheet",
        params={**params, "use_snapshot": "false"},
    )
    assert live.json()["source"] == "computed"
    assert live.json()["assets"]["liquid"][0]["name"] == "Savings"


def test_snapshot_needs_a_past_date(client) -> None:
    client.post(
        "/api/financial/assets",
        json={"name": "Wallet", "value_cents": 1000, "type": "liquid"},
    )
    today = local_today("Asia/Tokyo")

    assert client.post("/api/financial-reports/snapshots").status_code == 422
    for day in (today, today + timedelta(days=1)):
        rejected = client.post(
            "/api/financial-reports/snapshots", params={"date": day.isoformat()}
        )
        assert rejected.status_code == 400

    client.post(
        "/api/financial/assets",
        json={"name": "Savings", "value_cents": 5000, "type": "liquid"},
    )
    sheet = client.get("/api/financial-reports/balance-sheet").json()
    assert sheet["source"] == "computed"
    assert sheet["assets"]["total_cents"] == 6000


def test_deleted_asset_cannot_be_edited(client) -> None:
    payload = {"name": "Car", "value_cents": 800000, "type": "illiquid"}
    asset_id = client.post("/api/financial/assets", json=payload).json()["id"]
    assert client.delete(f"/api/financial/assets/{asset_id}").status_code == 200

    response = client.put(
        f"/api/financial/assets/{asset_id}", json={**payload, "value_cents": 1}
    )
    assert response.status_code == 404


def test_debt_lifecycle(client) -> None:
    rejected = client.post(
        "/api/financial/debts",
        json={
            "creditor": "Bank",
            "total_amount_cents": 100,
            "remaining_amount_cents": 200,
            "type": "consumption",
            "start_date": "2024-01-01",
        },
    )
    assert rejected.status_code == 422

    created = client.post(
        "/api/financial/debts",
        json={
            "creditor": "Bank",
            "total_amount_cents": 10000,
            "remaining_amount_cents": 8000,
            "monthly_payment_cents": 500,
            "type": "consumption",
            "start_date": "2024-01-01",
        },
    )
    assert created.status_code == 201
    debt_id = created.json()["id"]

    paid = client.post(f"/api/financial/debts/{debt_id}/paid")
    assert paid.status_code == 200
    assert paid.json()["status"] == "paid"
    assert paid.json()["remaining_amount_cents"] == 0
    assert paid.json()["paid_date"] == local_today("Asia/Tokyo").isoformat()

    assert client.get("/api/financial/debts").json() == []
    assert len(client.get("/api/financial/debts", params={"include_paid": True}).json()) == 1


def test_budget_and_kpi_endpoints(client) -> None:
    client.post(
        "/api/budget/income-sources",
        json={
            "name": "Job",
            "amount_cents": 10000,
            "frequency": "weekly",
            "category": "salary",
            "start_date": "2024-01-01",
        },
    )
    summary = client.get("/api/budget/summary").json()
    assert summary["total_monthly_income_cents"] == 43300
    assert summary["savings_rate"] == pytest.approx(100.0)

    kpis = client.get("/api/financial/kpis").json()
    assert kpis["monthly_income_cents"] == 43300
    assert kpis["debts_by_type"] == []


def test_scheduler_snapshots_yesterday_in_user_zone(session_factory) -> None:
    with session_factory() as session:
        assert snapshot_previous_day(session) == 1

        yesterday = local_today("Asia/Tokyo") - timedelta(days=1)
        service = FinancialReportsService(session, 1, TemporalContext(1, "Asia/Tokyo"))
        assert service.repo.get_snapshot(yesterday) is not None
        assert service.repo.get_snapshot(yesterday + timedelta(days=1)) is None
