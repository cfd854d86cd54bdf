import pytest
from fastapi.testclient import TestClient

from auth import issue_token
from database import Base, build_engine, build_session_factory
from main import app, get_db, get_session_factory


@pytest.fixture()
def client(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'api.db'}")
    Base.metadata.create_all(engine)
    factory = build_session_factory(engine)

    def override_db():
        db = factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_session_factory] = lambda: factory
    # No context manager: startup hooks (and the scheduler) stay off.
    yield TestClient(app)
    app.dependency_overrides.clear()
    engine.dispose()


def _auth(user_id: str = "user-1") -> dict:
    return {"Authorization": f"Bearer {issue_token(user_id)}"}


def test_missing_token_is_unauthorized(client):
    response = client.post("/api/categories", json={"name": "Food"})
    assert response.status_code == 401
    body = response.json()
    assert body["status"] == "error"
    assert body["error"] == "unauthorized"
    assert body["message"] == "Unauthorized"


def test_create_and_list_categories(client):
    response = client.post(
        "/api/categories",
        json={"name": "Food", "icon": "🍔", "color": "#F97316", "type": "expense"},
        headers=_auth(),
    )
    assert response.status_code == 201
    assert response.json()["message"] == '"Food" category created.'

    duplicate = client.post(
        "/api/categories",
        json={"name": "Food", "icon": "🍔", "color": "#f97316", "type": "expense"},
        headers=_auth(),
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["error"] == "conflict"

    listing = client.get("/api/categories", headers=_auth()).json()
    assert [c["name"] for c in listing["data"]["expense"]] == ["Food"]
    assert listing["data"]["income"] == []

    other = client.get("/api/categories", headers=_auth("user-2")).json()
    assert other["data"]["expense"] == []


def test_validation_error_status(client):
    response = client.post(
        "/api/transactions",
        json={
            "type": "expense",
            "amount": "abc",
            "description": "Lunch",
            "date": "2026-03-01",
            "payment_method": "cash",
        },
        headers=_auth(),
    )
    assert response.status_code == 422
    assert response.json()["message"] == "Enter a valid amount"


def test_recurring_toggle_and_missing_record(client):
    created = client.post(
        "/api/recurring",
        json={
            "name": "Gym",
            "amount": "1500",
            "frequency": "monthly",
            "payment_method": "upi",
            "start_date": "2026-04-01",
        },
        headers=_auth(),
    )
    assert created.status_code == 201
    expense_id = created.json()["data"]["id"]
    assert created.json()["data"]["next_due_date"] == "2026-04-01"

    paused = client.post(
        f"/api/recurring/{expense_id}/active",
        json={"is_active": False},
        headers=_auth(),
    )
    assert paused.status_code == 200
    assert paused.json()["message"] == "Paused."

    missing = client.delete("/api/recurring/9999", headers=_auth())
    assert missing.status_code == 404


def test_dashboard_for_anonymous_owner(client):
    response = client.get("/api/dashboard")
    assert response.status_code == 200
    body = response.json()
    assert body["monthly_expenses_cents"] == 0
    assert len(body["trend"]) == 6
    assert body["upcoming_recurring"] == []
