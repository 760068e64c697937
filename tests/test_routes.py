import pytest
from fastapi.testclient import TestClient

from main import create_app
from services.errors import PersistenceError

COFFEE = {"description": "Coffee", "category": "Food", "amount": 4.5, "date": "2024-01-01"}


def test_health(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "message": "Smart Expense Tracker backend is running"}


def test_empty_store_listing(client):
    response = client.get("/api/expenses")

    assert response.status_code == 200
    assert response.json() == {"totalAmount": 0, "count": 0, "expenses": []}


def test_create_then_delete_scenario(client):
    created = client.post("/api/expenses", json=COFFEE)

    assert created.status_code == 201
    body = created.json()
    assert body["message"] == "Expense added successfully"
    assert body["totalAmount"] == 4.5
    assert len(body["expenses"]) == 1
    expense = body["expenses"][0]
    assert isinstance(expense["id"], int)
    assert {k: expense[k] for k in COFFEE} == COFFEE

    deleted = client.delete(f"/api/expenses/{expense['id']}")

    assert deleted.status_code == 200
    assert deleted.json() == {"message": "Expense deleted successfully", "totalAmount": 0, "expenses": []}


def test_total_matches_returned_expenses(client):
    amounts = [4.5, 0.1, 0.2, 120, 15.75]
    previous_count = 0
    for i, amount in enumerate(amounts):
        body = client.post("/api/expenses", json=dict(COFFEE, description=f"item {i}", amount=amount)).json()
        assert len(body["expenses"]) == previous_count + 1
        assert body["totalAmount"] == pytest.approx(sum(e["amount"] for e in body["expenses"]))
        previous_count += 1

    listing = client.get("/api/expenses").json()
    assert listing["count"] == len(amounts)
    assert listing["totalAmount"] == 140.55


@pytest.mark.parametrize("field", ["description", "category", "amount", "date"])
def test_create_with_missing_field_is_rejected(client, field):
    client.post("/api/expenses", json=COFFEE)

    missing = {k: v for k, v in COFFEE.items() if k != field}
    empty = dict(COFFEE, **{field: ""})

    for payload in (missing, empty):
        response = client.post("/api/expenses", json=payload)
        assert response.status_code == 400
        assert response.json() == {"error": "All fields are required"}

    assert client.get("/api/expenses").json()["count"] == 1


def test_create_with_negative_amount_is_rejected(client):
    response = client.post("/api/expenses", json=dict(COFFEE, amount=-3))

    assert response.status_code == 400
    assert "error" in response.json()


def test_create_with_malformed_body_is_rejected(client):
    response = client.post("/api/expenses", content="not json", headers={"Content-Type": "application/json"})

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid request body"}


def test_delete_twice_returns_not_found(client):
    expense_id = client.post("/api/expenses", json=COFFEE).json()["expenses"][0]["id"]
    other = client.post("/api/expenses", json=dict(COFFEE, description="Tea")).json()

    assert client.delete(f"/api/expenses/{expense_id}").status_code == 200

    again = client.delete(f"/api/expenses/{expense_id}")
    assert again.status_code == 404
    assert again.json() == {"error": "Expense not found"}
    assert client.get("/api/expenses").json()["count"] == len(other["expenses"]) - 1


def test_delete_with_non_integer_id_returns_not_found(client):
    response = client.delete("/api/expenses/abc")

    assert response.status_code == 404
    assert "error" in response.json()


def test_expenses_survive_restart(expenses_file):
    with TestClient(create_app(expenses_file)) as first:
        created = first.post("/api/expenses", json=COFFEE).json()

    with TestClient(create_app(expenses_file)) as second:
        listing = second.get("/api/expenses").json()

    assert listing["expenses"] == created["expenses"]
    assert listing["totalAmount"] == 4.5


def test_write_failure_returns_500_and_keeps_collection(client, monkeypatch):
    client.post("/api/expenses", json=COFFEE)
    store = client.app.state.expense_store

    def broken_save(records):
        raise PersistenceError("disk full")

    monkeypatch.setattr(store.storage, "save", broken_save)

    response = client.post("/api/expenses", json=dict(COFFEE, description="Tea"))
    assert response.status_code == 500
    assert "error" in response.json()

    expense_id = client.get("/api/expenses").json()["expenses"][0]["id"]
    assert client.delete(f"/api/expenses/{expense_id}").status_code == 500
    assert client.get("/api/expenses").json()["count"] == 1


def test_corrupt_file_returns_500(expenses_file):
    expenses_file.parent.mkdir(parents=True, exist_ok=True)
    expenses_file.write_text("{broken", encoding="utf-8")

    with TestClient(create_app(expenses_file)) as test_client:
        assert test_client.get("/api/health").status_code == 200

        response = test_client.get("/api/expenses")
        assert response.status_code == 500
        assert "error" in response.json()
        assert test_client.post("/api/expenses", json=COFFEE).status_code == 500

    assert expenses_file.read_text(encoding="utf-8") == "{broken"


def test_oversized_body_is_rejected(expenses_file):
    with TestClient(create_app(expenses_file, max_body_size=16)) as test_client:
        response = test_client.post("/api/expenses", json=COFFEE)

        assert response.status_code == 413
        assert "error" in response.json()
        assert test_client.get("/api/expenses").json()["count"] == 0


def test_ui_is_served_at_root(client):
    response = client.get("/")

    assert response.status_code == 200
    assert "Smart Expense Tracker" in response.text


def test_non_utf8_file_keeps_health_up(expenses_file):
    expenses_file.parent.mkdir(parents=True, exist_ok=True)
    expenses_file.write_bytes(b"[\xff\xfe]")

    with TestClient(create_app(expenses_file)) as test_client:
        assert test_client.get("/api/health").status_code == 200

        response = test_client.get("/api/expenses")
        assert response.status_code == 500
        assert "error" in response.json()

    assert expenses_file.read_bytes() == b"[\xff\xfe]"


def test_overflowing_total_is_rejected(client):
    assert client.post("/api/expenses", json=dict(COFFEE, amount=1e308)).status_code == 201

    response = client.post("/api/expenses", json=dict(COFFEE, amount=1e308))

    assert response.status_code == 400
    assert "error" in response.json()
    listing = client.get("/api/expenses").json()
    assert listing["count"] == 1
    assert listing["totalAmount"] == 1e308


def test_store_is_backed_by_configured_file(client, expenses_file):
    assert client.app.state.expense_store.storage.path == expenses_file
