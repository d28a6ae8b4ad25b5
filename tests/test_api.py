import pytest
from fastapi.testclient import TestClient

from config import Config
from ledger import MedicationLedger
from main import app, get_ledger


@pytest.fixture
def client():
    store = MedicationLedger()
    app.dependency_overrides[get_ledger] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


def create_aspirin(client, **overrides):
    payload = {
        "name": "Aspirin",
        "current_stock": 10,
        "doses": [
            {"time": "08:00", "quantity": 1},
            {"time": "20:00", "quantity": 2, "days": [1, 3, 5]},
        ],
    }
    payload.update(overrides)
    response = client.post("/api/medications", json=payload)
    assert response.status_code == 201
    return response.json()["id"]


def test_root_and_health(client):
    assert client.get("/").json() == {"message": "Pill Tracker Backend Running"}
    assert client.get("/health").json() == {"status": "healthy", "medications": 0}


def test_create_and_list_medications(client):
    med_id = create_aspirin(client)
    meds = client.get("/api/medications").json()
    assert len(meds) == 1
    med = meds[0]
    assert med["id"] == med_id
    assert med["current_stock"] == 10
    assert med["stock_percent"] == 100
    assert "label" in med["next_action"]
    assert med["supply_label"].endswith("Days")


def test_invalid_weekday_is_rejected(client):
    response = client.post("/api/medications", json={
        "name": "Broken", "current_stock": 5, "doses": [{"time": "08:00", "days": [9]}],
    })
    assert response.status_code == 422
    assert "outside 0..6" in response.json()["error"]


def test_invalid_time_is_rejected(client):
    response = client.post("/api/medications", json={"name": "Broken", "doses": [{"time": "8am"}]})
    assert response.status_code == 422


def test_missing_medication_is_404(client):
    assert client.get("/api/medications/99").status_code == 404
    assert client.delete("/api/medications/99").status_code == 404


def test_next_action_at_given_time(client):
    med_id = create_aspirin(client)
    state = client.get(f"/api/medications/{med_id}/next-action", params={"at": "2024-01-01T09:00:00"}).json()
    assert state["is_overdue"] is True
    assert state["label"] == "Take 1 (Overdue)"
    assert state["target_dose_rule"]["time"] == "08:00"


def test_record_event_and_history(client):
    med_id = create_aspirin(client)
    response = client.post(f"/api/medications/{med_id}/events", json={
        "action": "TAKEN", "dose_rule_id": 1, "timestamp": "2024-01-01T08:05:00",
    })
    assert response.status_code == 201
    assert response.json()["action"] == "TAKEN"

    state = client.get(f"/api/medications/{med_id}/next-action", params={"at": "2024-01-01T10:00:00"}).json()
    assert state["target_dose_rule"]["time"] == "20:00"

    history = client.get("/api/events").json()
    assert len(history) == 1
    assert client.get("/api/events", params={"date": "2023-12-31"}).json() == []

    event_id = history[0]["id"]
    assert client.delete(f"/api/events/{event_id}").status_code == 204
    assert client.get("/api/events").json() == []


def test_take_with_no_stock_conflicts(client):
    med_id = create_aspirin(client, current_stock=0)
    response = client.post(f"/api/medications/{med_id}/events", json={"action": "TAKEN"})
    assert response.status_code == 409


def test_restock_and_purchases(client):
    med_id = create_aspirin(client)
    response = client.post(f"/api/medications/{med_id}/restock", json={"quantity": 30, "price": 9.0})
    assert response.status_code == 201
    assert client.get(f"/api/medications/{med_id}").json()["current_stock"] == 40

    sections = client.get("/api/purchases").json()
    assert sections[0]["title"] == "Aspirin"
    assert sections[0]["data"][0]["is_best_price"] is True


def test_supply_endpoint(client):
    med_id = create_aspirin(client)
    supply = client.get(f"/api/medications/{med_id}/supply", params={"on": "2024-01-01"}).json()
    assert supply["days_left"] == 4
    assert supply["supply_label"] == "4 Days"
    assert supply["needs_refill"] is True


def test_dose_rule_endpoints(client):
    med_id = create_aspirin(client)
    rule = client.post(f"/api/medications/{med_id}/doses", json={"time": "13:00", "days": [0]}).json()
    assert rule["recurrence"] == {"kind": "weekly", "days": [0]}
    assert client.delete(f"/api/medications/{med_id}/doses/{rule['id']}").status_code == 204
    assert client.delete(f"/api/medications/{med_id}/doses/{rule['id']}").status_code == 404


def test_update_and_low_stock(client):
    med_id = create_aspirin(client, current_stock=2)
    response = client.patch(f"/api/medications/{med_id}", json={"total_stock_level": 30})
    assert response.json()["total_stock_level"] == 30
    low = client.get("/api/low-stock").json()
    assert [m["id"] for m in low] == [med_id]


def test_schedule_for_date(client):
    create_aspirin(client)
    schedule = client.get("/api/schedule", params={"date": "2024-01-02"}).json()
    assert schedule["weekday"] == 2
    assert [i["time"] for i in schedule["items"]] == ["08:00"]


def test_history_mixes_aware_and_naive_timestamps(client):
    """Events posted with a UTC offset and without a timestamp list together."""
    med_id = create_aspirin(client)
    assert client.post(f"/api/medications/{med_id}/events", json={
        "action": "SKIPPED", "timestamp": "2024-01-01T08:05:00Z",
    }).status_code == 201
    assert client.post(f"/api/medications/{med_id}/events", json={"action": "SKIPPED"}).status_code == 201

    history = client.get("/api/events")
    assert history.status_code == 200
    assert len(history.json()) == 2
    by_med = client.get("/api/events", params={"medication_id": med_id})
    assert by_med.status_code == 200
    assert len(by_med.json()) == 2


def test_zero_limit_returns_no_events(client):
    med_id = create_aspirin(client)
    client.post(f"/api/medications/{med_id}/events", json={"action": "SKIPPED"})
    assert client.get("/api/events", params={"limit": 0}).json() == []
    assert client.get("/api/events", params={"medication_id": med_id, "limit": 0}).json() == []


def test_supply_label_shows_pill_count_when_days_hidden(client, monkeypatch):
    monkeypatch.setattr(Config, "SHOW_DAYS_SUPPLY", False)
    med_id = create_aspirin(client)
    assert client.get(f"/api/medications/{med_id}").json()["supply_label"] == "10 Pills"


if __name__ == "__main__":
    pytest.main([__file__])
