"""
HTTP tests for the booking API.
Run with: pytest tests/test_api.py -v
"""
import pytest
from fastapi.testclient import TestClient

from railbook.main import app, get_db, get_service
from tests.conftest import TRAIN_NUMBER

SATURDAY = "2024-01-06"
DRAFTS = "/api/v1/bookings/drafts"


@pytest.fixture
def client(service, catalog):
    def override_get_db():
        db = catalog()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


def start_draft(client, headers=None):
    response = client.post(DRAFTS, json={
        "train_number": TRAIN_NUMBER,
        "class_type": "3A",
        "journey_date": SATURDAY,
    }, headers=headers)
    assert response.status_code == 201
    return response.json()


def free_seats(client, count):
    response = client.get(f"/api/v1/trains/{TRAIN_NUMBER}/classes/3A/seats",
                          params={"journey_date": SATURDAY})
    return [s["seat_number"] for s in response.json()["seats"] if not s["is_booked"]][:count]


def book(client, headers=None):
    draft = start_draft(client, headers)
    response = client.put(f"{DRAFTS}/{draft['id']}/passengers", json=[
        {"name": "Asha Verma", "age": 34, "gender": "F", "berth_preference": "LB"},
        {"name": "Ravi Verma", "age": 36},
    ], headers=headers)
    assert response.status_code == 200
    for seat in free_seats(client, 2):
        client.post(f"{DRAFTS}/{draft['id']}/seats/{seat}", headers=headers)
    response = client.post(f"{DRAFTS}/{draft['id']}/seats/confirm", headers=headers)
    assert response.status_code == 200
    assert response.json()["quote"]["total_fare"] == 3230
    response = client.post(f"{DRAFTS}/{draft['id']}/payment",
                           json={"method": "upi", "upi_id": "asha@okbank"}, headers=headers)
    assert response.status_code == 201
    return response.json()


class TestCatalog:

    def test_stations(self, client):
        response = client.get("/api/v1/stations")
        assert response.status_code == 200
        assert [s["code"] for s in response.json()] == ["BCT", "NDLS"]

    def test_trains(self, client):
        response = client.get("/api/v1/trains", params={"from_station": "ndls", "to_station": "BCT"})
        trains = response.json()
        assert [t["number"] for t in trains] == [TRAIN_NUMBER]
        assert trains[0]["from_station"]["city"] == "New Delhi"
        assert {c["class_type"] for c in trains[0]["classes"]} == {"3A", "1A", "SL"}

    def test_assessment(self, client):
        response = client.get(f"/api/v1/trains/{TRAIN_NUMBER}/classes/3A/assessment",
                              params={"journey_date": SATURDAY})
        body = response.json()
        assert body["assessment"] == {
            "level": "high",
            "crowd_score": 100,
            "comfort_score": 3.0,
            "recommendation": "budget",
        }
        assert body["recommendation_label"] == "Budget Friendly"

    def test_seat_map(self, client):
        response = client.get(f"/api/v1/trains/{TRAIN_NUMBER}/classes/3A/seats",
                              params={"journey_date": SATURDAY})
        body = response.json()
        assert len(body["seats"]) == 72
        assert sum(not s["is_booked"] for s in body["seats"]) == 10
        assert len(body["rows"]) == 9

    def test_unknown_class(self, client):
        response = client.get(f"/api/v1/trains/{TRAIN_NUMBER}/classes/CC/assessment",
                              params={"journey_date": SATURDAY})
        assert response.status_code == 404


class TestBookingFlow:

    def test_book_and_cancel(self, client):
        booking = book(client)
        assert booking["status"] == "confirmed"
        assert booking["total_fare"] == 3230
        assert len(booking["pnr"]) == 10
        assert [p["assigned_seat"] for p in booking["passengers"]] == booking["seat_numbers"]

        response = client.get(f"/api/v1/bookings/{booking['pnr']}")
        assert response.json()["class_type"] == "3A"

        response = client.post(f"/api/v1/bookings/cancel/{booking['pnr']}")
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

        response = client.post(f"/api/v1/bookings/cancel/{booking['pnr']}")
        assert response.status_code == 409
        assert response.json()["error"] == "InvalidTransition"

    def test_bookings_are_listed_per_user(self, client):
        mine = book(client, headers={"X-User-Token": "alice"})
        book(client, headers={"X-User-Token": "bob"})
        response = client.get("/api/v1/bookings", headers={"X-User-Token": "alice"})
        assert [b["pnr"] for b in response.json()] == [mine["pnr"]]

    def test_invalid_passenger(self, client):
        draft = start_draft(client)
        response = client.put(f"{DRAFTS}/{draft['id']}/passengers",
                              json=[{"name": " ", "age": 30}])
        assert response.status_code == 422
        assert response.json() == {"detail": "Please enter name for passenger 1",
                                   "error": "InvalidPassengerData"}
        assert client.get(f"{DRAFTS}/{draft['id']}").json()["state"] == "drafting"

    def test_seat_count_mismatch(self, client):
        draft = start_draft(client)
        client.put(f"{DRAFTS}/{draft['id']}/passengers", json=[{"name": "Asha", "age": 30}])
        response = client.post(f"{DRAFTS}/{draft['id']}/seats/confirm")
        assert response.status_code == 422
        assert response.json()["error"] == "SeatCountMismatch"

    def test_invalid_payment(self, client):
        draft = start_draft(client)
        client.put(f"{DRAFTS}/{draft['id']}/passengers", json=[{"name": "Asha", "age": 30}])
        client.post(f"{DRAFTS}/{draft['id']}/seats/{free_seats(client, 1)[0]}")
        client.post(f"{DRAFTS}/{draft['id']}/seats/confirm")
        response = client.post(f"{DRAFTS}/{draft['id']}/payment",
                               json={"method": "wallet", "wallet_type": "cash"})
        assert response.status_code == 422
        assert response.json()["error"] == "InvalidPaymentDetails"
        assert client.get(f"{DRAFTS}/{draft['id']}").json()["state"] == "payment_pending"

    def test_abandon(self, client):
        draft = start_draft(client)
        response = client.delete(f"{DRAFTS}/{draft['id']}")
        assert response.json()["state"] == "abandoned"
        assert client.get(f"{DRAFTS}/{draft['id']}").status_code == 404

    def test_draft_of_another_user(self, client):
        draft = start_draft(client, headers={"X-User-Token": "alice"})
        response = client.get(f"{DRAFTS}/{draft['id']}", headers={"X-User-Token": "bob"})
        assert response.status_code == 404

    def test_unknown_pnr(self, client):
        response = client.get("/api/v1/bookings/ZZZZZZZZZZ")
        assert response.status_code == 404
        assert response.json()["error"] == "NotFound"
