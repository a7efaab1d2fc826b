"""
Integration tests for the calendar API using FastAPI TestClient.

The app runs its lifespan against a temporary SQLite database, which is
seeded through the client's event loop.
"""

import pytest
from fastapi.testclient import TestClient

from team_calendar.config import settings
from team_calendar.main import app

from .conftest import seed_database


START = "2024-01-10T09:00:00"
END = "2024-01-10T10:00:00"


@pytest.fixture()
def client(tmp_path, monkeypatch):
    """Test client on a fresh, seeded database"""
    monkeypatch.setattr(settings, "database_path", str(tmp_path / "api.db"))
    monkeypatch.setattr(settings, "api_key", "")
    monkeypatch.setattr(settings, "reject_overlapping_bookings", False)
    monkeypatch.setattr(settings, "scope_event_lookup_by_team", True)

    with TestClient(app) as c:
        c.portal.call(seed_database, app.state.db)
        yield c


def as_user(userid: int) -> dict:
    return {"X-User-Id": str(userid)}


def book(client, userid=10, item_id=100, start=START, end=END, title="Reactor run"):
    return client.post(
        f"/api/items/{item_id}/events",
        json={"start": start, "end": end, "title": title},
        headers=as_user(userid),
    )


class TestHealthEndpoints:
    def test_health(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] in ("healthy", "degraded")
        assert body["checks"]["database"]["status"] == "ok"

    def test_health_reports_calendar(self, client):
        calendar = client.get("/api/health").json()["checks"]["calendar"]
        assert calendar["status"] == "ok"
        assert calendar["missing_tables"] == []
        assert calendar["teams"] == 2
        assert calendar["items"] == 3
        assert calendar["bookings"] == 0

        assert book(client).status_code == 201

        calendar = client.get("/api/health").json()["checks"]["calendar"]
        assert calendar["bookings"] == 1

    def test_status(self, client):
        resp = client.get("/api/status")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "running"
        assert body["booking_rules"]["reject_overlapping_bookings"] is False


class TestActorResolution:
    def test_missing_user_header(self, client):
        assert client.get("/api/events").status_code == 401

    def test_unknown_user(self, client):
        assert client.get("/api/events", headers=as_user(999)).status_code == 401

    def test_api_key_required_when_configured(self, client, monkeypatch):
        monkeypatch.setattr(settings, "api_key", "secret")

        assert book(client).status_code == 401

        resp = client.post(
            "/api/items/100/events",
            json={"start": START, "end": END, "title": "x"},
            headers={**as_user(10), "X-API-Key": "wrong"},
        )
        assert resp.status_code == 403

        resp = client.post(
            "/api/items/100/events",
            json={"start": START, "end": END, "title": "x"},
            headers={**as_user(10), "X-API-Key": "secret"},
        )
        assert resp.status_code == 201


class TestBookingLifecycle:
    def test_book_read_and_delete_by_admin(self, client):
        resp = book(client)
        assert resp.status_code == 201
        event = resp.json()
        assert event["team"] == 5
        assert event["item"] == 100
        assert event["userid"] == 10
        assert event["title"] == "Reactor run"

        resp = client.get("/api/items/100/events", headers=as_user(10))
        assert resp.status_code == 200
        rows = resp.json()
        assert len(rows) == 1
        assert rows[0]["title"] == "Reactor run (Ada Lovelace) "

        resp = client.delete(f"/api/events/{event['id']}", headers=as_user(20))
        assert resp.status_code == 200
        assert resp.json()["success"] is True

        resp = client.delete(f"/api/events/{event['id']}", headers=as_user(20))
        assert resp.status_code == 404

    def test_team_calendar(self, client):
        book(client)
        book(client, userid=30, item_id=200, title="Fusion")

        resp = client.get("/api/events", headers=as_user(11))
        assert resp.status_code == 200
        rows = resp.json()
        assert [r["title"] for r in rows] == ["[Microscope] Reactor run (Ada Lovelace)"]
        assert rows[0]["item_title"] == "Microscope"

    def test_move_and_resize(self, client):
        event_id = book(client).json()["id"]

        resp = client.put(
            f"/api/events/{event_id}/start",
            json={"start": "2024-01-12T08:00:00", "end": "2024-01-12T09:00:00"},
            headers=as_user(10),
        )
        assert resp.status_code == 200
        assert resp.json()["start"] == "2024-01-12T08:00:00"

        resp = client.put(
            f"/api/events/{event_id}/end",
            json={"end": "2024-01-12T11:00:00"},
            headers=as_user(10),
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["start"] == "2024-01-12T08:00:00"
        assert body["end"] == "2024-01-12T11:00:00"

    def test_resize_before_start_rejected(self, client):
        event_id = book(client).json()["id"]

        resp = client.put(
            f"/api/events/{event_id}/end",
            json={"end": "2024-01-10T08:00:00"},
            headers=as_user(10),
        )
        assert resp.status_code == 400

    def test_bind_and_unbind(self, client):
        event_id = book(client).json()["id"]

        resp = client.post(
            f"/api/events/{event_id}/bind",
            json={"experiment_id": 500},
            headers=as_user(10),
        )
        assert resp.status_code == 200
        assert resp.json()["experiment"] == 500

        rows = client.get("/api/items/100/events", headers=as_user(10)).json()
        assert rows[0]["title"].endswith("Kinetics study")

        resp = client.post(f"/api/events/{event_id}/unbind", headers=as_user(10))
        assert resp.status_code == 200
        assert resp.json()["experiment"] is None


class TestBookingRefusals:
    def test_range_must_be_ordered(self, client):
        assert book(client, start=END, end=START).status_code == 422

    def test_malformed_timestamp(self, client):
        assert book(client, start="tomorrow").status_code == 422

    def test_item_of_other_team(self, client):
        assert book(client, item_id=200).status_code == 404
        assert client.get("/api/items/200/events", headers=as_user(10)).status_code == 404

    def test_event_of_other_team_hidden(self, client):
        event_id = book(client).json()["id"]

        assert client.get(f"/api/events/{event_id}", headers=as_user(30)).status_code == 404

    def test_bind_experiment_of_other_team(self, client):
        event_id = book(client).json()["id"]

        resp = client.post(
            f"/api/events/{event_id}/bind",
            json={"experiment_id": 600},
            headers=as_user(10),
        )
        assert resp.status_code == 404

    def test_delete_by_regular_non_owner(self, client):
        event_id = book(client).json()["id"]

        resp = client.delete(f"/api/events/{event_id}", headers=as_user(11))
        assert resp.status_code == 403

    def test_delete_by_admin_of_other_team(self, client):
        event_id = book(client).json()["id"]

        resp = client.delete(f"/api/events/{event_id}", headers=as_user(30))
        assert resp.status_code == 403
        assert client.get(f"/api/events/{event_id}", headers=as_user(10)).status_code == 200

    def test_overlap_rejected_when_enabled(self, client, monkeypatch):
        monkeypatch.setattr(settings, "reject_overlapping_bookings", True)
        first = book(client).json()["id"]

        resp = book(client, userid=11, start="2024-01-10T09:30:00", end="2024-01-10T10:30:00")
        assert resp.status_code == 409
        assert resp.json()["conflicting_ids"] == [first]

    def test_back_to_back_without_seconds_accepted(self, client, monkeypatch):
        monkeypatch.setattr(settings, "reject_overlapping_bookings", True)
        assert book(client).status_code == 201

        resp = book(client, userid=11, start="2024-01-10T10:00", end="2024-01-10T11:00")
        assert resp.status_code == 201

    def test_conflicts_endpoint(self, client):
        first = book(client).json()["id"]

        resp = client.get(
            "/api/items/100/conflicts",
            params={"start": "2024-01-10T09:30:00", "end": "2024-01-10T11:00:00"},
            headers=as_user(11),
        )
        assert resp.status_code == 200
        assert [e["id"] for e in resp.json()] == [first]

        resp = client.get(
            "/api/items/100/conflicts",
            params={"start": "2024-01-10T11:00:00", "end": "2024-01-10T09:00:00"},
            headers=as_user(11),
        )
        assert resp.status_code == 400
