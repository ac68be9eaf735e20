from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from app import create_app, startup
from backend.utils.config import get_settings, parse_office_quotas


ADMIN_EMAIL = "admin@example.com"
OFFICE_QUOTAS = [
    {"name": "Melbourne", "quota": 2, "parkingQuota": 1},
    {"name": "Sydney", "quota": 5, "parkingQuota": 0},
]


def _build_test_settings(tmp_path, filename: str, **overrides):
    get_settings.cache_clear()
    base = get_settings()
    return replace(
        base,
        database_path=tmp_path / filename,
        auth_trust_bearer_email=True,
        system_admin_emails=(ADMIN_EMAIL,),
        office_quotas=parse_office_quotas(OFFICE_QUOTAS),
        office_timezone="UTC",
        default_weekly_quota=1,
        advance_booking_days=14,
        **overrides,
    )


@pytest.fixture
def client(tmp_path) -> TestClient:
    app = create_app(_build_test_settings(tmp_path, "bookings.db"))
    startup(app)
    return TestClient(app)


def _auth(email: str = ADMIN_EMAIL) -> dict[str, str]:
    return {"Authorization": f"Bearer {email}"}


def _today() -> date:
    return datetime.now(timezone.utc).date()


def _tomorrow() -> str:
    return (_today() + timedelta(days=1)).isoformat()


def _next_monday() -> date:
    today = _today()
    return today + timedelta(days=7 - today.weekday())


def _book(client: TestClient, user: str, day: str, office: str = "melbourne", parking: bool = False, caller: str | None = None):
    return client.post(
        "/api/bookings",
        json={"user": user, "date": day, "office": {"id": office}, "parking": parking},
        headers=_auth(caller or user),
    )


def _slot(client: TestClient, office: str, day: str) -> dict:
    office_payload = client.get(f"/api/offices/{office}", headers=_auth()).json()
    return next(slot for slot in office_payload["slots"] if slot["date"] == day)


def test_offices_list_and_slots(client):
    response = client.get("/api/offices", headers=_auth())
    assert response.status_code == 200
    assert response.json() == [
        {"id": "melbourne", "name": "Melbourne", "quota": 2, "parkingQuota": 1},
        {"id": "sydney", "name": "Sydney", "quota": 5, "parkingQuota": 0},
    ]

    office = client.get("/api/offices/melbourne", headers=_auth()).json()
    assert len(office["slots"]) == 15
    assert office["slots"][0] == {"date": _today().isoformat(), "booked": 0, "bookedParking": 0}

    assert client.get("/api/offices/atlantis", headers=_auth()).status_code == 404


def test_offices_require_authentication(client):
    assert client.get("/api/offices").status_code == 401
    assert client.get("/api/offices", headers={"Authorization": "Bearer not-an-email"}).status_code == 401


def test_booking_increments_and_cancellation_decrements_counters(client):
    day = _tomorrow()
    created = _book(client, "pat@example.com", day, parking=True)
    assert created.status_code == 200
    assert _slot(client, "melbourne", day) == {"date": day, "booked": 1, "bookedParking": 1}

    cancelled = client.delete(
        f"/api/bookings/{created.json()['id']}",
        params={"user": "pat@example.com"},
        headers=_auth("pat@example.com"),
    )
    assert cancelled.status_code == 204
    assert _slot(client, "melbourne", day) == {"date": day, "booked": 0, "bookedParking": 0}


def test_office_capacity_is_enforced(client):
    day = _tomorrow()
    assert _book(client, "a@example.com", day).status_code == 200
    assert _book(client, "b@example.com", day).status_code == 200

    full = _book(client, "c@example.com", day)
    assert full.status_code == 409
    assert "No office spaces available" in full.json()["detail"]
    assert _slot(client, "melbourne", day)["booked"] == 2


def test_parking_capacity_is_enforced(client):
    day = _tomorrow()
    assert _book(client, "a@example.com", day, parking=True).status_code == 200

    no_parking_left = _book(client, "b@example.com", day, parking=True)
    assert no_parking_left.status_code == 409
    assert "No parking spaces available" in no_parking_left.json()["detail"]

    no_parking_at_all = _book(client, "b@example.com", day, office="sydney", parking=True)
    assert no_parking_at_all.status_code == 409

    without_parking = _book(client, "b@example.com", day)
    assert without_parking.status_code == 200
    assert _slot(client, "melbourne", day) == {"date": day, "booked": 2, "bookedParking": 1}


def test_one_booking_per_user_per_day(client):
    day = _tomorrow()
    assert _book(client, "a@example.com", day).status_code == 200
    duplicate = _book(client, "a@example.com", day, office="sydney")
    assert duplicate.status_code == 409
    assert _slot(client, "sydney", day)["booked"] == 0


def test_weekly_quota_is_enforced(client):
    monday = _next_monday()
    tuesday = monday + timedelta(days=1)
    assert _book(client, "a@example.com", monday.isoformat()).status_code == 200

    over_quota = _book(client, "a@example.com", tuesday.isoformat())
    assert over_quota.status_code == 409
    assert "weekly quota" in over_quota.json()["detail"]

    raised = client.put("/api/users/a@example.com", json={"quota": 2}, headers=_auth())
    assert raised.status_code == 200
    assert _book(client, "a@example.com", tuesday.isoformat()).status_code == 200


def test_booking_window_and_office_are_validated(client):
    too_far = (_today() + timedelta(days=15)).isoformat()
    assert _book(client, "a@example.com", too_far).status_code == 400

    past = (_today() - timedelta(days=1)).isoformat()
    assert _book(client, "a@example.com", past).status_code == 400

    assert _book(client, "a@example.com", _tomorrow(), office="atlantis").status_code == 400
    assert _book(client, "not-an-email", _tomorrow(), caller=ADMIN_EMAIL).status_code == 400


def test_default_user_is_limited_to_own_bookings(client):
    day = _tomorrow()
    assert _book(client, "b@example.com", day, caller="a@example.com").status_code == 403
    own = _book(client, "a@example.com", day)
    assert own.status_code == 200

    assert client.get("/api/bookings", headers=_auth("a@example.com")).status_code == 403
    assert (
        client.get("/api/bookings", params={"user": "b@example.com"}, headers=_auth("a@example.com")).status_code
        == 403
    )
    mine = client.get("/api/bookings", params={"user": "a@example.com"}, headers=_auth("a@example.com"))
    assert mine.status_code == 200
    assert mine.json() == [own.json()]

    other_cancel = client.delete(
        f"/api/bookings/{own.json()['id']}",
        params={"user": "a@example.com"},
        headers=_auth("b@example.com"),
    )
    assert other_cancel.status_code == 403


def test_office_admin_manages_only_assigned_offices(client):
    office_admin = "manager@example.com"
    client.put(
        f"/api/users/{office_admin}",
        json={"role": {"name": "Office Admin", "offices": [{"id": "melbourne"}]}},
        headers=_auth(),
    )
    day = _tomorrow()

    in_office = _book(client, "a@example.com", day, office="melbourne", caller=office_admin)
    assert in_office.status_code == 200
    assert _book(client, "b@example.com", day, office="sydney", caller=office_admin).status_code == 403
    assert _book(client, "b@example.com", day, office="sydney", caller=ADMIN_EMAIL).status_code == 200

    visible = client.get("/api/bookings", headers=_auth(office_admin))
    assert visible.status_code == 200
    assert [booking["office"]["id"] for booking in visible.json()] == ["melbourne"]

    by_date = client.get("/api/bookings", params={"date": day}, headers=_auth(office_admin))
    assert [booking["user"] for booking in by_date.json()] == ["a@example.com"]

    assert client.get("/api/bookings", params={"office": "sydney"}, headers=_auth(office_admin)).status_code == 403

    cancelled = client.delete(
        f"/api/bookings/{in_office.json()['id']}",
        params={"user": "a@example.com"},
        headers=_auth(office_admin),
    )
    assert cancelled.status_code == 204


def test_cancel_unknown_or_mismatched_booking(client):
    created = _book(client, "a@example.com", _tomorrow())
    booking_id = created.json()["id"]

    wrong_user = client.delete(f"/api/bookings/{booking_id}", params={"user": "b@example.com"}, headers=_auth())
    assert wrong_user.status_code == 404
    assert client.delete("/api/bookings/missing", params={"user": "a@example.com"}, headers=_auth()).status_code == 404

    first = client.delete(f"/api/bookings/{booking_id}", params={"user": "a@example.com"}, headers=_auth())
    assert first.status_code == 204
    second = client.delete(f"/api/bookings/{booking_id}", params={"user": "a@example.com"}, headers=_auth())
    assert second.status_code == 404


def test_bookings_filter_by_office_and_date(client):
    day = _tomorrow()
    later = (_today() + timedelta(days=2)).isoformat()
    _book(client, "a@example.com", day, caller=ADMIN_EMAIL)
    _book(client, "b@example.com", later, office="sydney", caller=ADMIN_EMAIL)

    by_office = client.get("/api/bookings", params={"office": "sydney"}, headers=_auth()).json()
    assert [booking["user"] for booking in by_office] == ["b@example.com"]

    by_date = client.get("/api/bookings", params={"date": day}, headers=_auth()).json()
    assert [booking["user"] for booking in by_date] == ["a@example.com"]

    assert client.get("/api/bookings", params={"date": "tomorrow"}, headers=_auth()).status_code == 400
    assert client.get("/api/bookings", params={"office": "atlantis"}, headers=_auth()).status_code == 404
