from __future__ import annotations

from dataclasses import replace

import pytest

from backend.domain.constraints import CapacityError
from backend.domain.models import Booking, Office
from backend.repository.data_repository import (
    DataRepository,
    DuplicateBookingError,
    WeeklyQuotaExceededError,
)
from backend.utils.config import get_settings


MELBOURNE = Office(office_id="melbourne", name="Melbourne", quota=2, parking_quota=1)
SYDNEY = Office(office_id="sydney", name="Sydney", quota=5, parking_quota=0)


@pytest.fixture
def repository(tmp_path) -> DataRepository:
    get_settings.cache_clear()
    settings = replace(get_settings(), database_path=tmp_path / "repository.db")
    repo = DataRepository(settings)
    repo.initialize_database()
    repo.sync_offices([MELBOURNE, SYDNEY])
    return repo


def _booking(booking_id: str, user: str, day: str, office: Office = MELBOURNE, parking: bool = False) -> Booking:
    return Booking(
        booking_id=booking_id,
        user=user,
        date=day,
        office=office,
        parking=parking,
        created="2024-01-01T00:00:00.000Z",
        last_cancellation=f"{day}T00:00:00.000Z",
    )


def _create(repository: DataRepository, booking: Booking, weekly_quota: int = 5):
    return repository.create_booking(
        booking,
        weekly_quota=weekly_quota,
        week_start="2024-01-01",
        week_end="2024-01-07",
    )


def test_initialize_database_is_idempotent(repository):
    repository.initialize_database()
    assert [office.office_id for office in repository.list_offices()] == ["melbourne", "sydney"]


def test_sync_offices_updates_and_deactivates(repository):
    repository.sync_offices([replace(MELBOURNE, quota=10)])
    offices = repository.list_offices()
    assert offices == [replace(MELBOURNE, quota=10)]
    assert repository.get_office("sydney") is None

    repository.sync_offices([MELBOURNE, SYDNEY])
    assert repository.get_office("sydney") == SYDNEY


def test_create_user_reports_whether_inserted(repository):
    assert repository.create_user("someone@example.com") is True
    assert repository.create_user("someone@example.com") is False
    assert repository.count_users() == 1
    record = repository.get_user("someone@example.com")
    assert record is not None
    assert record.quota is None
    assert record.role_name == "Default"


def test_save_user_replaces_office_assignments(repository):
    repository.save_user("manager@example.com", quota=3, role_name="Office Admin", office_ids=["sydney", "melbourne"])
    record = repository.get_user("manager@example.com")
    assert record.quota == 3
    assert record.office_ids == ("melbourne", "sydney")

    repository.save_user("manager@example.com", quota=None, role_name="Default", office_ids=["sydney"])
    record = repository.get_user("manager@example.com")
    assert record.quota is None
    assert record.office_ids == ()


def test_create_booking_updates_slot_counters(repository):
    slot = _create(repository, _booking("b1", "a@example.com", "2024-01-02", parking=True))
    assert (slot.booked, slot.booked_parking) == (1, 1)
    assert repository.get_slot("melbourne", "2024-01-02") == slot

    with pytest.raises(CapacityError):
        _create(repository, _booking("b2", "b@example.com", "2024-01-02", parking=True))
    _create(repository, _booking("b3", "c@example.com", "2024-01-02"))
    with pytest.raises(CapacityError):
        _create(repository, _booking("b4", "d@example.com", "2024-01-02"))

    stored = repository.get_slot("melbourne", "2024-01-02")
    assert (stored.booked, stored.booked_parking) == (2, 1)
    assert repository.get_booking("b2") is None


def test_create_booking_rejects_duplicates_and_quota(repository):
    _create(repository, _booking("b1", "a@example.com", "2024-01-02"))
    with pytest.raises(DuplicateBookingError):
        _create(repository, _booking("b2", "a@example.com", "2024-01-02", office=SYDNEY))
    with pytest.raises(WeeklyQuotaExceededError):
        _create(repository, _booking("b3", "a@example.com", "2024-01-03", office=SYDNEY), weekly_quota=1)
    assert repository.get_slot("sydney", "2024-01-02").booked == 0


def test_cancel_booking_releases_counters_once(repository):
    _create(repository, _booking("b1", "a@example.com", "2024-01-02", parking=True))
    assert repository.cancel_booking("b1", "2024-01-01T10:00:00.000Z") is True
    assert repository.cancel_booking("b1", "2024-01-01T10:00:00.000Z") is False

    slot = repository.get_slot("melbourne", "2024-01-02")
    assert (slot.booked, slot.booked_parking) == (0, 0)
    booking = repository.get_booking("b1")
    assert booking.cancelled == "2024-01-01T10:00:00.000Z"
    assert not booking.is_active
    assert repository.list_bookings(user_email="a@example.com") == []

    _create(repository, _booking("b2", "a@example.com", "2024-01-02"))
    assert [b.booking_id for b in repository.list_bookings(user_email="a@example.com")] == ["b2"]


def test_list_bookings_filters(repository):
    _create(repository, _booking("b1", "a@example.com", "2024-01-02"))
    _create(repository, _booking("b2", "b@example.com", "2024-01-03", office=SYDNEY))

    assert [b.booking_id for b in repository.list_bookings()] == ["b1", "b2"]
    assert [b.booking_id for b in repository.list_bookings(office_ids=["sydney"])] == ["b2"]
    assert [b.booking_id for b in repository.list_bookings(date="2024-01-02")] == ["b1"]
    assert repository.list_bookings(office_ids=[]) == []


def test_purge_before_removes_old_rows(repository):
    _create(repository, _booking("old", "a@example.com", "2024-01-02"))
    _create(repository, _booking("new", "a@example.com", "2024-01-05"))

    assert repository.purge_before("2024-01-03") == (1, 1)
    assert repository.get_booking("old") is None
    assert repository.get_booking("new") is not None
    assert repository.get_slot("melbourne", "2024-01-02").booked == 0
