"""Domain-level validation rules for quotas and slot capacity."""

from __future__ import annotations

import re
from datetime import date, timedelta

from backend.domain.models import Office, OfficeSlot


class CapacityError(ValueError):
    """Raised when a slot has no room left for another booking."""


def validate_office_config(office: Office) -> None:
    if not office.name.strip():
        raise ValueError("office name must be non-empty")
    if office.quota <= 0:
        raise ValueError(f"office {office.name!r} quota must be > 0")
    if office.parking_quota < 0:
        raise ValueError(f"office {office.name!r} parking quota must be >= 0")


def validate_weekly_quota(quota: int) -> None:
    if isinstance(quota, bool) or not isinstance(quota, int):
        raise ValueError("quota must be an integer")
    if quota < 0:
        raise ValueError("quota must be >= 0")


def check_slot_capacity(office: Office, slot: OfficeSlot, parking: bool) -> None:
    if slot.booked + 1 > office.quota:
        raise CapacityError("No office spaces available")
    if parking:
        if office.parking_quota == 0:
            raise CapacityError(f"{office.name} has no parking")
        if slot.booked_parking + 1 > office.parking_quota:
            raise CapacityError("No parking spaces available")


def is_valid_email(email: str, email_regex: str) -> bool:
    return bool(email) and re.fullmatch(email_regex, email) is not None


def booking_window(today: date, advance_booking_days: int) -> list[date]:
    """Every bookable date, today inclusive."""
    return [today + timedelta(days=offset) for offset in range(advance_booking_days + 1)]


def week_bounds(target: date) -> tuple[date, date]:
    """Monday..Sunday of the ISO week containing `target`."""
    start = target - timedelta(days=target.weekday())
    return start, start + timedelta(days=6)
