"""Domain records for offices, slots, users and bookings."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Optional


ROLE_DEFAULT = "Default"
ROLE_OFFICE_ADMIN = "Office Admin"
ROLE_SYSTEM_ADMIN = "System Admin"
ROLE_NAMES = (ROLE_DEFAULT, ROLE_OFFICE_ADMIN, ROLE_SYSTEM_ADMIN)

_SLUG_PATTERN = re.compile(r"[^a-z0-9]+")


def office_id_from_name(name: str) -> str:
    """Stable URL-safe office id derived from the configured office name."""
    slug = _SLUG_PATTERN.sub("-", name.strip().lower()).strip("-")
    if not slug:
        raise ValueError(f"Office name {name!r} does not produce a usable id")
    return slug


@dataclass(frozen=True)
class Office:
    office_id: str
    name: str
    quota: int
    parking_quota: int

    def to_ref(self) -> dict[str, str]:
        return {"id": self.office_id, "name": self.name}

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.office_id,
            "name": self.name,
            "quota": self.quota,
            "parkingQuota": self.parking_quota,
        }


@dataclass(frozen=True)
class OfficeSlot:
    date: str
    booked: int = 0
    booked_parking: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "booked": self.booked,
            "bookedParking": self.booked_parking,
        }


@dataclass(frozen=True)
class OfficeWithSlots:
    office: Office
    slots: list[OfficeSlot]

    def to_dict(self) -> dict[str, Any]:
        payload = self.office.to_dict()
        payload["slots"] = [slot.to_dict() for slot in self.slots]
        return payload


@dataclass(frozen=True)
class Role:
    name: str
    office_ids: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.name not in ROLE_NAMES:
            raise ValueError(f"Unknown role {self.name!r}")


@dataclass(frozen=True)
class Permissions:
    can_view_admin_panel: bool
    can_view_users: bool
    can_edit_users: bool
    can_manage_all_bookings: bool
    offices_can_manage_bookings_for: tuple[Office, ...]

    def can_manage_office(self, office_id: str) -> bool:
        return any(office.office_id == office_id for office in self.offices_can_manage_bookings_for)

    def to_dict(self) -> dict[str, Any]:
        return {
            "canEditUsers": self.can_edit_users,
            "canManageAllBookings": self.can_manage_all_bookings,
            "canViewAdminPanel": self.can_view_admin_panel,
            "canViewUsers": self.can_view_users,
            "officesCanManageBookingsFor": [
                office.to_dict() for office in self.offices_can_manage_bookings_for
            ],
        }


@dataclass(frozen=True)
class UserRecord:
    """Persisted user row; `quota` is None unless a custom quota is set."""

    email: str
    quota: Optional[int] = None
    role_name: str = ROLE_DEFAULT
    office_ids: tuple[str, ...] = ()
    created_at: Optional[str] = None


@dataclass(frozen=True)
class User:
    email: str
    quota: int
    has_custom_quota: bool
    role: Role
    permissions: Permissions
    role_offices: tuple[Office, ...] = field(default=())

    @property
    def admin(self) -> bool:
        return self.permissions.can_view_admin_panel

    @property
    def is_system_admin(self) -> bool:
        return self.role.name == ROLE_SYSTEM_ADMIN

    def role_to_dict(self) -> dict[str, Any]:
        if self.role.name == ROLE_OFFICE_ADMIN:
            return {
                "name": self.role.name,
                "offices": [office.to_ref() for office in self.role_offices],
            }
        return {"name": self.role.name}

    def to_dict(self) -> dict[str, Any]:
        return {
            "email": self.email,
            "quota": self.quota,
            "admin": self.admin,
            "role": self.role_to_dict(),
            "permissions": self.permissions.to_dict(),
        }


@dataclass(frozen=True)
class Booking:
    booking_id: str
    user: str
    date: str
    office: Office
    parking: bool
    created: str
    last_cancellation: str
    cancelled: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.cancelled is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.booking_id,
            "created": self.created,
            "user": self.user,
            "date": self.date,
            "office": self.office.to_ref(),
            "lastCancellation": self.last_cancellation,
            "parking": self.parking,
        }
