from __future__ import annotations

import pytest

from backend.domain.models import Office, Role, UserRecord
from backend.domain.roles import build_user, can_manage_bookings_for, derive_permissions, resolve_role


OFFICES = (
    Office(office_id="melbourne", name="Melbourne", quota=2, parking_quota=1),
    Office(office_id="sydney", name="Sydney", quota=5, parking_quota=0),
)
ADMINS = ("admin@example.com",)


def _user(email: str, **record_fields):
    return build_user(
        UserRecord(email=email, **record_fields),
        offices=OFFICES,
        system_admin_emails=ADMINS,
        default_quota=1,
    )


def test_configured_admin_is_system_admin_regardless_of_storage() -> None:
    role = resolve_role(UserRecord(email="Admin@Example.com", role_name="Office Admin"), ADMINS)
    assert role == Role(name="System Admin")


def test_unknown_role_name_is_rejected() -> None:
    with pytest.raises(ValueError):
        Role(name="Overlord")


def test_system_admin_permissions() -> None:
    permissions = derive_permissions(Role(name="System Admin"), OFFICES)
    assert permissions.to_dict() == {
        "canEditUsers": True,
        "canManageAllBookings": True,
        "canViewAdminPanel": True,
        "canViewUsers": True,
        "officesCanManageBookingsFor": [office.to_dict() for office in OFFICES],
    }


def test_office_admin_permissions_are_scoped() -> None:
    permissions = derive_permissions(Role(name="Office Admin", office_ids=("sydney",)), OFFICES)
    assert permissions.can_view_admin_panel
    assert permissions.can_view_users
    assert not permissions.can_edit_users
    assert not permissions.can_manage_all_bookings
    assert permissions.can_manage_office("sydney")
    assert not permissions.can_manage_office("melbourne")


def test_default_permissions_are_empty() -> None:
    permissions = derive_permissions(Role(name="Default"), OFFICES)
    assert not any(
        [
            permissions.can_view_admin_panel,
            permissions.can_view_users,
            permissions.can_edit_users,
            permissions.can_manage_all_bookings,
        ]
    )
    assert permissions.offices_can_manage_bookings_for == ()


def test_build_user_applies_default_and_custom_quota() -> None:
    default_user = _user("someone@example.com")
    assert default_user.quota == 1
    assert not default_user.has_custom_quota
    assert default_user.to_dict()["admin"] is False

    custom_user = _user("someone@example.com", quota=0)
    assert custom_user.quota == 0
    assert custom_user.has_custom_quota


def test_office_admin_role_lists_assigned_offices() -> None:
    user = _user("manager@example.com", role_name="Office Admin", office_ids=("melbourne",))
    assert user.role_to_dict() == {
        "name": "Office Admin",
        "offices": [{"id": "melbourne", "name": "Melbourne"}],
    }
    assert user.admin


def test_booking_management_rules() -> None:
    admin = _user("admin@example.com")
    manager = _user("manager@example.com", role_name="Office Admin", office_ids=("melbourne",))
    default_user = _user("someone@example.com")

    assert can_manage_bookings_for(default_user, user_email="someone@example.com", office_id="sydney")
    assert not can_manage_bookings_for(default_user, user_email="other@example.com", office_id="sydney")
    assert can_manage_bookings_for(manager, user_email="other@example.com", office_id="melbourne")
    assert not can_manage_bookings_for(manager, user_email="other@example.com", office_id="sydney")
    assert not can_manage_bookings_for(manager, user_email="other@example.com", office_id=None)
    assert can_manage_bookings_for(admin, user_email="other@example.com", office_id=None)
