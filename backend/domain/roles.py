"""Role resolution and permission derivation."""

from __future__ import annotations

from typing import Iterable, Sequence

from backend.domain.models import (
    ROLE_DEFAULT,
    ROLE_OFFICE_ADMIN,
    ROLE_SYSTEM_ADMIN,
    Office,
    Permissions,
    Role,
    User,
    UserRecord,
)


def resolve_role(record: UserRecord, system_admin_emails: Iterable[str]) -> Role:
    """System Admin comes from configuration; everything else from storage."""
    if record.email.lower() in {email.lower() for email in system_admin_emails}:
        return Role(name=ROLE_SYSTEM_ADMIN)
    if record.role_name == ROLE_OFFICE_ADMIN:
        return Role(name=ROLE_OFFICE_ADMIN, office_ids=tuple(record.office_ids))
    return Role(name=ROLE_DEFAULT)


def derive_permissions(role: Role, offices: Sequence[Office]) -> Permissions:
    if role.name == ROLE_SYSTEM_ADMIN:
        return Permissions(
            can_view_admin_panel=True,
            can_view_users=True,
            can_edit_users=True,
            can_manage_all_bookings=True,
            offices_can_manage_bookings_for=tuple(offices),
        )
    if role.name == ROLE_OFFICE_ADMIN:
        managed = tuple(office for office in offices if office.office_id in role.office_ids)
        return Permissions(
            can_view_admin_panel=True,
            can_view_users=True,
            can_edit_users=False,
            can_manage_all_bookings=False,
            offices_can_manage_bookings_for=managed,
        )
    return Permissions(
        can_view_admin_panel=False,
        can_view_users=False,
        can_edit_users=False,
        can_manage_all_bookings=False,
        offices_can_manage_bookings_for=(),
    )


def build_user(
    record: UserRecord,
    *,
    offices: Sequence[Office],
    system_admin_emails: Iterable[str],
    default_quota: int,
) -> User:
    """Combine a stored row with configuration into the API-facing user."""
    role = resolve_role(record, system_admin_emails)
    permissions = derive_permissions(role, offices)
    role_offices = tuple(office for office in offices if office.office_id in role.office_ids)
    return User(
        email=record.email,
        quota=record.quota if record.quota is not None else default_quota,
        has_custom_quota=record.quota is not None,
        role=role,
        permissions=permissions,
        role_offices=role_offices,
    )


def can_manage_bookings_for(caller: User, *, user_email: str, office_id: str | None) -> bool:
    """Own bookings, any booking for System Admins, managed offices for Office Admins."""
    if caller.email == user_email:
        return True
    if caller.permissions.can_manage_all_bookings:
        return True
    if office_id is None:
        return False
    return caller.permissions.can_manage_office(office_id)
