"""Business logic for users, roles and weekly quotas."""

from __future__ import annotations

import base64
import binascii
import json
from typing import Optional

from backend.domain.constraints import is_valid_email, validate_weekly_quota
from backend.domain.models import (
    ROLE_DEFAULT,
    ROLE_NAMES,
    ROLE_OFFICE_ADMIN,
    ROLE_SYSTEM_ADMIN,
    Role,
    User,
    UserRecord,
)
from backend.domain.roles import build_user
from backend.repository.data_repository import DataRepository
from backend.services.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from backend.services.office_service import OfficeService
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)

CUSTOM_QUOTA_FILTER = "custom"


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


UNSET = _Unset()


def encode_pagination_token(last_email: str) -> str:
    raw = json.dumps({"after": last_email}).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_pagination_token(token: str) -> str:
    padded = token + "=" * (-len(token) % 4)
    try:
        payload = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
        after = payload["after"]
    except (binascii.Error, UnicodeError, ValueError, KeyError, TypeError) as exc:
        raise ValidationError("Invalid paginationToken") from exc
    if not isinstance(after, str):
        raise ValidationError("Invalid paginationToken")
    return after


class UserService:
    """Resolves users to their role, permissions and effective quota."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
        office_service: Optional[OfficeService] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._office_service = office_service or OfficeService(
            repository=self._repository,
            settings=self._settings,
        )

    def normalise_email(self, email: str) -> str:
        normalised = (email or "").strip().lower()
        if not is_valid_email(normalised, self._settings.email_regex):
            raise ValidationError(f"Invalid email address: {email!r}")
        return normalised

    def is_system_admin_email(self, email: str) -> bool:
        return email.lower() in self._settings.system_admin_emails

    def _build(self, record: UserRecord) -> User:
        return build_user(
            record,
            offices=self._office_service.list_offices(),
            system_admin_emails=self._settings.system_admin_emails,
            default_quota=self._settings.default_weekly_quota,
        )

    def get_user(self, email: str) -> User:
        """Stored user, or the default view of a valid email never seen before."""
        normalised = self.normalise_email(email)
        record = self._repository.get_user(normalised) or UserRecord(email=normalised)
        return self._build(record)

    def get_user_for(self, caller: User, email: str) -> User:
        normalised = self.normalise_email(email)
        if normalised != caller.email and not caller.permissions.can_view_users:
            raise PermissionDeniedError("Not allowed to view other users")
        return self.get_user(normalised)

    def ensure_user(self, email: str) -> User:
        normalised = self.normalise_email(email)
        self._repository.create_user(normalised)
        return self.get_user(normalised)

    def register_user(self, email: str) -> User:
        normalised = self.normalise_email(email)
        if not self._repository.create_user(normalised):
            raise ConflictError(f"User {normalised} is already registered")
        logger.info("Registered user %s", normalised)
        return self.get_user(normalised)

    def update_user(
        self,
        caller: User,
        email: str,
        *,
        quota: object = UNSET,
        role: object = UNSET,
    ) -> User:
        """Apply quota/role changes; `quota=None` resets to the default quota."""
        if not caller.permissions.can_edit_users:
            raise PermissionDeniedError("Not allowed to edit users")
        normalised = self.normalise_email(email)
        current = self._repository.get_user(normalised) or UserRecord(email=normalised)

        new_quota = current.quota
        if quota is not UNSET:
            if quota is not None:
                try:
                    validate_weekly_quota(quota)  # type: ignore[arg-type]
                except ValueError as exc:
                    raise ValidationError(str(exc)) from exc
            new_quota = quota  # type: ignore[assignment]

        role_name = current.role_name
        office_ids: tuple[str, ...] = current.office_ids
        if role is not UNSET and role is not None:
            if not isinstance(role, Role):
                raise ValidationError("role must be a Role")
            if self.is_system_admin_email(normalised):
                raise ValidationError("System Admin role is configured in infrastructure and cannot be changed")
            if role.name == ROLE_SYSTEM_ADMIN:
                raise ValidationError("System Admin role cannot be assigned through the API")
            role_name = role.name
            office_ids = ()
            if role.name == ROLE_OFFICE_ADMIN:
                if not role.office_ids:
                    raise ValidationError("Office Admin role requires at least one office")
                for office_id in role.office_ids:
                    try:
                        self._office_service.get_office(office_id)
                    except NotFoundError as exc:
                        raise ValidationError(f"Unknown office {office_id}") from exc
                office_ids = tuple(dict.fromkeys(role.office_ids))

        record = self._repository.save_user(
            normalised,
            quota=new_quota,  # type: ignore[arg-type]
            role_name=role_name,
            office_ids=office_ids,
        )
        logger.info(
            "User %s updated by %s (quota=%s, role=%s)",
            normalised,
            caller.email,
            new_quota,
            role_name,
        )
        return self._build(record)

    def query_users(
        self,
        caller: User,
        *,
        role: Optional[str] = None,
        quota: Optional[str] = None,
        email_prefix: Optional[str] = None,
        pagination_token: Optional[str] = None,
    ) -> tuple[list[User], Optional[str]]:
        """Return one page of matching users and the token for the next page."""
        if not caller.permissions.can_view_users:
            raise PermissionDeniedError("Not allowed to view users")
        if role is not None and role not in ROLE_NAMES:
            raise ValidationError(f"Unknown role filter {role!r}")
        if quota is not None and quota != CUSTOM_QUOTA_FILTER:
            raise ValidationError(f"quota filter only supports {CUSTOM_QUOTA_FILTER!r}")

        admin_emails = list(self._settings.system_admin_emails)
        role_name: Optional[str] = None
        only_emails: Optional[list[str]] = None
        exclude_emails: list[str] = []
        if role == ROLE_SYSTEM_ADMIN:
            only_emails = admin_emails
        elif role in (ROLE_DEFAULT, ROLE_OFFICE_ADMIN):
            role_name = role
            exclude_emails = admin_emails

        page_size = self._settings.user_query_page_size
        records = self._repository.query_users(
            role_name=role_name,
            only_emails=only_emails,
            exclude_emails=exclude_emails,
            custom_quota=quota == CUSTOM_QUOTA_FILTER,
            email_prefix=(email_prefix or "").strip().lower() or None,
            after_email=decode_pagination_token(pagination_token) if pagination_token else None,
            limit=page_size + 1,
        )
        next_token = None
        if len(records) > page_size:
            records = records[:page_size]
            next_token = encode_pagination_token(records[-1].email)
        return [self._build(record) for record in records], next_token
