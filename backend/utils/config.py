"""Environment-driven application settings."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path


DEFAULT_OFFICE_QUOTAS: tuple[dict[str, object], ...] = (
    {"name": "Melbourne", "quota": 20, "parkingQuota": 5},
    {"name": "Sydney", "quota": 30, "parkingQuota": 0},
    {"name": "Brisbane", "quota": 10, "parkingQuota": 2},
)

DEFAULT_EMAIL_REGEX = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


@dataclass(frozen=True)
class OfficeQuotaConfig:
    name: str
    quota: int
    parking_quota: int


@dataclass(frozen=True)
class Settings:
    app_name: str = "Office Booking Service"
    app_version: str = "1.0.0"
    database_path: Path = Path("data/office_booking.db")
    log_level: str = "INFO"

    login_secret: str | None = None
    auth_trust_bearer_email: bool = False
    system_admin_emails: tuple[str, ...] = ()

    default_weekly_quota: int = 1
    advance_booking_days: int = 14
    data_retention_days: int = 30
    user_query_page_size: int = 20
    email_regex: str = DEFAULT_EMAIL_REGEX
    office_timezone: str = "UTC"
    office_quotas: tuple[OfficeQuotaConfig, ...] = field(default_factory=tuple)

    api_base_url: str = "http://127.0.0.1:8000/api"
    api_timeout_seconds: float = 10.0


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def _getenv_bool(name: str, default: bool = False) -> bool:
    raw = _getenv(name).lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


def parse_office_quotas(raw: str | list[dict[str, object]] | tuple) -> tuple[OfficeQuotaConfig, ...]:
    """Parse `OFFICE_QUOTAS` JSON (or already-decoded rows) into configs."""
    rows = json.loads(raw) if isinstance(raw, str) else raw
    if not isinstance(rows, (list, tuple)):
        raise ValueError("OFFICE_QUOTAS must be a JSON list")
    offices: list[OfficeQuotaConfig] = []
    for row in rows:
        try:
            offices.append(
                OfficeQuotaConfig(
                    name=str(row["name"]).strip(),
                    quota=int(row["quota"]),
                    parking_quota=int(row.get("parkingQuota", 0)),
                )
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"Invalid office quota entry: {row!r}") from exc
    return tuple(offices)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings once per process; tests call `cache_clear()`."""
    office_quotas_raw = _getenv("OFFICE_QUOTAS")
    admin_emails = _getenv("SYSTEM_ADMIN_EMAILS")
    return Settings(
        app_name=_getenv("APP_NAME", Settings.app_name),
        app_version=_getenv("APP_VERSION", Settings.app_version),
        database_path=Path(_getenv("DATABASE_PATH", str(Settings.database_path))),
        log_level=_getenv("LOG_LEVEL", Settings.log_level),
        login_secret=_getenv("LOGIN_SECRET") or None,
        auth_trust_bearer_email=_getenv_bool("AUTH_TRUST_BEARER_EMAIL"),
        system_admin_emails=tuple(
            email.strip().lower() for email in admin_emails.split(",") if email.strip()
        ),
        default_weekly_quota=_getenv_int("DEFAULT_WEEKLY_QUOTA", Settings.default_weekly_quota),
        advance_booking_days=_getenv_int("ADVANCE_BOOKING_DAYS", Settings.advance_booking_days),
        data_retention_days=_getenv_int("DATA_RETENTION_DAYS", Settings.data_retention_days),
        user_query_page_size=_getenv_int("USER_QUERY_PAGE_SIZE", Settings.user_query_page_size),
        email_regex=_getenv("EMAIL_REGEX", DEFAULT_EMAIL_REGEX),
        office_timezone=_getenv("OFFICE_TIMEZONE", Settings.office_timezone),
        office_quotas=parse_office_quotas(office_quotas_raw or list(DEFAULT_OFFICE_QUOTAS)),
        api_base_url=_getenv("API_BASE_URL", Settings.api_base_url),
    )
