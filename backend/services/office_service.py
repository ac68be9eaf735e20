"""Business logic for configured offices and their daily slots."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from backend.domain.constraints import booking_window, validate_office_config
from backend.domain.models import Office, OfficeSlot, OfficeWithSlots, office_id_from_name
from backend.repository.data_repository import DataRepository
from backend.services.errors import NotFoundError
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


def offices_from_settings(settings: Settings) -> list[Office]:
    offices: list[Office] = []
    seen: set[str] = set()
    for config in settings.office_quotas:
        office = Office(
            office_id=office_id_from_name(config.name),
            name=config.name,
            quota=config.quota,
            parking_quota=config.parking_quota,
        )
        validate_office_config(office)
        if office.office_id in seen:
            raise ValueError(f"Duplicate office id {office.office_id!r} in OFFICE_QUOTAS")
        seen.add(office.office_id)
        offices.append(office)
    return offices


class OfficeService:
    """Serves offices and the slot counters for the bookable window."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._timezone = ZoneInfo(self._settings.office_timezone)

    @property
    def timezone(self) -> ZoneInfo:
        return self._timezone

    def now(self) -> datetime:
        return self._clock().astimezone(self._timezone)

    def today(self) -> date:
        return self.now().date()

    def bookable_dates(self) -> list[date]:
        return booking_window(self.today(), self._settings.advance_booking_days)

    def sync_configured_offices(self) -> list[Office]:
        offices = offices_from_settings(self._settings)
        self._repository.sync_offices(offices)
        return offices

    def list_offices(self) -> list[Office]:
        return self._repository.list_offices()

    def get_office(self, office_id: str) -> Office:
        office = self._repository.get_office(office_id)
        if office is None:
            raise NotFoundError(f"Office {office_id} not found")
        return office

    def get_office_with_slots(self, office_id: str) -> OfficeWithSlots:
        office = self.get_office(office_id)
        dates = self.bookable_dates()
        stored = self._repository.list_slots(
            office.office_id,
            dates[0].isoformat(),
            dates[-1].isoformat(),
        )
        slots = [
            stored.get(day.isoformat(), OfficeSlot(date=day.isoformat()))
            for day in dates
        ]
        return OfficeWithSlots(office=office, slots=slots)
