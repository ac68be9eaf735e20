"""Business logic for creating, listing and cancelling bookings."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from uuid import uuid4

from backend.domain.constraints import CapacityError, week_bounds
from backend.domain.models import Booking, OfficeSlot, User
from backend.domain.roles import can_manage_bookings_for
from backend.repository.data_repository import (
    DataRepository,
    DuplicateBookingError,
    WeeklyQuotaExceededError,
)
from backend.services.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from backend.services.office_service import OfficeService
from backend.services.user_service import UserService
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid date {value!r}, expected YYYY-MM-DD") from exc


def _utc_timestamp(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class BookingService:
    """Applies permission, window, quota and capacity rules to bookings."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
        office_service: Optional[OfficeService] = None,
        user_service: Optional[UserService] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._office_service = office_service or OfficeService(
            repository=self._repository,
            settings=self._settings,
        )
        self._user_service = user_service or UserService(
            repository=self._repository,
            settings=self._settings,
            office_service=self._office_service,
        )

    def last_cancellation_for(self, booking_date: date) -> datetime:
        """Bookings can be cancelled until the start of the booked day."""
        return datetime.combine(booking_date, time.min, tzinfo=self._office_service.timezone)

    def list_bookings(
        self,
        caller: User,
        *,
        user: Optional[str] = None,
        office: Optional[str] = None,
        date: Optional[str] = None,
    ) -> list[Booking]:
        user_email = self._user_service.normalise_email(user) if user is not None else None
        if date is not None:
            _parse_date(date)
        if office is not None:
            self._office_service.get_office(office)

        office_ids: Optional[list[str]] = [office] if office is not None else None
        if user_email != caller.email and not caller.permissions.can_manage_all_bookings:
            managed = [o.office_id for o in caller.permissions.offices_can_manage_bookings_for]
            if not managed:
                raise PermissionDeniedError("Not allowed to view other users' bookings")
            if office is not None and office not in managed:
                raise PermissionDeniedError(f"Not allowed to view bookings for office {office}")
            office_ids = office_ids or managed

        return self._repository.list_bookings(
            user_email=user_email,
            office_ids=office_ids,
            date=date,
        )

    def create_booking(
        self,
        caller: User,
        *,
        user: str,
        date: str,
        office_id: str,
        parking: bool = False,
    ) -> Booking:
        user_email = self._user_service.normalise_email(user)
        booking_date = _parse_date(date)
        try:
            office = self._office_service.get_office(office_id)
        except NotFoundError as exc:
            raise ValidationError(str(exc)) from exc

        if not can_manage_bookings_for(caller, user_email=user_email, office_id=office.office_id):
            raise PermissionDeniedError(f"Not allowed to create bookings for {user_email}")

        window = self._office_service.bookable_dates()
        if booking_date < window[0] or booking_date > window[-1]:
            raise ValidationError(
                f"Date {booking_date.isoformat()} is outside the booking window "
                f"{window[0].isoformat()} to {window[-1].isoformat()}"
            )

        self._user_service.ensure_user(user_email)
        booked_user = self._user_service.get_user(user_email)
        week_start, week_end = week_bounds(booking_date)

        booking = Booking(
            booking_id=str(uuid4()),
            user=user_email,
            date=booking_date.isoformat(),
            office=office,
            parking=bool(parking),
            created=_utc_timestamp(self._office_service.now()),
            last_cancellation=_utc_timestamp(self.last_cancellation_for(booking_date)),
        )
        try:
            slot = self._repository.create_booking(
                booking,
                weekly_quota=booked_user.quota,
                week_start=week_start.isoformat(),
                week_end=week_end.isoformat(),
            )
        except DuplicateBookingError as exc:
            raise ConflictError(f"Booking already exists for {user_email} on {booking.date}") from exc
        except WeeklyQuotaExceededError as exc:
            raise ConflictError("User has reached their weekly quota") from exc
        except CapacityError as exc:
            raise ConflictError(str(exc)) from exc

        logger.info(
            "Booking %s created by %s for %s at %s on %s (parking=%s, booked=%s/%s)",
            booking.booking_id,
            caller.email,
            user_email,
            office.office_id,
            booking.date,
            booking.parking,
            slot.booked,
            office.quota,
        )
        return booking

    def cancel_booking(self, caller: User, *, booking_id: str, user: str) -> None:
        user_email = self._user_service.normalise_email(user)
        booking = self._repository.get_booking(booking_id)
        if booking is None or not booking.is_active or booking.user != user_email:
            raise NotFoundError(f"Booking {booking_id} not found")
        if not can_manage_bookings_for(caller, user_email=user_email, office_id=booking.office.office_id):
            raise PermissionDeniedError(f"Not allowed to cancel bookings for {user_email}")

        now = self._office_service.now()
        is_admin_action = caller.permissions.can_manage_all_bookings or caller.permissions.can_manage_office(
            booking.office.office_id
        )
        if not is_admin_action and now >= self.last_cancellation_for(date.fromisoformat(booking.date)):
            raise PermissionDeniedError("Booking can no longer be cancelled")

        if not self._repository.cancel_booking(booking_id, _utc_timestamp(now)):
            raise NotFoundError(f"Booking {booking_id} not found")
        logger.info("Booking %s cancelled by %s", booking_id, caller.email)

    def get_slot(self, office_id: str, day: str) -> OfficeSlot:
        return self._repository.get_slot(office_id, day)

    def purge_expired_bookings(self) -> tuple[int, int]:
        """Delete bookings and slots older than the retention window."""
        cutoff = self._office_service.today() - timedelta(days=self._settings.data_retention_days)
        bookings_deleted, slots_deleted = self._repository.purge_before(cutoff.isoformat())
        logger.info(
            "Retention purge before %s removed %s bookings and %s slots",
            cutoff.isoformat(),
            bookings_deleted,
            slots_deleted,
        )
        return bookings_deleted, slots_deleted
