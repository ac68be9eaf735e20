"""HTTP controller layer for bookings."""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, ConfigDict, Field

from backend.controllers.dependencies import get_booking_service, get_current_user, to_http_exception
from backend.controllers.office_controller import OfficeRef
from backend.domain.models import User
from backend.services.booking_service import BookingService
from backend.services.errors import BookingServiceError
from backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["bookings"])


class CreateBookingRequest(BaseModel):
    user: str = Field(min_length=3)
    date: date
    office: OfficeRef
    parking: bool = False


class BookingResponse(BaseModel):
    """Field order is part of the wire format."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    created: str
    user: str
    date: str
    office: OfficeRef
    last_cancellation: str = Field(alias="lastCancellation")
    parking: bool


@router.get("/bookings", response_model=list[BookingResponse], status_code=status.HTTP_200_OK)
async def list_bookings(
    user: Optional[str] = Query(default=None),
    office: Optional[str] = Query(default=None),
    date: Optional[str] = Query(default=None),
    caller: User = Depends(get_current_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> list[BookingResponse]:
    try:
        bookings = booking_service.list_bookings(caller, user=user, office=office, date=date)
        return [BookingResponse.model_validate(booking.to_dict()) for booking in bookings]
    except BookingServiceError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected booking listing failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to list bookings",
        ) from exc


@router.post("/bookings", response_model=BookingResponse, status_code=status.HTTP_200_OK)
async def create_booking(
    payload: CreateBookingRequest,
    caller: User = Depends(get_current_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = booking_service.create_booking(
            caller,
            user=payload.user,
            date=payload.date.isoformat(),
            office_id=payload.office.id,
            parking=payload.parking,
        )
        return BookingResponse.model_validate(booking.to_dict())
    except BookingServiceError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected booking creation failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create booking",
        ) from exc


@router.delete("/bookings/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_booking(
    booking_id: str,
    user: str = Query(min_length=3),
    caller: User = Depends(get_current_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> Response:
    try:
        booking_service.cancel_booking(caller, booking_id=booking_id, user=user)
    except BookingServiceError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected booking cancellation failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to cancel booking",
        ) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)
