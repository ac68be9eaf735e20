"""HTTP controller layer for offices and slot availability."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field

from backend.controllers.dependencies import get_current_user, get_office_service, to_http_exception
from backend.domain.models import User
from backend.services.errors import BookingServiceError
from backend.services.office_service import OfficeService
from backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["offices"])


class OfficeRef(BaseModel):
    id: str = Field(min_length=1)
    name: str | None = None


class OfficeResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    quota: int = Field(gt=0)
    parking_quota: int = Field(ge=0, alias="parkingQuota")


class OfficeSlotResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    date: date
    booked: int = Field(ge=0)
    booked_parking: int = Field(ge=0, alias="bookedParking")


class OfficeWithSlotsResponse(OfficeResponse):
    slots: list[OfficeSlotResponse]


@router.get("/offices", response_model=list[OfficeResponse], status_code=status.HTTP_200_OK)
async def list_offices(
    _: User = Depends(get_current_user),
    office_service: OfficeService = Depends(get_office_service),
) -> list[OfficeResponse]:
    return [OfficeResponse.model_validate(office.to_dict()) for office in office_service.list_offices()]


@router.get("/offices/{office_id}", response_model=OfficeWithSlotsResponse, status_code=status.HTTP_200_OK)
async def get_office(
    office_id: str,
    _: User = Depends(get_current_user),
    office_service: OfficeService = Depends(get_office_service),
) -> OfficeWithSlotsResponse:
    try:
        office = office_service.get_office_with_slots(office_id)
        return OfficeWithSlotsResponse.model_validate(office.to_dict())
    except BookingServiceError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected office lookup failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load office",
        ) from exc
