"""Controller layer for login, client configuration and health."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, ConfigDict, Field

from backend.controllers.dependencies import get_auth_service, get_office_service, get_user_service
from backend.controllers.office_controller import OfficeResponse
from backend.services.auth_service import (
    AuthService,
    InvalidLoginSecretError,
    LoginNotConfiguredError,
)
from backend.services.errors import ValidationError
from backend.services.office_service import OfficeService
from backend.services.user_service import UserService
from backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["auth"])


class LoginRequest(BaseModel):
    email: str = Field(min_length=3)
    secret: str = Field(min_length=1)


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class ClientConfigResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email_regex: str = Field(alias="emailRegex")
    advance_booking_days: int = Field(ge=0, alias="advanceBookingDays")
    data_retention_days: int = Field(ge=0, alias="dataRetentionDays")
    default_weekly_quota: int = Field(ge=0, alias="defaultWeeklyQuota")
    office_quotas: list[OfficeResponse] = Field(alias="officeQuotas")


class HealthResponse(BaseModel):
    status: str
    version: str


@router.post("/login", response_model=LoginResponse, status_code=status.HTTP_200_OK)
async def login(
    payload: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
    user_service: UserService = Depends(get_user_service),
) -> LoginResponse:
    try:
        email = user_service.normalise_email(payload.email)
        bearer = auth_service.login(email, payload.secret)
        user_service.ensure_user(email)
        return LoginResponse(access_token=bearer)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except (LoginNotConfiguredError, InvalidLoginSecretError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected login failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to login",
        ) from exc


@router.get("/config", response_model=ClientConfigResponse, status_code=status.HTTP_200_OK)
async def client_config(
    request: Request,
    office_service: OfficeService = Depends(get_office_service),
) -> ClientConfigResponse:
    settings = request.app.state.settings
    return ClientConfigResponse(
        email_regex=settings.email_regex,
        advance_booking_days=settings.advance_booking_days,
        data_retention_days=settings.data_retention_days,
        default_weekly_quota=settings.default_weekly_quota,
        office_quotas=[
            OfficeResponse.model_validate(office.to_dict())
            for office in office_service.list_offices()
        ],
    )


@router.get("/health", response_model=HealthResponse, status_code=status.HTTP_200_OK)
async def health(request: Request) -> HealthResponse:
    return HealthResponse(status="ok", version=request.app.state.settings.app_version)
