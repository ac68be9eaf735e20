"""HTTP controller layer for users, roles and quotas."""

from __future__ import annotations

from typing import Literal, NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, ConfigDict, Field, field_validator

from backend.controllers.dependencies import get_current_user, get_user_service, to_http_exception
from backend.controllers.office_controller import OfficeRef, OfficeResponse
from backend.domain.models import ROLE_NAMES, ROLE_OFFICE_ADMIN, Role, User
from backend.services.errors import BookingServiceError
from backend.services.user_service import UNSET, UserService
from backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["users"])


class RoleRequest(BaseModel):
    name: Literal["Default", "Office Admin", "System Admin"]
    offices: list[OfficeRef] = Field(default_factory=list)

    def to_role(self) -> Role:
        if self.name == ROLE_OFFICE_ADMIN:
            return Role(name=self.name, office_ids=tuple(office.id for office in self.offices))
        return Role(name=self.name)


class PutUserRequest(BaseModel):
    quota: Optional[int] = None
    role: Optional[RoleRequest] = None


class RegisterUserRequest(BaseModel):
    action: Literal["Register"]
    email: str = Field(min_length=3)


class RoleResponse(BaseModel):
    name: str
    offices: Optional[list[OfficeRef]] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        if value not in ROLE_NAMES:
            raise ValueError(f"unknown role {value}")
        return value


class PermissionsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    can_edit_users: bool = Field(alias="canEditUsers")
    can_manage_all_bookings: bool = Field(alias="canManageAllBookings")
    can_view_admin_panel: bool = Field(alias="canViewAdminPanel")
    can_view_users: bool = Field(alias="canViewUsers")
    offices_can_manage_bookings_for: list[OfficeResponse] = Field(alias="officesCanManageBookingsFor")


class UserResponse(BaseModel):
    email: str
    quota: int = Field(ge=0)
    admin: bool
    role: RoleResponse
    permissions: PermissionsResponse

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls.model_validate(user.to_dict())


class UserQueryResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    users: list[UserResponse]
    pagination_token: Optional[str] = Field(default=None, alias="paginationToken")


def _raise_for(exc: Exception, action: str) -> NoReturn:
    if isinstance(exc, BookingServiceError):
        raise to_http_exception(exc) from exc
    logger.exception("Unexpected failure while trying to %s", action)
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}",
    ) from exc


@router.get(
    "/users",
    response_model=UserQueryResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_200_OK,
)
async def query_users(
    role: Optional[str] = Query(default=None),
    quota: Optional[str] = Query(default=None),
    email_prefix: Optional[str] = Query(default=None, alias="emailPrefix"),
    pagination_token: Optional[str] = Query(default=None, alias="paginationToken"),
    caller: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
) -> UserQueryResponse:
    try:
        users, next_token = user_service.query_users(
            caller,
            role=role,
            quota=quota,
            email_prefix=email_prefix,
            pagination_token=pagination_token,
        )
        return UserQueryResponse(
            users=[UserResponse.from_user(user) for user in users],
            pagination_token=next_token,
        )
    except Exception as exc:
        _raise_for(exc, "query users")


@router.post("/users", status_code=status.HTTP_204_NO_CONTENT)
async def register_user(
    payload: RegisterUserRequest,
    user_service: UserService = Depends(get_user_service),
) -> Response:
    try:
        user_service.register_user(payload.email)
    except Exception as exc:
        _raise_for(exc, "register user")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/users/{email}",
    response_model=UserResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_200_OK,
)
async def get_user(
    email: str,
    caller: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
) -> UserResponse:
    try:
        return UserResponse.from_user(user_service.get_user_for(caller, email))
    except Exception as exc:
        _raise_for(exc, "load user")


@router.put(
    "/users/{email}",
    response_model=UserResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_200_OK,
)
async def put_user(
    email: str,
    payload: PutUserRequest,
    caller: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
) -> UserResponse:
    changes: dict[str, object] = {}
    if "quota" in payload.model_fields_set:
        changes["quota"] = payload.quota
    if payload.role is not None:
        changes["role"] = payload.role.to_role()
    try:
        user = user_service.update_user(
            caller,
            email,
            quota=changes.get("quota", UNSET),
            role=changes.get("role", UNSET),
        )
        return UserResponse.from_user(user)
    except Exception as exc:
        _raise_for(exc, "update user")
