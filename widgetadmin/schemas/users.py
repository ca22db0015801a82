"""Schemas for the user admin endpoints."""

from pydantic import BaseModel, Field, field_validator

from widgetadmin.core.security import (
    EMAIL_MAX_LEN,
    FULL_NAME_MAX_LEN,
    PASSWORD_MAX_LEN,
    PASSWORD_MIN_LEN,
)
from widgetadmin.schemas.auth import RoleOut, UserOut, normalize_email, normalize_full_name


class UserCreate(BaseModel):
    email: str = Field(..., min_length=3, max_length=EMAIL_MAX_LEN)
    password: str = Field(..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)
    full_name: str = Field(..., min_length=1, max_length=FULL_NAME_MAX_LEN)
    role_ids: list[int] = Field(default_factory=list)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator("full_name")
    @classmethod
    def validate_full_name(cls, v: str) -> str:
        return normalize_full_name(v)


class UserUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    email: str | None = Field(default=None, min_length=3, max_length=EMAIL_MAX_LEN)
    full_name: str | None = Field(default=None, min_length=1, max_length=FULL_NAME_MAX_LEN)
    is_active: bool | None = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str | None) -> str | None:
        return None if v is None else normalize_email(v)

    @field_validator("full_name")
    @classmethod
    def validate_full_name(cls, v: str | None) -> str | None:
        return None if v is None else normalize_full_name(v)


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int


class UsersListResponse(BaseModel):
    users: list[UserOut]
    pagination: Pagination


class UserResponse(BaseModel):
    user: UserOut


class UserRoleAssign(BaseModel):
    role_id: int


class UserRolesResponse(BaseModel):
    roles: list[RoleOut]
