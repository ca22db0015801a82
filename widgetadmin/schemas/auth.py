"""Request/response schemas for auth endpoints and the per-request session."""

import re
from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from widgetadmin.core.security import (
    EMAIL_MAX_LEN,
    FULL_NAME_MAX_LEN,
    PASSWORD_MAX_LEN,
    PASSWORD_MIN_LEN,
    primary_role,
)

ADMIN_ROLE = "admin"

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_email(value: str) -> str:
    """Trim and lowercase an email; reject anything without a local part and a dotted domain."""
    normalized = (value or "").strip().lower()
    if not _EMAIL_RE.match(normalized):
        raise ValueError("must be a valid email address")
    return normalized


def normalize_full_name(value: str) -> str:
    stripped = (value or "").strip()
    if not stripped:
        raise ValueError("must be non-empty")
    return stripped


class LoginRequest(BaseModel):
    """Credentials for login."""

    email: str = Field(..., min_length=3, max_length=EMAIL_MAX_LEN)
    password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LEN)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)


class RegisterRequest(BaseModel):
    """Self-service registration into the tenant selected by X-Tenant."""

    email: str = Field(..., min_length=3, max_length=EMAIL_MAX_LEN)
    password: str = Field(..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)
    full_name: str = Field(..., min_length=1, max_length=FULL_NAME_MAX_LEN)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator("full_name")
    @classmethod
    def validate_full_name(cls, v: str) -> str:
        return normalize_full_name(v)


class PasswordChangeRequest(BaseModel):
    current_password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LEN)
    new_password: str = Field(..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)


class RoleOut(BaseModel):
    id: int
    name: str
    description: str | None = None
    tenant_id: int | None = None

    class Config:
        from_attributes = True


class PermissionOut(BaseModel):
    id: int
    name: str
    description: str | None = None
    category: str | None = None

    class Config:
        from_attributes = True


class SessionUser(BaseModel):
    """User row as seen by the authorization layer (no password hash)."""

    id: int
    tenant_id: int
    email: str
    full_name: str
    is_active: bool
    last_login: datetime | None = None

    class Config:
        from_attributes = True


class CurrentSession(BaseModel):
    """
    Live per-request view of a user and its grants.

    Built from the database on every request; token claims never feed into it.
    """

    user: SessionUser
    roles: list[RoleOut] = Field(default_factory=list)
    permissions: list[PermissionOut] = Field(default_factory=list)

    @property
    def role_names(self) -> frozenset[str]:
        return frozenset(r.name for r in self.roles)

    @property
    def permission_names(self) -> frozenset[str]:
        return frozenset(p.name for p in self.permissions)

    @property
    def primary_role(self) -> str:
        return primary_role([r.name for r in self.roles])

    @property
    def is_admin(self) -> bool:
        return ADMIN_ROLE in self.role_names


class UserOut(BaseModel):
    """User as returned to clients. `role` is derived from `roles` for single-role consumers."""

    id: int
    tenant_id: int
    email: str
    full_name: str
    is_active: bool
    last_login: datetime | None = None
    role: str
    roles: list[RoleOut]
    permissions: list[PermissionOut] | None = None

    @classmethod
    def build(cls, user, roles, permissions=None) -> "UserOut":
        role_list = [RoleOut.model_validate(r) for r in roles]
        return cls(
            id=user.id,
            tenant_id=user.tenant_id,
            email=user.email,
            full_name=user.full_name,
            is_active=user.is_active,
            last_login=user.last_login,
            role=primary_role([r.name for r in role_list]),
            roles=role_list,
            permissions=(
                [PermissionOut.model_validate(p) for p in permissions]
                if permissions is not None
                else None
            ),
        )


class AuthResponse(BaseModel):
    """Token plus user returned by login and register."""

    token: str = Field(..., description="JWT access token; send as 'Authorization: Bearer <token>'")
    token_type: str = Field(default="bearer", description="Token type")
    user: UserOut


class MeResponse(BaseModel):
    user: UserOut


class MessageResponse(BaseModel):
    message: str
