"""Schemas for the role admin endpoints."""

from pydantic import BaseModel, Field, field_validator

from widgetadmin.schemas.auth import PermissionOut, RoleOut


def _validate_role_name(value: str) -> str:
    stripped = (value or "").strip()
    if not stripped:
        raise ValueError("must be non-empty")
    return stripped


class RoleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=255)
    permission_ids: list[int] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _validate_role_name(v)


class RoleUpdate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=255)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _validate_role_name(v)


class RoleSummary(RoleOut):
    permission_count: int = 0


class RoleDetail(RoleOut):
    permissions: list[PermissionOut] = Field(default_factory=list)


class RolesListResponse(BaseModel):
    roles: list[RoleSummary]


class RoleResponse(BaseModel):
    role: RoleDetail


class RolePermissionsUpdate(BaseModel):
    """Replaces the role's permission set."""

    permission_ids: list[int]


class RolePermissionsResponse(BaseModel):
    permissions: list[PermissionOut]


class AssignmentResponse(BaseModel):
    """Result of an idempotent assign/remove; `changed` is False when it was a no-op."""

    message: str
    changed: bool
