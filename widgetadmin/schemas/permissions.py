"""Schemas for the permission catalog endpoints."""

import re

from pydantic import BaseModel, Field, field_validator

from widgetadmin.schemas.auth import PermissionOut

_PERMISSION_NAME_RE = re.compile(r"^[a-z][a-z0-9_-]*\.[a-z][a-z0-9_-]*$")


def validate_permission_name(value: str) -> str:
    """Permission names are lowercase 'category.action'."""
    normalized = (value or "").strip().lower()
    if not _PERMISSION_NAME_RE.match(normalized):
        raise ValueError("must have the form 'category.action'")
    return normalized


class PermissionCreate(BaseModel):
    name: str = Field(..., min_length=3, max_length=100)
    description: str | None = Field(default=None, max_length=255)
    category: str | None = Field(default=None, max_length=100)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return validate_permission_name(v)


class PermissionUpdate(PermissionCreate):
    pass


class PermissionsListResponse(BaseModel):
    permissions: list[PermissionOut]


class PermissionResponse(BaseModel):
    permission: PermissionOut


class CategoriesResponse(BaseModel):
    categories: list[str]
