"""Schemas for tenant branding."""

import re

from pydantic import BaseModel, Field, field_validator

_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


class TenantOut(BaseModel):
    id: int
    name: str
    slug: str
    logo_url: str | None = None
    primary_color: str | None = None
    secondary_color: str | None = None
    domain: str | None = None
    welcome_message: str | None = None

    class Config:
        from_attributes = True


class TenantUpdate(BaseModel):
    """Branding fields; omitted fields are left unchanged. The slug is immutable."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    logo_url: str | None = Field(default=None, max_length=1024)
    primary_color: str | None = None
    secondary_color: str | None = None
    domain: str | None = Field(default=None, max_length=255)
    welcome_message: str | None = None

    @field_validator("primary_color", "secondary_color")
    @classmethod
    def validate_color(cls, v: str | None) -> str | None:
        if v is None:
            return None
        if not _COLOR_RE.match(v.strip()):
            raise ValueError("must be a hex color like #3b82f6")
        return v.strip().lower()


class TenantResponse(BaseModel):
    tenant: TenantOut
