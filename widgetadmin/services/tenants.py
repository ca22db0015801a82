"""Tenant lookup from the X-Tenant header and branding updates."""

import logging
from typing import Any

from sqlalchemy.orm import Session

from widgetadmin.core.errors import NotFound
from widgetadmin.models import Tenant

logger = logging.getLogger(__name__)

BRANDING_FIELDS = (
    "name",
    "logo_url",
    "primary_color",
    "secondary_color",
    "domain",
    "welcome_message",
)


def find_tenant(db: Session, slug: str) -> Tenant | None:
    return db.query(Tenant).filter(Tenant.slug == slug.strip().lower()).first()


def resolve_tenant(db: Session, slug: str | None, default_slug: str) -> Tenant:
    """Tenant named by the X-Tenant header, or the default tenant when the header is absent."""
    tenant = find_tenant(db, slug or default_slug)
    if tenant is None:
        raise NotFound("Tenant not found")
    return tenant


def get_tenant(db: Session, tenant_id: int) -> Tenant:
    tenant = db.get(Tenant, tenant_id)
    if tenant is None:
        raise NotFound("Tenant not found")
    return tenant


def update_branding(db: Session, tenant: Tenant, changes: dict[str, Any]) -> Tenant:
    for field in BRANDING_FIELDS:
        if field in changes and changes[field] is not None:
            setattr(tenant, field, changes[field])
    db.commit()
    logger.info("Updated branding for tenant=%s fields=%s", tenant.slug, sorted(changes))
    return tenant
