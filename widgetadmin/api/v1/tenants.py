"""Current-tenant branding endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from widgetadmin.api.v1.auth import get_current_session, requires_permission
from widgetadmin.core.database import get_db
from widgetadmin.schemas.auth import CurrentSession
from widgetadmin.schemas.tenants import TenantOut, TenantResponse, TenantUpdate
from widgetadmin.services.tenants import get_tenant, update_branding

router = APIRouter()


@router.get("/current", response_model=TenantResponse)
def get_current_tenant(
    session: Annotated[CurrentSession, Depends(get_current_session)],
    db: Annotated[Session, Depends(get_db)],
) -> TenantResponse:
    tenant = get_tenant(db, session.user.tenant_id)
    return TenantResponse(tenant=TenantOut.model_validate(tenant))


@router.put("/current", response_model=TenantResponse)
def update_current_tenant(
    body: TenantUpdate,
    session: Annotated[CurrentSession, Depends(requires_permission("settings.manage"))],
    db: Annotated[Session, Depends(get_db)],
) -> TenantResponse:
    tenant = get_tenant(db, session.user.tenant_id)
    tenant = update_branding(db, tenant, body.model_dump(exclude_unset=True))
    return TenantResponse(tenant=TenantOut.model_validate(tenant))
