"""Permission catalog endpoints. Reads need 'permissions.view'; writes need the 'admin' role."""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from widgetadmin.api.v1.auth import requires_permission, requires_role
from widgetadmin.core.database import get_db
from widgetadmin.schemas.auth import CurrentSession, MessageResponse, PermissionOut
from widgetadmin.schemas.permissions import (
    CategoriesResponse,
    PermissionCreate,
    PermissionResponse,
    PermissionsListResponse,
    PermissionUpdate,
)
from widgetadmin.services import rbac

router = APIRouter()

CanView = Annotated[CurrentSession, Depends(requires_permission("permissions.view"))]
AdminOnly = Annotated[CurrentSession, Depends(requires_role("admin"))]


def _listing(permissions) -> PermissionsListResponse:
    return PermissionsListResponse(
        permissions=[PermissionOut.model_validate(p) for p in permissions]
    )


@router.get("", response_model=PermissionsListResponse)
def list_permissions(
    _session: CanView,
    db: Annotated[Session, Depends(get_db)],
) -> PermissionsListResponse:
    return _listing(rbac.list_permissions(db))


@router.get("/categories", response_model=CategoriesResponse)
def list_categories(
    _session: CanView,
    db: Annotated[Session, Depends(get_db)],
) -> CategoriesResponse:
    return CategoriesResponse(categories=rbac.list_categories(db))


@router.get("/categories/{category}", response_model=PermissionsListResponse)
def list_permissions_in_category(
    category: str,
    _session: CanView,
    db: Annotated[Session, Depends(get_db)],
) -> PermissionsListResponse:
    return _listing(rbac.list_permissions(db, category=category))


@router.get("/{permission_id}", response_model=PermissionResponse)
def get_permission(
    permission_id: int,
    _session: CanView,
    db: Annotated[Session, Depends(get_db)],
) -> PermissionResponse:
    permission = rbac.get_permission(db, permission_id)
    return PermissionResponse(permission=PermissionOut.model_validate(permission))


@router.post("", response_model=PermissionResponse, status_code=status.HTTP_201_CREATED)
def create_permission(
    body: PermissionCreate,
    _admin: AdminOnly,
    db: Annotated[Session, Depends(get_db)],
) -> PermissionResponse:
    """Add a permission to the global catalog. Category defaults to the name's prefix."""
    permission = rbac.create_permission(db, body.name, body.description, body.category)
    return PermissionResponse(permission=PermissionOut.model_validate(permission))


@router.put("/{permission_id}", response_model=PermissionResponse)
def update_permission(
    permission_id: int,
    body: PermissionUpdate,
    _admin: AdminOnly,
    db: Annotated[Session, Depends(get_db)],
) -> PermissionResponse:
    permission = rbac.get_permission(db, permission_id)
    permission = rbac.update_permission(
        db, permission, body.name, body.description, body.category
    )
    return PermissionResponse(permission=PermissionOut.model_validate(permission))


@router.delete("/{permission_id}", response_model=MessageResponse)
def delete_permission(
    permission_id: int,
    _admin: AdminOnly,
    db: Annotated[Session, Depends(get_db)],
) -> MessageResponse:
    """Delete a permission and revoke it from every role."""
    permission = rbac.get_permission(db, permission_id)
    rbac.delete_permission(db, permission)
    return MessageResponse(message="Permission deleted successfully")
