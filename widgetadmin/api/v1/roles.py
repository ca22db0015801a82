"""Role admin endpoints: CRUD, role permissions, and users holding a role."""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from widgetadmin.api.v1.auth import requires_permission
from widgetadmin.core.database import get_db
from widgetadmin.schemas.auth import CurrentSession, MessageResponse, PermissionOut, UserOut
from widgetadmin.schemas.roles import (
    AssignmentResponse,
    RoleCreate,
    RoleDetail,
    RolePermissionsResponse,
    RolePermissionsUpdate,
    RoleResponse,
    RolesListResponse,
    RoleSummary,
    RoleUpdate,
)
from widgetadmin.schemas.users import Pagination, UsersListResponse
from widgetadmin.services import rbac

router = APIRouter()


def _role_detail(db: Session, role) -> RoleDetail:
    permissions = rbac.permissions_for_role(db, role.id)
    return RoleDetail(
        id=role.id,
        name=role.name,
        description=role.description,
        tenant_id=role.tenant_id,
        permissions=[PermissionOut.model_validate(p) for p in permissions],
    )


@router.get("", response_model=RolesListResponse)
def list_roles(
    session: Annotated[CurrentSession, Depends(requires_permission("roles.view"))],
    db: Annotated[Session, Depends(get_db)],
) -> RolesListResponse:
    """Roles visible to the caller's tenant (tenant roles plus system-wide roles)."""
    rows = rbac.list_roles(db, session.user.tenant_id)
    return RolesListResponse(
        roles=[
            RoleSummary(
                id=role.id,
                name=role.name,
                description=role.description,
                tenant_id=role.tenant_id,
                permission_count=count,
            )
            for role, count in rows
        ]
    )


@router.get("/{role_id}", response_model=RoleResponse)
def get_role(
    role_id: int,
    session: Annotated[CurrentSession, Depends(requires_permission("roles.view"))],
    db: Annotated[Session, Depends(get_db)],
) -> RoleResponse:
    role = rbac.get_role(db, role_id, session.user.tenant_id)
    return RoleResponse(role=_role_detail(db, role))


@router.post("", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
def create_role(
    body: RoleCreate,
    session: Annotated[CurrentSession, Depends(requires_permission("roles.create"))],
    db: Annotated[Session, Depends(get_db)],
) -> RoleResponse:
    """Create a role scoped to the caller's tenant, optionally with an initial permission set."""
    role = rbac.create_role(
        db,
        session.user.tenant_id,
        body.name,
        body.description,
        body.permission_ids,
    )
    return RoleResponse(role=_role_detail(db, role))


@router.put("/{role_id}", response_model=RoleResponse)
def update_role(
    role_id: int,
    body: RoleUpdate,
    session: Annotated[CurrentSession, Depends(requires_permission("roles.edit"))],
    db: Annotated[Session, Depends(get_db)],
) -> RoleResponse:
    role = rbac.get_owned_role(db, role_id, session.user.tenant_id)
    role = rbac.update_role(db, role, body.name, body.description)
    return RoleResponse(role=_role_detail(db, role))


@router.delete("/{role_id}", response_model=MessageResponse)
def delete_role(
    role_id: int,
    session: Annotated[CurrentSession, Depends(requires_permission("roles.delete"))],
    db: Annotated[Session, Depends(get_db)],
) -> MessageResponse:
    """Delete a tenant role and its assignments. System-wide roles are refused with 403."""
    role = rbac.get_owned_role(db, role_id, session.user.tenant_id)
    rbac.delete_role(db, role)
    return MessageResponse(message="Role deleted successfully")


@router.get("/{role_id}/permissions", response_model=RolePermissionsResponse)
def get_role_permissions(
    role_id: int,
    session: Annotated[CurrentSession, Depends(requires_permission("roles.view"))],
    db: Annotated[Session, Depends(get_db)],
) -> RolePermissionsResponse:
    role = rbac.get_role(db, role_id, session.user.tenant_id)
    permissions = rbac.permissions_for_role(db, role.id)
    return RolePermissionsResponse(
        permissions=[PermissionOut.model_validate(p) for p in permissions]
    )


@router.put("/{role_id}/permissions", response_model=RolePermissionsResponse)
def set_role_permissions(
    role_id: int,
    body: RolePermissionsUpdate,
    session: Annotated[CurrentSession, Depends(requires_permission("permissions.manage"))],
    db: Annotated[Session, Depends(get_db)],
) -> RolePermissionsResponse:
    """Replace the role's permission set with exactly `permission_ids`."""
    role = rbac.get_owned_role(db, role_id, session.user.tenant_id)
    permissions = rbac.set_role_permissions(db, role, body.permission_ids)
    return RolePermissionsResponse(
        permissions=[PermissionOut.model_validate(p) for p in permissions]
    )


@router.post("/{role_id}/permissions/{permission_id}", response_model=AssignmentResponse)
def grant_permission(
    role_id: int,
    permission_id: int,
    session: Annotated[CurrentSession, Depends(requires_permission("permissions.manage"))],
    db: Annotated[Session, Depends(get_db)],
) -> AssignmentResponse:
    """Grant one permission. Granting an already-held permission succeeds with changed=false."""
    role = rbac.get_owned_role(db, role_id, session.user.tenant_id)
    permission = rbac.get_permission(db, permission_id)
    changed = rbac.assign_permission(db, role.id, permission.id)
    return AssignmentResponse(message="Permission assigned", changed=changed)


@router.delete("/{role_id}/permissions/{permission_id}", response_model=AssignmentResponse)
def revoke_permission(
    role_id: int,
    permission_id: int,
    session: Annotated[CurrentSession, Depends(requires_permission("permissions.manage"))],
    db: Annotated[Session, Depends(get_db)],
) -> AssignmentResponse:
    role = rbac.get_owned_role(db, role_id, session.user.tenant_id)
    changed = rbac.remove_permission(db, role.id, permission_id)
    return AssignmentResponse(message="Permission removed", changed=changed)


@router.get("/{role_id}/users", response_model=UsersListResponse)
def get_role_users(
    role_id: int,
    session: Annotated[
        CurrentSession, Depends(requires_permission("roles.view", "users.view"))
    ],
    db: Annotated[Session, Depends(get_db)],
) -> UsersListResponse:
    """Users of the caller's tenant holding the role."""
    role = rbac.get_role(db, role_id, session.user.tenant_id)
    users = rbac.users_with_role(db, role.id, session.user.tenant_id)
    items = [UserOut.build(u, rbac.resolve(db, u.id).roles) for u in users]
    return UsersListResponse(
        users=items,
        pagination=Pagination(total=len(items), page=1, limit=len(items), total_pages=1),
    )
