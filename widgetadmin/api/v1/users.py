"""User admin endpoints, scoped to the caller's tenant, plus user-role assignment."""

import math
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from widgetadmin.api.v1.auth import get_current_session, requires_permission, requires_role
from widgetadmin.core.database import get_db
from widgetadmin.core.errors import InsufficientGrant
from widgetadmin.schemas.auth import CurrentSession, MessageResponse, RoleOut, UserOut
from widgetadmin.schemas.roles import AssignmentResponse
from widgetadmin.schemas.users import (
    Pagination,
    UserCreate,
    UserResponse,
    UserRoleAssign,
    UserRolesResponse,
    UsersListResponse,
    UserUpdate,
)
from widgetadmin.services import authorization, credentials, rbac
from widgetadmin.services.tenants import get_tenant

router = APIRouter()


def _user_out(db: Session, user, with_permissions: bool = False) -> UserOut:
    grants = rbac.resolve(db, user.id)
    return UserOut.build(
        user, grants.roles, grants.permissions if with_permissions else None
    )


@router.get("", response_model=UsersListResponse)
def list_users(
    session: Annotated[CurrentSession, Depends(requires_permission("users.view"))],
    db: Annotated[Session, Depends(get_db)],
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
    search: Annotated[str | None, Query(max_length=255)] = None,
) -> UsersListResponse:
    users, total = credentials.search_users(db, session.user.tenant_id, page, limit, search)
    return UsersListResponse(
        users=[_user_out(db, u) for u in users],
        pagination=Pagination(
            total=total,
            page=page,
            limit=limit,
            total_pages=math.ceil(total / limit) if total else 0,
        ),
    )


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    body: UserCreate,
    session: Annotated[CurrentSession, Depends(requires_permission("users.create"))],
    db: Annotated[Session, Depends(get_db)],
) -> UserResponse:
    """
    Create a user in the caller's tenant, with the default 'user' role unless
    role_ids is given. Explicit role_ids count as role assignment and need 'admin'.
    """
    if body.role_ids:
        authorization.require_any_role(session, ["admin"])
    tenant = get_tenant(db, session.user.tenant_id)
    user = credentials.create_user(
        db, tenant, body.email, body.password, body.full_name, body.role_ids
    )
    return UserResponse(user=_user_out(db, user))


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: int,
    session: Annotated[CurrentSession, Depends(get_current_session)],
    db: Annotated[Session, Depends(get_db)],
) -> UserResponse:
    """Own record, or any tenant user with 'users.view'."""
    if user_id != session.user.id:
        authorization.require_any_permission(session, ["users.view"])
    user = credentials.get_tenant_user(db, user_id, session.user.tenant_id)
    return UserResponse(user=_user_out(db, user, with_permissions=True))


@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int,
    body: UserUpdate,
    session: Annotated[CurrentSession, Depends(requires_permission("users.edit"))],
    db: Annotated[Session, Depends(get_db)],
) -> UserResponse:
    user = credentials.get_tenant_user(db, user_id, session.user.tenant_id)
    if user.id == session.user.id and body.is_active is False:
        raise InsufficientGrant("Cannot deactivate your own account")
    user = credentials.update_user(
        db, user, email=body.email, full_name=body.full_name, is_active=body.is_active
    )
    return UserResponse(user=_user_out(db, user))


@router.delete("/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: int,
    session: Annotated[CurrentSession, Depends(requires_permission("users.delete"))],
    db: Annotated[Session, Depends(get_db)],
) -> MessageResponse:
    user = credentials.get_tenant_user(db, user_id, session.user.tenant_id)
    if user.id == session.user.id:
        raise InsufficientGrant("Cannot delete your own account")
    credentials.delete_user(db, user)
    return MessageResponse(message="User deleted successfully")


@router.get("/{user_id}/roles", response_model=UserRolesResponse)
def get_user_roles(
    user_id: int,
    session: Annotated[CurrentSession, Depends(requires_permission("users.view", "roles.view"))],
    db: Annotated[Session, Depends(get_db)],
) -> UserRolesResponse:
    user = credentials.get_tenant_user(db, user_id, session.user.tenant_id)
    roles = rbac.resolve(db, user.id).roles
    return UserRolesResponse(roles=[RoleOut.model_validate(r) for r in roles])


@router.post("/{user_id}/roles", response_model=AssignmentResponse)
def assign_user_role(
    user_id: int,
    body: UserRoleAssign,
    session: Annotated[CurrentSession, Depends(requires_role("admin"))],
    db: Annotated[Session, Depends(get_db)],
) -> AssignmentResponse:
    """Assign a role. Assigning a role the user already holds succeeds with changed=false."""
    user = credentials.get_tenant_user(db, user_id, session.user.tenant_id)
    role = rbac.get_role(db, body.role_id, session.user.tenant_id)
    changed = rbac.assign_role(db, user.id, role.id)
    return AssignmentResponse(message="Role assigned", changed=changed)


@router.delete("/{user_id}/roles/{role_id}", response_model=AssignmentResponse)
def remove_user_role(
    user_id: int,
    role_id: int,
    session: Annotated[CurrentSession, Depends(requires_role("admin"))],
    db: Annotated[Session, Depends(get_db)],
) -> AssignmentResponse:
    user = credentials.get_tenant_user(db, user_id, session.user.tenant_id)
    changed = rbac.remove_role(db, user.id, role_id)
    return AssignmentResponse(message="Role removed", changed=changed)
