"""Login/register endpoints and the auth dependencies (get_current_session, requires_role, requires_permission)."""

import logging
from collections.abc import Callable
from typing import Annotated

from fastapi import APIRouter, Depends, Header, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from widgetadmin.core.config import settings
from widgetadmin.core.database import get_db
from widgetadmin.core.errors import InvalidCredentials, InvalidToken, NotFound
from widgetadmin.core.security import issue_access_token, verify_access_token
from widgetadmin.models import User
from widgetadmin.schemas.auth import (
    AuthResponse,
    CurrentSession,
    LoginRequest,
    MeResponse,
    MessageResponse,
    PasswordChangeRequest,
    RegisterRequest,
    UserOut,
)
from widgetadmin.services import authorization
from widgetadmin.services.credentials import change_password, create_user, verify_credentials
from widgetadmin.services.rbac import resolve
from widgetadmin.services.session import load_session
from widgetadmin.services.tenants import resolve_tenant

logger = logging.getLogger(__name__)

router = APIRouter()
security = HTTPBearer(auto_error=False)


def get_current_session(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
) -> CurrentSession:
    """Dependency: require a valid Bearer token and return the live session. Raises 401 otherwise."""
    if credentials is None:
        raise InvalidToken("Not authenticated")
    user_id = verify_access_token(credentials.credentials)
    return load_session(db, user_id)


def requires_role(*roles: str) -> Callable[..., CurrentSession]:
    """Dependency factory: 401 without a session, 403 unless the session holds one of `roles`."""

    def dependency(
        session: Annotated[CurrentSession, Depends(get_current_session)],
    ) -> CurrentSession:
        return authorization.require_any_role(session, roles)

    return dependency


def requires_permission(*permissions: str) -> Callable[..., CurrentSession]:
    """Dependency factory: 401 without a session, 403 unless admin or holding one of `permissions`."""

    def dependency(
        session: Annotated[CurrentSession, Depends(get_current_session)],
    ) -> CurrentSession:
        return authorization.require_any_permission(session, permissions)

    return dependency


def _auth_response(db: Session, user: User) -> AuthResponse:
    grants = resolve(db, user.id)
    token = issue_access_token(user, [r.name for r in grants.roles])
    return AuthResponse(token=token, user=UserOut.build(user, grants.roles))


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(
    body: RegisterRequest,
    db: Annotated[Session, Depends(get_db)],
    x_tenant: Annotated[str | None, Header()] = None,
) -> AuthResponse:
    """Create a user with the default 'user' role in the selected tenant and sign them in."""
    tenant = resolve_tenant(db, x_tenant, settings.DEFAULT_TENANT_SLUG)
    user = create_user(db, tenant, body.email, body.password, body.full_name)
    return _auth_response(db, user)


@router.post("/login", response_model=AuthResponse)
def login(
    body: LoginRequest,
    db: Annotated[Session, Depends(get_db)],
    x_tenant: Annotated[str | None, Header()] = None,
) -> AuthResponse:
    """
    Authenticate with email and password; returns a JWT access token and the user.
    Include the token in the Authorization header as: Bearer <token>
    """
    try:
        tenant = resolve_tenant(db, x_tenant, settings.DEFAULT_TENANT_SLUG)
    except NotFound as e:
        raise InvalidCredentials() from e
    user = verify_credentials(db, tenant, body.email, body.password)
    logger.info("Login succeeded: tenant=%s user_id=%s", tenant.slug, user.id)
    return _auth_response(db, user)


@router.get("/me", response_model=MeResponse)
def me(
    session: Annotated[CurrentSession, Depends(get_current_session)],
) -> MeResponse:
    """Current user with live roles and permissions."""
    return MeResponse(
        user=UserOut.build(session.user, session.roles, session.permissions)
    )


@router.post("/logout", response_model=MessageResponse)
def logout(
    _session: Annotated[CurrentSession, Depends(get_current_session)],
) -> MessageResponse:
    """Advisory only: tokens stay valid until expiry; clients discard theirs."""
    return MessageResponse(message="Logged out successfully")


@router.put("/password", response_model=MessageResponse)
def update_password(
    body: PasswordChangeRequest,
    session: Annotated[CurrentSession, Depends(get_current_session)],
    db: Annotated[Session, Depends(get_db)],
) -> MessageResponse:
    """Change own password after re-verifying the current one."""
    user = db.get(User, session.user.id)
    change_password(db, user, body.current_password, body.new_password)
    return MessageResponse(message="Password updated successfully")
