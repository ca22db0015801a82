"""
Authorization gate: role and permission predicates over a loaded CurrentSession.

A missing session is always a 401 and is checked before any grant, so that
"no credentials" and "insufficient grant" never share a status code. Holding
the 'admin' role satisfies every permission check.
"""

from collections.abc import Iterable

from widgetadmin.core.errors import InsufficientGrant, InvalidToken
from widgetadmin.schemas.auth import ADMIN_ROLE, CurrentSession


def has_role(session: CurrentSession | None, roles: Iterable[str]) -> bool:
    if session is None:
        return False
    return not session.role_names.isdisjoint(roles)


def has_permission(session: CurrentSession | None, permissions: Iterable[str]) -> bool:
    if session is None:
        return False
    if ADMIN_ROLE in session.role_names:
        return True
    return not session.permission_names.isdisjoint(permissions)


def require_session(session: CurrentSession | None) -> CurrentSession:
    if session is None:
        raise InvalidToken("Not authenticated")
    return session


def require_any_role(session: CurrentSession | None, roles: Iterable[str]) -> CurrentSession:
    """Allow if the session holds any of `roles`; 403 lists them otherwise."""
    session = require_session(session)
    wanted = list(roles)
    if not has_role(session, wanted):
        raise InsufficientGrant(required_roles=wanted)
    return session


def require_any_permission(
    session: CurrentSession | None, permissions: Iterable[str]
) -> CurrentSession:
    """Allow if the session is admin or holds any of `permissions`; 403 lists them otherwise."""
    session = require_session(session)
    wanted = list(permissions)
    if not has_permission(session, wanted):
        raise InsufficientGrant(required_permissions=wanted)
    return session
