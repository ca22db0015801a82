"""Session loader: re-resolve the live user and grants for a verified token subject."""

import logging

from sqlalchemy.orm import Session

from widgetadmin.core.errors import InvalidToken
from widgetadmin.models import User
from widgetadmin.schemas.auth import CurrentSession, PermissionOut, RoleOut, SessionUser
from widgetadmin.services.rbac import resolve

logger = logging.getLogger(__name__)


def load_session(db: Session, user_id: int) -> CurrentSession:
    """
    Build the CurrentSession for a token subject from the database.

    Runs on every request because grants may have changed since the token was
    issued. A subject that no longer exists, or has been deactivated, is a 401.
    """
    user = db.get(User, user_id)
    if user is None:
        logger.info("Token subject user_id=%s no longer exists", user_id)
        raise InvalidToken("User not found")
    if not user.is_active:
        logger.info("Token subject user_id=%s is deactivated", user_id)
        raise InvalidToken("User is inactive")

    grants = resolve(db, user.id)
    return CurrentSession(
        user=SessionUser.model_validate(user),
        roles=[RoleOut.model_validate(r) for r in grants.roles],
        permissions=[PermissionOut.model_validate(p) for p in grants.permissions],
    )
