"""Credential store: password verification, user creation and password changes."""

import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from functools import lru_cache

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from widgetadmin.core.errors import AppError, DuplicateUser, InvalidCredentials, NotFound
from widgetadmin.core.security import hash_password, verify_password
from widgetadmin.models import Role, Tenant, User, UserRole
from widgetadmin.services.rbac import find_role_by_name

logger = logging.getLogger(__name__)

DEFAULT_ROLE_NAME = "user"

# Checked against when the email is unknown so both failure paths cost one bcrypt round.
_DUMMY_PASSWORD = "not-a-real-password"


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return hash_password(_DUMMY_PASSWORD)


def verify_credentials(db: Session, tenant: Tenant, email: str, password: str) -> User:
    """
    Return the tenant's user for email/password or raise InvalidCredentials.

    Unknown email, wrong password and deactivated account are indistinguishable.
    """
    user = db.query(User).filter(User.tenant_id == tenant.id, User.email == email).first()
    if user is None:
        verify_password(password, _dummy_hash())
        logger.info("Login failed: tenant=%s reason=unknown_email", tenant.slug)
        raise InvalidCredentials()
    if not verify_password(password, user.password_hash):
        logger.info("Login failed: tenant=%s user_id=%s reason=bad_password", tenant.slug, user.id)
        raise InvalidCredentials()
    if not user.is_active:
        logger.info("Login failed: tenant=%s user_id=%s reason=inactive", tenant.slug, user.id)
        raise InvalidCredentials()
    _touch_last_login(db, user)
    return user


def _touch_last_login(db: Session, user: User) -> None:
    """Best effort: a failed timestamp write never changes the login outcome."""
    try:
        with db.begin_nested():
            user.last_login = datetime.now(UTC)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("Could not update last_login for user_id=%s: %s", user.id, e)


def create_credentials(user: User, password: str) -> None:
    user.password_hash = hash_password(password)


def change_password(db: Session, user: User, current_password: str, new_password: str) -> None:
    if not verify_password(current_password, user.password_hash):
        raise InvalidCredentials("Current password is incorrect")
    create_credentials(user, new_password)
    db.commit()
    logger.info("Password changed for user_id=%s", user.id)


def _roles_for_new_user(db: Session, tenant: Tenant, role_ids: list[int]) -> list[Role]:
    if not role_ids:
        role = find_role_by_name(db, DEFAULT_ROLE_NAME, tenant.id)
        if role is None:
            logger.error("Default role %r is not provisioned for tenant=%s", DEFAULT_ROLE_NAME, tenant.slug)
            raise AppError()
        return [role]
    roles = []
    for role_id in role_ids:
        role = db.get(Role, role_id)
        if role is None or role.tenant_id not in (None, tenant.id):
            raise NotFound(f"Role not found: {role_id}")
        roles.append(role)
    return roles


def create_user(
    db: Session,
    tenant: Tenant,
    email: str,
    password: str,
    full_name: str,
    role_ids: Iterable[int] = (),
) -> User:
    """
    Insert a user and its role associations as one unit.

    With no role_ids the default 'user' role is assigned. If any part fails the
    user row is rolled back too.
    """
    if db.query(User.id).filter(User.tenant_id == tenant.id, User.email == email).first():
        raise DuplicateUser()

    # Deduplicate while keeping order: the first id becomes the primary role.
    ids = list(dict.fromkeys(role_ids))
    try:
        roles = _roles_for_new_user(db, tenant, ids)
        user = User(tenant_id=tenant.id, email=email, full_name=full_name, is_active=True)
        create_credentials(user, password)
        db.add(user)
        db.flush()
        for role in roles:
            db.add(UserRole(user_id=user.id, role_id=role.id))
        db.flush()
        db.commit()
    except IntegrityError as e:
        db.rollback()
        # Lost a race with a concurrent registration of the same email.
        if db.query(User.id).filter(User.tenant_id == tenant.id, User.email == email).first():
            raise DuplicateUser() from e
        raise
    except Exception:
        db.rollback()
        raise
    logger.info("Created user_id=%s in tenant=%s", user.id, tenant.slug)
    return user


def get_tenant_user(db: Session, user_id: int, tenant_id: int) -> User:
    user = db.query(User).filter(User.id == user_id, User.tenant_id == tenant_id).first()
    if user is None:
        raise NotFound("User not found")
    return user


def update_user(
    db: Session,
    user: User,
    email: str | None = None,
    full_name: str | None = None,
    is_active: bool | None = None,
) -> User:
    if email is not None and email != user.email:
        taken = (
            db.query(User.id)
            .filter(User.tenant_id == user.tenant_id, User.email == email, User.id != user.id)
            .first()
        )
        if taken:
            raise DuplicateUser("User with this email already exists")
        user.email = email
    if full_name is not None:
        user.full_name = full_name.strip()
    if is_active is not None:
        user.is_active = is_active
    db.commit()
    return user


def delete_user(db: Session, user: User) -> None:
    db.query(UserRole).filter(UserRole.user_id == user.id).delete(synchronize_session=False)
    db.delete(user)
    db.commit()
    logger.info("Deleted user_id=%s", user.id)


def search_users(
    db: Session, tenant_id: int, page: int, limit: int, search: str | None = None
) -> tuple[list[User], int]:
    q = db.query(User).filter(User.tenant_id == tenant_id)
    if search:
        pattern = f"%{search.strip().lower()}%"
        q = q.filter((User.email.ilike(pattern)) | (User.full_name.ilike(pattern)))
    total = q.count()
    users = q.order_by(User.full_name, User.id).offset((page - 1) * limit).limit(limit).all()
    return users, total
