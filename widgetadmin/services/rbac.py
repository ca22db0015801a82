"""
Role/permission graph: tenant-scoped roles, the permission catalog, and the
user-role / role-permission associations.

All mutations commit. Association writes are idempotent: assigning a pair that
already exists is a successful no-op.
"""

import logging
from collections.abc import Iterable
from typing import NamedTuple

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from widgetadmin.core.errors import Conflict, NotFound, ProtectedRoleError
from widgetadmin.models import Permission, Role, RolePermission, User, UserRole

logger = logging.getLogger(__name__)

# Built-in roles: never deleted or renamed, and no other role may take their names.
PROTECTED_ROLE_NAMES: frozenset[str] = frozenset({"admin", "user"})


class ResolvedGrants(NamedTuple):
    roles: list[Role]
    permissions: list[Permission]


def resolve(db: Session, user_id: int) -> ResolvedGrants:
    """
    Load a user's roles (assignment order) and the de-duplicated union of
    their permissions (by permission id).
    """
    roles = (
        db.query(Role)
        .join(UserRole, UserRole.role_id == Role.id)
        .filter(UserRole.user_id == user_id)
        .order_by(UserRole.id)
        .all()
    )
    if not roles:
        return ResolvedGrants(roles=[], permissions=[])

    rows = (
        db.query(Permission)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .filter(RolePermission.role_id.in_([r.id for r in roles]))
        .order_by(Permission.id)
        .all()
    )
    seen: set[int] = set()
    permissions: list[Permission] = []
    for p in rows:
        if p.id not in seen:
            seen.add(p.id)
            permissions.append(p)
    return ResolvedGrants(roles=roles, permissions=permissions)


def role_names_for_user(db: Session, user_id: int) -> list[str]:
    return [r.name for r in resolve(db, user_id).roles]


def _association_exists(db: Session, model, **keys: int) -> bool:
    return db.query(model.id).filter_by(**keys).first() is not None


def _insert_association(db: Session, model, **keys: int) -> bool:
    """
    Check-then-insert one association row. Returns True if a row was created.

    A concurrent insert of the same pair between the check and the insert trips
    the unique constraint inside the savepoint; the pair then exists, so the
    call still succeeds.
    """
    if _association_exists(db, model, **keys):
        return False
    try:
        with db.begin_nested():
            db.add(model(**keys))
    except IntegrityError:
        logger.info("Concurrent insert won for %s %s", model.__tablename__, keys)
        return False
    return True


def assign_role(db: Session, user_id: int, role_id: int) -> bool:
    created = _insert_association(db, UserRole, user_id=user_id, role_id=role_id)
    db.commit()
    if created:
        logger.info("Assigned role_id=%s to user_id=%s", role_id, user_id)
    return created


def remove_role(db: Session, user_id: int, role_id: int) -> bool:
    deleted = (
        db.query(UserRole)
        .filter(UserRole.user_id == user_id, UserRole.role_id == role_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    if deleted:
        logger.info("Removed role_id=%s from user_id=%s", role_id, user_id)
    return deleted > 0


def assign_permission(db: Session, role_id: int, permission_id: int) -> bool:
    created = _insert_association(
        db, RolePermission, role_id=role_id, permission_id=permission_id
    )
    db.commit()
    if created:
        logger.info("Granted permission_id=%s to role_id=%s", permission_id, role_id)
    return created


def remove_permission(db: Session, role_id: int, permission_id: int) -> bool:
    deleted = (
        db.query(RolePermission)
        .filter(
            RolePermission.role_id == role_id,
            RolePermission.permission_id == permission_id,
        )
        .delete(synchronize_session=False)
    )
    db.commit()
    if deleted:
        logger.info("Revoked permission_id=%s from role_id=%s", permission_id, role_id)
    return deleted > 0


def set_role_permissions(db: Session, role: Role, permission_ids: Iterable[int]) -> list[Permission]:
    """Replace a role's permission set. Unknown permission ids raise NotFound before any write."""
    wanted = set(permission_ids)
    if wanted:
        found = {
            pid for (pid,) in db.query(Permission.id).filter(Permission.id.in_(wanted)).all()
        }
        missing = sorted(wanted - found)
        if missing:
            raise NotFound(f"Permission not found: {', '.join(str(m) for m in missing)}")

    current = {
        pid
        for (pid,) in db.query(RolePermission.permission_id)
        .filter(RolePermission.role_id == role.id)
        .all()
    }
    stale = current - wanted
    if stale:
        db.query(RolePermission).filter(
            RolePermission.role_id == role.id,
            RolePermission.permission_id.in_(stale),
        ).delete(synchronize_session=False)
    for pid in sorted(wanted - current):
        _insert_association(db, RolePermission, role_id=role.id, permission_id=pid)
    db.commit()
    logger.info(
        "Set permissions for role_id=%s: added=%s removed=%s",
        role.id,
        len(wanted - current),
        len(stale),
    )
    return permissions_for_role(db, role.id)


def permissions_for_role(db: Session, role_id: int) -> list[Permission]:
    return (
        db.query(Permission)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .filter(RolePermission.role_id == role_id)
        .order_by(Permission.category, Permission.name)
        .all()
    )


# --- Roles -----------------------------------------------------------------


def _visible_to(tenant_id: int):
    return or_(Role.tenant_id == tenant_id, Role.tenant_id.is_(None))


def list_roles(db: Session, tenant_id: int) -> list[tuple[Role, int]]:
    """Roles visible to a tenant (its own plus system-wide) with their permission counts."""
    counts = (
        db.query(RolePermission.role_id, func.count(RolePermission.id).label("n"))
        .group_by(RolePermission.role_id)
        .subquery()
    )
    rows = (
        db.query(Role, func.coalesce(counts.c.n, 0))
        .outerjoin(counts, counts.c.role_id == Role.id)
        .filter(_visible_to(tenant_id))
        .order_by(Role.name, Role.id)
        .all()
    )
    return [(role, int(n)) for role, n in rows]


def get_role(db: Session, role_id: int, tenant_id: int) -> Role:
    """Role by id if visible to the tenant; other tenants' roles look nonexistent."""
    role = db.query(Role).filter(Role.id == role_id, _visible_to(tenant_id)).first()
    if role is None:
        raise NotFound("Role not found")
    return role


def get_owned_role(db: Session, role_id: int, tenant_id: int) -> Role:
    """Role by id for a write: it must belong to the tenant. System-wide roles are read-only here."""
    role = get_role(db, role_id, tenant_id)
    if role.tenant_id is None:
        raise ProtectedRoleError("System roles are read-only")
    return role


def find_role_by_name(db: Session, name: str, tenant_id: int | None) -> Role | None:
    """Tenant-specific role first, then the system-wide role of the same name."""
    if tenant_id is not None:
        role = db.query(Role).filter(Role.name == name, Role.tenant_id == tenant_id).first()
        if role is not None:
            return role
    return db.query(Role).filter(Role.name == name, Role.tenant_id.is_(None)).first()


def _name_taken(db: Session, name: str, tenant_id: int | None, exclude_id: int | None = None) -> bool:
    q = db.query(Role.id).filter(Role.name == name)
    q = q.filter(Role.tenant_id.is_(None) if tenant_id is None else Role.tenant_id == tenant_id)
    if exclude_id is not None:
        q = q.filter(Role.id != exclude_id)
    return q.first() is not None


def _is_reserved(name: str) -> bool:
    return name.strip().lower() in PROTECTED_ROLE_NAMES


def create_role(
    db: Session,
    tenant_id: int | None,
    name: str,
    description: str | None = None,
    permission_ids: Iterable[int] = (),
) -> Role:
    if _is_reserved(name):
        raise ProtectedRoleError(f"Role name '{name}' is reserved")
    if _name_taken(db, name, tenant_id):
        raise Conflict("Role with this name already exists")
    role = Role(name=name, description=description, tenant_id=tenant_id)
    db.add(role)
    try:
        db.flush()
    except IntegrityError as e:
        db.rollback()
        raise Conflict("Role with this name already exists") from e
    ids = list(permission_ids)
    if ids:
        try:
            set_role_permissions(db, role, ids)
        except NotFound:
            db.rollback()
            raise
    else:
        db.commit()
    logger.info("Created role %r (id=%s, tenant_id=%s)", name, role.id, tenant_id)
    return role


def update_role(db: Session, role: Role, name: str, description: str | None) -> Role:
    if role.name in PROTECTED_ROLE_NAMES and name != role.name:
        raise ProtectedRoleError("Cannot rename built-in role")
    if name != role.name and _is_reserved(name):
        raise ProtectedRoleError(f"Role name '{name}' is reserved")
    if name != role.name and _name_taken(db, name, role.tenant_id, exclude_id=role.id):
        raise Conflict("Another role with this name already exists")
    role.name = name
    role.description = description
    db.commit()
    return role


def delete_role(db: Session, role: Role) -> None:
    """Delete a role and its associations. Built-in roles always refuse."""
    if role.name in PROTECTED_ROLE_NAMES:
        raise ProtectedRoleError("Cannot delete built-in role")
    db.query(UserRole).filter(UserRole.role_id == role.id).delete(synchronize_session=False)
    db.query(RolePermission).filter(RolePermission.role_id == role.id).delete(
        synchronize_session=False
    )
    db.delete(role)
    db.commit()
    logger.info("Deleted role %r (id=%s)", role.name, role.id)


def users_with_role(db: Session, role_id: int, tenant_id: int) -> list[User]:
    return (
        db.query(User)
        .join(UserRole, UserRole.user_id == User.id)
        .filter(UserRole.role_id == role_id, User.tenant_id == tenant_id)
        .order_by(User.full_name, User.id)
        .all()
    )


# --- Permission catalog ----------------------------------------------------


def list_permissions(db: Session, category: str | None = None) -> list[Permission]:
    q = db.query(Permission)
    if category is not None:
        q = q.filter(Permission.category == category)
    return q.order_by(Permission.category, Permission.name).all()


def list_categories(db: Session) -> list[str]:
    rows = (
        db.query(Permission.category)
        .filter(Permission.category.isnot(None))
        .distinct()
        .order_by(Permission.category)
        .all()
    )
    return [c for (c,) in rows]


def get_permission(db: Session, permission_id: int) -> Permission:
    permission = db.get(Permission, permission_id)
    if permission is None:
        raise NotFound("Permission not found")
    return permission


def _default_category(name: str) -> str:
    return name.split(".", 1)[0]


def create_permission(
    db: Session, name: str, description: str | None = None, category: str | None = None
) -> Permission:
    if db.query(Permission.id).filter(Permission.name == name).first() is not None:
        raise Conflict("Permission with this name already exists")
    permission = Permission(
        name=name,
        description=description,
        category=category or _default_category(name),
    )
    db.add(permission)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise Conflict("Permission with this name already exists") from e
    logger.info("Created permission %r (id=%s)", name, permission.id)
    return permission


def update_permission(
    db: Session,
    permission: Permission,
    name: str,
    description: str | None,
    category: str | None,
) -> Permission:
    if name != permission.name:
        clash = (
            db.query(Permission.id)
            .filter(Permission.name == name, Permission.id != permission.id)
            .first()
        )
        if clash is not None:
            raise Conflict("Another permission with this name already exists")
    permission.name = name
    permission.description = description
    permission.category = category or _default_category(name)
    db.commit()
    return permission


def delete_permission(db: Session, permission: Permission) -> None:
    db.query(RolePermission).filter(RolePermission.permission_id == permission.id).delete(
        synchronize_session=False
    )
    db.delete(permission)
    db.commit()
    logger.info("Deleted permission %r (id=%s)", permission.name, permission.id)
