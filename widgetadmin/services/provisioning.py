"""
Bootstrap seeding that runs outside the authorization gate: one tenant, the
system roles, the permission catalog, full grants for 'admin', and one admin user.

Every step is check-before-insert, so re-running is safe.
"""

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from widgetadmin.models import Permission, Role, Tenant, User
from widgetadmin.services.credentials import create_credentials
from widgetadmin.services.rbac import assign_permission, assign_role, find_role_by_name

logger = logging.getLogger(__name__)

SYSTEM_ROLES: dict[str, str] = {
    "admin": "Administrator with full access",
    "user": "Regular user with limited access",
    "moderator": "User with moderation privileges",
}

PERMISSION_CATALOG: dict[str, list[str]] = {
    "users": ["users.view", "users.create", "users.edit", "users.delete"],
    "roles": ["roles.view", "roles.create", "roles.edit", "roles.delete"],
    "permissions": ["permissions.view", "permissions.manage"],
    "templates": ["templates.view", "templates.create", "templates.edit", "templates.delete"],
    "widget": ["widget.configure", "widget.embed"],
    "context": ["context.view", "context.create", "context.manage", "context.test"],
    "kb": ["kb.view", "kb.manage"],
    "embed": ["embed.generate", "embed.customize"],
    "logs": ["logs.view"],
    "analytics": ["analytics.view"],
    "settings": ["settings.view", "settings.manage"],
    "ai": ["ai.configure"],
}

DEFAULT_PRIMARY_COLOR = "#3b82f6"
DEFAULT_SECONDARY_COLOR = "#10b981"


@dataclass
class ProvisionResult:
    tenant: Tenant
    admin: User
    roles_created: int = 0
    permissions_created: int = 0
    grants_created: int = 0
    admin_created: bool = False


def ensure_tenant(db: Session, slug: str, name: str) -> tuple[Tenant, bool]:
    tenant = db.query(Tenant).filter(Tenant.slug == slug).first()
    if tenant is not None:
        return tenant, False
    tenant = Tenant(
        name=name,
        slug=slug,
        primary_color=DEFAULT_PRIMARY_COLOR,
        secondary_color=DEFAULT_SECONDARY_COLOR,
    )
    db.add(tenant)
    db.commit()
    logger.info("Created tenant %r (id=%s)", slug, tenant.id)
    return tenant, True


def ensure_system_roles(db: Session) -> tuple[dict[str, Role], int]:
    roles: dict[str, Role] = {}
    created = 0
    for name, description in SYSTEM_ROLES.items():
        role = find_role_by_name(db, name, None)
        if role is None:
            role = Role(name=name, description=description, tenant_id=None)
            db.add(role)
            db.flush()
            created += 1
            logger.info("Created system role %r (id=%s)", name, role.id)
        roles[name] = role
    db.commit()
    return roles, created


def ensure_permission_catalog(db: Session) -> tuple[list[Permission], int]:
    permissions: list[Permission] = []
    created = 0
    for category, names in PERMISSION_CATALOG.items():
        for name in names:
            permission = db.query(Permission).filter(Permission.name == name).first()
            if permission is None:
                action = name.split(".", 1)[1]
                permission = Permission(
                    name=name,
                    category=category,
                    description=f"Permission to {action} {category}",
                )
                db.add(permission)
                db.flush()
                created += 1
            permissions.append(permission)
    db.commit()
    if created:
        logger.info("Created %s permissions", created)
    return permissions, created


def provision(
    db: Session,
    tenant_slug: str,
    tenant_name: str,
    admin_email: str,
    admin_password: str,
    admin_name: str = "Admin User",
) -> ProvisionResult:
    tenant, _ = ensure_tenant(db, tenant_slug, tenant_name)
    roles, roles_created = ensure_system_roles(db)
    permissions, permissions_created = ensure_permission_catalog(db)

    grants_created = 0
    admin_role = roles["admin"]
    for permission in permissions:
        if assign_permission(db, admin_role.id, permission.id):
            grants_created += 1

    admin = (
        db.query(User)
        .filter(User.tenant_id == tenant.id, User.email == admin_email)
        .first()
    )
    admin_created = admin is None
    if admin is None:
        admin = User(tenant_id=tenant.id, email=admin_email, full_name=admin_name, is_active=True)
        create_credentials(admin, admin_password)
        db.add(admin)
        db.commit()
        logger.info("Created admin user_id=%s in tenant=%s", admin.id, tenant.slug)
    assign_role(db, admin.id, admin_role.id)

    return ProvisionResult(
        tenant=tenant,
        admin=admin,
        roles_created=roles_created,
        permissions_created=permissions_created,
        grants_created=grants_created,
        admin_created=admin_created,
    )
