"""Shared test helpers: fresh schema per test and small builders for tenants, roles and users."""

import unittest
from collections.abc import Iterable

from fastapi.testclient import TestClient

from widgetadmin.core.database import SessionLocal, engine
from widgetadmin.models import Base, Permission, Role, RolePermission, Tenant, User, UserRole
from widgetadmin.schemas.auth import CurrentSession, PermissionOut, RoleOut, SessionUser
from widgetadmin.services.credentials import create_credentials

DEFAULT_PASSWORD = "correct-horse-battery"


def reset_database() -> None:
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)


def make_tenant(db, slug: str = "default", name: str | None = None) -> Tenant:
    tenant = Tenant(name=name or slug.title(), slug=slug)
    db.add(tenant)
    db.commit()
    return tenant


def make_permission(db, name: str) -> Permission:
    permission = db.query(Permission).filter(Permission.name == name).first()
    if permission is None:
        permission = Permission(name=name, category=name.split(".", 1)[0])
        db.add(permission)
        db.commit()
    return permission


def make_role(
    db, name: str, tenant_id: int | None = None, permissions: Iterable[str] = ()
) -> Role:
    role = Role(name=name, tenant_id=tenant_id, description=f"{name} role")
    db.add(role)
    db.flush()
    for perm_name in permissions:
        db.add(RolePermission(role_id=role.id, permission_id=make_permission(db, perm_name).id))
    db.commit()
    return role


def make_user(
    db,
    tenant: Tenant,
    email: str,
    roles: Iterable[Role] = (),
    password: str = DEFAULT_PASSWORD,
    is_active: bool = True,
) -> User:
    user = User(tenant_id=tenant.id, email=email, full_name=email.split("@")[0].title(), is_active=is_active)
    create_credentials(user, password)
    db.add(user)
    db.flush()
    for role in roles:
        db.add(UserRole(user_id=user.id, role_id=role.id))
    db.commit()
    return user


def session_for(
    roles: Iterable[str] = (), permissions: Iterable[str] = (), user_id: int = 1
) -> CurrentSession:
    """Build a CurrentSession in memory, for testing the gate without a database."""
    return CurrentSession(
        user=SessionUser(
            id=user_id, tenant_id=1, email="u@example.com", full_name="U", is_active=True
        ),
        roles=[RoleOut(id=i + 1, name=n) for i, n in enumerate(roles)],
        permissions=[PermissionOut(id=i + 1, name=n) for i, n in enumerate(permissions)],
    )


class DatabaseTestCase(unittest.TestCase):
    """Gives each test an empty schema and a session. Helpers commit, so API calls see their rows."""

    def setUp(self) -> None:
        reset_database()
        self.db = SessionLocal()

    def tearDown(self) -> None:
        self.db.close()


class ApiTestCase(DatabaseTestCase):
    """DatabaseTestCase plus a TestClient and a seeded default tenant with 'admin' and 'user' roles."""

    api = "/api/v1"

    def setUp(self) -> None:
        super().setUp()
        from widgetadmin.main import app

        self.client = TestClient(app)
        self.tenant = make_tenant(self.db, "default", "Default Tenant")
        self.admin_role = make_role(self.db, "admin")
        self.user_role = make_role(self.db, "user")

    def login(self, email: str, password: str = DEFAULT_PASSWORD, tenant: str | None = None) -> str:
        headers = {"X-Tenant": tenant} if tenant else {}
        response = self.client.post(
            f"{self.api}/auth/login",
            json={"email": email, "password": password},
            headers=headers,
        )
        self.assertEqual(response.status_code, 200, response.text)
        return response.json()["token"]

    def auth(self, token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}
