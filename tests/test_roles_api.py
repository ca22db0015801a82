"""HTTP tests for the gated admin endpoints: /roles, /permissions, /users, /tenants."""

import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient

from widgetadmin.models import Permission, Role, RolePermission, User, UserRole

from tests.support import (
    DEFAULT_PASSWORD,
    ApiTestCase,
    make_permission,
    make_role,
    make_tenant,
    make_user,
)


class AdminApiTestCase(ApiTestCase):
    """Seeds an admin, an editor with a few grants, and a plain user; all in the default tenant."""

    def setUp(self) -> None:
        super().setUp()
        self.editor_role = make_role(
            self.db, "editor", self.tenant.id, ["templates.view", "roles.view", "users.view"]
        )
        self.admin = make_user(self.db, self.tenant, "admin@example.com", [self.admin_role])
        self.editor = make_user(self.db, self.tenant, "editor@example.com", [self.editor_role])
        self.plain = make_user(self.db, self.tenant, "plain@example.com", [self.user_role])
        self.admin_token = self.login("admin@example.com")
        self.editor_token = self.login("editor@example.com")
        self.plain_token = self.login("plain@example.com")


class TestGateStatusCodes(AdminApiTestCase):
    def test_no_token_is_401_and_missing_grant_is_403(self) -> None:
        self.assertEqual(self.client.get(f"{self.api}/roles").status_code, 401)
        response = self.client.get(f"{self.api}/roles", headers=self.auth(self.plain_token))
        self.assertEqual(response.status_code, 403)
        body = response.json()
        self.assertEqual(body["message"], "Not authorized")
        self.assertEqual(body["required_permissions"], ["roles.view"])

    def test_permission_holder_passes(self) -> None:
        response = self.client.get(f"{self.api}/roles", headers=self.auth(self.editor_token))
        self.assertEqual(response.status_code, 200, response.text)
        names = [r["name"] for r in response.json()["roles"]]
        self.assertEqual(names, ["admin", "editor", "user"])

    def test_admin_bypasses_permission_checks(self) -> None:
        # 'roles.create' exists nowhere in the catalog.
        response = self.client.post(
            f"{self.api}/roles",
            json={"name": "support"},
            headers=self.auth(self.admin_token),
        )
        self.assertEqual(response.status_code, 201, response.text)
        self.assertEqual(response.json()["role"]["tenant_id"], self.tenant.id)

    def test_role_only_endpoint_ignores_permissions(self) -> None:
        grantor = make_role(self.db, "grantor", self.tenant.id, ["permissions.manage"])
        make_user(self.db, self.tenant, "grantor@example.com", [grantor])
        token = self.login("grantor@example.com")
        response = self.client.post(
            f"{self.api}/users/{self.plain.id}/roles",
            json={"role_id": self.editor_role.id},
            headers=self.auth(token),
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["required_roles"], ["admin"])

    def test_grants_are_read_live(self) -> None:
        headers = self.auth(self.plain_token)
        self.assertEqual(self.client.get(f"{self.api}/roles", headers=headers).status_code, 403)
        response = self.client.post(
            f"{self.api}/users/{self.plain.id}/roles",
            json={"role_id": self.editor_role.id},
            headers=self.auth(self.admin_token),
        )
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(self.client.get(f"{self.api}/roles", headers=headers).status_code, 200)


class TestRolesApi(AdminApiTestCase):
    def test_system_roles_cannot_be_deleted(self) -> None:
        for role_id in (self.admin_role.id, self.user_role.id):
            response = self.client.delete(
                f"{self.api}/roles/{role_id}", headers=self.auth(self.admin_token)
            )
            self.assertEqual(response.status_code, 403)
            self.assertEqual(response.json()["message"], "System roles are read-only")
        self.db.expire_all()
        self.assertEqual(self.db.query(Role).filter(Role.name.in_(["admin", "user"])).count(), 2)

    def test_system_roles_are_read_only_through_tenant_api(self) -> None:
        moderator = make_role(self.db, "moderator")
        permission = make_permission(self.db, "users.delete")
        headers = self.auth(self.admin_token)
        attempts = [
            ("put", f"/roles/{self.user_role.id}", {"name": "user", "description": "Everyone"}),
            ("delete", f"/roles/{moderator.id}", None),
            ("put", f"/roles/{self.user_role.id}/permissions", {"permission_ids": [permission.id]}),
            ("post", f"/roles/{self.user_role.id}/permissions/{permission.id}", None),
            ("delete", f"/roles/{self.user_role.id}/permissions/{permission.id}", None),
        ]
        for method, path, body in attempts:
            kwargs = {"headers": headers}
            if body is not None:
                kwargs["json"] = body
            response = getattr(self.client, method)(f"{self.api}{path}", **kwargs)
            self.assertEqual(response.status_code, 403, f"{method.upper()} {path}")

        self.db.expire_all()
        self.assertIsNotNone(self.db.get(Role, moderator.id))
        self.assertEqual(
            self.db.query(RolePermission)
            .filter(RolePermission.role_id == self.user_role.id)
            .count(),
            0,
        )
        # Reads still work.
        response = self.client.get(f"{self.api}/roles/{self.user_role.id}", headers=headers)
        self.assertEqual(response.status_code, 200)

    def test_grant_on_shared_role_does_not_reach_other_tenants(self) -> None:
        other = make_tenant(self.db, "globex")
        make_user(self.db, other, "member@globex.io", [self.user_role])
        permission = make_permission(self.db, "users.delete")
        response = self.client.post(
            f"{self.api}/roles/{self.user_role.id}/permissions/{permission.id}",
            headers=self.auth(self.admin_token),
        )
        self.assertEqual(response.status_code, 403)
        token = self.login("member@globex.io", tenant="globex")
        me = self.client.get(f"{self.api}/auth/me", headers=self.auth(token)).json()
        self.assertEqual(me["user"]["permissions"], [])

    def test_protected_names_cannot_be_taken(self) -> None:
        headers = self.auth(self.admin_token)
        for name in ("admin", "user", "Admin"):
            created = self.client.post(f"{self.api}/roles", json={"name": name}, headers=headers)
            self.assertEqual(created.status_code, 403, name)
            renamed = self.client.put(
                f"{self.api}/roles/{self.editor_role.id}", json={"name": name}, headers=headers
            )
            self.assertEqual(renamed.status_code, 403, name)
        self.db.expire_all()
        self.assertEqual(self.db.get(Role, self.editor_role.id).name, "editor")

    def test_renaming_own_role_to_admin_grants_nothing(self) -> None:
        renamer = make_role(self.db, "renamer", self.tenant.id, ["roles.edit"])
        make_user(self.db, self.tenant, "renamer@example.com", [renamer])
        token = self.login("renamer@example.com")
        victim_url = f"{self.api}/users/{self.plain.id}"

        self.assertEqual(self.client.delete(victim_url, headers=self.auth(token)).status_code, 403)
        response = self.client.put(
            f"{self.api}/roles/{renamer.id}", json={"name": "admin"}, headers=self.auth(token)
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(self.client.delete(victim_url, headers=self.auth(token)).status_code, 403)
        self.db.expire_all()
        self.assertIsNotNone(self.db.get(User, self.plain.id))

    def test_delete_custom_role_removes_assignments(self) -> None:
        role_id = self.editor_role.id
        response = self.client.delete(
            f"{self.api}/roles/{role_id}", headers=self.auth(self.admin_token)
        )
        self.assertEqual(response.status_code, 200, response.text)
        self.db.expire_all()
        self.assertIsNone(self.db.get(Role, role_id))
        self.assertEqual(self.db.query(UserRole).filter(UserRole.role_id == role_id).count(), 0)
        self.assertEqual(
            self.db.query(RolePermission).filter(RolePermission.role_id == role_id).count(), 0
        )
        me = self.client.get(f"{self.api}/auth/me", headers=self.auth(self.editor_token))
        self.assertEqual(me.json()["user"]["role"], "user")
        self.assertEqual(me.json()["user"]["roles"], [])

    def test_duplicate_role_name_is_conflict(self) -> None:
        response = self.client.post(
            f"{self.api}/roles", json={"name": "editor"}, headers=self.auth(self.admin_token)
        )
        self.assertEqual(response.status_code, 409)

    def test_create_with_unknown_permission_leaves_nothing_behind(self) -> None:
        response = self.client.post(
            f"{self.api}/roles",
            json={"name": "ghost", "permission_ids": [424242]},
            headers=self.auth(self.admin_token),
        )
        self.assertEqual(response.status_code, 404)
        self.db.expire_all()
        self.assertEqual(self.db.query(Role).filter(Role.name == "ghost").count(), 0)

    def test_other_tenants_role_is_not_found(self) -> None:
        other = make_tenant(self.db, "globex")
        foreign = make_role(self.db, "editor", other.id)
        response = self.client.get(
            f"{self.api}/roles/{foreign.id}", headers=self.auth(self.admin_token)
        )
        self.assertEqual(response.status_code, 404)

    def test_grant_permission_twice_succeeds(self) -> None:
        permission = make_permission(self.db, "widget.edit")
        url = f"{self.api}/roles/{self.editor_role.id}/permissions/{permission.id}"
        first = self.client.post(url, headers=self.auth(self.admin_token))
        second = self.client.post(url, headers=self.auth(self.admin_token))
        self.assertEqual(first.status_code, 200)
        self.assertEqual(second.status_code, 200)
        self.assertTrue(first.json()["changed"])
        self.assertFalse(second.json()["changed"])
        self.db.expire_all()
        self.assertEqual(
            self.db.query(RolePermission)
            .filter(
                RolePermission.role_id == self.editor_role.id,
                RolePermission.permission_id == permission.id,
            )
            .count(),
            1,
        )

    def test_replace_permissions(self) -> None:
        keep = make_permission(self.db, "templates.view")
        new = make_permission(self.db, "kb.view")
        response = self.client.put(
            f"{self.api}/roles/{self.editor_role.id}/permissions",
            json={"permission_ids": [keep.id, new.id]},
            headers=self.auth(self.admin_token),
        )
        self.assertEqual(response.status_code, 200, response.text)
        names = [p["name"] for p in response.json()["permissions"]]
        self.assertEqual(names, ["kb.view", "templates.view"])

    def test_role_users(self) -> None:
        response = self.client.get(
            f"{self.api}/roles/{self.editor_role.id}/users", headers=self.auth(self.editor_token)
        )
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual([u["email"] for u in response.json()["users"]], ["editor@example.com"])


class TestUserRolesApi(AdminApiTestCase):
    def test_assign_twice_and_remove_twice(self) -> None:
        url = f"{self.api}/users/{self.plain.id}/roles"
        body = {"role_id": self.editor_role.id}
        first = self.client.post(url, json=body, headers=self.auth(self.admin_token))
        second = self.client.post(url, json=body, headers=self.auth(self.admin_token))
        self.assertEqual((first.status_code, second.status_code), (200, 200))
        self.assertEqual((first.json()["changed"], second.json()["changed"]), (True, False))

        roles = self.client.get(url, headers=self.auth(self.admin_token)).json()["roles"]
        self.assertEqual([r["name"] for r in roles], ["user", "editor"])

        remove_url = f"{url}/{self.editor_role.id}"
        removed = self.client.delete(remove_url, headers=self.auth(self.admin_token))
        again = self.client.delete(remove_url, headers=self.auth(self.admin_token))
        self.assertEqual((removed.status_code, again.status_code), (200, 200))
        self.assertEqual((removed.json()["changed"], again.json()["changed"]), (True, False))

    def test_unknown_user_is_not_found(self) -> None:
        response = self.client.post(
            f"{self.api}/users/999999/roles",
            json={"role_id": self.user_role.id},
            headers=self.auth(self.admin_token),
        )
        self.assertEqual(response.status_code, 404)


class TestPermissionsApi(AdminApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        viewer = make_role(self.db, "catalog-viewer", self.tenant.id, ["permissions.view"])
        make_user(self.db, self.tenant, "viewer@example.com", [viewer])
        self.viewer_token = self.login("viewer@example.com")

    def test_reads_need_view_permission(self) -> None:
        url = f"{self.api}/permissions"
        self.assertEqual(self.client.get(url, headers=self.auth(self.plain_token)).status_code, 403)
        response = self.client.get(url, headers=self.auth(self.viewer_token))
        self.assertEqual(response.status_code, 200)
        self.assertIn("templates.view", [p["name"] for p in response.json()["permissions"]])

    def test_categories(self) -> None:
        headers = self.auth(self.viewer_token)
        categories = self.client.get(f"{self.api}/permissions/categories", headers=headers)
        self.assertIn("templates", categories.json()["categories"])
        in_category = self.client.get(
            f"{self.api}/permissions/categories/templates", headers=headers
        )
        self.assertEqual(
            [p["name"] for p in in_category.json()["permissions"]], ["templates.view"]
        )

    def test_writes_are_admin_only(self) -> None:
        body = {"name": "analytics.export"}
        denied = self.client.post(
            f"{self.api}/permissions", json=body, headers=self.auth(self.viewer_token)
        )
        self.assertEqual(denied.status_code, 403)
        created = self.client.post(
            f"{self.api}/permissions", json=body, headers=self.auth(self.admin_token)
        )
        self.assertEqual(created.status_code, 201, created.text)
        self.assertEqual(created.json()["permission"]["category"], "analytics")

    def test_bad_name_is_validation_error(self) -> None:
        response = self.client.post(
            f"{self.api}/permissions",
            json={"name": "NoDotHere"},
            headers=self.auth(self.admin_token),
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["errors"][0]["field"], "name")

    def test_delete_revokes_from_roles(self) -> None:
        permission_id = (
            self.db.query(Permission.id).filter(Permission.name == "templates.view").scalar()
        )
        response = self.client.delete(
            f"{self.api}/permissions/{permission_id}", headers=self.auth(self.admin_token)
        )
        self.assertEqual(response.status_code, 200, response.text)
        me = self.client.get(f"{self.api}/auth/me", headers=self.auth(self.editor_token)).json()
        self.assertNotIn("templates.view", [p["name"] for p in me["user"]["permissions"]])


class TestUsersApi(AdminApiTestCase):
    def test_list_is_tenant_scoped_and_paginated(self) -> None:
        other = make_tenant(self.db, "globex")
        make_user(self.db, other, "stranger@globex.io")
        response = self.client.get(
            f"{self.api}/users", params={"limit": 2}, headers=self.auth(self.editor_token)
        )
        self.assertEqual(response.status_code, 200, response.text)
        body = response.json()
        self.assertEqual(body["pagination"], {"total": 3, "page": 1, "limit": 2, "total_pages": 2})
        self.assertEqual(len(body["users"]), 2)
        self.assertNotIn("stranger@globex.io", [u["email"] for u in body["users"]])

    def test_search(self) -> None:
        response = self.client.get(
            f"{self.api}/users", params={"search": "EDIT"}, headers=self.auth(self.editor_token)
        )
        self.assertEqual([u["email"] for u in response.json()["users"]], ["editor@example.com"])

    def test_create_user_with_roles(self) -> None:
        response = self.client.post(
            f"{self.api}/users",
            json={
                "email": "fresh@example.com",
                "password": DEFAULT_PASSWORD,
                "full_name": "Fresh",
                "role_ids": [self.editor_role.id],
            },
            headers=self.auth(self.admin_token),
        )
        self.assertEqual(response.status_code, 201, response.text)
        self.assertEqual(response.json()["user"]["role"], "editor")
        self.login("fresh@example.com")

    def test_choosing_roles_at_creation_needs_admin(self) -> None:
        creator = make_role(self.db, "onboarder", self.tenant.id, ["users.create"])
        make_user(self.db, self.tenant, "onboarder@example.com", [creator])
        token = self.login("onboarder@example.com")
        body = {
            "email": "sneaky@example.com",
            "password": DEFAULT_PASSWORD,
            "full_name": "Sneaky",
            "role_ids": [self.admin_role.id],
        }
        response = self.client.post(f"{self.api}/users", json=body, headers=self.auth(token))
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["required_roles"], ["admin"])
        self.db.expire_all()
        self.assertEqual(
            self.db.query(User).filter(User.email == "sneaky@example.com").count(), 0
        )

        del body["role_ids"]
        response = self.client.post(f"{self.api}/users", json=body, headers=self.auth(token))
        self.assertEqual(response.status_code, 201, response.text)
        self.assertEqual([r["name"] for r in response.json()["user"]["roles"]], ["user"])
        new_token = self.login("sneaky@example.com")
        denied = self.client.get(f"{self.api}/permissions", headers=self.auth(new_token))
        self.assertEqual(denied.status_code, 403)

    def test_create_user_trims_full_name(self) -> None:
        response = self.client.post(
            f"{self.api}/users",
            json={"email": "trim@example.com", "password": DEFAULT_PASSWORD, "full_name": "  Trim Me "},
            headers=self.auth(self.admin_token),
        )
        self.assertEqual(response.status_code, 201, response.text)
        self.assertEqual(response.json()["user"]["full_name"], "Trim Me")

    def test_blank_full_name_is_validation_error(self) -> None:
        response = self.client.post(
            f"{self.api}/users",
            json={"email": "blank@example.com", "password": DEFAULT_PASSWORD, "full_name": "   "},
            headers=self.auth(self.admin_token),
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["errors"][0]["field"], "full_name")

    def test_own_record_without_view_permission(self) -> None:
        own = self.client.get(
            f"{self.api}/users/{self.plain.id}", headers=self.auth(self.plain_token)
        )
        self.assertEqual(own.status_code, 200)
        other = self.client.get(
            f"{self.api}/users/{self.admin.id}", headers=self.auth(self.plain_token)
        )
        self.assertEqual(other.status_code, 403)

    def test_cannot_delete_or_deactivate_self(self) -> None:
        url = f"{self.api}/users/{self.admin.id}"
        headers = self.auth(self.admin_token)
        self.assertEqual(self.client.delete(url, headers=headers).status_code, 403)
        response = self.client.put(url, json={"is_active": False}, headers=headers)
        self.assertEqual(response.status_code, 403)

    def test_deactivate_then_token_stops_working(self) -> None:
        response = self.client.put(
            f"{self.api}/users/{self.plain.id}",
            json={"is_active": False},
            headers=self.auth(self.admin_token),
        )
        self.assertEqual(response.status_code, 200, response.text)
        me = self.client.get(f"{self.api}/auth/me", headers=self.auth(self.plain_token))
        self.assertEqual(me.status_code, 401)

    def test_delete_user(self) -> None:
        user_id = self.plain.id
        response = self.client.delete(
            f"{self.api}/users/{user_id}", headers=self.auth(self.admin_token)
        )
        self.assertEqual(response.status_code, 200, response.text)
        self.db.expire_all()
        self.assertIsNone(self.db.get(User, user_id))
        me = self.client.get(f"{self.api}/auth/me", headers=self.auth(self.plain_token))
        self.assertEqual(me.status_code, 401)


class TestTenantsApi(AdminApiTestCase):
    def test_branding_update_needs_settings_manage(self) -> None:
        body = {"primary_color": "#112233", "welcome_message": "Hi there"}
        url = f"{self.api}/tenants/current"
        denied = self.client.put(url, json=body, headers=self.auth(self.plain_token))
        self.assertEqual(denied.status_code, 403)
        updated = self.client.put(url, json=body, headers=self.auth(self.admin_token))
        self.assertEqual(updated.status_code, 200, updated.text)
        tenant = self.client.get(url, headers=self.auth(self.plain_token)).json()["tenant"]
        self.assertEqual(tenant["primary_color"], "#112233")
        self.assertEqual(tenant["welcome_message"], "Hi there")

    def test_bad_color_is_validation_error(self) -> None:
        response = self.client.put(
            f"{self.api}/tenants/current",
            json={"primary_color": "blue"},
            headers=self.auth(self.admin_token),
        )
        self.assertEqual(response.status_code, 400)


class TestUnhandledErrors(AdminApiTestCase):
    def test_internal_errors_are_generic(self) -> None:
        client = TestClient(self.client.app, raise_server_exceptions=False)
        with patch(
            "widgetadmin.services.rbac.list_roles", side_effect=RuntimeError("boom: secret")
        ):
            response = client.get(f"{self.api}/roles", headers=self.auth(self.admin_token))
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"message": "Internal server error", "status": 500})


if __name__ == "__main__":
    unittest.main()
