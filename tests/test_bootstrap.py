"""Tests for idempotent seeding."""

from __future__ import annotations

from tenantcore import CoreConfig, Permissions, RoleLevel, bootstrap
from tenantcore.permissions import SYSTEM_PERMISSIONS


class TestBootstrap:
    def test_seeds_root_permissions_and_roles(self, db, catalog, tree) -> None:
        result = bootstrap(db, CoreConfig(root_namespace="acme"))

        assert tree.root().full_path == "acme"
        assert set(result.permissions) == {p.name for p in SYSTEM_PERMISSIONS}
        assert {name: role.level for name, role in result.roles.items()} == {
            "admin": RoleLevel.ADMIN,
            "manager": RoleLevel.MANAGER,
            "customer": RoleLevel.CUSTOMER,
            "user": RoleLevel.USER,
        }
        assert all(role.is_system for role in result.roles.values())
        assert all(role.origin_namespace_id == result.root.id for role in result.roles.values())

    def test_role_grants(self, db, catalog) -> None:
        result = bootstrap(db)

        def names(role: str) -> set[str]:
            return {p.name for p in catalog.permissions_of(result.roles[role].id)}

        assert names("admin") == {p.name for p in SYSTEM_PERMISSIONS}
        assert names("customer") == {Permissions.LOGIN, Permissions.API_TOKEN_GENERATE}
        assert names("user") == {Permissions.LOGIN}
        assert Permissions.USER_MANAGE in names("manager")

    def test_idempotent(self, db, catalog) -> None:
        first = bootstrap(db)
        role = first.roles["customer"]
        catalog.revoke_permission(role.id, first.permissions[Permissions.API_TOKEN_GENERATE].id)

        second = bootstrap(db)

        assert second.created == 0
        assert second.root.id == first.root.id
        assert second.roles["customer"].id == role.id
        assert {p.name for p in catalog.permissions_of(role.id)} == {Permissions.LOGIN}
