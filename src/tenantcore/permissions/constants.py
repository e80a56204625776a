"""Permission names and the role privilege order.

Provides:
- ``Permissions`` — canonical system permission names (``resource_action`` format).
- ``PermissionCategory`` — grouping used by admin listings.
- ``RoleLevel`` — the ordered privilege levels (lower = more privileged).
- ``SYSTEM_ROLES`` — the built-in roles seeded at the root namespace.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class Permissions:
    """Canonical system permission names.

    Permission names are stable identifiers; display text lives in the
    permission record, never in code.
    """

    # ── Authentication ──────────────────────────────────
    LOGIN = "login"
    API_TOKEN_GENERATE = "api_token_generate"

    # ── User Management ─────────────────────────────────
    USER_INDEX = "user_index"
    USER_SHOW = "user_show"
    USER_CREATE = "user_create"
    USER_UPDATE = "user_update"
    USER_DELETE = "user_delete"
    USER_MANAGE = "user_manage"
    USER_ROLE_ASSIGN = "user_role_assign"
    USER_PERMISSIONS_VIEW = "user_permissions_view"
    USER_PERMISSIONS_EDIT = "user_permissions_edit"

    # ── Role Management ─────────────────────────────────
    ROLES_LIST = "roles_list"
    ROLES_CREATE = "roles_create"
    ROLES_EDIT = "roles_edit"
    ROLES_DELETE = "roles_delete"
    ROLE_MANAGE = "role_manage"
    PERMISSIONS_LIST = "permissions_list"
    PERMISSION_MANAGE = "permission_manage"

    # ── System ──────────────────────────────────────────
    SYSTEM_SETTINGS = "system_settings"


class PermissionCategory:
    AUTHENTICATION = "authentication"
    USER_MANAGEMENT = "user_management"
    ROLE_MANAGEMENT = "role_management"
    SYSTEM = "system"


class RoleLevel(IntEnum):
    """Privilege levels; a lower value outranks a higher one.

    ``UNKNOWN`` is the sentinel for role names missing from the hierarchy:
    it is strictly less privileged than every defined level.
    """

    ADMIN = 1
    MANAGER = 2
    CUSTOMER = 3
    USER = 4
    UNKNOWN = 999


@dataclass(frozen=True)
class PermissionSpec:
    name: str
    display_name: str
    category: str
    description: str = ""


@dataclass(frozen=True)
class RoleSpec:
    name: str
    display_name: str
    level: RoleLevel
    permissions: tuple[str, ...]
    description: str = ""


SYSTEM_PERMISSIONS: tuple[PermissionSpec, ...] = (
    PermissionSpec(Permissions.LOGIN, "Login Access", PermissionCategory.AUTHENTICATION,
                   "Allows user to login to the system"),
    PermissionSpec(Permissions.API_TOKEN_GENERATE, "Generate API Tokens", PermissionCategory.AUTHENTICATION,
                   "Allows user to generate API tokens"),
    PermissionSpec(Permissions.USER_INDEX, "Index Users", PermissionCategory.USER_MANAGEMENT),
    PermissionSpec(Permissions.USER_SHOW, "Show User", PermissionCategory.USER_MANAGEMENT),
    PermissionSpec(Permissions.USER_CREATE, "Create Users", PermissionCategory.USER_MANAGEMENT),
    PermissionSpec(Permissions.USER_UPDATE, "Update User", PermissionCategory.USER_MANAGEMENT),
    PermissionSpec(Permissions.USER_DELETE, "Delete Users", PermissionCategory.USER_MANAGEMENT),
    PermissionSpec(Permissions.USER_MANAGE, "Manage Users", PermissionCategory.USER_MANAGEMENT,
                   "Allows user to view and manage other users"),
    PermissionSpec(Permissions.USER_ROLE_ASSIGN, "Assign User Roles", PermissionCategory.USER_MANAGEMENT),
    PermissionSpec(Permissions.USER_PERMISSIONS_VIEW, "View User Permissions", PermissionCategory.USER_MANAGEMENT),
    PermissionSpec(Permissions.USER_PERMISSIONS_EDIT, "Edit User Permissions", PermissionCategory.USER_MANAGEMENT),
    PermissionSpec(Permissions.ROLES_LIST, "List Roles", PermissionCategory.ROLE_MANAGEMENT),
    PermissionSpec(Permissions.ROLES_CREATE, "Create Roles", PermissionCategory.ROLE_MANAGEMENT),
    PermissionSpec(Permissions.ROLES_EDIT, "Edit Roles", PermissionCategory.ROLE_MANAGEMENT),
    PermissionSpec(Permissions.ROLES_DELETE, "Delete Roles", PermissionCategory.ROLE_MANAGEMENT),
    PermissionSpec(Permissions.ROLE_MANAGE, "Manage Roles", PermissionCategory.ROLE_MANAGEMENT),
    PermissionSpec(Permissions.PERMISSIONS_LIST, "List Permissions", PermissionCategory.ROLE_MANAGEMENT),
    PermissionSpec(Permissions.PERMISSION_MANAGE, "Manage Permissions", PermissionCategory.ROLE_MANAGEMENT),
    PermissionSpec(Permissions.SYSTEM_SETTINGS, "System Settings", PermissionCategory.SYSTEM),
)

_ALL_PERMISSIONS = tuple(spec.name for spec in SYSTEM_PERMISSIONS)

SYSTEM_ROLES: tuple[RoleSpec, ...] = (
    RoleSpec(
        "admin", "Administrator", RoleLevel.ADMIN, _ALL_PERMISSIONS,
        "Full system administrator with all permissions",
    ),
    RoleSpec(
        "manager", "Manager", RoleLevel.MANAGER,
        (
            Permissions.LOGIN,
            Permissions.API_TOKEN_GENERATE,
            Permissions.USER_INDEX,
            Permissions.USER_SHOW,
            Permissions.USER_CREATE,
            Permissions.USER_UPDATE,
            Permissions.USER_MANAGE,
            Permissions.USER_ROLE_ASSIGN,
            Permissions.USER_PERMISSIONS_VIEW,
            Permissions.ROLES_LIST,
        ),
        "Manages users below their own level",
    ),
    RoleSpec(
        "customer", "Customer", RoleLevel.CUSTOMER,
        (Permissions.LOGIN, Permissions.API_TOKEN_GENERATE),
        "Regular customer with basic access permissions",
    ),
    RoleSpec("user", "User", RoleLevel.USER, (Permissions.LOGIN,), "Login only"),
)


__all__ = [
    "PermissionCategory",
    "PermissionSpec",
    "Permissions",
    "RoleLevel",
    "RoleSpec",
    "SYSTEM_PERMISSIONS",
    "SYSTEM_ROLES",
]
