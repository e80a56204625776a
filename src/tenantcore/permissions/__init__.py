"""Roles, permissions and their resolution over the namespace tree.

Usage::

    from tenantcore.permissions import Permissions, PermissionResolver

    resolver = PermissionResolver(db)
    if resolver.has_permission(user_id, namespace_id, Permissions.USER_MANAGE):
        ...
"""

from .catalog import RoleCatalog
from .constants import (
    SYSTEM_PERMISSIONS,
    SYSTEM_ROLES,
    PermissionCategory,
    Permissions,
    PermissionSpec,
    RoleLevel,
    RoleSpec,
)
from .hierarchy import (
    ROLE_HIERARCHY,
    UNKNOWN_LEVEL,
    assignable_roles,
    can_assign,
    can_manage,
    level_of,
)
from .resolver import PermissionResolver

__all__ = [
    # Components
    "PermissionResolver",
    "RoleCatalog",
    # Constants
    "PermissionCategory",
    "PermissionSpec",
    "Permissions",
    "RoleLevel",
    "RoleSpec",
    "SYSTEM_PERMISSIONS",
    "SYSTEM_ROLES",
    # Level rules
    "ROLE_HIERARCHY",
    "UNKNOWN_LEVEL",
    "assignable_roles",
    "can_assign",
    "can_manage",
    "level_of",
]
