"""Persistence for namespaces, roles, permissions, assignments, users and tokens."""

from .database import Database
from .models import (
    Base,
    Namespace,
    Permission,
    Role,
    RolePermission,
    Token,
    User,
    UserNamespaceRole,
    as_utc,
    new_id,
    utc_now,
)

__all__ = [
    "Base",
    "Database",
    "Namespace",
    "Permission",
    "Role",
    "RolePermission",
    "Token",
    "User",
    "UserNamespaceRole",
    "as_utc",
    "new_id",
    "utc_now",
]
