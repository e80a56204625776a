"""Idempotent seeding of the data every deployment needs.

Creates, when missing:
- the root namespace (named ``config.root_namespace``)
- the system permissions
- the system roles at the root, with their permission grants

Running it again only fills gaps; existing rows are never modified, so
operator edits to display names or extra grants survive.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import select

from .config import CoreConfig
from .permissions.constants import SYSTEM_PERMISSIONS, SYSTEM_ROLES
from .records import NamespaceInfo, PermissionInfo, RoleInfo
from .storage import Database, Namespace, Permission, Role, RolePermission

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BootstrapResult:
    root: NamespaceInfo
    permissions: dict[str, PermissionInfo] = field(default_factory=dict)
    roles: dict[str, RoleInfo] = field(default_factory=dict)
    created: int = 0


def bootstrap(db: Database, config: Optional[CoreConfig] = None) -> BootstrapResult:
    """Seed root namespace, system permissions and system roles in one transaction."""
    config = config or CoreConfig()
    created = 0

    with db.transaction() as session:
        root = session.scalars(select(Namespace).where(Namespace.parent_id.is_(None))).first()
        if root is None:
            root = Namespace(name=config.root_namespace, full_path=config.root_namespace, depth=0)
            session.add(root)
            session.flush()
            created += 1
            logger.info("Created root namespace %s", root.full_path)
        elif root.name != config.root_namespace:
            logger.warning(
                "Existing root namespace %r differs from configured %r; keeping the existing one",
                root.name,
                config.root_namespace,
            )

        permissions: dict[str, Permission] = {
            p.name: p for p in session.scalars(select(Permission)).all()
        }
        for spec in SYSTEM_PERMISSIONS:
            if spec.name in permissions:
                continue
            row = Permission(
                name=spec.name,
                display_name=spec.display_name,
                description=spec.description or None,
                category=spec.category,
                is_system=True,
            )
            session.add(row)
            permissions[spec.name] = row
            created += 1
        session.flush()

        roles: dict[str, Role] = {}
        for spec in SYSTEM_ROLES:
            role = session.scalars(
                select(Role).where(Role.name == spec.name, Role.origin_namespace_id == root.id)
            ).first()
            if role is None:
                role = Role(
                    name=spec.name,
                    display_name=spec.display_name,
                    description=spec.description or None,
                    level=int(spec.level),
                    is_system=True,
                    origin_namespace_id=root.id,
                )
                session.add(role)
                session.flush()
                created += 1
                logger.info("Created system role %s (level %d)", spec.name, role.level)

                # Grants are only seeded with the role so later revocations stick
                for permission_name in spec.permissions:
                    session.add(RolePermission(role_id=role.id, permission_id=permissions[permission_name].id))
            roles[spec.name] = role
        session.flush()

        if created:
            logger.info("Bootstrap created %d row(s)", created)
        return BootstrapResult(
            root=NamespaceInfo.from_row(root),
            permissions={name: PermissionInfo.from_row(p) for name, p in permissions.items()},
            roles={name: RoleInfo.from_row(r) for name, r in roles.items()},
            created=created,
        )


__all__ = ["BootstrapResult", "bootstrap"]
