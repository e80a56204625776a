"""Role catalog: roles, permissions and the grants between them.

Roles are scoped by the namespace that defines them and flow down the tree:
a role defined at ``R/A`` is available at ``R/A`` and everything below it.
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping, Optional, Union

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..exceptions import ConflictError, NotFoundError, ValidationError
from ..namespaces import ancestor_rows, get_namespace_row
from ..records import PermissionInfo, RoleInfo
from ..storage import Database, Permission, Role, RolePermission, UserNamespaceRole
from . import hierarchy as rules

logger = logging.getLogger(__name__)


def get_role_row(session: Session, role_id: str) -> Role:
    row = session.get(Role, role_id)
    if row is None:
        raise NotFoundError(f"Role {role_id} not found", role_id=role_id)
    return row


def get_permission_row(session: Session, permission_id: str) -> Permission:
    row = session.get(Permission, permission_id)
    if row is None:
        raise NotFoundError(f"Permission {permission_id} not found", permission_id=permission_id)
    return row


def role_permission_rows(session: Session, role_id: str) -> list[Permission]:
    stmt = (
        select(Permission)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .where(RolePermission.role_id == role_id)
        .order_by(Permission.name)
    )
    return list(session.scalars(stmt).all())


def _require_name(kind: str, name: str) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError(f"{kind} name must be a non-empty string")
    return name.strip()


class RoleCatalog:
    """Roles, permissions, grants, and the level rules between roles.

    Args:
        db: Storage the catalog reads and writes.
        hierarchy: Optional name → level table used when a role is referred
            to by bare name. Defaults to ``ROLE_HIERARCHY``.
    """

    def __init__(self, db: Database, hierarchy: Optional[Mapping[str, int]] = None) -> None:
        self._db = db
        self._hierarchy = dict(rules.ROLE_HIERARCHY if hierarchy is None else hierarchy)

    # ── Roles ────────────────────────────────────────────────────

    def define_role(
        self,
        name: str,
        origin_namespace_id: str,
        level: Optional[int] = None,
        is_system: bool = False,
        display_name: str = "",
        description: Optional[str] = None,
    ) -> RoleInfo:
        """Create a role owned by ``origin_namespace_id``.

        ``level`` defaults to the hierarchy entry for ``name`` (or the
        unknown sentinel when the name is not in the table).

        Raises:
            NotFoundError: origin namespace does not exist.
            ConflictError: the name is already defined at that namespace.
            ValidationError: level outside 1 .. ``UNKNOWN_LEVEL``.
        """
        name = _require_name("Role", name)
        if level is None:
            level = rules.default_level_for(name, self._hierarchy)
        if not 1 <= int(level) <= rules.UNKNOWN_LEVEL:
            raise ValidationError(
                f"Role level must be between 1 and {rules.UNKNOWN_LEVEL}", level=int(level)
            )

        with self._db.transaction() as session:
            get_namespace_row(session, origin_namespace_id)
            if self._find_role_row(session, name, origin_namespace_id) is not None:
                raise ConflictError(
                    f"Role {name!r} already defined at this namespace",
                    name=name,
                    origin_namespace_id=origin_namespace_id,
                )
            row = Role(
                name=name,
                origin_namespace_id=origin_namespace_id,
                level=int(level),
                is_system=is_system,
                display_name=display_name or name.title(),
                description=description,
            )
            session.add(row)
            session.flush()
            logger.info("Defined role %s (level %d) at namespace %s", name, row.level, origin_namespace_id)
            return RoleInfo.from_row(row)

    def get_role(self, role_id: str) -> RoleInfo:
        with self._db.transaction() as session:
            return RoleInfo.from_row(get_role_row(session, role_id))

    def find_role(self, name: str, origin_namespace_id: str) -> Optional[RoleInfo]:
        with self._db.transaction() as session:
            row = self._find_role_row(session, name, origin_namespace_id)
            return RoleInfo.from_row(row) if row else None

    def list_roles(self) -> list[RoleInfo]:
        """All roles, most privileged first."""
        with self._db.transaction() as session:
            rows = session.scalars(select(Role).order_by(Role.level, Role.name)).all()
            return [RoleInfo.from_row(r) for r in rows]

    def update_role(
        self,
        role_id: str,
        *,
        name: Optional[str] = None,
        display_name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> RoleInfo:
        """Edit a role's descriptive fields. System roles keep their name."""
        with self._db.transaction() as session:
            row = get_role_row(session, role_id)
            if name is not None:
                name = _require_name("Role", name)
                if name != row.name:
                    if row.is_system:
                        raise ConflictError("System roles cannot be renamed", role_id=role_id)
                    if self._find_role_row(session, name, row.origin_namespace_id) is not None:
                        raise ConflictError(f"Role {name!r} already defined at this namespace", name=name)
                    row.name = name
            if display_name is not None:
                row.display_name = display_name
            if description is not None:
                row.description = description
            session.flush()
            return RoleInfo.from_row(row)

    def delete_role(self, role_id: str) -> None:
        """Delete a non-system role nobody holds; its grants go with it.

        Raises:
            NotFoundError: role does not exist.
            ConflictError: system role, or still assigned somewhere.
        """
        with self._db.transaction() as session:
            row = get_role_row(session, role_id)
            if row.is_system:
                raise ConflictError("System roles cannot be deleted", role_id=role_id)
            in_use = session.scalar(
                select(func.count()).select_from(UserNamespaceRole).where(UserNamespaceRole.role_id == role_id)
            )
            if in_use:
                raise ConflictError(
                    f"Role {row.name!r} is still assigned {in_use} time(s)",
                    role_id=role_id,
                    references="assignments",
                )
            session.delete(row)
            logger.info("Deleted role %s (%s)", row.name, role_id)

    def available_roles(self, namespace_id: str) -> list[RoleInfo]:
        """Roles defined at ``namespace_id`` or any of its ancestors."""
        with self._db.transaction() as session:
            node = get_namespace_row(session, namespace_id)
            chain_ids = [r.id for r in ancestor_rows(session, node)]
            rows = session.scalars(
                select(Role).where(Role.origin_namespace_id.in_(chain_ids)).order_by(Role.level, Role.name)
            ).all()
            return [RoleInfo.from_row(r) for r in rows]

    # ── Permissions and grants ───────────────────────────────────

    def define_permission(
        self,
        name: str,
        display_name: str = "",
        description: Optional[str] = None,
        category: Optional[str] = None,
        is_system: bool = False,
    ) -> PermissionInfo:
        name = _require_name("Permission", name)
        with self._db.transaction() as session:
            if session.scalar(select(Permission.id).where(Permission.name == name)):
                raise ConflictError(f"Permission {name!r} already exists", name=name)
            row = Permission(
                name=name,
                display_name=display_name or name,
                description=description,
                category=category,
                is_system=is_system,
            )
            session.add(row)
            session.flush()
            return PermissionInfo.from_row(row)

    def get_permission_by_name(self, name: str) -> Optional[PermissionInfo]:
        with self._db.transaction() as session:
            row = session.scalars(select(Permission).where(Permission.name == name)).first()
            return PermissionInfo.from_row(row) if row else None

    def list_permissions(self) -> list[PermissionInfo]:
        with self._db.transaction() as session:
            rows = session.scalars(select(Permission).order_by(Permission.category, Permission.name)).all()
            return [PermissionInfo.from_row(r) for r in rows]

    def grant_permission(self, role_id: str, permission_id: str) -> bool:
        """Grant a permission to a role. Returns False if it was already granted."""
        with self._db.transaction() as session:
            get_role_row(session, role_id)
            get_permission_row(session, permission_id)
            if session.get(RolePermission, (role_id, permission_id)) is not None:
                return False
            session.add(RolePermission(role_id=role_id, permission_id=permission_id))
            return True

    def revoke_permission(self, role_id: str, permission_id: str) -> bool:
        """Remove a grant. Returns False if there was nothing to remove."""
        with self._db.transaction() as session:
            get_role_row(session, role_id)
            get_permission_row(session, permission_id)
            grant = session.get(RolePermission, (role_id, permission_id))
            if grant is None:
                return False
            session.delete(grant)
            return True

    def permissions_of(self, role_id: str) -> frozenset[PermissionInfo]:
        with self._db.transaction() as session:
            get_role_row(session, role_id)
            return frozenset(PermissionInfo.from_row(p) for p in role_permission_rows(session, role_id))

    # ── Level rules ──────────────────────────────────────────────

    def level_of(self, role: Union[str, RoleInfo, None]) -> int:
        return rules.level_of(role, self._hierarchy)

    def can_assign(self, actor_role: Union[str, RoleInfo, None], target_role: Union[str, RoleInfo, None]) -> bool:
        return rules.can_assign(actor_role, target_role, self._hierarchy)

    def can_manage(self, actor_role: Union[str, RoleInfo, None], target_role: Union[str, RoleInfo, None]) -> bool:
        return rules.can_manage(actor_role, target_role, self._hierarchy)

    def assignable_roles(self, actor_role: Union[str, RoleInfo, None], all_roles: Iterable) -> list:
        return rules.assignable_roles(actor_role, all_roles, self._hierarchy)

    # ── Internals ────────────────────────────────────────────────

    @staticmethod
    def _find_role_row(session: Session, name: str, origin_namespace_id: str) -> Optional[Role]:
        return session.scalars(
            select(Role).where(Role.name == name, Role.origin_namespace_id == origin_namespace_id)
        ).first()


__all__ = ["RoleCatalog", "get_permission_row", "get_role_row", "role_permission_rows"]
