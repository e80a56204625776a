"""Effective-permission resolution over the namespace tree.

Nearest ancestor wins: the governing role of a user at a namespace is the
role assigned at the closest namespace on the path from the target up to
the root (target included). Permissions are never unioned across levels,
so a closer assignment fully shadows a broader one.

Denial is a value, not an error: no assignment anywhere on the path yields
an empty set and every ``can_*`` query answers False. Errors are raised
only for a missing user/namespace (``NotFoundError``) or corrupted tree or
assignment data (``InconsistentError``).
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..exceptions import InconsistentError
from ..namespaces import ancestor_rows, get_namespace_row
from ..records import PermissionInfo, RoleInfo, UserStatus
from ..storage import Database, Role, UserNamespaceRole
from ..users import get_user_row
from . import hierarchy as rules
from .catalog import role_permission_rows

logger = logging.getLogger(__name__)


def governing_role_row(session: Session, user_id: str, namespace_id: str) -> Optional[Role]:
    """Resolve the governing role inside an open session.

    One query for the ancestor chain, one for the user's assignments on it;
    the walk itself is in memory, nearest namespace first.
    """
    get_user_row(session, user_id)
    node = get_namespace_row(session, namespace_id)
    chain = ancestor_rows(session, node)

    rows = session.execute(
        select(UserNamespaceRole.namespace_id, UserNamespaceRole.role_id).where(
            UserNamespaceRole.user_id == user_id,
            UserNamespaceRole.namespace_id.in_([ns.id for ns in chain]),
        )
    ).all()
    assigned = {namespace: role_id for namespace, role_id in rows}

    for ns in chain:
        role_id = assigned.get(ns.id)
        if role_id is None:
            continue
        role = session.get(Role, role_id)
        if role is None:
            logger.error(
                "Assignment of user %s at %s references missing role %s",
                user_id,
                ns.full_path,
                role_id,
            )
            raise InconsistentError(
                "Assignment references a missing role",
                user_id=user_id,
                namespace_id=ns.id,
                role_id=role_id,
            )
        return role
    return None


class PermissionResolver:
    """Answers "what may this user do here" and the actor-vs-target checks."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def governing_role(self, user_id: str, namespace_id: str) -> Optional[RoleInfo]:
        with self._db.transaction() as session:
            role = governing_role_row(session, user_id, namespace_id)
            return RoleInfo.from_row(role) if role else None

    def effective_permissions(self, user_id: str, namespace_id: str) -> frozenset[PermissionInfo]:
        """Permissions of the governing role; empty when the user holds none."""
        with self._db.transaction() as session:
            role = governing_role_row(session, user_id, namespace_id)
            if role is None:
                return frozenset()
            return frozenset(PermissionInfo.from_row(p) for p in role_permission_rows(session, role.id))

    def effective_permission_names(self, user_id: str, namespace_id: str) -> frozenset[str]:
        return frozenset(p.name for p in self.effective_permissions(user_id, namespace_id))

    def has_permission(self, user_id: str, namespace_id: str, permission_name: str) -> bool:
        return permission_name in self.effective_permission_names(user_id, namespace_id)

    def can_assign_role_at(self, actor_user_id: str, namespace_id: str, target_role_id: str) -> bool:
        """True iff the actor's governing role at the namespace outranks the role.

        An unknown target role answers False rather than raising.
        """
        with self._db.transaction() as session:
            actor_role = governing_role_row(session, actor_user_id, namespace_id)
            if actor_role is None:
                return False
            target_role = session.get(Role, target_role_id)
            if target_role is None:
                return False
            return rules.can_assign(RoleInfo.from_row(actor_role), RoleInfo.from_row(target_role))

    def can_manage(self, actor_user_id: str, target_user_id: str, namespace_id: str) -> bool:
        """True iff both users hold a role here and the actor's outranks the target's.

        Fails closed when either side has no governing role, and for
        self-management.
        """
        with self._db.transaction() as session:
            return self._can_manage(session, actor_user_id, target_user_id, namespace_id)

    def can_delete_user(self, actor_user_id: str, target_user_id: str, namespace_id: str) -> bool:
        """Only disabled users may be deleted, never by themselves."""
        with self._db.transaction() as session:
            target = get_user_row(session, target_user_id)
            if target.status != UserStatus.DISABLED.value:
                return False
            return self._can_manage(session, actor_user_id, target_user_id, namespace_id)

    def assignable_roles_at(self, actor_user_id: str, namespace_id: str) -> list[RoleInfo]:
        """Roles available at the namespace that the actor may hand out there."""
        with self._db.transaction() as session:
            actor_role = governing_role_row(session, actor_user_id, namespace_id)
            if actor_role is None:
                return []
            chain_ids = [ns.id for ns in ancestor_rows(session, get_namespace_row(session, namespace_id))]
            rows = session.scalars(
                select(Role).where(Role.origin_namespace_id.in_(chain_ids)).order_by(Role.level, Role.name)
            ).all()
            available = [RoleInfo.from_row(r) for r in rows]
            return rules.assignable_roles(RoleInfo.from_row(actor_role), available)

    @staticmethod
    def _can_manage(session: Session, actor_user_id: str, target_user_id: str, namespace_id: str) -> bool:
        actor_role = governing_role_row(session, actor_user_id, namespace_id)
        target_role = governing_role_row(session, target_user_id, namespace_id)
        if actor_user_id == target_user_id:
            return False
        if actor_role is None or target_role is None:
            return False
        return rules.can_manage(RoleInfo.from_row(actor_role), RoleInfo.from_row(target_role))


__all__ = ["PermissionResolver", "governing_role_row"]
