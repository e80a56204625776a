"""User → namespace → role assignments.

A user holds at most one role per namespace; ``assign`` replaces whatever
role the user already had there.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select

from .exceptions import InconsistentError, NotFoundError
from .namespaces import get_namespace_row
from .permissions.catalog import get_role_row
from .users import get_user_row
from .records import Assignment, CopyResult, Member, NamespaceInfo, RoleInfo, UserInfo
from .storage import Database, Namespace, Role, User, UserNamespaceRole

logger = logging.getLogger(__name__)


class AssignmentStore:
    def __init__(self, db: Database) -> None:
        self._db = db

    def assign(self, user_id: str, namespace_id: str, role_id: str) -> Assignment:
        """Give ``user_id`` the role ``role_id`` at ``namespace_id`` (upsert).

        Raises:
            NotFoundError: user, namespace or role does not exist.
        """
        with self._db.transaction() as session:
            get_user_row(session, user_id)
            namespace = get_namespace_row(session, namespace_id)
            role = get_role_row(session, role_id)

            row = session.get(UserNamespaceRole, (user_id, namespace_id))
            if row is None:
                session.add(UserNamespaceRole(user_id=user_id, namespace_id=namespace_id, role_id=role_id))
                logger.info("Assigned role %s to user %s at %s", role.name, user_id, namespace.full_path)
            elif row.role_id != role_id:
                row.role_id = role_id
                logger.info("Reassigned user %s at %s to role %s", user_id, namespace.full_path, role.name)
            session.flush()
            return Assignment(
                user_id=user_id,
                namespace=NamespaceInfo.from_row(namespace),
                role=RoleInfo.from_row(role),
            )

    def unassign(self, user_id: str, namespace_id: str) -> bool:
        """Remove the user's role at the namespace. Returns False if there was none."""
        with self._db.transaction() as session:
            row = session.get(UserNamespaceRole, (user_id, namespace_id))
            if row is None:
                return False
            session.delete(row)
            logger.info("Unassigned user %s at namespace %s", user_id, namespace_id)
            return True

    def role_of(self, user_id: str, namespace_id: str) -> Optional[RoleInfo]:
        """The role assigned directly at this namespace, ignoring ancestors."""
        with self._db.transaction() as session:
            row = session.get(UserNamespaceRole, (user_id, namespace_id))
            if row is None:
                return None
            role = session.get(Role, row.role_id)
            if role is None:
                logger.error(
                    "Assignment of user %s at namespace %s references missing role %s",
                    user_id,
                    namespace_id,
                    row.role_id,
                )
                raise InconsistentError(
                    "Assignment references a missing role",
                    user_id=user_id,
                    namespace_id=namespace_id,
                    role_id=row.role_id,
                )
            return RoleInfo.from_row(role)

    def assignments_of(self, user_id: str) -> list[Assignment]:
        """Every direct assignment of a user, ordered by namespace path."""
        with self._db.transaction() as session:
            get_user_row(session, user_id)
            stmt = (
                select(Namespace, Role)
                .join(UserNamespaceRole, UserNamespaceRole.namespace_id == Namespace.id)
                .join(Role, Role.id == UserNamespaceRole.role_id)
                .where(UserNamespaceRole.user_id == user_id)
                .order_by(Namespace.full_path)
            )
            return [
                Assignment(user_id=user_id, namespace=NamespaceInfo.from_row(ns), role=RoleInfo.from_row(role))
                for ns, role in session.execute(stmt).all()
            ]

    def members_of(self, namespace_id: str) -> list[Member]:
        """Users holding a role directly at this namespace, ordered by name."""
        with self._db.transaction() as session:
            get_namespace_row(session, namespace_id)
            stmt = (
                select(User, Role)
                .join(UserNamespaceRole, UserNamespaceRole.user_id == User.id)
                .join(Role, Role.id == UserNamespaceRole.role_id)
                .where(UserNamespaceRole.namespace_id == namespace_id)
                .order_by(User.name, User.username)
            )
            return [
                Member(user=UserInfo.from_row(user), role=RoleInfo.from_row(role))
                for user, role in session.execute(stmt).all()
            ]

    def copy_from_parent(self, namespace_id: str) -> CopyResult:
        """Copy the parent's direct assignments down to ``namespace_id``.

        Users already assigned here keep their role and are counted as
        skipped.

        Raises:
            NotFoundError: namespace missing, or it is the root.
        """
        with self._db.transaction() as session:
            node = get_namespace_row(session, namespace_id)
            if node.parent_id is None:
                raise NotFoundError("The root namespace has no parent to copy from", namespace_id=namespace_id)

            parent_rows = session.scalars(
                select(UserNamespaceRole).where(UserNamespaceRole.namespace_id == node.parent_id)
            ).all()
            existing = set(
                session.scalars(
                    select(UserNamespaceRole.user_id).where(UserNamespaceRole.namespace_id == namespace_id)
                ).all()
            )

            copied = skipped = 0
            for parent_row in parent_rows:
                if parent_row.user_id in existing:
                    skipped += 1
                    continue
                session.add(
                    UserNamespaceRole(
                        user_id=parent_row.user_id,
                        namespace_id=namespace_id,
                        role_id=parent_row.role_id,
                    )
                )
                copied += 1

            logger.info(
                "Copied %d assignment(s) from parent into %s (%d skipped)", copied, node.full_path, skipped
            )
            return CopyResult(copied=copied, skipped=skipped)


__all__ = ["AssignmentStore"]
