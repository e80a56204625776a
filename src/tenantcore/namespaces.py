"""Namespace tree with materialized paths.

Every node stores its ``full_path`` (ancestor names joined by ``/``) and its
``depth`` (root = 0). Ancestor and descendant lookups are single indexed
queries over those columns; the price is that a move or rename rewrites the
whole subtree inside one transaction.

Invariants kept by every write:
- exactly one root (``parent_id`` is NULL)
- ``depth(n) == depth(parent(n)) + 1``
- ``full_path(n) == full_path(parent(n)) + "/" + name(n)``
- ``full_path``, ``(name, parent_id)`` and ``domain`` are unique
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .exceptions import ConflictError, CycleError, InconsistentError, NotFoundError, ValidationError
from .records import NamespaceInfo, NamespaceTreeNode
from .storage import Database, Namespace, Role, UserNamespaceRole

logger = logging.getLogger(__name__)

PATH_SEPARATOR = "/"
MAX_NAME_LENGTH = 255


# ── Session-level helpers (shared with the resolver and stores) ──


def get_namespace_row(session: Session, namespace_id: str) -> Namespace:
    """Load a namespace row or raise NotFoundError."""
    row = session.get(Namespace, namespace_id)
    if row is None:
        raise NotFoundError(f"Namespace {namespace_id} not found", namespace_id=namespace_id)
    return row


def path_prefixes(full_path: str) -> list[str]:
    """``"r/a/x"`` → ``["r", "r/a", "r/a/x"]``."""
    parts = full_path.split(PATH_SEPARATOR)
    return [PATH_SEPARATOR.join(parts[: i + 1]) for i in range(len(parts))]


def ancestor_rows(session: Session, node: Namespace) -> list[Namespace]:
    """Return ``node`` and all its ancestors, nearest first, root last.

    One query over the materialized path prefixes. The result is checked
    against depth and parent links; any mismatch is an integrity failure.
    """
    prefixes = path_prefixes(node.full_path)
    rows = session.scalars(select(Namespace).where(Namespace.full_path.in_(prefixes))).all()
    chain = sorted(rows, key=lambda r: r.depth, reverse=True)

    problem = None
    if len(chain) != len(prefixes):
        problem = f"expected {len(prefixes)} ancestors for {node.full_path!r}, found {len(chain)}"
    elif node.depth != len(prefixes) - 1:
        problem = f"depth {node.depth} of {node.full_path!r} disagrees with its path"
    else:
        for i, row in enumerate(chain):
            expected_parent = chain[i + 1].id if i + 1 < len(chain) else None
            if row.depth != node.depth - i or row.parent_id != expected_parent:
                problem = f"ancestor chain of {node.full_path!r} broken at {row.full_path!r}"
                break

    if problem:
        logger.error("Namespace tree inconsistent: %s", problem, extra={"namespace_id": node.id})
        raise InconsistentError(problem, namespace_id=node.id)
    return chain


def descendant_rows(session: Session, node: Namespace) -> list[Namespace]:
    """All strict descendants of ``node`` ordered by path."""
    prefix = node.full_path + PATH_SEPARATOR
    stmt = (
        select(Namespace)
        .where(Namespace.full_path.startswith(prefix, autoescape=True))
        .order_by(Namespace.full_path)
    )
    return list(session.scalars(stmt).all())


def _root_row(session: Session) -> Optional[Namespace]:
    return session.scalars(select(Namespace).where(Namespace.parent_id.is_(None))).first()


def _validate_name(name: str) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Namespace name must be a non-empty string")
    name = name.strip()
    if PATH_SEPARATOR in name:
        raise ValidationError(f"Namespace name must not contain {PATH_SEPARATOR!r}", name=name)
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f"Namespace name longer than {MAX_NAME_LENGTH} characters", name=name)
    return name


def _normalize_domain(domain: Optional[str]) -> Optional[str]:
    if domain is None:
        return None
    domain = domain.strip().lower()
    return domain or None


def _join(parent_path: Optional[str], name: str) -> str:
    return name if parent_path is None else f"{parent_path}{PATH_SEPARATOR}{name}"


class NamespaceTree:
    """Owns namespace nodes and their structural invariants."""

    def __init__(self, db: Database) -> None:
        self._db = db

    # ── Writes ───────────────────────────────────────────────────

    def create(self, name: str, parent_id: Optional[str] = None, domain: Optional[str] = None) -> NamespaceInfo:
        """Create a namespace under ``parent_id`` (or the singleton root).

        Raises:
            NotFoundError: parent does not exist.
            ConflictError: root already exists, or name/path/domain taken.
        """
        name = _validate_name(name)
        domain = _normalize_domain(domain)

        with self._db.transaction() as session:
            if parent_id is None:
                if _root_row(session) is not None:
                    raise ConflictError("A root namespace already exists")
                full_path, depth = name, 0
            else:
                parent = get_namespace_row(session, parent_id)
                full_path, depth = _join(parent.full_path, name), parent.depth + 1
                self._ensure_sibling_free(session, name, parent_id)

            if session.scalar(select(Namespace.id).where(Namespace.full_path == full_path)):
                raise ConflictError(f"Namespace path {full_path!r} already exists", full_path=full_path)
            self._ensure_domain_free(session, domain)

            row = Namespace(name=name, parent_id=parent_id, full_path=full_path, depth=depth, domain=domain)
            session.add(row)
            session.flush()
            logger.info("Created namespace %s (%s)", full_path, row.id)
            return NamespaceInfo.from_row(row)

    def move(self, namespace_id: str, new_parent_id: str) -> NamespaceInfo:
        """Re-parent a namespace, recomputing path and depth for its subtree.

        Raises:
            NotFoundError: either namespace does not exist.
            CycleError: new parent is the node itself or one of its descendants.
            ConflictError: the destination already holds that name.
        """
        with self._db.transaction() as session:
            node = get_namespace_row(session, namespace_id)
            new_parent = get_namespace_row(session, new_parent_id)

            if new_parent.id == node.id or new_parent.full_path.startswith(node.full_path + PATH_SEPARATOR):
                raise CycleError(
                    f"Cannot move {node.full_path!r} under its own subtree",
                    namespace_id=namespace_id,
                    new_parent_id=new_parent_id,
                )
            if node.parent_id == new_parent.id:
                return NamespaceInfo.from_row(node)

            self._ensure_sibling_free(session, node.name, new_parent.id)
            new_path = _join(new_parent.full_path, node.name)
            if session.scalar(select(Namespace.id).where(Namespace.full_path == new_path)):
                raise ConflictError(f"Namespace path {new_path!r} already exists", full_path=new_path)

            old_path = node.full_path
            node.parent_id = new_parent.id
            moved = self._rewrite_subtree(session, node, new_path, new_parent.depth + 1)
            logger.info("Moved namespace %s -> %s (%d descendants rewritten)", old_path, new_path, moved)
            return NamespaceInfo.from_row(node)

    def rename(self, namespace_id: str, name: str) -> NamespaceInfo:
        """Rename a namespace and cascade the new path to its subtree."""
        name = _validate_name(name)
        with self._db.transaction() as session:
            node = get_namespace_row(session, namespace_id)
            if node.name == name:
                return NamespaceInfo.from_row(node)

            parent_path = None
            if node.parent_id is not None:
                self._ensure_sibling_free(session, name, node.parent_id)
                parent_path = get_namespace_row(session, node.parent_id).full_path
            new_path = _join(parent_path, name)
            if session.scalar(select(Namespace.id).where(Namespace.full_path == new_path)):
                raise ConflictError(f"Namespace path {new_path!r} already exists", full_path=new_path)

            old_path = node.full_path
            node.name = name
            self._rewrite_subtree(session, node, new_path, node.depth)
            logger.info("Renamed namespace %s -> %s", old_path, new_path)
            return NamespaceInfo.from_row(node)

    def set_domain(self, namespace_id: str, domain: Optional[str]) -> NamespaceInfo:
        """Set or clear (``None``/empty) the domain tag of a namespace."""
        domain = _normalize_domain(domain)
        with self._db.transaction() as session:
            node = get_namespace_row(session, namespace_id)
            if node.domain != domain:
                self._ensure_domain_free(session, domain)
                node.domain = domain
            return NamespaceInfo.from_row(node)

    def delete(self, namespace_id: str) -> None:
        """Delete a leaf namespace nothing refers to.

        Raises:
            NotFoundError: namespace does not exist.
            ConflictError: root, has children, has assignments or owns roles.
        """
        with self._db.transaction() as session:
            node = get_namespace_row(session, namespace_id)
            if node.parent_id is None:
                raise ConflictError("Cannot delete the root namespace", namespace_id=namespace_id)

            references = {
                "children": select(func.count()).select_from(Namespace).where(Namespace.parent_id == node.id),
                "assignments": select(func.count())
                .select_from(UserNamespaceRole)
                .where(UserNamespaceRole.namespace_id == node.id),
                "roles": select(func.count()).select_from(Role).where(Role.origin_namespace_id == node.id),
            }
            for kind, stmt in references.items():
                count = session.scalar(stmt)
                if count:
                    raise ConflictError(
                        f"Cannot delete namespace {node.full_path!r}: it still has {count} {kind}",
                        namespace_id=namespace_id,
                        references=kind,
                    )

            session.delete(node)
            logger.info("Deleted namespace %s (%s)", node.full_path, node.id)

    # ── Reads ────────────────────────────────────────────────────

    def get(self, namespace_id: str) -> NamespaceInfo:
        with self._db.transaction() as session:
            return NamespaceInfo.from_row(get_namespace_row(session, namespace_id))

    def root(self) -> NamespaceInfo:
        with self._db.transaction() as session:
            row = _root_row(session)
            if row is None:
                raise NotFoundError("No root namespace exists")
            return NamespaceInfo.from_row(row)

    def find_by_path(self, full_path: str) -> Optional[NamespaceInfo]:
        with self._db.transaction() as session:
            row = session.scalars(select(Namespace).where(Namespace.full_path == full_path)).first()
            return NamespaceInfo.from_row(row) if row else None

    def find_by_domain(self, domain: str) -> Optional[NamespaceInfo]:
        domain = _normalize_domain(domain)
        if domain is None:
            return None
        with self._db.transaction() as session:
            row = session.scalars(select(Namespace).where(Namespace.domain == domain)).first()
            return NamespaceInfo.from_row(row) if row else None

    def ancestors(self, namespace_id: str) -> list[NamespaceInfo]:
        """The namespace itself followed by its ancestors; the root is last."""
        with self._db.transaction() as session:
            node = get_namespace_row(session, namespace_id)
            return [NamespaceInfo.from_row(r) for r in ancestor_rows(session, node)]

    def descendants(self, namespace_id: str) -> list[NamespaceInfo]:
        """Every node below ``namespace_id`` (exclusive), ordered by path."""
        with self._db.transaction() as session:
            node = get_namespace_row(session, namespace_id)
            return [NamespaceInfo.from_row(r) for r in descendant_rows(session, node)]

    def children(self, namespace_id: str) -> list[NamespaceInfo]:
        with self._db.transaction() as session:
            get_namespace_row(session, namespace_id)
            rows = session.scalars(
                select(Namespace).where(Namespace.parent_id == namespace_id).order_by(Namespace.name)
            ).all()
            return [NamespaceInfo.from_row(r) for r in rows]

    def tree(self) -> list[NamespaceTreeNode]:
        """The whole forest as nested nodes (one root when consistent)."""
        with self._db.transaction() as session:
            rows = session.scalars(select(Namespace).order_by(Namespace.full_path)).all()
            infos = [NamespaceInfo.from_row(r) for r in rows]

        by_parent: dict[Optional[str], list[NamespaceInfo]] = {}
        for info in infos:
            by_parent.setdefault(info.parent_id, []).append(info)

        def build(info: NamespaceInfo) -> NamespaceTreeNode:
            return NamespaceTreeNode(
                namespace=info,
                children=tuple(build(child) for child in by_parent.get(info.id, [])),
            )

        return [build(info) for info in by_parent.get(None, [])]

    def resolve(self, namespace_id: Optional[str] = None, host: Optional[str] = None) -> NamespaceInfo:
        """Pick the namespace a request targets.

        Priority: explicit id > domain of ``host`` (port stripped) > root.
        """
        with self._db.transaction() as session:
            if namespace_id:
                row = session.get(Namespace, namespace_id)
                if row is not None:
                    return NamespaceInfo.from_row(row)
                logger.warning("Unknown namespace id %s requested, falling back", namespace_id)

            domain = _normalize_domain(host.split(":", 1)[0]) if host else None
            if domain:
                row = session.scalars(select(Namespace).where(Namespace.domain == domain)).first()
                if row is not None:
                    return NamespaceInfo.from_row(row)

            row = _root_row(session)
            if row is None:
                logger.error("No namespace could be resolved: the tree has no root")
                raise InconsistentError("Namespace tree has no root")
            return NamespaceInfo.from_row(row)

    def check_integrity(self) -> list[str]:
        """Scan the whole tree and describe every invariant violation found."""
        with self._db.transaction() as session:
            rows = session.scalars(select(Namespace)).all()
            nodes = {r.id: NamespaceInfo.from_row(r) for r in rows}

        problems: list[str] = []
        roots = [n for n in nodes.values() if n.parent_id is None]
        if len(roots) != 1:
            problems.append(f"expected exactly one root, found {len(roots)}")

        for node in nodes.values():
            if node.parent_id is None:
                if node.depth != 0 or node.full_path != node.name:
                    problems.append(f"root {node.full_path!r} has depth {node.depth} / path mismatch")
                continue
            parent = nodes.get(node.parent_id)
            if parent is None:
                problems.append(f"{node.full_path!r} references missing parent {node.parent_id}")
                continue
            if node.depth != parent.depth + 1:
                problems.append(f"{node.full_path!r} has depth {node.depth}, parent has {parent.depth}")
            if node.full_path != _join(parent.full_path, node.name):
                problems.append(f"{node.full_path!r} does not extend parent path {parent.full_path!r}")

        for problem in problems:
            logger.error("Namespace integrity violation: %s", problem)
        return problems

    # ── Internals ────────────────────────────────────────────────

    @staticmethod
    def _ensure_sibling_free(session: Session, name: str, parent_id: str) -> None:
        clash = session.scalar(
            select(Namespace.id).where(Namespace.parent_id == parent_id, Namespace.name == name)
        )
        if clash:
            raise ConflictError(
                "A namespace with this name already exists at this level",
                name=name,
                parent_id=parent_id,
            )

    @staticmethod
    def _ensure_domain_free(session: Session, domain: Optional[str]) -> None:
        if domain and session.scalar(select(Namespace.id).where(Namespace.domain == domain)):
            raise ConflictError(f"Domain {domain!r} is already bound to a namespace", domain=domain)

    @staticmethod
    def _rewrite_subtree(session: Session, node: Namespace, new_path: str, new_depth: int) -> int:
        old_path = node.full_path
        delta = new_depth - node.depth
        descendants = descendant_rows(session, node)
        for row in descendants:
            row.full_path = new_path + row.full_path[len(old_path):]
            row.depth += delta
        node.full_path = new_path
        node.depth = new_depth
        session.flush()
        return len(descendants)


__all__ = [
    "MAX_NAME_LENGTH",
    "NamespaceTree",
    "PATH_SEPARATOR",
    "ancestor_rows",
    "descendant_rows",
    "get_namespace_row",
    "path_prefixes",
]
