"""Tests for the materialized-path namespace tree."""

from __future__ import annotations

import threading

import pytest
from sqlalchemy import update

from tenantcore import (
    ConflictError,
    CycleError,
    InconsistentError,
    NamespaceTree,
    NotFoundError,
    ValidationError,
)
from tenantcore.storage import Namespace


@pytest.fixture
def rax(tree: NamespaceTree):
    """Root R with child A and grandchild X."""
    r = tree.create("R")
    a = tree.create("A", r.id)
    x = tree.create("X", a.id)
    return r, a, x


class TestCreate:
    """Tests for NamespaceTree.create."""

    def test_paths_and_depths(self, rax) -> None:
        """Test full_path and depth are computed from the parent."""
        r, a, x = rax
        assert (r.full_path, r.depth, r.is_root) == ("R", 0, True)
        assert (a.full_path, a.depth) == ("R/A", 1)
        assert (x.full_path, x.depth, x.parent_id) == ("R/A/X", 2, a.id)

    def test_second_root_conflicts(self, tree: NamespaceTree, rax) -> None:
        """Test only one root may exist."""
        with pytest.raises(ConflictError):
            tree.create("Other")

    def test_missing_parent(self, tree: NamespaceTree, rax) -> None:
        """Test creating under an unknown parent raises NotFoundError."""
        with pytest.raises(NotFoundError):
            tree.create("B", "missing-id")

    def test_duplicate_sibling(self, tree: NamespaceTree, rax) -> None:
        """Test (name, parent) is unique."""
        r, _, _ = rax
        with pytest.raises(ConflictError):
            tree.create("A", r.id)

    @pytest.mark.parametrize("name", ["", "   ", "a/b"])
    def test_invalid_names(self, tree: NamespaceTree, name: str) -> None:
        """Test empty names and names containing the separator are rejected."""
        with pytest.raises(ValidationError):
            tree.create(name)

    def test_domain_unique_and_normalized(self, tree: NamespaceTree, rax) -> None:
        """Test domains are lowercased and unique."""
        r, a, _ = rax
        tree.set_domain(a.id, "Acme.Example.COM")
        assert tree.find_by_domain("acme.example.com").id == a.id
        with pytest.raises(ConflictError):
            tree.create("B", r.id, domain="acme.example.com")


class TestQueries:
    """Tests for ancestor, descendant and lookup queries."""

    def test_ancestors_self_first_root_last(self, tree: NamespaceTree, rax) -> None:
        r, a, x = rax
        assert [n.id for n in tree.ancestors(x.id)] == [x.id, a.id, r.id]
        assert [n.id for n in tree.ancestors(r.id)] == [r.id]

    def test_descendants_exclusive(self, tree: NamespaceTree, rax) -> None:
        r, a, x = rax
        tree.create("AB", r.id)  # shares the "A" prefix but is not below R/A
        assert [n.id for n in tree.descendants(a.id)] == [x.id]
        assert {n.full_path for n in tree.descendants(r.id)} == {"R/A", "R/A/X", "R/AB"}

    def test_children_ordered_by_name(self, tree: NamespaceTree, rax) -> None:
        r, _, _ = rax
        tree.create("C", r.id)
        tree.create("B", r.id)
        assert [n.name for n in tree.children(r.id)] == ["A", "B", "C"]

    def test_tree_structure(self, tree: NamespaceTree, rax) -> None:
        r, a, x = rax
        (root,) = tree.tree()
        assert root.namespace.id == r.id
        assert root.children[0].namespace.id == a.id
        assert root.children[0].children[0].namespace.id == x.id

    def test_find_by_path(self, tree: NamespaceTree, rax) -> None:
        _, _, x = rax
        assert tree.find_by_path("R/A/X").id == x.id
        assert tree.find_by_path("R/nope") is None

    def test_resolve_priority(self, tree: NamespaceTree, rax) -> None:
        """Test explicit id beats host domain, which beats the root."""
        r, a, x = rax
        tree.set_domain(a.id, "a.example.com")
        assert tree.resolve(namespace_id=x.id, host="a.example.com").id == x.id
        assert tree.resolve(host="a.example.com:8443").id == a.id
        assert tree.resolve(namespace_id="unknown", host="other.example.com").id == r.id
        assert tree.resolve().id == r.id

    def test_resolve_without_root(self, tree: NamespaceTree) -> None:
        with pytest.raises(InconsistentError):
            tree.resolve()


class TestMoveAndRename:
    """Tests for subtree rewrites."""

    def test_move_round_trip_restores_paths(self, tree: NamespaceTree, rax) -> None:
        """Test moving away and back restores every original path and depth."""
        r, a, x = rax
        b = tree.create("B", r.id)
        before = {n.id: (n.full_path, n.depth) for n in tree.descendants(r.id)}

        tree.move(a.id, b.id)
        assert tree.get(x.id).full_path == "R/B/A/X"
        assert tree.get(x.id).depth == 3

        tree.move(a.id, r.id)
        after = {n.id: (n.full_path, n.depth) for n in tree.descendants(r.id)}
        assert after == before
        assert tree.check_integrity() == []

    def test_move_under_self_or_descendant_is_cycle(self, tree: NamespaceTree, rax) -> None:
        _, a, x = rax
        with pytest.raises(CycleError):
            tree.move(a.id, a.id)
        with pytest.raises(CycleError):
            tree.move(a.id, x.id)
        assert tree.get(x.id).full_path == "R/A/X"

    def test_cycle_is_a_conflict(self) -> None:
        assert issubclass(CycleError, ConflictError)

    def test_move_name_clash(self, tree: NamespaceTree, rax) -> None:
        r, a, x = rax
        tree.create("X", r.id)
        with pytest.raises(ConflictError):
            tree.move(x.id, r.id)

    def test_rename_cascades(self, tree: NamespaceTree, rax) -> None:
        _, a, x = rax
        renamed = tree.rename(a.id, "Alpha")
        assert renamed.full_path == "R/Alpha"
        assert tree.get(x.id).full_path == "R/Alpha/X"
        assert tree.find_by_path("R/A/X") is None


class TestConcurrentRewrite:
    """Tests for subtree rewrites racing readers on a shared in-memory database."""

    def test_readers_never_see_half_moved_subtree(self, tree: NamespaceTree, rax) -> None:
        r, a, x = rax
        b = tree.create("B", r.id)
        done = threading.Event()
        seen: list[list[str]] = []
        errors: list[BaseException] = []

        def mover() -> None:
            try:
                for i in range(20):
                    tree.move(a.id, b.id if i % 2 == 0 else r.id)
            except BaseException as e:
                errors.append(e)
            finally:
                done.set()

        def reader() -> None:
            try:
                while True:
                    seen.append([n.full_path for n in tree.ancestors(x.id)])
                    if done.is_set():
                        break
            except BaseException as e:
                errors.append(e)

        threads = [threading.Thread(target=mover), threading.Thread(target=reader)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert errors == []
        assert seen
        assert {tuple(chain) for chain in seen} <= {
            ("R/A/X", "R/A", "R"),
            ("R/B/A/X", "R/B/A", "R/B", "R"),
        }
        assert tree.check_integrity() == []


class TestDelete:
    """Tests for RESTRICT deletion semantics."""

    def test_delete_leaf(self, tree: NamespaceTree, rax) -> None:
        _, _, x = rax
        tree.delete(x.id)
        with pytest.raises(NotFoundError):
            tree.get(x.id)

    def test_delete_with_children(self, tree: NamespaceTree, rax) -> None:
        _, a, _ = rax
        with pytest.raises(ConflictError):
            tree.delete(a.id)

    def test_delete_root(self, tree: NamespaceTree, rax) -> None:
        r, _, _ = rax
        with pytest.raises(ConflictError):
            tree.delete(r.id)

    def test_delete_with_assignment(self, tree, catalog, assignments, make_user, rax) -> None:
        r, _, x = rax
        role = catalog.define_role("user", r.id)
        user = make_user("u1")
        assignments.assign(user.id, x.id, role.id)
        with pytest.raises(ConflictError):
            tree.delete(x.id)

    def test_delete_with_owned_role(self, tree, catalog, rax) -> None:
        _, _, x = rax
        catalog.define_role("local", x.id)
        with pytest.raises(ConflictError):
            tree.delete(x.id)


class TestIntegrity:
    """Tests for detection of corrupted tree data."""

    def test_corrupted_depth_raises_inconsistent(self, db, tree: NamespaceTree, rax) -> None:
        """Test a depth that disagrees with the path is reported, not repaired."""
        _, a, x = rax
        with db.transaction() as session:
            session.execute(update(Namespace).where(Namespace.id == a.id).values(depth=5))

        with pytest.raises(InconsistentError):
            tree.ancestors(x.id)
        assert tree.check_integrity()
