"""Tests for PathMutator - transactional create, relocate, remove and link."""

import threading

import pytest

from lineage.errors import ConflictError, CycleError, NotFoundError, StorageError
from lineage.graph.builder import HierarchyBuilder
from lineage.graph.integrity import find_violations
from lineage.graph.models import RelationshipKind
from lineage.graph.mutator import PathMutator
from lineage.store.sqlite import StoreSession
from tests.core.graph_test_helpers import (
    all_nodes,
    make_edge,
    make_edges,
    paths_string,
    seed_contents,
    snapshot,
)


class TestCreateNode:
    """Tests for create_node()."""

    def test_root(self, store, mutator):
        seed_contents(store, "r")
        node = mutator.create_node("r")
        assert node.path == ("yt_r",)
        assert node.depth == 0
        assert node.root_id == "r"
        assert store.get_node("r") == node

    def test_under_parent(self, store, family):
        node = family.create_node("d", "c")
        assert node.path_text == "yt_r.yt_a.yt_c.yt_d"
        assert node.depth == 3
        assert node.root_id == "r"

    def test_duplicate_content_rejected(self, family):
        with pytest.raises(ConflictError):
            family.create_node("a", "b")

    def test_missing_content(self, store, mutator):
        with pytest.raises(NotFoundError):
            mutator.create_node("ghost")

    def test_missing_parent(self, family):
        with pytest.raises(NotFoundError) as exc_info:
            family.create_node("d", "ghost")
        assert exc_info.value.entity_id == "ghost"

    def test_logged(self, family):
        family.create_node("d", "b")
        entry = family.log.last()
        assert entry.operation == "create_node"
        assert entry.target_id == "d"
        assert entry.after_state["path"] == "yt_r.yt_b.yt_d"


class TestRelocate:
    """Tests for relocate() and its descendant cascade."""

    def test_subtree_follows(self, store, family):
        moved = family.relocate("a", "b")
        assert moved.path_text == "yt_r.yt_b.yt_a"
        assert moved.depth == 2
        c = store.get_node("c")
        assert c.path_text == "yt_r.yt_b.yt_a.yt_c"
        assert c.depth == 3

    def test_move_to_other_family_rewrites_root(self, store, family):
        family.relocate("a", "x")
        assert store.get_node("a").root_id == "x"
        assert store.get_node("c").root_id == "x"
        assert store.get_node("c").path_text == "yt_x.yt_a.yt_c"
        assert store.get_node("b").root_id == "r"

    def test_move_root_under_other_family(self, store, family):
        family.relocate("x", "c")
        assert store.get_node("x").path_text == "yt_r.yt_a.yt_c.yt_x"
        assert store.get_node("x").root_id == "r"

    def test_move_up(self, store, family):
        family.relocate("c", "r")
        assert store.get_node("c").path_text == "yt_r.yt_c"
        assert store.get_node("c").depth == 1

    def test_descendant_parent_rejected_and_tree_unchanged(self, store, family):
        before = snapshot(store)
        with pytest.raises(CycleError):
            family.relocate("a", "c")
        with pytest.raises(CycleError):
            family.relocate("a", "a")
        assert snapshot(store) == before
        assert len(family.log) == 0

    def test_same_parent_is_a_no_op(self, store, family):
        before = snapshot(store)
        node = family.relocate("a", "r")
        assert node.path_text == "yt_r.yt_a"
        assert snapshot(store) == before
        assert len(family.log) == 0

    def test_missing_nodes(self, family):
        with pytest.raises(NotFoundError):
            family.relocate("d", "r")
        with pytest.raises(NotFoundError):
            family.relocate("a", "ghost")

    def test_logged_with_descendant_count(self, family):
        family.relocate("a", "b")
        entry = family.log.last()
        assert entry.operation == "relocate"
        assert entry.before_state["path"] == "yt_r.yt_a"
        assert entry.after_state["path"] == "yt_r.yt_b.yt_a"
        assert entry.descendants_affected == 1

    def test_sibling_with_longer_label_untouched(self, store, mutator):
        """Moving yt_ab must not drag yt_abc's subtree along."""
        seed_contents(store, "r", "ab", "abc", "k", "x")
        mutator.create_node("r")
        mutator.create_node("ab", "r")
        mutator.create_node("abc", "r")
        mutator.create_node("k", "abc")
        mutator.create_node("x")

        mutator.relocate("ab", "x")

        assert store.get_node("abc").path_text == "yt_r.yt_abc"
        assert store.get_node("k").path_text == "yt_r.yt_abc.yt_k"
        assert store.get_node("ab").path_text == "yt_x.yt_ab"

    def test_paged_cascade(self, store):
        mutator = PathMutator(store, page_size=1)
        seed_contents(store, "r", "a", "b", "c1", "c2", "c3", "g1", "g2")
        mutator.create_node("r")
        mutator.create_node("a", "r")
        mutator.create_node("b", "r")
        for child in ("c1", "c2", "c3"):
            mutator.create_node(child, "a")
        mutator.create_node("g1", "c1")
        mutator.create_node("g2", "g1")

        mutator.relocate("a", "b")

        assert mutator.log.last().descendants_affected == 5
        assert store.get_node("g2").path_text == "yt_r.yt_b.yt_a.yt_c1.yt_g1.yt_g2"
        assert find_violations(all_nodes(store)) == []

    def test_failure_mid_cascade_rolls_back(self, store, family, monkeypatch):
        family.create_node("d", "a")
        family.log.clear()
        before = snapshot(store)
        original = StoreSession.update_nodes
        calls = []

        def failing(self, nodes):
            calls.append(1)
            if len(calls) > 1:
                raise StorageError("disk full")
            return original(self, nodes)

        monkeypatch.setattr(StoreSession, "update_nodes", failing)
        with pytest.raises(StorageError):
            family.relocate("a", "b")

        assert snapshot(store) == before
        assert len(family.log) == 0


class TestRemove:
    """Tests for remove()."""

    def test_cascade(self, store, family):
        assert family.remove("a") is True
        assert store.get_node("a") is None
        assert store.get_node("c") is None
        assert paths_string(all_nodes(store)) == "yt_r, yt_r.yt_b, yt_x"
        entry = family.log.last()
        assert entry.operation == "remove"
        assert entry.descendants_affected == 1

    def test_preserve_descendants(self, store, family):
        family.remove("a", preserve_descendants=True)
        c = store.get_node("c")
        assert c.path_text == "yt_r.yt_c"
        assert c.depth == 1
        assert c.root_id == "r"
        assert family.log.last().operation == "remove_preserve"

    def test_preserve_descendants_of_root(self, store, family):
        family.remove("r", preserve_descendants=True)
        assert store.get_node("a").path_text == "yt_a"
        assert store.get_node("a").root_id == "a"
        assert store.get_node("c").path_text == "yt_a.yt_c"
        assert store.get_node("c").root_id == "a"
        assert store.get_node("b").root_id == "b"
        assert find_violations(all_nodes(store)) == []

    def test_missing(self, family):
        with pytest.raises(NotFoundError):
            family.remove("d")

    def test_preserve_label_collision_rolls_back(self, store, family):
        # "d_" sanitizes to the same label as "d", so promoting d under r collides
        seed_contents(store, "d_")
        family.create_node("d", "a")
        family.create_node("d_", "r")
        family.log.clear()
        before = snapshot(store)

        with pytest.raises(ConflictError):
            family.remove("a", preserve_descendants=True)

        assert snapshot(store) == before
        assert len(family.log) == 0

    def test_preserve_failure_mid_cascade_rolls_back(self, store, family, monkeypatch):
        seed_contents(store, "g1", "g2")
        family.create_node("g1", "c")
        family.create_node("d", "a")
        family.create_node("g2", "d")
        family.log.clear()
        before = snapshot(store)
        original = StoreSession.update_nodes
        calls = []

        def failing(self, nodes):
            calls.append(1)
            if len(calls) > 1:
                raise StorageError("disk full")
            return original(self, nodes)

        monkeypatch.setattr(StoreSession, "update_nodes", failing)
        with pytest.raises(StorageError):
            family.remove("a", preserve_descendants=True)

        assert len(calls) == 2
        assert snapshot(store) == before
        assert len(family.log) == 0

    def test_cascade_failure_rolls_back(self, store, family, monkeypatch):
        before = snapshot(store)

        def failing(self, content_id):
            raise StorageError("disk full")

        monkeypatch.setattr(StoreSession, "delete_node", failing)
        with pytest.raises(StorageError):
            family.remove("a")

        assert snapshot(store) == before
        assert store.get_node("c") is not None
        assert len(family.log) == 0


class TestDeleteContent:
    """Tests for delete_content()."""

    def test_removes_node_relationships_and_record(self, store, family):
        family.link(make_edge("a", "d"))
        family.log.clear()
        assert family.delete_content("a", preserve_descendants=True) is True
        assert store.get_content_by_id("a") is None
        assert store.get_node("a") is None
        assert store.get_node("d").path_text == "yt_r.yt_d"
        with store.session() as session:
            assert session.relationships_for("a") == []
        assert family.log.last().operation == "remove_preserve"

    def test_content_without_node(self, store, family):
        family.delete_content("d")
        assert store.get_content_by_id("d") is None
        assert len(family.log) == 0

    def test_missing(self, family):
        with pytest.raises(NotFoundError):
            family.delete_content("ghost")

    def test_failure_keeps_node_and_record(self, store, family, monkeypatch):
        family.link(make_edge("a", "d"))
        family.log.clear()
        before = snapshot(store)

        def failing(self, content_id):
            raise StorageError("disk full")

        monkeypatch.setattr(StoreSession, "delete_content", failing)
        with pytest.raises(StorageError):
            family.delete_content("a")

        assert snapshot(store) == before
        assert store.get_content_by_id("a") is not None
        with store.session() as session:
            assert len(session.relationships_for("a")) == 1
        assert len(family.log) == 0


class TestLink:
    """Tests for link() and unlink()."""

    def test_creates_both_nodes(self, store, mutator):
        seed_contents(store, "vid", "clip")
        mutator.link(make_edge("vid", "clip"))
        assert store.get_node("vid").path_text == "yt_vid"
        assert store.get_node("clip").path_text == "yt_vid.yt_clip"
        with store.session() as session:
            assert session.get_relationship("vid", "clip", RelationshipKind.DERIVATIVE)

    def test_places_new_target_under_existing_source(self, store, family):
        family.link(make_edge("c", "d"))
        assert store.get_node("d").path_text == "yt_r.yt_a.yt_c.yt_d"

    def test_moves_existing_target(self, store, family):
        family.link(make_edge("b", "x"))
        assert store.get_node("x").path_text == "yt_r.yt_b.yt_x"
        entry = family.log.last()
        assert entry.operation == "link"
        assert entry.before_state["path"] == "yt_x"

    def test_duplicate_rejected(self, family):
        family.link(make_edge("b", "d"))
        with pytest.raises(ConflictError):
            family.link(make_edge("b", "d"))

    def test_missing_content(self, family):
        with pytest.raises(NotFoundError):
            family.link(make_edge("r", "ghost"))

    def test_cycle_rejected_before_writing(self, store, family):
        before = snapshot(store)
        with pytest.raises(CycleError):
            family.link(make_edge("c", "r"))
        assert snapshot(store) == before
        with store.session() as session:
            assert session.list_relationships() == []

    def test_non_hierarchical_edge_leaves_tree(self, store, family):
        before = snapshot(store)
        family.link(make_edge("c", "r", kind=RelationshipKind.REFERENCE))
        assert snapshot(store) == before

    def test_unlink(self, store, family):
        family.link(make_edge("b", "d"))
        assert family.unlink("b", "d", RelationshipKind.DERIVATIVE) is True
        with store.session() as session:
            assert session.list_relationships() == []
        assert store.get_node("d") is not None

    def test_unlink_missing(self, family):
        with pytest.raises(NotFoundError):
            family.unlink("r", "a", RelationshipKind.DERIVATIVE)


class TestApplyBuild:
    """Tests for persisting builder output."""

    EDGES = [("r", "a"), ("a", "c"), ("r", "b")]

    def test_persists_nodes_and_edges(self, store, mutator):
        seed_contents(store, "r", "a", "b", "c")
        edges = make_edges(*self.EDGES)
        result = HierarchyBuilder(store).build(edges)
        mutator.apply_build(result, edges)

        assert paths_string(all_nodes(store)) == "yt_r, yt_r.yt_a, yt_r.yt_a.yt_c, yt_r.yt_b"
        with store.session() as session:
            assert len(session.list_relationships()) == 3
        entry = mutator.log.last()
        assert entry.operation == "build"
        assert entry.descendants_affected == 3

    def test_existing_nodes_conflict_without_replace(self, store, mutator):
        seed_contents(store, "r", "a", "b", "c")
        edges = make_edges(*self.EDGES)
        result = HierarchyBuilder(store).build(edges)
        mutator.apply_build(result, edges)
        with pytest.raises(ConflictError):
            mutator.apply_build(result, edges)

    def test_replace_rebuilds_family(self, store, mutator):
        seed_contents(store, "r", "a", "b", "c")
        mutator.apply_build(HierarchyBuilder(store).build(make_edges(*self.EDGES)))
        rebuilt = make_edges(("r", "b"), ("b", "a"), ("a", "c"))
        mutator.apply_build(HierarchyBuilder(store).build(rebuilt), rebuilt, replace=True)
        assert paths_string(all_nodes(store)) == (
            "yt_r, yt_r.yt_b, yt_r.yt_b.yt_a, yt_r.yt_b.yt_a.yt_c"
        )


class TestConcurrency:
    """Mutations on disjoint families may run side by side."""

    def test_parallel_relocations_keep_invariants(self, store):
        mutator = PathMutator(store)
        families = [f"f{i}" for i in range(4)]
        for root in families:
            seed_contents(store, root, f"{root}a", f"{root}b", f"{root}c")
            mutator.create_node(root)
            mutator.create_node(f"{root}a", root)
            mutator.create_node(f"{root}b", root)
            mutator.create_node(f"{root}c", f"{root}a")

        errors = []

        def worker(root):
            try:
                mutator.relocate(f"{root}a", f"{root}b")
            except Exception as e:  # noqa: BLE001
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(root,)) for root in families]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert find_violations(all_nodes(store)) == []
        for root in families:
            assert store.get_node(f"{root}c").path_text == (
                f"yt_{root}.yt_{root}b.yt_{root}a.yt_{root}c"
            )
