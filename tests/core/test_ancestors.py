"""Tests for AncestorResolver."""

import pytest

from lineage.errors import InconsistentHierarchyError, NotFoundError
from lineage.graph.ancestors import AncestorResolver
from tests.core.graph_test_helpers import ids_string, node_at, seed_contents


@pytest.fixture
def resolver(store, family):
    return AncestorResolver(store)


class TestFindCommonAncestor:
    """Tests for find_common_ancestor()."""

    def test_siblings_branches(self, resolver):
        assert resolver.find_common_ancestor(["c", "b"]).content_id == "r"

    def test_node_is_its_own_ancestor(self, resolver):
        assert resolver.find_common_ancestor(["a", "c"]).content_id == "a"

    def test_duplicate_ids(self, resolver):
        assert resolver.find_common_ancestor(["c", "c"]).content_id == "c"

    def test_different_families(self, resolver):
        assert resolver.find_common_ancestor(["c", "x"]) is None

    def test_empty_input(self, resolver):
        assert resolver.find_common_ancestor([]) is None

    def test_single_id(self, resolver):
        assert resolver.find_common_ancestor(["c"]).content_id == "c"
        assert resolver.find_common_ancestor(["ghost"]) is None

    def test_missing_ids_tolerated(self, resolver, caplog):
        node = resolver.find_common_ancestor(["c", "b", "ghost"])
        assert node.content_id == "r"
        assert "ghost" in caplog.text

    def test_all_missing(self, resolver):
        assert resolver.find_common_ancestor(["ghost", "phantom"]) is None

    def test_label_prefix_is_not_string_prefix(self, store, family):
        """yt_ab and yt_abc share a string prefix but only yt_r as ancestor."""
        seed_contents(store, "ab", "abc", "k1", "k2")
        family.create_node("ab", "r")
        family.create_node("abc", "r")
        family.create_node("k1", "ab")
        family.create_node("k2", "abc")
        resolver = AncestorResolver(store)
        assert resolver.find_common_ancestor(["k1", "k2"]).content_id == "r"
        assert resolver.find_common_ancestor(["ab", "abc"]).content_id == "r"

    def test_missing_prefix_node_is_inconsistent(self, store):
        with store.transaction() as tx:
            tx.insert_node(node_at("c", "r", "a", "c"))
            tx.insert_node(node_at("d", "r", "a", "d"))
        with pytest.raises(InconsistentHierarchyError):
            AncestorResolver(store).find_common_ancestor(["c", "d"])


class TestGetAncestors:
    """Tests for get_ancestors()."""

    def test_root_first(self, resolver):
        assert ids_string(resolver.get_ancestors("c")) == "r, a"

    def test_root_has_none(self, resolver):
        assert resolver.get_ancestors("r") == []

    def test_missing_node(self, resolver):
        with pytest.raises(NotFoundError):
            resolver.get_ancestors("d")

    def test_incomplete_chain_warns(self, store, caplog):
        with store.transaction() as tx:
            tx.insert_node(node_at("r", "r"))
            tx.insert_node(node_at("c", "r", "a", "c"))
        ancestors = AncestorResolver(store).get_ancestors("c")
        assert ids_string(ancestors) == "r"
        assert "incomplete" in caplog.text


class TestPathBetween:
    """Tests for path_between()."""

    def test_climbs_then_descends(self, resolver):
        assert ids_string(resolver.path_between("c", "b")) == "c, a, r, b"

    def test_ancestor_to_descendant(self, resolver):
        assert ids_string(resolver.path_between("r", "c")) == "r, a, c"
        assert ids_string(resolver.path_between("c", "r")) == "c, a, r"

    def test_same_node(self, resolver):
        assert ids_string(resolver.path_between("c", "c")) == "c"

    def test_different_families(self, resolver):
        with pytest.raises(NotFoundError, match="different families"):
            resolver.path_between("c", "x")

    def test_missing_node(self, resolver):
        with pytest.raises(NotFoundError):
            resolver.path_between("c", "d")

    def test_missing_intermediate_node(self, store):
        with store.transaction() as tx:
            tx.insert_node(node_at("r", "r"))
            tx.insert_node(node_at("c", "r", "a", "c"))
        with pytest.raises(InconsistentHierarchyError):
            AncestorResolver(store).path_between("c", "r")
