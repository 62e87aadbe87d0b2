"""Tests for the content lineage data model."""

import pytest

from lineage.errors import InconsistentHierarchyError, ValidationError
from lineage.graph.models import (
    ContentNode,
    ContentRelationship,
    CreationMethod,
    RelationshipKind,
    make_node,
)
from tests.core.graph_test_helpers import make_content, make_edge


class TestRelationshipKind:
    """Tests for hierarchical vs non-hierarchical kinds."""

    @pytest.mark.parametrize("kind", ["parent", "derivative", "repurposed", "reaction"])
    def test_hierarchical(self, kind):
        assert RelationshipKind(kind).implies_hierarchy()

    @pytest.mark.parametrize("kind", ["reference", "sibling", "semantic"])
    def test_not_hierarchical(self, kind):
        assert not RelationshipKind(kind).implies_hierarchy()


class TestContentRelationship:
    """Tests for relationship validation and identity."""

    def test_defaults(self):
        edge = ContentRelationship("vid", "clip")
        assert edge.kind is RelationshipKind.DERIVATIVE
        assert edge.creation_method is CreationMethod.USER_DEFINED
        assert edge.confidence == 1.0
        assert edge.is_hierarchical

    def test_self_edge_rejected(self):
        with pytest.raises(ValidationError):
            ContentRelationship("vid", "vid")

    @pytest.mark.parametrize("confidence", [-0.1, 1.5])
    def test_confidence_range(self, confidence):
        with pytest.raises(ValidationError):
            ContentRelationship("vid", "clip", confidence=confidence)

    def test_missing_endpoint_rejected(self):
        with pytest.raises(ValidationError):
            ContentRelationship("", "clip")

    def test_identity_is_source_target_kind(self):
        first = make_edge("vid", "clip", confidence=0.4)
        second = make_edge("vid", "clip", confidence=0.9)
        other_kind = make_edge("vid", "clip", kind=RelationshipKind.REACTION)
        assert first == second
        assert first.id != second.id
        assert len({first, second, other_kind}) == 2

    def test_str(self):
        assert str(make_edge("vid", "clip")) == "vid --[derivative]--> clip"


class TestContentItem:
    """Tests for ContentItem label derivation."""

    def test_platform_and_label(self):
        item = make_content("dQw4-w9", platform_id="YouTube_Main")
        assert item.platform == "youtube"
        assert item.label == "youtube_dQw4w9"


class TestContentNode:
    """Tests for ContentNode."""

    def test_make_node_depth_follows_path(self):
        node = make_node("c", ("yt_r", "yt_a", "yt_c"), "r")
        assert node.depth == 2
        assert node.label == "yt_c"
        assert node.path_text == "yt_r.yt_a.yt_c"
        assert not node.is_root

    def test_moved_keeps_identity(self):
        node = make_node("c", ("yt_r", "yt_a", "yt_c"), "r")
        moved = node.moved(("yt_x", "yt_c"), "x")
        assert moved.id == node.id
        assert moved.depth == 1
        assert moved.root_id == "x"
        assert node.path == ("yt_r", "yt_a", "yt_c")

    def test_to_state(self):
        node = make_node("a", ("yt_r", "yt_a"), "r")
        assert node.to_state() == {"path": "yt_r.yt_a", "depth": 1, "root_id": "r"}

    def test_from_row(self):
        row = {"id": "n1", "content_id": "a", "path": "yt_r.yt_a", "depth": 1, "root_id": "r"}
        node = ContentNode.from_row(row)
        assert node.path == ("yt_r", "yt_a")
        assert node.id == "n1"

    def test_from_row_rejects_depth_mismatch(self):
        row = {"id": "n1", "content_id": "a", "path": "yt_r.yt_a", "depth": 3, "root_id": "r"}
        with pytest.raises(InconsistentHierarchyError):
            ContentNode.from_row(row)

    def test_from_row_rejects_bad_path(self):
        row = {"id": "n1", "content_id": "a", "path": "yt_r..yt_a", "depth": 2, "root_id": "r"}
        with pytest.raises(InconsistentHierarchyError):
            ContentNode.from_row(row)

    def test_from_row_rejects_trailing_newline(self):
        row = {"id": "n1", "content_id": "a", "path": "yt_r.yt_a\n", "depth": 1, "root_id": "r"}
        with pytest.raises(InconsistentHierarchyError):
            ContentNode.from_row(row)
