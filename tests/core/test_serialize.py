"""Tests for hierarchy serialization."""

import json

import pytest

from lineage.errors import ValidationError
from lineage.graph.assembler import assemble_family
from lineage.graph.builder import HierarchyBuilder
from lineage.graph.models import CreationMethod, RelationshipKind
from lineage.graph.serialize import (
    relationship_from_dict,
    serialize_build,
    serialize_family,
    serialize_node,
    to_tree_text,
)
from tests.core.graph_test_helpers import lookup_for, make_edge, make_edges, node_at


class TestRelationshipFromDict:
    """Tests for parsing edge records."""

    def test_short_keys(self):
        edge = relationship_from_dict({"source": "vid", "target": "clip", "type": "reaction"})
        assert edge.source_content_id == "vid"
        assert edge.target_content_id == "clip"
        assert edge.kind is RelationshipKind.REACTION

    def test_full_keys(self):
        edge = relationship_from_dict(
            {
                "id": "e1",
                "source_content_id": "vid",
                "target_content_id": "clip",
                "kind": "repurposed",
                "confidence": 0.5,
                "creation_method": "ai_suggested",
                "metadata": {"model": "v2"},
            }
        )
        assert edge.id == "e1"
        assert edge.confidence == 0.5
        assert edge.creation_method is CreationMethod.AI_SUGGESTED
        assert edge.metadata == {"model": "v2"}

    def test_defaults_to_derivative(self):
        edge = relationship_from_dict({"source": "a", "target": "b"})
        assert edge.kind is RelationshipKind.DERIVATIVE

    @pytest.mark.parametrize(
        "data",
        [
            {"source": "a"},
            {"source": "a", "target": "b", "kind": "cousin"},
            {"source": "a", "target": "b", "confidence": "high"},
            {"source": "a", "target": "b", "confidence": 2},
            {"source": "a", "target": "b", "metadata": ["x"]},
            {"source": "a", "target": "b", "metadata": "notes"},
            ["a", "b"],
        ],
    )
    def test_invalid(self, data):
        with pytest.raises(ValidationError):
            relationship_from_dict(data)


class TestSerializers:
    """Tests for JSON-compatible output."""

    def test_node(self):
        data = serialize_node(node_at("c", "r", "a", "c"))
        assert data["path"] == "yt_r.yt_a.yt_c"
        assert data["labels"] == ["yt_r", "yt_a", "yt_c"]
        assert data["depth"] == 2
        assert data["root_id"] == "r"

    def test_family_is_json_serializable(self):
        family = assemble_family(
            [node_at("r", "r"), node_at("a", "r", "a")], [make_edge("r", "a")]
        )
        data = serialize_family(family)
        assert data["metadata"]["node_count"] == 2
        assert data["metadata"]["edge_count"] == 1
        assert data["edges"][0]["kind"] == "derivative"
        json.dumps(data)

    def test_build_diagnostics(self):
        result = HierarchyBuilder(lookup_for("r", "a")).build(
            make_edges(("r", "a"), ("a", "ghost"))
        )
        data = serialize_build(result)
        assert data["roots"] == ["r"]
        assert data["diagnostics"]["broken_references"] == [
            "a --[derivative]--> ghost (missing)"
        ]
        assert data["diagnostics"]["cycles"] == []


class TestTreeText:
    """Tests for to_tree_text()."""

    def test_indentation(self):
        nodes = [
            node_at("b", "r", "b"),
            node_at("c", "r", "a", "c"),
            node_at("r", "r"),
            node_at("a", "r", "a"),
        ]
        assert to_tree_text(nodes) == (
            "yt_r  [r]\n"
            "  yt_a  [a]\n"
            "    yt_c  [c]\n"
            "  yt_b  [b]"
        )

    def test_subtree_indent_is_relative(self):
        assert to_tree_text([node_at("c", "r", "a", "c")]) == "yt_c  [c]"

    def test_empty(self):
        assert to_tree_text([]) == ""
