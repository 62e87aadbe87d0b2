"""Tests for node-set invariant checks."""

from lineage.graph.integrity import find_violations
from lineage.graph.models import ContentNode, make_node
from tests.core.graph_test_helpers import node_at


def _tree():
    return [
        node_at("r", "r"),
        node_at("a", "r", "a"),
        node_at("c", "r", "a", "c"),
        node_at("x", "x"),
    ]


class TestFindViolations:
    """Tests for find_violations()."""

    def test_consistent(self):
        assert find_violations(_tree()) == []

    def test_empty(self):
        assert find_violations([]) == []

    def test_duplicate_path(self):
        nodes = _tree() + [make_node("dup", ("yt_r", "yt_a"), "r")]
        violations = find_violations(nodes)
        assert len(violations) == 1
        assert "Duplicate path yt_r.yt_a" in violations[0]

    def test_orphan(self):
        nodes = [node_at("r", "r"), node_at("c", "r", "a", "c")]
        assert find_violations(nodes) == ["c: parent path yt_r.yt_a has no node"]

    def test_wrong_root_id(self):
        nodes = [node_at("r", "r"), make_node("a", ("yt_r", "yt_a"), "x")]
        assert find_violations(nodes) == ["a: root_id x but root node is r"]

    def test_depth_mismatch(self):
        nodes = [node_at("r", "r"), ContentNode("a", ("yt_r", "yt_a"), 4, "r")]
        assert find_violations(nodes) == ["a: depth 4 != 1"]

    def test_content_repeated_along_path(self):
        nodes = [
            node_at("r", "r"),
            make_node("r2", ("yt_r", "yt_a"), "r"),
            ContentNode("r", ("yt_r", "yt_a", "yt_r"), 2, "r", id="again"),
        ]
        assert any("repeats" in v for v in find_violations(nodes))
