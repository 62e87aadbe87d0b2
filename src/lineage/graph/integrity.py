"""Node-set invariant checks.

PURE - operates on an in-memory node list and reports violations as
human-readable strings; an empty list means the set is consistent.
"""

from __future__ import annotations

from typing import Dict, Iterable, List

from lineage.graph.models import ContentNode
from lineage.graph.paths import LabelPath, format_path


def find_violations(nodes: Iterable[ContentNode]) -> List[str]:
    """Check path uniqueness, prefix, root and acyclicity invariants.

    Args:
        nodes: The complete persisted node set.

    Returns:
        One message per violation, in path order.
    """
    by_path: Dict[LabelPath, ContentNode] = {}
    violations: List[str] = []

    ordered = sorted(nodes, key=lambda n: n.path)
    for node in ordered:
        if node.path in by_path:
            violations.append(
                f"Duplicate path {node.path_text}: {by_path[node.path].content_id} "
                f"and {node.content_id}"
            )
            continue
        by_path[node.path] = node

    for node in ordered:
        if by_path.get(node.path) is not node:
            continue
        if node.depth != len(node.path) - 1:
            violations.append(f"{node.content_id}: depth {node.depth} != {len(node.path) - 1}")

        if node.depth > 0 and node.path[:-1] not in by_path:
            violations.append(
                f"{node.content_id}: parent path {format_path(node.path[:-1])} has no node"
            )

        root = by_path.get(node.path[:1])
        if root is None:
            violations.append(f"{node.content_id}: root path {node.path[0]} has no node")
        elif root.content_id != node.root_id:
            violations.append(
                f"{node.content_id}: root_id {node.root_id} but root node is {root.content_id}"
            )

        chain = [
            by_path[node.path[:i]].content_id
            for i in range(1, len(node.path) + 1)
            if node.path[:i] in by_path
        ]
        if len(chain) != len(set(chain)):
            violations.append(f"{node.content_id}: content repeats along {node.path_text}")

    return violations


__all__ = ["find_violations"]
