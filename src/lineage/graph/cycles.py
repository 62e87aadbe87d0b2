"""CycleGuard - Cycle prevention for hierarchy mutations.

Centralized checks used before any edge or relocation is persisted:
- would_create_cycle: label-wise path test
- would_edge_create_cycle: the same test for a proposed relationship
- detect_cycles: DFS over a flat edge list (degraded-input diagnostics)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Iterable, Iterator, List, Sequence, Set

from lineage.graph.paths import is_label_prefix

if TYPE_CHECKING:
    from lineage.graph.models import ContentRelationship
    from lineage.store.base import NodeReader


@dataclass
class CycleInfo:
    """Pure data structure for cycle detection results."""

    cycle_members: Set[str] = field(default_factory=set)
    cycle_paths: List[List[str]] = field(default_factory=list)

    @property
    def has_cycles(self) -> bool:
        return bool(self.cycle_paths)


def would_create_cycle(candidate_parent_path: Sequence[str], candidate_node_path: Sequence[str]) -> bool:
    """Decide whether placing a node under a parent would close a cycle.

    True iff the parent path equals the node path, or the node path is a
    label-wise prefix of the parent path (the parent is the node itself or
    one of its descendants).

    Args:
        candidate_parent_path: Path of the proposed new parent.
        candidate_node_path: Current path of the node being attached/moved.
    """
    return is_label_prefix(candidate_node_path, candidate_parent_path)


def would_edge_create_cycle(reader: NodeReader, edge: ContentRelationship) -> bool:
    """Check whether persisting a hierarchical edge would close a cycle.

    The edge makes its source the parent of its target. When either end
    has no node yet the edge cannot close a cycle. Non-hierarchical edges
    never affect the tree.
    """
    if not edge.is_hierarchical:
        return False
    if edge.source_content_id == edge.target_content_id:
        return True
    source = reader.get_node(edge.source_content_id)
    target = reader.get_node(edge.target_content_id)
    if source is None or target is None:
        return False
    return would_create_cycle(source.path, target.path)


def build_adjacency(edges: Iterable[ContentRelationship]) -> Dict[str, List[str]]:
    """Build source -> [targets] for hierarchical edges.

    Targets are deduplicated and keep first-seen order; every id that
    appears in an edge gets an entry (possibly empty).
    """
    adjacency: Dict[str, List[str]] = {}
    for edge in edges:
        if not edge.is_hierarchical:
            continue
        children = adjacency.setdefault(edge.source_content_id, [])
        if edge.target_content_id not in children:
            children.append(edge.target_content_id)
        adjacency.setdefault(edge.target_content_id, [])
    return adjacency


def detect_cycles(edges: Iterable[ContentRelationship]) -> CycleInfo:
    """Detect circular derives-from chains. PURE - no mutation.

    Uses an iterative DFS over the hierarchical edges, so long chains do
    not hit the recursion limit.

    Args:
        edges: Flat relationship list.

    Returns:
        CycleInfo with cycle_members and cycle_paths
    """
    adjacency = build_adjacency(edges)
    visited: Set[str] = set()
    info = CycleInfo()

    for start_id in adjacency:
        if start_id in visited:
            continue
        # path is the DFS stack; rec_stack mirrors it for membership tests
        path: List[str] = [start_id]
        rec_stack: Set[str] = {start_id}
        pending: List[Iterator[str]] = [iter(adjacency[start_id])]
        visited.add(start_id)

        while pending:
            child_id = next(pending[-1], None)
            if child_id is None:
                pending.pop()
                rec_stack.discard(path.pop())
                continue
            if child_id in rec_stack:
                cycle_start = path.index(child_id)
                info.cycle_paths.append(path[cycle_start:] + [child_id])
                info.cycle_members.update(path[cycle_start:])
                continue
            if child_id in visited:
                continue
            visited.add(child_id)
            rec_stack.add(child_id)
            path.append(child_id)
            pending.append(iter(adjacency[child_id]))

    return info


__all__ = [
    "CycleInfo",
    "build_adjacency",
    "detect_cycles",
    "would_create_cycle",
    "would_edge_create_cycle",
]
