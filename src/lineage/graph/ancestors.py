"""AncestorResolver - Ancestor and common-ancestor queries.

All prefix work is label-wise (see paths.common_prefix); reads run in a
snapshot session and never block writers.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable, List, Optional

from lineage.errors import InconsistentHierarchyError, NotFoundError
from lineage.graph.models import ContentNode
from lineage.graph.paths import common_prefix, format_path

if TYPE_CHECKING:
    from lineage.store.sqlite import SqliteStore

logger = logging.getLogger(__name__)


class AncestorResolver:
    """Resolve ancestors over the persisted node set."""

    def __init__(self, store: SqliteStore) -> None:
        self.store = store

    def find_common_ancestor(self, content_ids: Iterable[str]) -> Optional[ContentNode]:
        """Find the deepest node whose path prefixes every given node's path.

        Missing ids are tolerated: the answer is computed over the nodes
        that exist. A node counts as its own ancestor, so the common
        ancestor of a node and its descendant is the node itself.

        Args:
            content_ids: Content ids to resolve.

        Returns:
            The common ancestor node, or None when there is no id, no node,
            or the nodes live in different families.

        Raises:
            InconsistentHierarchyError: If no node owns the common prefix.
        """
        ids = list(dict.fromkeys(content_ids))
        if not ids:
            return None

        with self.store.session() as session:
            if len(ids) == 1:
                return session.get_node(ids[0])

            nodes = session.get_nodes(ids)
            missing = set(ids) - {node.content_id for node in nodes}
            if missing:
                logger.warning(
                    f"Common ancestor lookup: no node for {len(missing)} of {len(ids)} ids "
                    f"({', '.join(sorted(missing))})"
                )
            if not nodes:
                return None

            prefix = common_prefix(node.path for node in nodes)
            if not prefix:
                return None

            ancestor = session.get_node_by_path(prefix)
            if ancestor is None:
                logger.error(f"No node owns common prefix {format_path(prefix)}")
                raise InconsistentHierarchyError(
                    f"Common prefix {format_path(prefix)} of {len(nodes)} nodes has no node"
                )
            return ancestor

    def get_ancestors(self, content_id: str) -> List[ContentNode]:
        """Ancestor nodes of a content item, root first (excluding itself).

        Raises:
            NotFoundError: If the content has no node.
        """
        with self.store.session() as session:
            node = session.get_node(content_id)
            if node is None:
                raise NotFoundError(
                    f"Node for content {content_id} not found",
                    entity="node",
                    entity_id=content_id,
                )
            prefixes = [node.path[:i] for i in range(1, len(node.path))]
            ancestors = session.get_nodes_by_paths(prefixes) if prefixes else []

        if len(ancestors) != len(prefixes):
            logger.warning(
                f"Ancestor chain of {content_id} is incomplete: "
                f"found {len(ancestors)} of {len(prefixes)} nodes"
            )
        return sorted(ancestors, key=lambda n: n.depth)

    def path_between(self, start_id: str, end_id: str) -> List[ContentNode]:
        """Tree path from one node to another through their common ancestor.

        In a tree this is the only simple path, so it is also the shortest.
        The list starts with the start node, climbs to the common ancestor
        and descends to the end node; its length minus one is the distance.

        Raises:
            NotFoundError: If either node is missing or the nodes belong to
                different families.
            InconsistentHierarchyError: If a node on the path is missing.
        """
        with self.store.session() as session:
            start = session.get_node(start_id)
            end = session.get_node(end_id)
            for content_id, node in ((start_id, start), (end_id, end)):
                if node is None:
                    raise NotFoundError(
                        f"Node for content {content_id} not found",
                        entity="node",
                        entity_id=content_id,
                    )
            prefix = common_prefix([start.path, end.path])
            if not prefix:
                raise NotFoundError(
                    f"No path between {start_id} and {end_id}: they are in different families",
                    entity="path",
                    entity_id=f"{start_id}->{end_id}",
                )
            up = [start.path[:i] for i in range(len(start.path), len(prefix) - 1, -1)]
            down = [end.path[:i] for i in range(len(prefix) + 1, len(end.path) + 1)]
            found = {node.path: node for node in session.get_nodes_by_paths(up + down)}

        missing = [p for p in up + down if tuple(p) not in found]
        if missing:
            raise InconsistentHierarchyError(
                f"Path {start_id} -> {end_id} crosses {format_path(missing[0])}, which has no node"
            )
        return [found[tuple(p)] for p in up + down]


__all__ = ["AncestorResolver"]
