"""HierarchyBuilder - Constructs family trees from flat relationship lists.

Used for bulk (re)construction, e.g. backfills. The builder is pure: it
reads content records through an injected ContentLookup and returns the
node set; persisting it is PathMutator.apply_build's job.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from threading import Event
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional

from lineage.errors import BuildCancelledError, BuildError, InvalidLabelError
from lineage.graph.cycles import CycleInfo, build_adjacency, detect_cycles
from lineage.graph.models import ContentItem, ContentNode, ContentRelationship, make_node
from lineage.graph.mutations import BrokenReference
from lineage.graph.paths import LabelPath, format_path, generate_path

if TYPE_CHECKING:
    from lineage.store.base import ContentLookup

logger = logging.getLogger(__name__)


@dataclass
class BuildResult:
    """Output of one HierarchyBuilder.build() call.

    Attributes:
        nodes: Emitted nodes, each family in depth-first pre-order.
        roots: Content ids used as family roots, in emission order.
        broken_references: Edges whose child has no content record.
        unreachable_ids: Ids present in the edges but never reached from a root.
        skipped_ids: Ids dropped because their path was already taken.
        cycles: Cycle diagnostics, populated only on the fallback path.
        used_fallback_root: True when no natural root existed.
    """

    nodes: List[ContentNode] = field(default_factory=list)
    roots: List[str] = field(default_factory=list)
    broken_references: List[BrokenReference] = field(default_factory=list)
    unreachable_ids: List[str] = field(default_factory=list)
    skipped_ids: List[str] = field(default_factory=list)
    cycles: Optional[CycleInfo] = None
    used_fallback_root: bool = False

    @property
    def content_ids(self) -> List[str]:
        return [node.content_id for node in self.nodes]

    def paths(self) -> List[str]:
        """Sorted dot-joined paths, handy for comparing two builds."""
        return sorted(node.path_text for node in self.nodes)

    def node_for(self, content_id: str) -> Optional[ContentNode]:
        for node in self.nodes:
            if node.content_id == content_id:
                return node
        return None


class HierarchyBuilder:
    """Builder for content family trees.

    Usage:
        builder = HierarchyBuilder(store)
        result = builder.build(edges)
        for node in result.nodes:
            ...
    """

    def __init__(self, content_lookup: ContentLookup) -> None:
        self.content_lookup = content_lookup

    def _load_contents(self, ids: List[str]) -> Dict[str, ContentItem]:
        try:
            items = self.content_lookup.get_content_by_ids(ids)
        except Exception as e:
            raise BuildError(f"Content lookup failed for {len(ids)} ids: {e}") from e
        if ids and not items:
            raise BuildError(f"No content records found for any of {len(ids)} ids")
        return {item.id: item for item in items}

    def _select_roots(
        self,
        adjacency: Dict[str, List[str]],
        edges: List[ContentRelationship],
        result: BuildResult,
        root_hint: Optional[str],
    ) -> List[str]:
        if root_hint is not None:
            if root_hint in adjacency:
                return [root_hint]
            logger.warning(f"Root hint {root_hint} does not appear in the edge set; ignoring it")

        targets = {child for children in adjacency.values() for child in children}
        roots = [content_id for content_id in adjacency if content_id not in targets]
        if roots:
            return roots

        # Degraded input: every id is some edge's target
        result.cycles = detect_cycles(edges)
        result.used_fallback_root = True
        fallback = next(iter(adjacency))
        for cycle in result.cycles.cycle_paths:
            logger.warning(f"Cycle in relationship edges: {' -> '.join(cycle)}")
        logger.warning(f"No root found among {len(adjacency)} ids; falling back to {fallback}")
        return [fallback]

    def build(
        self,
        edges: Iterable[ContentRelationship],
        root_hint: Optional[str] = None,
        cancel: Optional[Event] = None,
    ) -> BuildResult:
        """Build the node set for a flat edge list.

        Only hierarchical edge kinds shape the tree. Each id is placed at
        most once; when an id is reachable along several edges the first
        depth-first visit wins.

        Args:
            edges: Relationship edges (source is the parent).
            root_hint: Content id to use as the sole root, if present.
            cancel: Checked between root iterations.

        Returns:
            BuildResult with the nodes and build diagnostics.

        Raises:
            BuildError: If content lookups fail entirely.
            BuildCancelledError: If `cancel` was set before a root iteration.
        """
        edge_list = list(edges)
        result = BuildResult()
        adjacency = build_adjacency(edge_list)
        if not adjacency:
            return result

        ids = list(adjacency)
        contents = self._load_contents(ids)
        roots = self._select_roots(adjacency, edge_list, result, root_hint)

        visited: set[str] = set()
        taken_paths: set[LabelPath] = set()
        # first-seen kind per (source, target) pair
        kinds = {
            (e.source_content_id, e.target_content_id): e.kind.value
            for e in reversed(edge_list)
            if e.is_hierarchical
        }

        for root_id in roots:
            if cancel is not None and cancel.is_set():
                raise BuildCancelledError(
                    f"Build cancelled after {len(result.roots)} of {len(roots)} roots"
                )
            if root_id in visited:
                continue
            root_content = contents.get(root_id)
            if root_content is None:
                visited.add(root_id)
                logger.warning(f"Root content {root_id} not found; skipping its family")
                continue
            self._expand(root_content, adjacency, kinds, contents, visited, taken_paths, result)

        result.unreachable_ids = [i for i in ids if i not in visited]
        for content_id in result.unreachable_ids:
            logger.warning(f"Content {content_id} is not reachable from any root")
        logger.info(
            f"Built {len(result.nodes)} nodes in {len(result.roots)} families "
            f"from {len(edge_list)} edges"
        )
        return result

    def _expand(
        self,
        root: ContentItem,
        adjacency: Dict[str, List[str]],
        kinds: Dict[tuple[str, str], str],
        contents: Dict[str, ContentItem],
        visited: set[str],
        taken_paths: set[LabelPath],
        result: BuildResult,
    ) -> None:
        """Depth-first expansion of one family, iteratively."""
        # (content, parent path) pairs; children pushed reversed to keep order
        stack: List[tuple[ContentItem, Optional[LabelPath]]] = [(root, None)]
        emitted_root = False
        while stack:
            item, parent_path = stack.pop()
            if item.id in visited:
                continue
            visited.add(item.id)
            try:
                path = generate_path(item, parent_path)
            except InvalidLabelError as e:
                logger.warning(f"Skipping content {item.id}: {e}")
                result.skipped_ids.append(item.id)
                continue
            if path in taken_paths:
                logger.warning(
                    f"Skipping content {item.id}: path {format_path(path)} already taken"
                )
                result.skipped_ids.append(item.id)
                continue
            taken_paths.add(path)
            result.nodes.append(make_node(item.id, path, root.id))
            if not emitted_root:
                result.roots.append(root.id)
                emitted_root = True

            children: List[ContentItem] = []
            for child_id in adjacency.get(item.id, []):
                child = contents.get(child_id)
                if child is None:
                    if child_id not in visited:
                        visited.add(child_id)
                        logger.warning(f"Content {child_id} not found; skipping it")
                    result.broken_references.append(
                        BrokenReference(
                            source_id=item.id,
                            target_id=child_id,
                            edge_kind=kinds[(item.id, child_id)],
                        )
                    )
                    continue
                children.append(child)
            for child in reversed(children):
                stack.append((child, path))


__all__ = ["BuildResult", "HierarchyBuilder"]
