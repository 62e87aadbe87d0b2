"""LineageService - One entry point over an injected store.

Composes PathMutator, HierarchyBuilder, AncestorResolver and the
assembler so the CLI and the REST layer share one set of operations.
"""

from __future__ import annotations

import logging
from pathlib import Path
from threading import Event
from typing import Any, Dict, Iterable, List, Mapping, Optional

from lineage.errors import InconsistentHierarchyError, NotFoundError, ValidationError
from lineage.graph.ancestors import AncestorResolver
from lineage.graph.assembler import ContentFamily, ContentMetrics, assemble_family
from lineage.graph.builder import BuildResult, HierarchyBuilder
from lineage.graph.cycles import CycleInfo, detect_cycles, would_edge_create_cycle
from lineage.graph.integrity import find_violations
from lineage.graph.models import (
    ContentItem,
    ContentNode,
    ContentRelationship,
    RelationshipKind,
)
from lineage.graph.mutations import MutationEntry, MutationLog
from lineage.graph.mutator import DEFAULT_LOCK_RETRIES, DEFAULT_PAGE_SIZE, PathMutator
from lineage.graph.paths import (
    DEFAULT_PLATFORM_TAG,
    LabelPath,
    compose_path,
    generate_label,
    literal_prefix,
    match_path_pattern,
    validate_path,
    validate_pattern,
)
from lineage.store.sqlite import SqliteStore

logger = logging.getLogger(__name__)


class LineageService:
    """Hierarchy operations for one store.

    Args:
        store: Injected store handle.
        log: Mutation audit log; a fresh one by default.
        page_size: Descendant rewrite page size for cascades.
        lock_retries: Extra lock attempts when a family moves mid-operation.
        default_platform: Platform id used when content is added without one.
    """

    def __init__(
        self,
        store: SqliteStore,
        log: Optional[MutationLog] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        lock_retries: int = DEFAULT_LOCK_RETRIES,
        default_platform: str = DEFAULT_PLATFORM_TAG,
    ) -> None:
        self.store = store
        self.log = log if log is not None else MutationLog()
        self.default_platform = default_platform
        self.mutator = PathMutator(store, self.log, page_size=page_size, lock_retries=lock_retries)
        self.builder = HierarchyBuilder(store)
        self.ancestors = AncestorResolver(store)

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> LineageService:
        storage = config.get("storage", {})
        hierarchy = config.get("hierarchy", {})
        store = SqliteStore(
            Path(storage.get("database", "lineage.db")),
            busy_timeout=float(storage.get("busy_timeout", 5.0)),
        )
        return cls(
            store,
            page_size=int(hierarchy.get("page_size", DEFAULT_PAGE_SIZE)),
            lock_retries=int(hierarchy.get("lock_retries", DEFAULT_LOCK_RETRIES)),
            default_platform=str(hierarchy.get("default_platform", DEFAULT_PLATFORM_TAG)),
        )

    # ------------------------------------------------------------------
    # Content records
    # ------------------------------------------------------------------

    def add_content(
        self,
        content_id: str,
        platform_id: Optional[str] = None,
        title: str = "",
        content_type: str = "",
        url: str = "",
    ) -> ContentItem:
        """Register (or update) a content record.

        Raises:
            InvalidLabelError: If the id cannot produce a path label.
        """
        item = ContentItem(
            id=content_id,
            platform_id=platform_id or self.default_platform,
            title=title,
            content_type=content_type,
            url=url,
        )
        generate_label(item.id, item.platform_id)
        with self.store.transaction() as tx:
            tx.upsert_content(item)
        logger.info(f"Stored content {content_id} ({item.platform})")
        return item

    def get_content(self, content_id: str) -> ContentItem:
        item = self.store.get_content_by_id(content_id)
        if item is None:
            raise NotFoundError(
                f"Content {content_id} not found", entity="content", entity_id=content_id
            )
        return item

    def delete_content(self, content_id: str, preserve_descendants: bool = False) -> bool:
        """Delete a content record together with its node and relationships."""
        return self.mutator.delete_content(content_id, preserve_descendants=preserve_descendants)

    # ------------------------------------------------------------------
    # Construction and mutation
    # ------------------------------------------------------------------

    def build_hierarchy(
        self,
        edges: Iterable[ContentRelationship],
        root_hint: Optional[str] = None,
        cancel: Optional[Event] = None,
    ) -> BuildResult:
        """Compute the node set for an edge list without persisting it."""
        return self.builder.build(edges, root_hint=root_hint, cancel=cancel)

    def rebuild(
        self,
        edges: Iterable[ContentRelationship],
        root_hint: Optional[str] = None,
        replace: bool = False,
        cancel: Optional[Event] = None,
    ) -> BuildResult:
        """Build from an edge list and persist the result in one transaction."""
        edge_list = list(edges)
        result = self.builder.build(edge_list, root_hint=root_hint, cancel=cancel)
        self.mutator.apply_build(result, edge_list, replace=replace)
        return result

    def create_node(self, content_id: str, parent_id: Optional[str] = None) -> ContentNode:
        return self.mutator.create_node(content_id, parent_id)

    def relocate(self, content_id: str, new_parent_id: str) -> ContentNode:
        return self.mutator.relocate(content_id, new_parent_id)

    def remove(self, content_id: str, preserve_descendants: bool = False) -> bool:
        return self.mutator.remove(content_id, preserve_descendants=preserve_descendants)

    def link(self, edge: ContentRelationship) -> ContentRelationship:
        return self.mutator.link(edge)

    def unlink(self, source_id: str, target_id: str, kind: RelationshipKind) -> bool:
        return self.mutator.unlink(source_id, target_id, kind)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_node(self, content_id: str) -> ContentNode:
        node = self.store.get_node(content_id)
        if node is None:
            raise NotFoundError(
                f"Node for content {content_id} not found", entity="node", entity_id=content_id
            )
        return node

    def get_family(self, content_id: str) -> List[ContentNode]:
        """The node and all its descendants, ordered by (depth, path)."""
        with self.store.session() as session:
            node = session.get_node(content_id)
            if node is None:
                raise NotFoundError(
                    f"Node for content {content_id} not found",
                    entity="node",
                    entity_id=content_id,
                )
            return [node] + session.get_descendants(node.path)

    def get_descendants(self, content_id: str) -> List[ContentNode]:
        return self.get_family(content_id)[1:]

    def traverse_level_order(self, content_id: str) -> List[List[ContentNode]]:
        """Family nodes grouped by level, the given node's level first.

        Each inner list holds one depth, ordered by path.
        """
        levels: Dict[int, List[ContentNode]] = {}
        for node in self.get_family(content_id):
            levels.setdefault(node.depth, []).append(node)
        return [levels[depth] for depth in sorted(levels)]

    def get_ancestors(self, content_id: str) -> List[ContentNode]:
        return self.ancestors.get_ancestors(content_id)

    def find_path_between(self, start_id: str, end_id: str) -> List[ContentNode]:
        return self.ancestors.path_between(start_id, end_id)

    def list_unplaced_content(
        self, platform_id: Optional[str] = None, content_type: Optional[str] = None
    ) -> List[ContentItem]:
        """Content records that have no node in any family."""
        with self.store.session() as session:
            return session.contents_without_nodes(platform_id, content_type)

    def list_unlinked_content(
        self, platform_id: Optional[str] = None, content_type: Optional[str] = None
    ) -> List[ContentItem]:
        """Content records that take part in no relationship."""
        with self.store.session() as session:
            return session.contents_without_relationships(platform_id, content_type)

    def find_common_ancestor(self, content_ids: Iterable[str]) -> Optional[ContentNode]:
        return self.ancestors.find_common_ancestor(content_ids)

    def query_by_path(self, pattern: str) -> List[ContentNode]:
        """Nodes whose path matches a pattern ("*" spans zero or more labels).

        Raises:
            ValidationError: If the pattern is malformed.
        """
        if not validate_pattern(pattern):
            raise ValidationError(f"Invalid path pattern: {pattern!r}")
        prefix = literal_prefix(pattern)
        with self.store.session() as session:
            return [
                node
                for node in session.iter_nodes(prefix)
                if match_path_pattern(pattern, node.path)
            ]

    def list_roots(self) -> List[ContentNode]:
        with self.store.session() as session:
            return session.list_roots()

    def get_family_graph(
        self, content_id: str, metrics: Optional[Mapping[str, ContentMetrics]] = None
    ) -> ContentFamily:
        """Assemble the family of a node with its persisted relationships."""
        nodes = self.get_family(content_id)
        ids = [node.content_id for node in nodes]
        with self.store.session() as session:
            edges = session.relationships_among(ids)
            contents = session.get_content_by_ids(ids)
        return assemble_family(nodes, edges, metrics or {}, contents)

    # ------------------------------------------------------------------
    # Paths and checks
    # ------------------------------------------------------------------

    def generate_path(self, content_id: str, parent_id: Optional[str] = None) -> LabelPath:
        """Path the content would get as a root or under `parent_id`."""
        label = self.get_content(content_id).label
        parent_path = self.get_node(parent_id).path if parent_id else None
        return compose_path(parent_path, label)

    @staticmethod
    def validate_path(candidate: str) -> bool:
        return validate_path(candidate)

    def would_create_cycle(self, edge: ContentRelationship) -> bool:
        return would_edge_create_cycle(self.store, edge)

    def detect_relationship_cycles(self) -> CycleInfo:
        """Cycle diagnostics over every stored hierarchical relationship."""
        with self.store.session() as session:
            return detect_cycles(session.list_relationships())

    def check_integrity(self) -> List[str]:
        """Verify the node-set invariants across the whole store."""
        try:
            with self.store.session() as session:
                nodes = list(session.iter_nodes())
        except InconsistentHierarchyError as e:
            return [str(e)]
        violations = find_violations(nodes)
        for violation in violations:
            logger.warning(f"Integrity violation: {violation}")
        return violations

    def mutation_history(
        self, limit: int = 50, content_id: Optional[str] = None
    ) -> List[MutationEntry]:
        """Most recent committed mutations, newest first.

        Args:
            limit: Maximum number of entries returned.
            content_id: Only entries that targeted this content id.
        """
        if content_id is None:
            return self.log.recent(limit)
        entries = self.log.entries_for(content_id)
        return list(reversed(entries[-limit:])) if limit > 0 else []

    def get_mutation(self, mutation_id: str) -> MutationEntry:
        entry = self.log.find_by_id(mutation_id)
        if entry is None:
            raise NotFoundError(
                f"Mutation {mutation_id} not found", entity="mutation", entity_id=mutation_id
            )
        return entry

    def status(self) -> Dict[str, Any]:
        with self.store.session() as session:
            return {
                "database": str(self.store.database),
                "node_count": session.count_nodes(),
                "root_count": len(session.list_roots()),
                "relationship_count": len(session.list_relationships()),
                "mutation_count": len(self.log),
            }


__all__ = ["LineageService"]
