"""PathMutator - Transactional hierarchy mutations.

Every operation follows the same shape:

1. Validate against a read snapshot (not-found, conflict and cycle
   checks happen here, before any transaction opens).
2. Take the advisory locks of every family the operation touches, open
   one write transaction and re-validate, since a concurrent mutation may
   have moved things between the snapshot and the lock.
3. Rewrite the node and its descendants, page by page, inside that one
   transaction. Any failure rolls the whole operation back.
4. After commit, append a MutationEntry to the audit log.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Optional, Sequence

from lineage.errors import ConflictError, CycleError, NotFoundError, ValidationError
from lineage.graph.cycles import would_create_cycle, would_edge_create_cycle
from lineage.graph.models import ContentNode, ContentRelationship, RelationshipKind, make_node
from lineage.graph.mutations import MutationEntry, MutationLog
from lineage.graph.paths import compose_path, format_path, parent_of, rebase

if TYPE_CHECKING:
    from lineage.graph.builder import BuildResult
    from lineage.store.sqlite import SqliteStore, StoreSession

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 500
DEFAULT_LOCK_RETRIES = 3


class PathMutator:
    """Create, relocate, remove and link hierarchy nodes.

    Args:
        store: Store handle providing transaction(), session() and locks.
        log: Audit log shared with the caller; a private one by default.
        page_size: Descendants rewritten per page during a cascade.
        lock_retries: Extra attempts when a family moved while locking.
    """

    def __init__(
        self,
        store: SqliteStore,
        log: Optional[MutationLog] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        lock_retries: int = DEFAULT_LOCK_RETRIES,
    ) -> None:
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self.store = store
        self.log = log if log is not None else MutationLog()
        self.page_size = page_size
        self.lock_retries = max(0, lock_retries)

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    @contextmanager
    def _locked(
        self, content_ids: Sequence[str], extra_keys: Iterable[str] = ()
    ) -> Iterator[StoreSession]:
        """Hold the family locks of `content_ids` and open a transaction.

        The root ids are read from a snapshot, locked in sorted order, and
        read again inside the transaction. If a family changed hands in
        between, the attempt is abandoned and retried.
        """
        extra = set(extra_keys)
        for attempt in range(self.lock_retries + 1):
            with self.store.session() as snapshot:
                expected = snapshot.root_ids_for(content_ids)
            with self.store.locks.hold(expected | extra) as held:
                with self.store.transaction() as tx:
                    if tx.root_ids_for(content_ids) <= held:
                        yield tx
                        return
            logger.debug(
                f"Families of {list(content_ids)} moved while locking "
                f"(attempt {attempt + 1}); retrying"
            )
        raise ConflictError(
            f"Could not lock families of {list(content_ids)} after "
            f"{self.lock_retries + 1} attempts"
        )

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _require_node(session: StoreSession, content_id: str, role: str = "Node") -> ContentNode:
        node = session.get_node(content_id)
        if node is None:
            raise NotFoundError(
                f"{role} for content {content_id} not found", entity="node", entity_id=content_id
            )
        return node

    @staticmethod
    def _label_for(session: StoreSession, content_id: str) -> str:
        content = session.get_content_by_id(content_id)
        if content is None:
            raise NotFoundError(
                f"Content {content_id} not found", entity="content", entity_id=content_id
            )
        return content.label

    @staticmethod
    def _relocation_pair(
        session: StoreSession, content_id: str, new_parent_id: str
    ) -> tuple[ContentNode, ContentNode]:
        node = PathMutator._require_node(session, content_id)
        parent = PathMutator._require_node(session, new_parent_id, role="Parent node")
        if would_create_cycle(parent.path, node.path):
            raise CycleError(
                f"Cannot move {content_id} ({node.path_text}) under its own "
                f"descendant {new_parent_id} ({parent.path_text})"
            )
        return node, parent

    def _rewrite_descendants(
        self,
        session: StoreSession,
        old_path: Sequence[str],
        new_path: Sequence[str],
        new_root_id: str,
    ) -> int:
        """Rebase every descendant of `old_path` onto `new_path`.

        Depth follows from the rebased path, so the shift by
        len(new_path) - len(old_path) needs no separate bookkeeping.
        """
        rewritten = 0
        for page in session.iter_descendant_pages(old_path, self.page_size):
            moved = [d.moved(rebase(d.path, old_path, new_path), new_root_id) for d in page]
            rewritten += session.update_nodes(moved)
        return rewritten

    def _move_subtree(
        self, session: StoreSession, node: ContentNode, parent: ContentNode
    ) -> tuple[ContentNode, int]:
        """Place `node` and its subtree directly under `parent`."""
        new_path = compose_path(parent.path, node.label)
        if tuple(new_path) == node.path:
            return node, 0
        occupant = session.get_node_by_path(new_path)
        if occupant is not None:
            raise ConflictError(
                f"Path {format_path(new_path)} is already used by content {occupant.content_id}"
            )
        moved = node.moved(new_path, parent.root_id)
        session.update_node(moved)
        count = self._rewrite_descendants(session, node.path, new_path, parent.root_id)
        return moved, count

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def create_node(self, content_id: str, parent_id: Optional[str] = None) -> ContentNode:
        """Attach content to the hierarchy as a root or under a parent.

        Args:
            content_id: Content to attach.
            parent_id: Content id of the parent node, or None for a root.

        Returns:
            The inserted node.

        Raises:
            ConflictError: If the content already has a node or the path is taken.
            NotFoundError: If the content record or the parent node is missing.
        """
        if not content_id:
            raise ValidationError("content_id is required")
        logger.debug(f"create_node({content_id}, parent={parent_id})")

        lock_ids = [parent_id] if parent_id else []
        with self._locked(lock_ids, extra_keys=[] if parent_id else [content_id]) as tx:
            if tx.get_node(content_id) is not None:
                raise ConflictError(
                    f"Content {content_id} already has a hierarchy node",
                )
            label = self._label_for(tx, content_id)
            if parent_id:
                parent = self._require_node(tx, parent_id, role="Parent node")
                node = make_node(content_id, compose_path(parent.path, label), parent.root_id)
            else:
                node = make_node(content_id, compose_path(None, label), content_id)
            tx.insert_node(node)

        self.log.append(MutationEntry("create_node", content_id, {}, node.to_state()))
        logger.info(f"Created node {node.path_text} for {content_id}")
        return node

    def relocate(self, content_id: str, new_parent_id: str) -> ContentNode:
        """Move a node and its whole subtree under a new parent.

        Args:
            content_id: Content whose node moves.
            new_parent_id: Content id of the new parent node.

        Returns:
            The updated node.

        Raises:
            NotFoundError: If either node is missing.
            CycleError: If the new parent is the node itself or a descendant.
            ConflictError: If the destination path is taken.
        """
        logger.debug(f"relocate({content_id}, new_parent={new_parent_id})")
        with self.store.session() as snapshot:
            self._relocation_pair(snapshot, content_id, new_parent_id)

        with self._locked([content_id, new_parent_id]) as tx:
            node, parent = self._relocation_pair(tx, content_id, new_parent_id)
            moved, count = self._move_subtree(tx, node, parent)

        if moved is node:
            logger.debug(f"{content_id} already sits under {new_parent_id}")
            return node
        self.log.append(
            MutationEntry("relocate", content_id, node.to_state(), moved.to_state(), count)
        )
        logger.info(
            f"Relocated {content_id}: {node.path_text} -> {moved.path_text} "
            f"({count} descendants)"
        )
        return moved

    def remove(self, content_id: str, preserve_descendants: bool = False) -> bool:
        """Detach a node, deleting or re-parenting its descendants.

        With preserve_descendants, each immediate child takes the removed
        node's place under its parent (or becomes a new root when the
        removed node was a root) and its subtree follows, one level up.

        Returns:
            True once the node is removed.

        Raises:
            NotFoundError: If the content has no node.
            ConflictError: If a promoted child's new path is already taken.
        """
        logger.debug(f"remove({content_id}, preserve_descendants={preserve_descendants})")
        with self.store.session() as snapshot:
            self._require_node(snapshot, content_id)

        with self._locked([content_id]) as tx:
            node = self._require_node(tx, content_id)
            affected = self._detach(tx, node, preserve_descendants)

        self._log_removal(node, preserve_descendants, affected)
        return True

    def delete_content(self, content_id: str, preserve_descendants: bool = False) -> bool:
        """Delete a content record with its node and relationships.

        Detaching the node (as in remove()), dropping the relationships
        and deleting the record happen in one transaction.

        Raises:
            NotFoundError: If the content record does not exist.
        """
        logger.debug(f"delete_content({content_id}, preserve_descendants={preserve_descendants})")
        with self._locked([content_id]) as tx:
            if tx.get_content_by_id(content_id) is None:
                raise NotFoundError(
                    f"Content {content_id} not found", entity="content", entity_id=content_id
                )
            node = tx.get_node(content_id)
            affected = self._detach(tx, node, preserve_descendants) if node else 0
            for edge in tx.relationships_for(content_id):
                tx.delete_relationship(edge.source_content_id, edge.target_content_id, edge.kind)
            tx.delete_content(content_id)

        if node is not None:
            self._log_removal(node, preserve_descendants, affected)
        logger.info(f"Deleted content {content_id}")
        return True

    def _detach(self, session: StoreSession, node: ContentNode, preserve_descendants: bool) -> int:
        if preserve_descendants:
            return self._promote_children(session, node)
        affected = session.delete_descendants(node.path)
        session.delete_node(node.content_id)
        return affected

    def _log_removal(self, node: ContentNode, preserve_descendants: bool, affected: int) -> None:
        self.log.append(
            MutationEntry(
                "remove_preserve" if preserve_descendants else "remove",
                node.content_id,
                node.to_state(),
                {},
                affected,
            )
        )
        logger.info(
            f"Removed {node.path_text} ({affected} descendants "
            f"{'re-parented' if preserve_descendants else 'deleted'})"
        )

    def _promote_children(self, session: StoreSession, node: ContentNode) -> int:
        grandparent_path = parent_of(node.path)
        children = session.get_children(node.path)
        session.delete_node(node.content_id)
        affected = 0
        for child in children:
            new_path = compose_path(grandparent_path, child.label)
            new_root_id = node.root_id if grandparent_path else child.content_id
            session.update_node(child.moved(new_path, new_root_id))
            affected += 1 + self._rewrite_descendants(session, child.path, new_path, new_root_id)
        return affected

    def link(self, edge: ContentRelationship) -> ContentRelationship:
        """Persist a relationship and, for hierarchical kinds, place the target.

        The source gets a root node if it has none. The target is created
        under the source, or relocated there with its subtree.

        Raises:
            ConflictError: If the same (source, target, kind) edge exists.
            NotFoundError: If either content record is missing.
            CycleError: If the target is the source or one of its ancestors.
        """
        source_id, target_id = edge.source_content_id, edge.target_content_id
        logger.debug(f"link({edge})")
        with self.store.session() as snapshot:
            self._validate_link(snapshot, edge)

        with self._locked([source_id, target_id], extra_keys=[source_id]) as tx:
            self._validate_link(tx, edge)
            tx.add_relationship(edge)
            before: dict = {}
            after: dict = {}
            count = 0
            if edge.is_hierarchical:
                source = tx.get_node(source_id)
                if source is None:
                    source = make_node(
                        source_id, compose_path(None, self._label_for(tx, source_id)), source_id
                    )
                    tx.insert_node(source)
                target = tx.get_node(target_id)
                if target is None:
                    placed = make_node(
                        target_id,
                        compose_path(source.path, self._label_for(tx, target_id)),
                        source.root_id,
                    )
                    tx.insert_node(placed)
                else:
                    before = target.to_state()
                    placed, count = self._move_subtree(tx, target, source)
                after = placed.to_state()

        self.log.append(MutationEntry("link", target_id, before, after, count))
        logger.info(f"Linked {edge}")
        return edge

    def _validate_link(self, session: StoreSession, edge: ContentRelationship) -> None:
        if session.get_relationship(edge.source_content_id, edge.target_content_id, edge.kind):
            raise ConflictError(f"Relationship {edge} already exists")
        for content_id in (edge.source_content_id, edge.target_content_id):
            if session.get_content_by_id(content_id) is None:
                raise NotFoundError(
                    f"Content {content_id} not found", entity="content", entity_id=content_id
                )
        if would_edge_create_cycle(session, edge):
            raise CycleError(f"Relationship {edge} would make a node its own ancestor")

    def unlink(self, source_id: str, target_id: str, kind: RelationshipKind) -> bool:
        """Delete a relationship record; node placement is left untouched.

        Raises:
            NotFoundError: If no such relationship exists.
        """
        with self.store.transaction() as tx:
            if not tx.delete_relationship(source_id, target_id, kind):
                raise NotFoundError(
                    f"Relationship {source_id} --[{kind.value}]--> {target_id} not found",
                    entity="relationship",
                )
        self.log.append(MutationEntry("unlink", target_id, {"source": source_id}, {}))
        logger.info(f"Unlinked {source_id} --[{kind.value}]--> {target_id}")
        return True

    def apply_build(
        self,
        result: BuildResult,
        edges: Iterable[ContentRelationship] = (),
        replace: bool = False,
    ) -> list[ContentNode]:
        """Persist a HierarchyBuilder result in one transaction.

        Args:
            result: Node set produced by HierarchyBuilder.build().
            edges: Relationships to record alongside; existing ones are kept.
            replace: Delete the existing families of every content id in the
                result first. Without it, any existing node is a conflict.

        Raises:
            ConflictError: If a node already exists and replace is False.
        """
        ids = result.content_ids
        if not ids:
            return []
        edge_list = list(edges)
        with self._locked(ids, extra_keys=result.roots) as tx:
            existing = tx.get_nodes(ids)
            if existing and not replace:
                sample = ", ".join(sorted(n.content_id for n in existing)[:5])
                raise ConflictError(
                    f"{len(existing)} content ids already have nodes ({sample}); "
                    "use replace to rebuild their families"
                )
            if existing:
                dropped = tx.delete_families({n.root_id for n in existing})
                logger.info(f"Replacing {dropped} existing nodes")
            tx.insert_nodes(result.nodes)
            for edge in edge_list:
                if tx.get_relationship(edge.source_content_id, edge.target_content_id, edge.kind):
                    continue
                tx.add_relationship(edge)

        for root_id in result.roots:
            root = result.node_for(root_id)
            size = sum(1 for n in result.nodes if n.root_id == root_id)
            self.log.append(
                MutationEntry("build", root_id, {}, root.to_state() if root else {}, size - 1)
            )
        logger.info(f"Persisted {len(result.nodes)} nodes in {len(result.roots)} families")
        return list(result.nodes)


__all__ = ["PathMutator", "DEFAULT_PAGE_SIZE", "DEFAULT_LOCK_RETRIES"]
