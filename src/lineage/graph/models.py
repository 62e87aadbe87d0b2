"""Content lineage data model.

This module defines the records that flow through the engine:
- ContentItem: external content record (read-only here)
- RelationshipKind / CreationMethod: edge semantics and provenance
- ContentRelationship: a directed source -> target edge
- ContentNode: a persisted hierarchy node with its materialized path
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping
from uuid import uuid4

from lineage.errors import InconsistentHierarchyError, ValidationError
from lineage.graph.paths import (
    LabelPath,
    format_path,
    generate_label,
    parse_path,
    platform_tag,
)


class RelationshipKind(Enum):
    """Types of relationships between content items.

    Hierarchical kinds place the target below the source in a family tree:
    - PARENT: explicit parent/child link
    - DERIVATIVE: target was cut or derived from source (clip from video)
    - REPURPOSED: target republishes source on another platform
    - REACTION: target responds to source

    Non-hierarchical kinds are stored but never shape the tree:
    - REFERENCE, SIBLING, SEMANTIC
    """

    PARENT = "parent"
    DERIVATIVE = "derivative"
    REPURPOSED = "repurposed"
    REACTION = "reaction"
    REFERENCE = "reference"
    SIBLING = "sibling"
    SEMANTIC = "semantic"

    def implies_hierarchy(self) -> bool:
        """Check if edges of this kind make the source a tree parent."""
        return self in (
            RelationshipKind.PARENT,
            RelationshipKind.DERIVATIVE,
            RelationshipKind.REPURPOSED,
            RelationshipKind.REACTION,
        )


class CreationMethod(Enum):
    """How a relationship was created."""

    USER_DEFINED = "user_defined"
    AI_SUGGESTED = "ai_suggested"
    SYSTEM_DETECTED = "system_detected"
    PLATFORM_LINKED = "platform_linked"


@dataclass(frozen=True)
class ContentItem:
    """A published content item as seen by the hierarchy engine.

    Attributes:
        id: Content identifier (unique across platforms).
        platform_id: Platform identifier, e.g. "youtube_main".
        title: Display title.
        content_type: Optional kind of content ("video", "short", ...).
        url: Optional canonical URL.
    """

    id: str
    platform_id: str
    title: str = ""
    content_type: str = ""
    url: str = ""
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    @property
    def platform(self) -> str:
        """Lowercased platform tag used in path labels."""
        return platform_tag(self.platform_id)

    @property
    def label(self) -> str:
        """The path label for this item."""
        return generate_label(self.id, self.platform_id)


@dataclass
class ContentRelationship:
    """A directed relationship between two content items.

    The source is the semantic parent. Equality and hashing consider only
    (source, target, kind), matching the uniqueness rule of the store.

    Attributes:
        source_content_id: Parent-side content id.
        target_content_id: Child-side content id.
        kind: Relationship type.
        confidence: Score in [0, 1].
        creation_method: Provenance of the relationship.
        metadata: Free-form extra data.
        id: Relationship id (uuid4 hex).
    """

    source_content_id: str
    target_content_id: str
    kind: RelationshipKind = RelationshipKind.DERIVATIVE
    confidence: float = 1.0
    creation_method: CreationMethod = CreationMethod.USER_DEFINED
    metadata: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: uuid4().hex)

    def __post_init__(self) -> None:
        if not self.source_content_id or not self.target_content_id:
            raise ValidationError("Relationship requires source and target content ids")
        if self.source_content_id == self.target_content_id:
            raise ValidationError(
                f"Relationship cannot point {self.source_content_id} at itself"
            )
        if not 0.0 <= float(self.confidence) <= 1.0:
            raise ValidationError(f"Confidence {self.confidence} is outside [0, 1]")

    @property
    def is_hierarchical(self) -> bool:
        return self.kind.implies_hierarchy()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ContentRelationship):
            return NotImplemented
        return (
            self.source_content_id == other.source_content_id
            and self.target_content_id == other.target_content_id
            and self.kind == other.kind
        )

    def __hash__(self) -> int:
        return hash((self.source_content_id, self.target_content_id, self.kind.value))

    def __str__(self) -> str:
        return f"{self.source_content_id} --[{self.kind.value}]--> {self.target_content_id}"


@dataclass(frozen=True)
class ContentNode:
    """A node in a content family tree.

    Attributes:
        content_id: The content item this node places (one node per item).
        path: Materialized path, root label first.
        depth: len(path) - 1.
        root_id: Content id of the family root.
        id: Node identifier (uuid4 hex).
    """

    content_id: str
    path: LabelPath
    depth: int
    root_id: str
    id: str = field(default_factory=lambda: uuid4().hex)

    @property
    def path_text(self) -> str:
        """Path in stored (dot-joined) form."""
        return format_path(self.path)

    @property
    def label(self) -> str:
        """This node's own (last) label."""
        return self.path[-1]

    @property
    def is_root(self) -> bool:
        return self.depth == 0

    def moved(self, path: LabelPath, root_id: str) -> ContentNode:
        """Copy of this node placed at a new path."""
        return ContentNode(
            content_id=self.content_id,
            path=tuple(path),
            depth=len(path) - 1,
            root_id=root_id,
            id=self.id,
        )

    def to_state(self) -> dict[str, Any]:
        """Snapshot used for mutation audit entries."""
        return {"path": self.path_text, "depth": self.depth, "root_id": self.root_id}

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> ContentNode:
        """Build a node from a storage row, validating its shape.

        Raises:
            InconsistentHierarchyError: If the stored path is malformed or
                disagrees with the stored depth.
        """
        try:
            path = parse_path(row["path"])
        except ValidationError as e:
            raise InconsistentHierarchyError(
                f"Stored node {row['content_id']} has invalid path: {e}"
            ) from e
        depth = int(row["depth"])
        if depth != len(path) - 1:
            raise InconsistentHierarchyError(
                f"Stored node {row['content_id']} has depth {depth} "
                f"for path {row['path']}"
            )
        return cls(
            id=row["id"],
            content_id=row["content_id"],
            path=path,
            depth=depth,
            root_id=row["root_id"],
        )


def make_node(content_id: str, path: LabelPath, root_id: str) -> ContentNode:
    """Create a fresh node whose depth follows from its path."""
    return ContentNode(content_id=content_id, path=tuple(path), depth=len(path) - 1, root_id=root_id)


__all__ = [
    "ContentItem",
    "ContentNode",
    "ContentRelationship",
    "CreationMethod",
    "RelationshipKind",
    "make_node",
]
