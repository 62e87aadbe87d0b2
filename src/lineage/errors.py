"""Error taxonomy for the lineage hierarchy engine.

Every failure raised by the engine derives from LineageError so callers
can catch the whole family at the API/CLI boundary:

- NotFoundError: missing content, node, or parent reference
- ValidationError: malformed label, path, or relationship input
- CycleError: operation would create or traverse a cycle
- ConflictError: duplicate node for a content id, or an existing edge
- StorageError: transaction or connectivity failure
"""

from __future__ import annotations


class LineageError(Exception):
    """Base class for all engine errors."""


class NotFoundError(LineageError):
    """A referenced content item, node, or relationship does not exist."""

    def __init__(self, message: str, entity: str = "", entity_id: str = "") -> None:
        super().__init__(message)
        self.entity = entity
        self.entity_id = entity_id


class ValidationError(LineageError):
    """Input failed label, path, or relationship validation."""


class InvalidLabelError(ValidationError):
    """A content identifier sanitized to an empty label."""


class CycleError(LineageError):
    """The requested edge or relocation would make a node its own ancestor."""


class ConflictError(LineageError):
    """A node or relationship already exists."""


class StorageError(LineageError):
    """The store failed; the transaction was rolled back."""


class BuildError(StorageError):
    """Content lookups failed entirely during a hierarchy build."""


class InconsistentHierarchyError(StorageError):
    """Persisted node set violates a path invariant."""


class BuildCancelledError(LineageError):
    """A hierarchy build was cancelled between root iterations."""


__all__ = [
    "LineageError",
    "NotFoundError",
    "ValidationError",
    "InvalidLabelError",
    "CycleError",
    "ConflictError",
    "StorageError",
    "BuildError",
    "InconsistentHierarchyError",
    "BuildCancelledError",
]
