"""Mutation records for hierarchy operations.

This module provides dataclasses for auditing committed hierarchy
mutations and for reporting edges that could not be resolved during a
build.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime
from threading import Lock
from typing import Any
from uuid import uuid4


@dataclass(frozen=True)
class BrokenReference:
    """An edge whose endpoint has no content record.

    Captured during a hierarchy build when an edge references content
    that was deleted (tolerated, not fatal).

    Attributes:
        source_id: Parent-side content id of the edge.
        target_id: Content id that could not be resolved.
        edge_kind: Relationship kind value ("derivative", ...).
    """

    source_id: str
    target_id: str
    edge_kind: str

    def __str__(self) -> str:
        """Human-readable representation."""
        return f"{self.source_id} --[{self.edge_kind}]--> {self.target_id} (missing)"


@dataclass
class MutationEntry:
    """Single committed mutation.

    Attributes:
        id: Unique mutation ID (UUID4).
        timestamp: When the mutation was committed.
        operation: Operation type ("create_node", "relocate", "remove", ...).
        target_id: Content id the operation targeted.
        before_state: Node state before the mutation (empty for creates).
        after_state: Node state after the mutation (empty for removals).
        descendants_affected: Number of descendant rows rewritten or deleted.
    """

    operation: str
    target_id: str
    before_state: dict[str, Any]
    after_state: dict[str, Any]
    descendants_affected: int = 0
    id: str = field(default_factory=lambda: uuid4().hex)
    timestamp: datetime = field(default_factory=datetime.now)

    def __str__(self) -> str:
        """Human-readable representation."""
        return f"[{self.id[:8]}] {self.operation}({self.target_id})"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "operation": self.operation,
            "target_id": self.target_id,
            "before": dict(self.before_state),
            "after": dict(self.after_state),
            "descendants_affected": self.descendants_affected,
            "timestamp": self.timestamp.isoformat(),
        }


class MutationLog:
    """Append-only audit trail of committed mutations.

    Entries are appended only after their transaction commits, so a
    rolled-back operation never appears here. Safe to share between
    threads.

    Example:
        >>> log = MutationLog()
        >>> log.append(MutationEntry("relocate", "clip-1", {}, {}))
        >>> len(log)
        1
    """

    def __init__(self) -> None:
        """Initialize an empty mutation log."""
        self._entries: list[MutationEntry] = []
        self._lock = Lock()

    def append(self, entry: MutationEntry) -> None:
        """Append a mutation entry to the log."""
        with self._lock:
            self._entries.append(entry)

    def iter_entries(self) -> Iterator[MutationEntry]:
        """Iterate over all entries in chronological order."""
        with self._lock:
            entries = list(self._entries)
        yield from entries

    def __len__(self) -> int:
        """Return the number of entries in the log."""
        return len(self._entries)

    def last(self) -> MutationEntry | None:
        """Return the most recent entry, or None if empty."""
        with self._lock:
            return self._entries[-1] if self._entries else None

    def recent(self, limit: int = 50) -> list[MutationEntry]:
        """Return up to `limit` most recent entries, newest first."""
        with self._lock:
            return list(reversed(self._entries[-limit:])) if limit > 0 else []

    def find_by_id(self, mutation_id: str) -> MutationEntry | None:
        """Find an entry by its mutation ID."""
        with self._lock:
            for entry in self._entries:
                if entry.id == mutation_id:
                    return entry
        return None

    def entries_for(self, content_id: str) -> list[MutationEntry]:
        """All entries that targeted a content id, oldest first."""
        return [e for e in self.iter_entries() if e.target_id == content_id]

    def clear(self) -> None:
        """Clear all entries from the log."""
        with self._lock:
            self._entries.clear()


__all__ = ["BrokenReference", "MutationEntry", "MutationLog"]
