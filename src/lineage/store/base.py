"""Collaborator interfaces consumed by the hierarchy engine.

The engine never reaches for a global client; every component receives
an object satisfying one of these protocols.
"""

from __future__ import annotations

from typing import Iterable, Optional, Protocol, Sequence

from lineage.graph.models import ContentItem, ContentNode


class ContentLookup(Protocol):
    """Read access to the content-management collaborator."""

    def get_content_by_id(self, content_id: str) -> Optional[ContentItem]: ...

    def get_content_by_ids(self, content_ids: Iterable[str]) -> list[ContentItem]: ...


class NodeReader(Protocol):
    """Read access to persisted hierarchy nodes."""

    def get_node(self, content_id: str) -> Optional[ContentNode]: ...

    def get_nodes(self, content_ids: Iterable[str]) -> list[ContentNode]: ...

    def get_node_by_path(self, path: Sequence[str]) -> Optional[ContentNode]: ...


__all__ = ["ContentLookup", "NodeReader"]
