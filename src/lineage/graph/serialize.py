"""Hierarchy Serialization - Export nodes and families.

This module provides functions to serialize nodes, relationships and
assembled families to JSON-compatible dicts, plus an indented text tree
for terminals.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable, Mapping

from lineage.errors import ValidationError
from lineage.graph.models import ContentRelationship, CreationMethod, RelationshipKind

if TYPE_CHECKING:
    from lineage.graph.assembler import ContentFamily
    from lineage.graph.builder import BuildResult
    from lineage.graph.models import ContentItem, ContentNode


def serialize_node(node: ContentNode) -> dict[str, Any]:
    """Serialize a ContentNode to a JSON-compatible dict.

    Args:
        node: The node to serialize.

    Returns:
        Dict suitable for JSON serialization.
    """
    return {
        "id": node.id,
        "content_id": node.content_id,
        "path": node.path_text,
        "labels": list(node.path),
        "depth": node.depth,
        "root_id": node.root_id,
    }


def serialize_relationship(edge: ContentRelationship) -> dict[str, Any]:
    return {
        "id": edge.id,
        "source_content_id": edge.source_content_id,
        "target_content_id": edge.target_content_id,
        "kind": edge.kind.value,
        "confidence": edge.confidence,
        "creation_method": edge.creation_method.value,
        "metadata": dict(edge.metadata),
    }


def serialize_content(item: ContentItem) -> dict[str, Any]:
    return {
        "id": item.id,
        "platform_id": item.platform_id,
        "platform": item.platform,
        "title": item.title,
        "content_type": item.content_type,
        "url": item.url,
        "created_at": item.created_at.isoformat(),
        "updated_at": item.updated_at.isoformat(),
    }


def serialize_family(family: ContentFamily) -> dict[str, Any]:
    """Serialize a ContentFamily to a JSON-compatible dict.

    Returns:
        Dict with nodes, edges, aggregate metrics and metadata.
    """
    return {
        "root_id": family.root_id,
        "nodes": [serialize_node(node) for node in family.nodes],
        "edges": [serialize_relationship(edge) for edge in family.edges],
        "aggregate_metrics": family.aggregate_metrics.to_dict(),
        "metadata": {
            "node_count": len(family.nodes),
            "edge_count": len(family.edges),
            "max_depth": family.max_depth,
            "platform_distribution": dict(family.platform_distribution),
        },
    }


def serialize_build(result: BuildResult) -> dict[str, Any]:
    """Serialize a build result, diagnostics included."""
    return {
        "nodes": [serialize_node(node) for node in result.nodes],
        "roots": list(result.roots),
        "diagnostics": {
            "broken_references": [str(ref) for ref in result.broken_references],
            "unreachable_ids": list(result.unreachable_ids),
            "skipped_ids": list(result.skipped_ids),
            "used_fallback_root": result.used_fallback_root,
            "cycles": result.cycles.cycle_paths if result.cycles else [],
        },
    }


def to_tree_text(nodes: Iterable[ContentNode]) -> str:
    """Render nodes as an indented tree, one node per line.

    Nodes are sorted by path so every child follows its parent.
    """
    ordered = sorted(nodes, key=lambda n: n.path)
    if not ordered:
        return ""
    base = min(node.depth for node in ordered)
    lines = [f"{'  ' * (node.depth - base)}{node.label}  [{node.content_id}]" for node in ordered]
    return "\n".join(lines)


def relationship_from_dict(data: Mapping[str, Any]) -> ContentRelationship:
    """Parse one edge record (JSON body or edges file entry).

    Accepts "source"/"target" as short forms of the content id keys and
    "type" as an alias of "kind".

    Raises:
        ValidationError: If a field is missing or has an unknown value.
    """
    if not isinstance(data, Mapping):
        raise ValidationError(f"Edge must be an object, got {type(data).__name__}")
    source = data.get("source_content_id") or data.get("source")
    target = data.get("target_content_id") or data.get("target")
    if not source or not target:
        raise ValidationError(f"Edge needs source and target content ids: {dict(data)}")
    kind_value = data.get("kind") or data.get("type") or RelationshipKind.DERIVATIVE.value
    method_value = data.get("creation_method") or CreationMethod.USER_DEFINED.value
    try:
        kind = RelationshipKind(kind_value)
        method = CreationMethod(method_value)
        confidence = float(data.get("confidence", 1.0))
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid edge {source} -> {target}: {e}") from e
    metadata = data.get("metadata") or {}
    if not isinstance(metadata, Mapping):
        raise ValidationError(f"Edge {source} -> {target}: metadata must be an object")
    extra: dict[str, Any] = {}
    if "id" in data:
        extra["id"] = str(data["id"])
    return ContentRelationship(
        source_content_id=str(source),
        target_content_id=str(target),
        kind=kind,
        confidence=confidence,
        creation_method=method,
        metadata=dict(metadata),
        **extra,
    )


__all__ = [
    "relationship_from_dict",
    "serialize_build",
    "serialize_content",
    "serialize_family",
    "serialize_node",
    "serialize_relationship",
    "to_tree_text",
]
