"""GraphAssembler - Family structures for callers and visualizations.

Pure transformation of a queried node set, its relationship edges and
caller-supplied per-content metrics. Nothing here touches the store.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from lineage.errors import ValidationError
from lineage.graph.models import ContentItem, ContentNode, ContentRelationship


@dataclass(frozen=True)
class ContentMetrics:
    """Precomputed totals for one content item (supplied by the caller)."""

    views: int = 0
    engagements: int = 0
    shares: int = 0
    comments: int = 0
    watch_time: float = 0.0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ContentMetrics:
        """Accepts snake_case keys, plus "watchTime" as sent by JS clients.

        Raises:
            ValidationError: If data is not a mapping or a total is not numeric.
        """
        if not isinstance(data, Mapping):
            raise ValidationError(f"Metrics must be an object, got {type(data).__name__}")
        try:
            return cls(
                views=int(data.get("views", 0) or 0),
                engagements=int(data.get("engagements", 0) or 0),
                shares=int(data.get("shares", 0) or 0),
                comments=int(data.get("comments", 0) or 0),
                watch_time=float(data.get("watch_time", data.get("watchTime", 0)) or 0),
            )
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid metrics: {e}") from e

    def to_dict(self) -> dict[str, Any]:
        return {
            "views": self.views,
            "engagements": self.engagements,
            "shares": self.shares,
            "comments": self.comments,
            "watch_time": self.watch_time,
        }


@dataclass(frozen=True)
class AggregateMetrics:
    """Family-wide sums of ContentMetrics."""

    total_views: int = 0
    total_engagements: int = 0
    total_shares: int = 0
    total_comments: int = 0
    total_watch_time: float = 0.0
    content_count: int = 0
    platform_count: int = 0

    @property
    def engagement_rate(self) -> float:
        """Engagements per 100 views; 0 when there are no views."""
        if self.total_views <= 0:
            return 0.0
        return self.total_engagements / self.total_views * 100

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_views": self.total_views,
            "total_engagements": self.total_engagements,
            "total_shares": self.total_shares,
            "total_comments": self.total_comments,
            "total_watch_time": self.total_watch_time,
            "engagement_rate": self.engagement_rate,
            "content_count": self.content_count,
            "platform_count": self.platform_count,
        }


def node_platform(node: ContentNode, contents: Optional[Mapping[str, ContentItem]] = None) -> str:
    """Platform tag of a node, from its content record or its own label."""
    if contents and node.content_id in contents:
        return contents[node.content_id].platform
    return node.label.split("_", 1)[0]


def aggregate_metrics(
    nodes: Iterable[ContentNode],
    metrics: Mapping[str, ContentMetrics],
    contents: Optional[Mapping[str, ContentItem]] = None,
) -> AggregateMetrics:
    """Sum the supplied metrics over a node set; absent entries count as zero."""
    node_list = list(nodes)
    empty = ContentMetrics()
    picked = [metrics.get(node.content_id, empty) for node in node_list]
    return AggregateMetrics(
        total_views=sum(m.views for m in picked),
        total_engagements=sum(m.engagements for m in picked),
        total_shares=sum(m.shares for m in picked),
        total_comments=sum(m.comments for m in picked),
        total_watch_time=sum(m.watch_time for m in picked),
        content_count=len(node_list),
        platform_count=len({node_platform(n, contents) for n in node_list}),
    )


@dataclass
class ContentFamily:
    """A family tree ready to hand to callers.

    Attributes:
        root_id: Content id of the topmost node assembled.
        nodes: Family nodes ordered by (depth, path).
        edges: Relationships whose endpoints are both family members.
        aggregate_metrics: Summed metrics for the whole family.
        max_depth: Depth of the deepest node.
        platform_distribution: Node count per platform tag.
        metrics: Per-content metrics, as supplied.
        contents: Content records, when known (used for titles).
    """

    root_id: str
    nodes: List[ContentNode]
    edges: List[ContentRelationship]
    aggregate_metrics: AggregateMetrics
    max_depth: int
    platform_distribution: Dict[str, int]
    metrics: Dict[str, ContentMetrics] = field(default_factory=dict)
    contents: Dict[str, ContentItem] = field(default_factory=dict)

    def to_visualization(self) -> dict[str, Any]:
        """Nodes and edges in the shape graph front-ends consume."""
        empty = ContentMetrics()
        vis_nodes = []
        for node in self.nodes:
            content = self.contents.get(node.content_id)
            vis_nodes.append(
                {
                    "id": node.content_id,
                    "label": content.title if content and content.title else node.label,
                    "platform": node_platform(node, self.contents),
                    "depth": node.depth,
                    "is_root": node.is_root,
                    "metrics": self.metrics.get(node.content_id, empty).to_dict(),
                }
            )
        vis_edges = [
            {
                "id": edge.id,
                "source": edge.source_content_id,
                "target": edge.target_content_id,
                "type": edge.kind.value,
                "confidence": edge.confidence,
            }
            for edge in self.edges
        ]
        return {
            "root_id": self.root_id,
            "nodes": vis_nodes,
            "edges": vis_edges,
            "aggregate_metrics": self.aggregate_metrics.to_dict(),
        }


def assemble_family(
    nodes: Iterable[ContentNode],
    edges: Iterable[ContentRelationship] = (),
    metrics: Optional[Mapping[str, ContentMetrics]] = None,
    contents: Optional[Iterable[ContentItem]] = None,
) -> ContentFamily:
    """Compose a ContentFamily from one family's nodes.

    Edges with an endpoint outside the node set are dropped.

    Raises:
        ValidationError: If the node set is empty.
    """
    ordered = sorted(nodes, key=lambda n: (n.depth, n.path))
    if not ordered:
        raise ValidationError("Cannot assemble a family without nodes")
    member_ids = {node.content_id for node in ordered}
    kept_edges = [
        edge
        for edge in edges
        if edge.source_content_id in member_ids and edge.target_content_id in member_ids
    ]
    metric_map = dict(metrics or {})
    content_map = {item.id: item for item in contents or ()}
    distribution = Counter(node_platform(node, content_map) for node in ordered)
    return ContentFamily(
        root_id=ordered[0].content_id,
        nodes=ordered,
        edges=kept_edges,
        aggregate_metrics=aggregate_metrics(ordered, metric_map, content_map),
        max_depth=max(node.depth for node in ordered),
        platform_distribution=dict(sorted(distribution.items())),
        metrics=metric_map,
        contents=content_map,
    )


__all__ = [
    "AggregateMetrics",
    "ContentFamily",
    "ContentMetrics",
    "aggregate_metrics",
    "assemble_family",
    "node_platform",
]
