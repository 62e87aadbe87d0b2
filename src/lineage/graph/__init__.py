"""Graph module - Content hierarchy engine.

Exports:
- ContentItem, ContentNode, ContentRelationship: core records
- RelationshipKind, CreationMethod: edge semantics and provenance
- HierarchyBuilder / BuildResult: bulk tree construction
- PathMutator: transactional create/relocate/remove/link
- AncestorResolver: ancestor and common-ancestor queries
- ContentFamily, ContentMetrics, AggregateMetrics: assembled output
- MutationEntry, MutationLog, BrokenReference: audit and diagnostics
- CycleInfo: cycle detection results

Path functions live in lineage.graph.paths and cycle checks in
lineage.graph.cycles.
"""

from lineage.graph.ancestors import AncestorResolver
from lineage.graph.assembler import (
    AggregateMetrics,
    ContentFamily,
    ContentMetrics,
    assemble_family,
)
from lineage.graph.builder import BuildResult, HierarchyBuilder
from lineage.graph.cycles import CycleInfo
from lineage.graph.models import (
    ContentItem,
    ContentNode,
    ContentRelationship,
    CreationMethod,
    RelationshipKind,
)
from lineage.graph.mutations import BrokenReference, MutationEntry, MutationLog
from lineage.graph.mutator import PathMutator

__all__ = [
    "AggregateMetrics",
    "AncestorResolver",
    "BrokenReference",
    "BuildResult",
    "ContentFamily",
    "ContentItem",
    "ContentMetrics",
    "ContentNode",
    "ContentRelationship",
    "CreationMethod",
    "CycleInfo",
    "HierarchyBuilder",
    "MutationEntry",
    "MutationLog",
    "PathMutator",
    "RelationshipKind",
    "assemble_family",
]
