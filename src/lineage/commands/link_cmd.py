"""
lineage.commands.link_cmd - Create and delete relationships.
"""

from __future__ import annotations

import argparse
from typing import Any, Dict

from lineage.commands.common import open_service
from lineage.graph.models import ContentRelationship, CreationMethod, RelationshipKind


def run_link(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    edge = ContentRelationship(
        source_content_id=args.source_id,
        target_content_id=args.target_id,
        kind=RelationshipKind(args.kind),
        confidence=args.confidence,
        creation_method=CreationMethod(args.method),
    )
    service = open_service(config)
    service.link(edge)
    if not args.quiet:
        print(f"Linked {edge}")
        if edge.is_hierarchical:
            print(f"{edge.target_content_id}: {service.get_node(edge.target_content_id).path_text}")
    return 0


def run_unlink(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    open_service(config).unlink(args.source_id, args.target_id, RelationshipKind(args.kind))
    if not args.quiet:
        print(f"Unlinked {args.source_id} --[{args.kind}]--> {args.target_id}")
    return 0
