"""
lineage.commands.build_cmd - Build families from an edges file.

The file holds a JSON list of edge objects, or an object with an
"edges" list:

    [{"source": "vid1", "target": "clip1", "kind": "derivative"}, ...]
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List

from lineage.commands.common import open_service, print_json
from lineage.errors import ValidationError
from lineage.graph.models import ContentRelationship
from lineage.graph.serialize import relationship_from_dict, serialize_build, to_tree_text


def load_edges(path: Path) -> List[ContentRelationship]:
    """Read and parse an edges file.

    Raises:
        ValidationError: If the file is not a JSON edge list.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValidationError(f"{path} is not valid JSON: {e}") from e
    if isinstance(data, dict):
        data = data.get("edges")
    if not isinstance(data, list):
        raise ValidationError(f"{path} must contain a list of edges")
    return [relationship_from_dict(entry) for entry in data]


def run(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    """Run the build command."""
    edges = load_edges(args.edges_file)
    service = open_service(config)

    if args.dry_run:
        result = service.build_hierarchy(edges, root_hint=args.root)
    else:
        result = service.rebuild(edges, root_hint=args.root, replace=args.replace)

    if args.json:
        print_json(serialize_build(result))
        return 0

    if not args.quiet:
        print(to_tree_text(result.nodes))
        verb = "Would build" if args.dry_run else "Built"
        print(f"{verb} {len(result.nodes)} nodes in {len(result.roots)} families")
    for ref in result.broken_references:
        print(f"warning: {ref}", file=sys.stderr)
    for content_id in result.unreachable_ids:
        print(f"warning: {content_id} is not reachable from any root", file=sys.stderr)
    if result.used_fallback_root:
        print("warning: no natural root found; used a fallback root", file=sys.stderr)
    return 0
