"""
lineage.commands.family_cmd - Family tree and ancestor queries.
"""

from __future__ import annotations

import argparse
from typing import Any, Dict

from lineage.commands.common import open_service, print_json
from lineage.graph.serialize import serialize_family, serialize_node, to_tree_text


def run_family(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    """Show the family rooted at a node."""
    service = open_service(config)
    if args.levels:
        levels = service.traverse_level_order(args.content_id)
        if args.json:
            print_json([[serialize_node(n) for n in level] for level in levels])
            return 0
        for level in levels:
            print(f"{level[0].depth}: {' '.join(n.content_id for n in level)}")
        return 0
    if args.json:
        print_json(serialize_family(service.get_family_graph(args.content_id)))
        return 0
    print(to_tree_text(service.get_family(args.content_id)))
    return 0


def run_between(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    """Show the tree path between two nodes of one family."""
    service = open_service(config)
    nodes = service.find_path_between(args.source_id, args.target_id)
    if args.json:
        print_json(
            {"distance": len(nodes) - 1, "nodes": [serialize_node(n) for n in nodes]}
        )
        return 0
    print(" -> ".join(node.content_id for node in nodes))
    if not args.quiet:
        print(f"Distance: {len(nodes) - 1}")
    return 0


def run_ancestor(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    """Show the common ancestor of one or more nodes (or one node's chain)."""
    service = open_service(config)
    if args.chain:
        for node in service.get_ancestors(args.content_ids[0]):
            print(f"{node.path_text}  [{node.content_id}]")
        return 0

    node = service.find_common_ancestor(args.content_ids)
    if node is None:
        if args.json:
            print_json(None)
        elif not args.quiet:
            print("No common ancestor")
        return 1
    if args.json:
        print_json(serialize_node(node))
    else:
        print(f"{node.content_id}: {node.path_text}")
    return 0
