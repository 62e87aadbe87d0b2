"""
lineage.commands.path_cmd - Path generation, validation and queries.
"""

from __future__ import annotations

import argparse
from typing import Any, Dict

from lineage.commands.common import open_service, print_json
from lineage.graph.paths import format_path, generate_label, validate_path
from lineage.graph.serialize import serialize_node


def run(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    """Run the path command."""
    if args.path_action == "generate":
        return run_generate(args, config)
    elif args.path_action == "validate":
        return run_validate(args)
    elif args.path_action == "query":
        return run_query(args, config)

    print("Usage: lineage path {generate|validate|query}")
    return 1


def run_generate(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    """Print the path a content item would get.

    With --platform the label is computed offline, without the store.
    """
    if args.platform:
        print(generate_label(args.content_id, args.platform))
        return 0
    path = open_service(config).generate_path(args.content_id, args.parent)
    print(format_path(path))
    return 0


def run_validate(args: argparse.Namespace) -> int:
    valid = validate_path(args.path)
    if not args.quiet:
        print(f"{args.path}: {'valid' if valid else 'invalid'}")
    return 0 if valid else 1


def run_query(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    nodes = open_service(config).query_by_path(args.pattern)
    if args.json:
        print_json([serialize_node(n) for n in nodes])
        return 0
    for node in nodes:
        print(f"{node.path_text}  [{node.content_id}]")
    return 0
