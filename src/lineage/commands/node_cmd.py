"""
lineage.commands.node_cmd - create, relocate and remove commands.
"""

from __future__ import annotations

import argparse
from typing import Any, Dict

from lineage.commands.common import open_service


def run_create(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    node = open_service(config).create_node(args.content_id, args.parent)
    if not args.quiet:
        print(f"{node.content_id}: {node.path_text} (depth {node.depth})")
    return 0


def run_relocate(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    node = open_service(config).relocate(args.content_id, args.new_parent_id)
    if not args.quiet:
        print(f"{node.content_id}: {node.path_text} (depth {node.depth})")
    return 0


def run_remove(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    open_service(config).remove(args.content_id, preserve_descendants=args.preserve_descendants)
    if not args.quiet:
        mode = "descendants re-parented" if args.preserve_descendants else "subtree deleted"
        print(f"Removed {args.content_id} ({mode})")
    return 0
