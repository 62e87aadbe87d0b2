"""
lineage.commands.content_cmd - Manage content records.
"""

from __future__ import annotations

import argparse
from typing import Any, Dict

from lineage.commands.common import open_service, print_json
from lineage.graph.serialize import serialize_content


def run(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    """Run the content command."""
    if args.content_action == "add":
        return run_add(args, config)
    elif args.content_action == "show":
        return run_show(args, config)
    elif args.content_action == "delete":
        return run_delete(args, config)
    elif args.content_action == "orphans":
        return run_orphans(args, config)

    print("Usage: lineage content {add|show|delete|orphans}")
    return 1


def run_add(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    service = open_service(config)
    item = service.add_content(
        args.content_id,
        platform_id=args.platform,
        title=args.title or "",
        content_type=args.type or "",
        url=args.url or "",
    )
    if not args.quiet:
        print(f"Stored {item.id} (label {item.label})")
    return 0


def run_show(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    service = open_service(config)
    print_json(serialize_content(service.get_content(args.content_id)))
    return 0


def run_delete(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    service = open_service(config)
    service.delete_content(args.content_id, preserve_descendants=args.preserve_descendants)
    if not args.quiet:
        print(f"Deleted {args.content_id}")
    return 0


def run_orphans(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    """List content that has no node, or that takes part in no relationship."""
    service = open_service(config)
    if args.without == "relationships":
        items = service.list_unlinked_content(args.platform, args.type)
    else:
        items = service.list_unplaced_content(args.platform, args.type)
    if args.json:
        print_json([serialize_content(item) for item in items])
        return 0
    if not items:
        if not args.quiet:
            print(f"No content without {args.without}")
        return 0
    for item in items:
        print(f"{item.id}  [{item.platform_id}] {item.title}".rstrip())
    return 0
