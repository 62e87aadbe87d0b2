"""
lineage.cli - Command-line interface.

Main entry point for the lineage CLI tool.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from lineage import __version__
from lineage.commands import (
    build_cmd,
    check_cmd,
    content_cmd,
    family_cmd,
    init,
    link_cmd,
    node_cmd,
    path_cmd,
    serve_cmd,
)
from lineage.config import get_config
from lineage.graph.models import CreationMethod, RelationshipKind

_KINDS = [kind.value for kind in RelationshipKind]
_METHODS = [method.value for method in CreationMethod]


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="lineage",
        description="Content lineage hierarchies over materialized paths",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  lineage content add vid1 --platform youtube_main --title "Launch video"
  lineage content add clip1 --platform tiktok_main
  lineage link vid1 clip1                # clip1 derives from vid1
  lineage family vid1                    # Show the family tree
  lineage relocate clip1 other_vid       # Move clip1 and its subtree
  lineage build edges.json --replace     # Rebuild families from an edge list
  lineage ancestor clip1 clip2           # Deepest shared ancestor
  lineage path query "youtube_vid1.*"    # Nodes matching a path pattern

Configuration:
  lineage init                           # Create .lineage.toml and the database
  LINEAGE_STORAGE_DATABASE=/tmp/x.db     # Override any setting from the environment

For detailed command help: lineage <command> --help
        """,
    )

    # Global options
    parser.add_argument(
        "--version",
        action="version",
        version=f"lineage {__version__}",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to configuration file",
        metavar="PATH",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Verbose output (debug logging, full tracebacks)",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Suppress non-error output",
    )

    # Subcommands
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # init command
    init_parser = subparsers.add_parser(
        "init",
        help="Create .lineage.toml and initialize the database",
    )
    init_parser.add_argument(
        "--database",
        help="Database file to record in the new configuration",
        metavar="PATH",
    )
    init_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite an existing configuration file",
    )

    # content command
    content_parser = subparsers.add_parser(
        "content",
        help="Manage content records",
    )
    content_subparsers = content_parser.add_subparsers(dest="content_action")
    content_add = content_subparsers.add_parser("add", help="Register or update content")
    content_add.add_argument("content_id", help="Content identifier")
    content_add.add_argument(
        "--platform",
        help="Platform identifier, e.g. youtube_main (default from config)",
    )
    content_add.add_argument("--title", help="Display title")
    content_add.add_argument("--type", help="Content type (video, short, ...)")
    content_add.add_argument("--url", help="Canonical URL")
    content_show = content_subparsers.add_parser("show", help="Show a content record")
    content_show.add_argument("content_id", help="Content identifier")
    content_delete = content_subparsers.add_parser(
        "delete", help="Delete content, detaching its node first"
    )
    content_delete.add_argument("content_id", help="Content identifier")
    content_delete.add_argument(
        "--preserve-descendants",
        action="store_true",
        help="Re-parent descendants instead of deleting them",
    )
    content_orphans = content_subparsers.add_parser(
        "orphans", help="List content outside every family"
    )
    content_orphans.add_argument(
        "--without",
        choices=["nodes", "relationships"],
        default="nodes",
        help="List content without a node (default) or without relationships",
    )
    content_orphans.add_argument("--platform", help="Only this platform id")
    content_orphans.add_argument("--type", help="Only this content type")
    content_orphans.add_argument("--json", action="store_true", help="Output JSON")

    # build command
    build_parser = subparsers.add_parser(
        "build",
        help="Build families from a JSON edge list",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Edge file format:
  [{"source": "vid1", "target": "clip1", "kind": "derivative"}, ...]

Only hierarchical kinds (parent, derivative, repurposed, reaction) shape
the tree; other kinds are stored as relationships only.
""",
    )
    build_parser.add_argument("edges_file", type=Path, help="JSON edges file", metavar="EDGES")
    build_parser.add_argument("--root", help="Content id to use as the sole root", metavar="ID")
    build_parser.add_argument(
        "--replace",
        action="store_true",
        help="Rebuild families that already have nodes",
    )
    build_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Compute the tree without persisting it",
    )
    build_parser.add_argument("--json", action="store_true", help="Output JSON")

    # create command
    create_parser_ = subparsers.add_parser(
        "create",
        help="Attach content as a root or under a parent",
    )
    create_parser_.add_argument("content_id", help="Content to attach")
    create_parser_.add_argument("--parent", help="Parent content id", metavar="ID")

    # relocate command
    relocate_parser = subparsers.add_parser(
        "relocate",
        help="Move a node and its subtree under a new parent",
    )
    relocate_parser.add_argument("content_id", help="Content to move")
    relocate_parser.add_argument("new_parent_id", help="New parent content id")

    # remove command
    remove_parser = subparsers.add_parser(
        "remove",
        help="Detach a node (cascading delete by default)",
    )
    remove_parser.add_argument("content_id", help="Content to detach")
    remove_parser.add_argument(
        "--preserve-descendants",
        action="store_true",
        help="Re-parent children to the removed node's parent",
    )

    # family command
    family_parser = subparsers.add_parser(
        "family",
        help="Show a node and all its descendants",
    )
    family_parser.add_argument("content_id", help="Content id of the subtree top")
    family_parser.add_argument(
        "--levels",
        action="store_true",
        help="Group the nodes by depth, shallowest first",
    )
    family_parser.add_argument("--json", action="store_true", help="Output JSON")

    # between command
    between_parser = subparsers.add_parser(
        "between",
        help="Show the tree path from one node to another",
    )
    between_parser.add_argument("source_id", help="Content id to start from")
    between_parser.add_argument("target_id", help="Content id to end at")
    between_parser.add_argument("--json", action="store_true", help="Output JSON")

    # ancestor command
    ancestor_parser = subparsers.add_parser(
        "ancestor",
        help="Find the common ancestor of content ids",
    )
    ancestor_parser.add_argument("content_ids", nargs="+", help="Content ids", metavar="ID")
    ancestor_parser.add_argument(
        "--chain",
        action="store_true",
        help="List the ancestors of the first id instead",
    )
    ancestor_parser.add_argument("--json", action="store_true", help="Output JSON")

    # link command
    link_parser = subparsers.add_parser(
        "link",
        help="Record a relationship (source is the parent)",
    )
    link_parser.add_argument("source_id", help="Parent-side content id")
    link_parser.add_argument("target_id", help="Child-side content id")
    link_parser.add_argument(
        "--kind",
        choices=_KINDS,
        default=RelationshipKind.DERIVATIVE.value,
        help="Relationship kind (default: derivative)",
    )
    link_parser.add_argument(
        "--confidence",
        type=float,
        default=1.0,
        help="Confidence in [0, 1] (default: 1.0)",
    )
    link_parser.add_argument(
        "--method",
        choices=_METHODS,
        default=CreationMethod.USER_DEFINED.value,
        help="Creation method (default: user_defined)",
    )

    # unlink command
    unlink_parser = subparsers.add_parser("unlink", help="Delete a relationship record")
    unlink_parser.add_argument("source_id", help="Parent-side content id")
    unlink_parser.add_argument("target_id", help="Child-side content id")
    unlink_parser.add_argument(
        "--kind",
        choices=_KINDS,
        default=RelationshipKind.DERIVATIVE.value,
        help="Relationship kind (default: derivative)",
    )

    # path command
    path_parser = subparsers.add_parser("path", help="Generate, validate and query paths")
    path_subparsers = path_parser.add_subparsers(dest="path_action")
    path_generate = path_subparsers.add_parser("generate", help="Path for a content item")
    path_generate.add_argument("content_id", help="Content identifier")
    path_generate.add_argument("--parent", help="Prospective parent content id", metavar="ID")
    path_generate.add_argument(
        "--platform",
        help="Compute the label offline from this platform id",
    )
    path_validate = path_subparsers.add_parser("validate", help="Check a path")
    path_validate.add_argument("path", help="Dot-separated path")
    path_query = path_subparsers.add_parser("query", help="Nodes matching a pattern")
    path_query.add_argument("pattern", help='Pattern; "*" matches zero or more labels')
    path_query.add_argument("--json", action="store_true", help="Output JSON")

    # check command
    check_parser = subparsers.add_parser(
        "check",
        help="Verify hierarchy invariants and relationship cycles",
    )
    check_parser.add_argument("--json", action="store_true", help="Output JSON")

    # serve command
    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the REST API (requires content-lineage[server])",
    )
    serve_parser.add_argument("--host", help="Bind address (default from config)")
    serve_parser.add_argument("--port", type=int, help="Port (default from config)")

    # completion command - shell tab-completion setup
    completion_parser = subparsers.add_parser(
        "completion",
        help="Generate shell tab-completion scripts",
    )
    completion_parser.add_argument(
        "--shell",
        choices=["bash", "zsh", "fish", "tcsh"],
        help="Generate script for specific shell",
    )

    return parser


def _configure_logging(args: argparse.Namespace, config: Dict[str, Any]) -> None:
    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.ERROR
    else:
        level = getattr(logging, str(config["logging"]["level"]).upper(), logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    parser = create_parser()

    # Enable shell tab-completion if argcomplete is installed
    # Install with: pip install content-lineage[completion]
    try:
        import argcomplete

        argcomplete.autocomplete(parser)
    except ImportError:
        pass

    args = parser.parse_args(argv)

    # Handle no command
    if not args.command:
        parser.print_help()
        return 0

    try:
        if args.command == "completion":
            return completion_command(args)

        config = get_config(args.config)
        _configure_logging(args, config)

        # Dispatch to command handlers
        if args.command == "init":
            return init.run(args, config)
        elif args.command == "content":
            return content_cmd.run(args, config)
        elif args.command == "build":
            return build_cmd.run(args, config)
        elif args.command == "create":
            return node_cmd.run_create(args, config)
        elif args.command == "relocate":
            return node_cmd.run_relocate(args, config)
        elif args.command == "remove":
            return node_cmd.run_remove(args, config)
        elif args.command == "family":
            return family_cmd.run_family(args, config)
        elif args.command == "between":
            return family_cmd.run_between(args, config)
        elif args.command == "ancestor":
            return family_cmd.run_ancestor(args, config)
        elif args.command == "link":
            return link_cmd.run_link(args, config)
        elif args.command == "unlink":
            return link_cmd.run_unlink(args, config)
        elif args.command == "path":
            return path_cmd.run(args, config)
        elif args.command == "check":
            return check_cmd.run(args, config)
        elif args.command == "serve":
            return serve_cmd.run(args, config)
        else:
            parser.print_help()
            return 1

    except KeyboardInterrupt:
        print("\nOperation cancelled.", file=sys.stderr)
        return 130
    except Exception as e:
        if args.verbose:
            raise
        print(f"Error: {e}", file=sys.stderr)
        return 1


def completion_command(args: argparse.Namespace) -> int:
    """Handle completion command - generate shell completion scripts."""
    try:
        import argcomplete  # noqa: F401
    except ImportError:
        print("Error: argcomplete not installed.", file=sys.stderr)
        print("Install with: pip install content-lineage[completion]", file=sys.stderr)
        return 1

    if not args.shell:
        print("""
Shell Completion Setup for lineage
==================================

Bash (add to ~/.bashrc):
  eval "$(register-python-argcomplete lineage)"

Zsh (add to ~/.zshrc):
  autoload -U bashcompinit
  bashcompinit
  eval "$(register-python-argcomplete lineage)"

Fish (add to ~/.config/fish/config.fish):
  register-python-argcomplete --shell fish lineage | source

Generate script for a specific shell:
  lineage completion --shell bash
""")
        return 0

    import subprocess

    cmd = ["register-python-argcomplete"]
    if args.shell in ("fish", "tcsh"):
        cmd.append(f"--shell={args.shell}")
    cmd.append("lineage")
    try:
        result = subprocess.run(cmd, capture_output=True, text=True)
    except FileNotFoundError:
        print("Error: register-python-argcomplete not found.", file=sys.stderr)
        return 1
    if result.returncode != 0:
        print(f"Error generating completion script: {result.stderr}", file=sys.stderr)
        return 1
    print(result.stdout)
    return 0


if __name__ == "__main__":
    sys.exit(main())
