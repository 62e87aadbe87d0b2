"""
lineage.commands.init - Create .lineage.toml and the database.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any, Dict

from lineage.config import CONFIG_FILENAME, DEFAULT_CONFIG, write_default_config
from lineage.store import SqliteStore


def run(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    """Run the init command."""
    directory = Path.cwd()
    config_path = directory / CONFIG_FILENAME
    if config_path.exists() and not args.force:
        print(f"Configuration file already exists: {config_path}", file=sys.stderr)
        print("Use --force to overwrite.", file=sys.stderr)
        return 1
    if config_path.exists():
        config_path.unlink()

    write_default_config(directory, database=args.database)
    database = Path(args.database or DEFAULT_CONFIG["storage"]["database"])
    if not database.is_absolute():
        database = directory / database
    SqliteStore(database)

    if not args.quiet:
        print(f"Created {config_path}")
        print(f"Initialized database {database}")
    return 0
