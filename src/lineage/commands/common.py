"""
lineage.commands.common - Helpers shared by command handlers.
"""

from __future__ import annotations

import json
from typing import Any, Dict

from lineage.service import LineageService


def open_service(config: Dict[str, Any]) -> LineageService:
    """Service over the database named in the configuration."""
    return LineageService.from_config(config)


def print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, sort_keys=True))
