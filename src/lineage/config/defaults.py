"""
lineage.config.defaults - Built-in configuration values
"""

from __future__ import annotations

from typing import Any, Dict

CONFIG_FILENAME = ".lineage.toml"
ENV_PREFIX = "LINEAGE_"

DEFAULT_CONFIG: Dict[str, Any] = {
    "storage": {
        "database": "lineage.db",
        "busy_timeout": 5.0,
    },
    "hierarchy": {
        "page_size": 500,
        "lock_retries": 3,
        "default_platform": "unk",
    },
    "server": {
        "host": "127.0.0.1",
        "port": 5055,
    },
    "logging": {
        "level": "WARNING",
    },
}
