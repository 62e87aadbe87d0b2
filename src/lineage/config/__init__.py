"""
lineage.config - Configuration loading and defaults
"""

from lineage.config.defaults import CONFIG_FILENAME, DEFAULT_CONFIG
from lineage.config.loader import (
    _apply_env_overrides,
    _try_parse_env_value,
    find_config_file,
    get_config,
    load_config,
    merge_configs,
    write_default_config,
)

__all__ = [
    "CONFIG_FILENAME",
    "DEFAULT_CONFIG",
    "find_config_file",
    "get_config",
    "load_config",
    "merge_configs",
    "write_default_config",
]
