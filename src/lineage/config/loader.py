"""
lineage.config.loader - Find, parse and merge configuration
"""

from __future__ import annotations

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import tomlkit
from tomlkit.exceptions import ParseError

from lineage.config.defaults import CONFIG_FILENAME, DEFAULT_CONFIG, ENV_PREFIX
from lineage.errors import ValidationError

logger = logging.getLogger(__name__)


def find_config_file(start: Path) -> Optional[Path]:
    """Walk up from `start` looking for a .lineage.toml file.

    Args:
        start: Directory to start from.

    Returns:
        Path to the config file, or None if no ancestor has one.
    """
    current = start.resolve()
    for directory in (current, *current.parents):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def merge_configs(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Deep-merge `override` into a copy of `base`.

    Nested tables merge key by key; any other value replaces the base value.
    """
    result = copy.deepcopy(dict(base))
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(result.get(key), dict):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def load_config(config_path: Path) -> Dict[str, Any]:
    """Load a TOML config file merged over DEFAULT_CONFIG.

    A relative storage.database is resolved against the file's directory.

    Raises:
        ValidationError: If the file is not valid TOML.
    """
    text = config_path.read_text(encoding="utf-8")
    try:
        data = tomlkit.parse(text).unwrap()
    except ParseError as e:
        raise ValidationError(f"Invalid config file {config_path}: {e}") from e

    config = merge_configs(DEFAULT_CONFIG, data)
    database = Path(config["storage"]["database"])
    if not database.is_absolute():
        config["storage"]["database"] = str(config_path.parent / database)
    logger.debug(f"Loaded config from {config_path}")
    return config


def _try_parse_env_value(value: str) -> Any:
    """Parse an environment value into a typed config value.

    JSON arrays/objects, true/false and numbers are recognised; anything
    else (including malformed JSON) stays a string.
    """
    stripped = value.strip()
    if stripped[:1] in ("[", "{"):
        try:
            return json.loads(stripped)
        except json.JSONDecodeError:
            return value
    lowered = stripped.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    try:
        return int(stripped)
    except ValueError:
        pass
    try:
        return float(stripped)
    except ValueError:
        return value


def _apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    """Apply LINEAGE_<SECTION>_<KEY> environment variables in place.

    The section is the first underscore-separated word after the prefix;
    the rest, lowercased, is the key (LINEAGE_STORAGE_BUSY_TIMEOUT sets
    storage.busy_timeout).
    """
    for name, raw in os.environ.items():
        if not name.startswith(ENV_PREFIX):
            continue
        section, _, key = name[len(ENV_PREFIX) :].lower().partition("_")
        if not section or not key:
            continue
        table = config.setdefault(section, {})
        if not isinstance(table, dict):
            continue
        table[key] = _try_parse_env_value(raw)
    return config


def get_config(
    config_path: Optional[Path] = None, start: Optional[Path] = None
) -> Dict[str, Any]:
    """Resolve the effective configuration.

    Uses `config_path` when given, otherwise the nearest .lineage.toml
    above `start` (the working directory by default), otherwise the
    defaults. Environment overrides apply last.
    """
    path = config_path or find_config_file(start or Path.cwd())
    if path is not None and path.exists():
        config = load_config(path)
    else:
        config = copy.deepcopy(DEFAULT_CONFIG)
    return _apply_env_overrides(config)


def write_default_config(directory: Path, database: Optional[str] = None) -> Path:
    """Write a .lineage.toml with the default settings into `directory`.

    Raises:
        FileExistsError: If the directory already has one.
    """
    path = directory / CONFIG_FILENAME
    if path.exists():
        raise FileExistsError(f"{path} already exists")
    document = tomlkit.document()
    document.add(tomlkit.comment("Content lineage configuration"))
    for section, values in DEFAULT_CONFIG.items():
        table = tomlkit.table()
        for key, value in values.items():
            table.add(key, value)
        document.add(section, table)
    if database:
        document["storage"]["database"] = database
    path.write_text(tomlkit.dumps(document), encoding="utf-8")
    return path
