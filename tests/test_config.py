"""Tests for configuration loading, merging and environment overrides."""

import os
from pathlib import Path

import pytest
import tomlkit

from lineage.config import (
    CONFIG_FILENAME,
    DEFAULT_CONFIG,
    _apply_env_overrides,
    _try_parse_env_value,
    find_config_file,
    get_config,
    load_config,
    merge_configs,
    write_default_config,
)
from lineage.errors import ValidationError


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in list(os.environ):
        if name.startswith("LINEAGE_"):
            monkeypatch.delenv(name)


class TestMergeConfigs:
    """Tests for merge_configs()."""

    def test_nested_tables_merge(self):
        merged = merge_configs(DEFAULT_CONFIG, {"storage": {"busy_timeout": 1.5}})
        assert merged["storage"]["busy_timeout"] == 1.5
        assert merged["storage"]["database"] == "lineage.db"

    def test_base_not_mutated(self):
        merge_configs(DEFAULT_CONFIG, {"hierarchy": {"page_size": 1}})
        assert DEFAULT_CONFIG["hierarchy"]["page_size"] == 500

    def test_new_sections_added(self):
        merged = merge_configs({"a": {"x": 1}}, {"b": {"y": 2}})
        assert merged == {"a": {"x": 1}, "b": {"y": 2}}


class TestLoadConfig:
    """Tests for reading .lineage.toml files."""

    def test_relative_database_resolved_against_file(self, tmp_path):
        path = tmp_path / CONFIG_FILENAME
        path.write_text('[storage]\ndatabase = "data/lineage.db"\n')
        config = load_config(path)
        assert config["storage"]["database"] == str(tmp_path / "data" / "lineage.db")
        assert config["hierarchy"]["page_size"] == 500

    def test_absolute_database_kept(self, tmp_path):
        path = tmp_path / CONFIG_FILENAME
        target = tmp_path / "elsewhere.db"
        path.write_text(f'[storage]\ndatabase = "{target.as_posix()}"\n')
        assert load_config(path)["storage"]["database"] == target.as_posix()

    def test_invalid_toml(self, tmp_path):
        path = tmp_path / CONFIG_FILENAME
        path.write_text("[storage\ndatabase = \n")
        with pytest.raises(ValidationError):
            load_config(path)

    def test_find_walks_up(self, tmp_path):
        (tmp_path / CONFIG_FILENAME).write_text("")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        assert find_config_file(nested) == (tmp_path / CONFIG_FILENAME).resolve()

    def test_get_config_defaults_without_file(self, tmp_path):
        config = get_config(start=tmp_path / "nowhere")
        assert config["server"]["port"] == 5055

    def test_explicit_path(self, tmp_path):
        path = tmp_path / "custom.toml"
        path.write_text("[server]\nport = 8080\n")
        assert get_config(path)["server"]["port"] == 8080


class TestWriteDefaultConfig:
    """Tests for write_default_config()."""

    def test_round_trip(self, tmp_path):
        path = write_default_config(tmp_path, database="my.db")
        document = tomlkit.parse(path.read_text())
        assert document["storage"]["database"] == "my.db"
        config = load_config(path)
        assert config["storage"]["database"] == str(tmp_path / "my.db")
        assert config["hierarchy"]["lock_retries"] == 3

    def test_refuses_to_overwrite(self, tmp_path):
        write_default_config(tmp_path)
        with pytest.raises(FileExistsError):
            write_default_config(tmp_path)


class TestTryParseEnvValue:
    """Tests for _try_parse_env_value()."""

    def test_json_list(self):
        assert _try_parse_env_value('["a", "b"]') == ["a", "b"]

    def test_json_object(self):
        assert _try_parse_env_value('{"key": "value"}') == {"key": "value"}

    def test_booleans(self):
        assert _try_parse_env_value("TRUE") is True
        assert _try_parse_env_value("false") is False

    def test_numbers(self):
        assert _try_parse_env_value("42") == 42
        assert _try_parse_env_value("2.5") == 2.5

    def test_plain_and_malformed(self):
        assert _try_parse_env_value("/tmp/x.db") == "/tmp/x.db"
        assert _try_parse_env_value("[not json") == "[not json"


class TestEnvOverrides:
    """Tests for LINEAGE_<SECTION>_<KEY> overrides."""

    def test_multi_word_key(self, monkeypatch):
        monkeypatch.setenv("LINEAGE_STORAGE_BUSY_TIMEOUT", "0.5")
        config = _apply_env_overrides(merge_configs(DEFAULT_CONFIG, {}))
        assert config["storage"]["busy_timeout"] == 0.5

    def test_applied_by_get_config(self, monkeypatch, tmp_path):
        monkeypatch.setenv("LINEAGE_HIERARCHY_PAGE_SIZE", "25")
        monkeypatch.setenv("LINEAGE_STORAGE_DATABASE", str(tmp_path / "env.db"))
        config = get_config(start=tmp_path)
        assert config["hierarchy"]["page_size"] == 25
        assert Path(config["storage"]["database"]) == tmp_path / "env.db"

    def test_prefix_only_ignored(self, monkeypatch):
        monkeypatch.setenv("LINEAGE_", "x")
        monkeypatch.setenv("LINEAGE_STORAGE", "x")
        config = _apply_env_overrides(merge_configs(DEFAULT_CONFIG, {}))
        assert config == DEFAULT_CONFIG
