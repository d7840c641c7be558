"""Tests for configuration and user data paths."""

import json
import os

import pytest

from modcatalog.core import Config, Paths, get_config
from modcatalog.core.config import DEFAULT_CONFIG


def test_data_dir_override(data_dir):
    assert Paths.get_user_data_dir() == os.path.abspath(str(data_dir))
    assert data_dir.is_dir()
    assert Paths.get_database_path() == os.path.join(str(data_dir), "catalog.db")
    assert Paths.get_config_path() == os.path.join(str(data_dir), "config.json")


def test_defaults_when_file_missing(data_dir):
    config = Config()

    assert config.load() is False
    assert config.data == DEFAULT_CONFIG
    assert config.database_path == Paths.get_database_path()
    assert config.strip_prefix is None


def test_save_and_load(tmp_path):
    path = str(tmp_path / "conf" / "config.json")
    config = Config(path)
    config.ingest_workers = 8
    config.database_path = "/tmp/other.db"
    config.save()

    reloaded = Config(path)
    assert reloaded.load() is True
    assert reloaded.ingest_workers == 8
    assert reloaded.database_path == "/tmp/other.db"


def test_unknown_keys_are_ignored(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"max_retries": 5, "colour": "blue"}))

    config = Config(str(path))
    config.load()

    assert config.max_retries == 5
    assert "colour" not in config.data


def test_invalid_json(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json")

    with pytest.raises(ValueError):
        Config(str(path)).load()


def test_setters_validate(tmp_path):
    config = Config(str(tmp_path / "config.json"))

    config.ingest_workers = 100
    assert config.ingest_workers == 32
    config.ingest_workers = 0
    assert config.ingest_workers == 1

    config.hash_algorithm = "sha256"
    assert config["hash_algorithm"] == "sha256"
    with pytest.raises(ValueError):
        config.hash_algorithm = "crc32"


def test_global_config_is_cached(data_dir):
    (data_dir / "config.json").write_text(json.dumps({"ingest_workers": 2}))

    first = get_config()
    assert first.ingest_workers == 2
    assert get_config() is first
