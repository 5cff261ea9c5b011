"""Tests for config loading and validation."""

from pathlib import Path

import pytest

from cli.config import get_paths, load_config_model
from cli.config_models import MemoryConfig


def test_defaults():
    config = MemoryConfig()
    assert config.recall.rrf_k == 60
    assert config.sweep.default_budget_seconds == 5
    assert config.logging.level == "WARNING"
    assert config.paths.global_db == Path("~/.beliefbase/memory.sqlite3").expanduser()


def test_load_from_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "paths:\n"
        "  global_db: ~/mem/global.sqlite3\n"
        "sweep:\n"
        "  proposed_fact_ttl_days: 7\n"
        "logging:\n"
        "  level: debug\n"
    )
    config = load_config_model(path)
    assert config.paths.global_db == Path.home() / "mem" / "global.sqlite3"
    assert config.sweep.proposed_fact_ttl_days == 7
    assert config.logging.level == "DEBUG"


def test_invalid_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("paths: [unclosed")
    with pytest.raises(ValueError, match="Invalid YAML"):
        load_config_model(path)


def test_invalid_values(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("logging:\n  level: LOUD\n")
    with pytest.raises(ValueError, match="Config validation failed"):
        load_config_model(path)


def test_absolute_project_db_name_rejected():
    with pytest.raises(ValueError):
        MemoryConfig.from_dict({"paths": {"project_db_name": "/tmp/x.sqlite3"}})


def test_get_paths(tmp_path):
    paths = get_paths(MemoryConfig().to_dict(), project_dir=str(tmp_path))
    assert paths["project_db"] == tmp_path / ".beliefbase" / "memory.sqlite3"
    assert paths["single_db"] is None
    assert paths["log_file"] is None
