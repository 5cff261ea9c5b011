"""Configuration loading and management."""

from pathlib import Path
from typing import Optional

import yaml

from knowledge.scope import resolve_project_dir

from .config_models import MemoryConfig

DEFAULT_CONFIG = MemoryConfig().to_dict()


def find_config() -> Optional[Path]:
    """Find config file in standard locations."""
    locations = [
        Path.cwd() / "beliefbase.yaml",
        Path.home() / ".beliefbase" / "config.yaml",
    ]
    for loc in locations:
        if loc.exists():
            return loc
    return None


def load_config(config_path: Optional[Path] = None) -> dict:
    """Load configuration as a plain dict. Use load_config_model() for typed access."""
    return load_config_model(config_path).to_dict()


def load_config_model(config_path: Optional[Path] = None) -> MemoryConfig:
    """Load configuration as Pydantic model with validation."""
    base_config = {}

    path = config_path or find_config()
    if path and path.exists():
        try:
            with open(path) as f:
                base_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in config file: {e}")

    try:
        return MemoryConfig.from_dict(base_config)
    except Exception as e:
        raise ValueError(f"Config validation failed: {e}")


def get_paths(config: dict, project_dir: Optional[str] = None) -> dict:
    """Expanded store paths for the current project."""
    paths = config.get("paths", DEFAULT_CONFIG["paths"])
    project_dir = project_dir or resolve_project_dir()
    single_db = paths.get("single_db")
    log_file = paths.get("log_file")
    return {
        "project_dir": Path(project_dir),
        "project_db": Path(project_dir) / paths["project_db_name"],
        "global_db": Path(paths["global_db"]).expanduser(),
        "single_db": Path(single_db).expanduser() if single_db else None,
        "log_file": Path(log_file).expanduser() if log_file else None,
    }
