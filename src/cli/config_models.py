"""Pydantic configuration models for beliefbase."""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class PathsConfig(BaseModel):
    """File locations. The project store lives under each project directory."""

    global_db: Path = Path("~/.beliefbase/memory.sqlite3")
    project_db_name: str = ".beliefbase/memory.sqlite3"
    single_db: Optional[Path] = None  # one file for both scopes
    log_file: Optional[Path] = None

    @model_validator(mode="after")
    def expand_paths(self):
        """Expand ~ in all paths."""
        self.global_db = self.global_db.expanduser()
        if self.single_db is not None:
            self.single_db = self.single_db.expanduser()
        if self.log_file is not None:
            self.log_file = self.log_file.expanduser()
        return self

    @field_validator("project_db_name")
    @classmethod
    def validate_relative(cls, v: str) -> str:
        if Path(v).is_absolute():
            raise ValueError("project_db_name must be relative to the project directory")
        return v


class RecallConfig(BaseModel):
    """Recall defaults."""

    default_limit: int = Field(default=10, ge=1, le=500)
    index_limit: int = Field(default=20, ge=1, le=500)
    semantic_candidates: int = Field(default=1000, ge=10)
    rrf_k: int = Field(default=60, ge=1)


class SweepConfig(BaseModel):
    """Maintenance TTLs and time budget."""

    proposed_fact_ttl_days: int = Field(default=14, ge=0)
    disputed_fact_ttl_days: int = Field(default=30, ge=0)
    content_retention_days: int = Field(default=30, ge=0)
    default_budget_seconds: float = Field(default=5, gt=0)


VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "WARNING"
    json_mode: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        v_upper = v.upper()
        if v_upper not in VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log level: {v}. Must be one of {VALID_LOG_LEVELS}")
        return v_upper


class MemoryConfig(BaseModel):
    """Main configuration model."""

    paths: PathsConfig = Field(default_factory=PathsConfig)
    recall: RecallConfig = Field(default_factory=RecallConfig)
    sweep: SweepConfig = Field(default_factory=SweepConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: dict) -> "MemoryConfig":
        """Create config from a parsed YAML dict."""
        if "paths" in data:
            for key in ["global_db", "single_db", "log_file"]:
                if isinstance(data["paths"].get(key), str):
                    data["paths"][key] = Path(data["paths"][key])
        return cls.model_validate(data)

    def to_dict(self) -> dict:
        return self.model_dump(mode="python")
