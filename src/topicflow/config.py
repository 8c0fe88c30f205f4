"""Configuration management for topicflow using Pydantic models."""

import json
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

CONFIG_FILE_NAME = ".topicflow.json"


class LogLevel(str, Enum):
    """Logging levels."""
    ERROR = "error"
    WARN = "warn"
    INFO = "info"
    DEBUG = "debug"
    TRACE = "trace"


class FieldConfig(BaseModel):
    """Vocabulary of allowed transition and instrument field values.

    An empty list disables the membership check for that field.
    """
    revisions: list[str] = Field(default_factory=list)
    instrument_types: list[str] = Field(alias="instrumentTypes", default_factory=list)
    topic_types: list[str] = Field(alias="topicTypes", default_factory=list)
    message_types: list[str] = Field(alias="messageTypes", default_factory=list)
    flow_types: list[str] = Field(alias="flowTypes", default_factory=list)
    flow_type_colors: dict[str, str] = Field(alias="flowTypeColors", default_factory=dict)

    model_config = ConfigDict(populate_by_name=True)


class ExportConfig(BaseModel):
    """Export bundle configuration section."""
    snapshot_path: str = Field(alias="snapshotPath", default="builder/statemachine_snapshot.json")
    aggregate_name: str = Field(alias="aggregateName", default="complete.puml")
    fail_on_errors: bool = Field(alias="failOnErrors", default=True)

    @field_validator("aggregate_name")
    @classmethod
    def validate_aggregate_name(cls, v):
        if not v.endswith(".puml"):
            raise ValueError(f"aggregate_name must end with .puml, got: {v}")
        return v

    @field_validator("snapshot_path")
    @classmethod
    def validate_snapshot_path(cls, v):
        if v.startswith("/") or ".." in v.split("/"):
            raise ValueError(f"snapshot_path must be relative inside the bundle, got: {v}")
        return v

    model_config = ConfigDict(populate_by_name=True)


class LoggingConfig(BaseModel):
    """Logging configuration section."""
    level: LogLevel = LogLevel.INFO

    model_config = ConfigDict(use_enum_values=True)


class TopicflowConfig(BaseModel):
    """Complete topicflow configuration model."""
    vocabulary: FieldConfig = Field(default_factory=FieldConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = ConfigDict(extra="forbid")


def load_config(config_path: str | Path | None = None) -> TopicflowConfig:
    """Load configuration from file with fallback to defaults.

    Args:
        config_path: Optional path to configuration file. If None, searches
                    current directory and parents for .topicflow.json

    Returns:
        TopicflowConfig: Loaded and validated configuration

    Raises:
        ValueError: If configuration is invalid
    """
    if config_path is None:
        config_path = find_config_file()
    else:
        config_path = Path(config_path)

    if config_path and config_path.exists():
        try:
            with open(config_path, encoding="utf-8") as f:
                config_data = json.load(f)
            return TopicflowConfig.model_validate(config_data)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in config file {config_path}: {e}") from e
        except ValidationError as e:
            raise ValueError(f"Failed to load config from {config_path}: {e}") from e
        except OSError as e:
            raise ValueError(f"Cannot read config file {config_path}: {e}") from e
    else:
        return create_default_config()


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Find .topicflow.json configuration file by searching up directory tree.

    Args:
        start_dir: Directory to start search from (default: current directory)

    Returns:
        Path to config file if found, None otherwise
    """
    start = Path(start_dir or Path.cwd()).resolve()
    for directory in (start, *start.parents):
        config_file = directory / CONFIG_FILE_NAME
        if config_file.is_file():
            return config_file
    return None


def create_default_config() -> TopicflowConfig:
    """Create default configuration (empty vocabulary, INFO logging)."""
    return TopicflowConfig()
