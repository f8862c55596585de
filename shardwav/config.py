"""
shardwav.config - Run configuration, YAML config loading, validation.

Builds the validated ExtractionConfig from command-line values, optionally
layered over a YAML config file.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from shardwav.exceptions import ConfigError


class ShardFormat(str, Enum):
    """Columnar encoding of the input shards."""

    ARROW = "arrow"
    PARQUET = "parquet"

    @property
    def suffix(self) -> str:
        return f".{self.value}"


class ExtractionConfig(BaseModel):
    """Resolved configuration for one extraction run."""

    model_config = ConfigDict(extra="forbid")

    input: Path | None = None
    input_dir: Path | None = None
    format: ShardFormat = ShardFormat.PARQUET
    output: Path
    threads: int = Field(default=3, ge=1)
    metadata_file: Path | None = None
    fail_fast: bool = False
    batch_size: int = Field(default=1024, ge=1)

    @model_validator(mode="after")
    def validate_input_source(self) -> ExtractionConfig:
        if self.input is None and self.input_dir is None:
            raise ValueError("Either --input or --input-dir must be provided")
        if self.input is not None and self.input_dir is not None:
            raise ValueError("--input and --input-dir are mutually exclusive")
        return self


CONFIG_KEYS = frozenset(ExtractionConfig.model_fields)


def load_config_file(path: Path) -> dict[str, Any]:
    """Load raw config values from a YAML file.

    Keys use the option names with underscores (input_dir, metadata_file).
    """
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    unknown = set(raw) - CONFIG_KEYS
    if unknown:
        raise ConfigError(f"Unknown config keys in {path}: {', '.join(sorted(unknown))}")
    return raw


def merge_config(file_config: dict[str, Any], cli_config: dict[str, Any]) -> dict[str, Any]:
    """Merge config file values with command-line values. Command line takes precedence."""
    merged = file_config.copy()
    for key, value in cli_config.items():
        if value is not None:
            merged[key] = value
    return merged


def build_config(
    cli_values: dict[str, Any],
    config_file: Path | None = None,
) -> ExtractionConfig:
    """Build and validate the run configuration.

    Args:
        cli_values: Values given on the command line; None means "not given"
        config_file: Optional YAML file providing defaults

    Returns:
        Validated ExtractionConfig

    Raises:
        ConfigError: If the combined values are invalid
    """
    file_values = load_config_file(config_file) if config_file else {}
    merged = merge_config(file_values, cli_values)

    try:
        return ExtractionConfig(**merged)
    except PydanticValidationError as e:
        messages = []
        for err in e.errors():
            loc = ".".join(str(part) for part in err["loc"])
            msg = err["msg"].removeprefix("Value error, ")
            messages.append(f"{loc}: {msg}" if loc else msg)
        raise ConfigError("; ".join(messages)) from e
