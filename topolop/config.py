"""Run configuration for Topolop."""

from pathlib import Path
from typing import Any, Literal

import toml
from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .constants import (
    DEFAULT_ADAPTER_TIMEOUT_MS,
    DEFAULT_LINE_THRESHOLD,
    DEFAULT_MAX_BUILDING_HEIGHT,
    DEFAULT_QUEUE_SIZE,
)
from .core.exceptions import InvalidConfigError
from .models.enums import Severity

CONFIG_FILENAME = "topolop.toml"


class TopolopConfig(BaseModel):
    """Options for one analysis run."""

    project_root: str = Field(default=".", description="Root of the analyzed project")
    threshold: Severity = Field(
        default=Severity.HIGH, description="Minimum severity that makes the run fail"
    )
    output_format: Literal["table", "summary", "json"] = "table"
    timeout_ms: int = Field(
        default=DEFAULT_ADAPTER_TIMEOUT_MS, gt=0, description="Per-adapter time budget"
    )
    include_dev: bool = Field(default=False, description="Include dev-only dependencies")
    line_threshold: int = Field(default=DEFAULT_LINE_THRESHOLD, ge=0)
    case_insensitive_paths: bool = False
    pattern_overlap_requires_same_type: bool = False
    district_rule: Literal["first_segment", "purpose"] = "first_segment"
    max_building_height: float = Field(default=DEFAULT_MAX_BUILDING_HEIGHT, ge=1.0)
    queue_size: int = Field(default=DEFAULT_QUEUE_SIZE, ge=1)
    enabled_adapters: list[str] = Field(
        default_factory=list, description="Adapter names to run; empty runs all"
    )
    write_report: bool = False
    adapters: dict[str, dict[str, Any]] = Field(
        default_factory=dict,
        description="Per-adapter options (credentials, max_retries, rate budgets)",
    )

    @field_validator("threshold", mode="before")
    @classmethod
    def _lower_threshold(cls, value: Any) -> Any:
        return value.lower() if isinstance(value, str) else value

    def adapter_options(self, name: str) -> dict[str, Any]:
        """Options for one adapter, with run-wide flags merged in."""
        options: dict[str, Any] = {"include_dev": self.include_dev}
        options.update(self.adapters.get(name, {}))
        return options

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0


def load_config(path: str | Path | None = None, **overrides: Any) -> TopolopConfig:
    """Load configuration from a TOML file and apply overrides.

    The file may hold the options at top level or under a ``[topolop]``
    table. Overrides whose value is None are ignored so that unset CLI
    flags do not mask file values.

    Raises:
        InvalidConfigError: If the file cannot be parsed or holds invalid values
    """
    data: dict[str, Any] = {}

    if path is not None:
        config_path = Path(path)
        try:
            with open(config_path, encoding="utf-8") as f:
                data = toml.load(f)
        except FileNotFoundError as e:
            raise InvalidConfigError(f"Config file not found: {config_path}") from e
        except toml.TomlDecodeError as e:
            raise InvalidConfigError(f"Failed to parse {config_path}: {e}") from e
        if isinstance(data.get("topolop"), dict):
            data = data["topolop"]

    data.update({key: value for key, value in overrides.items() if value is not None})

    try:
        return TopolopConfig(**data)
    except PydanticValidationError as e:
        raise InvalidConfigError(f"Invalid configuration: {e}") from e


def find_config(project_root: str | Path) -> Path | None:
    """Return <project_root>/topolop.toml if it exists."""
    candidate = Path(project_root) / CONFIG_FILENAME
    return candidate if candidate.is_file() else None
