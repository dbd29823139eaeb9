"""Run configuration: memory, truncation budgets and placeholder texts."""

from __future__ import annotations

import json
import tomllib
from pathlib import Path
from typing import Any, Dict, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .core.errors import ConfigError
from .core.truncation import TRUNCATORS

DEFAULT_TRUNCATION_MARKER = "\n\n[... CONTENT TRUNCATED ...]\n\n"
DEFAULT_NO_FINAL_RESPONSE_TEXT = "[Tool execution completed - no final response]"
DEFAULT_TOOL_EXECUTION_ERROR_TEXT = "[Tool execution failed]"


def _check_method(value: str | None) -> str | None:
    if value is not None and value not in TRUNCATORS:
        known = ", ".join(sorted(TRUNCATORS))
        raise ValueError(f"unknown truncation method '{value}' (known: {known})")
    return value


class TruncationConfig(BaseModel):
    """Size budget applied to stored tool output.

    Attributes
    ----------
    max_characters:
        Content at or below this length is stored unchanged.
    method:
        Name of the truncation strategy. ``end`` keeps the head of the
        content, ``middle`` keeps head and tail, ``structured`` keeps JSON
        parseable and ``smart`` picks between structured and line-aware
        trimming based on the content. Strategies added with
        :func:`~toolscribe.core.truncation.register_truncator` are accepted too.
    include_size_info:
        Append the original and resulting sizes after the marker.
    truncation_marker:
        Literal text inserted where content was removed.
    warn_threshold:
        Content longer than this is logged before truncation.
    preserve_lines:
        Number of leading and trailing lines kept by line-aware trimming.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    max_characters: int = Field(50_000, gt=0, description="Character budget for stored content.")
    method: str = Field("smart", description="Truncation strategy name.")
    include_size_info: bool = Field(True, description="Whether to report sizes next to the marker.")
    truncation_marker: str = Field(DEFAULT_TRUNCATION_MARKER, description="Marker inserted at the cut.")
    warn_threshold: int = Field(10_000, ge=0, description="Size above which truncation is logged.")
    preserve_lines: int = Field(5, ge=1, description="Lines kept at each end by line-aware trimming.")

    @field_validator("method")
    @classmethod
    def validate_method(cls, value: str) -> str:
        return _check_method(value)


class TruncationOverride(BaseModel):
    """Partial :class:`TruncationConfig` applied to a single tool."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    max_characters: int | None = Field(None, gt=0)
    method: str | None = None
    include_size_info: bool | None = None
    truncation_marker: str | None = None
    warn_threshold: int | None = Field(None, ge=0)
    preserve_lines: int | None = Field(None, ge=1)

    @field_validator("method")
    @classmethod
    def validate_method(cls, value: str | None) -> str | None:
        return _check_method(value)

    def apply(self, base: TruncationConfig) -> TruncationConfig:
        updates = {key: value for key, value in self.model_dump().items() if value is not None}
        if not updates:
            return base
        return base.model_copy(update=updates)


class PlaceholderMessages(BaseModel):
    """Substitute texts used when a run produced no usable text."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    no_final_response_text: str = DEFAULT_NO_FINAL_RESPONSE_TEXT
    tool_execution_error: str = DEFAULT_TOOL_EXECUTION_ERROR_TEXT


class RunConfig(BaseModel):
    """Configuration supplied once per run."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    memory_enabled: bool = True
    truncation: TruncationConfig = Field(default_factory=TruncationConfig)
    per_tool_truncation: Dict[str, TruncationOverride] = Field(default_factory=dict)
    placeholders: PlaceholderMessages = Field(default_factory=PlaceholderMessages)

    def effective_truncation(self, tool_name: str | None) -> TruncationConfig:
        """Return the tool-specific budget merged over the run default."""

        if tool_name is None:
            return self.truncation
        override = self.per_tool_truncation.get(tool_name)
        if override is None:
            return self.truncation
        return override.apply(self.truncation)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> RunConfig:
        try:
            return cls.model_validate(dict(data))
        except PydanticValidationError as exc:
            msg = f"invalid run configuration: {exc}"
            raise ConfigError(msg) from exc


def load_config(path: Path | str) -> RunConfig:
    """Load a :class:`RunConfig` from a TOML or JSON file.

    TOML files may nest the settings under a ``[toolscribe]`` table.
    """

    config_path = Path(path)
    try:
        raw = config_path.read_bytes()
    except OSError as exc:
        msg = f"cannot read configuration file {config_path}: {exc}"
        raise ConfigError(msg) from exc

    try:
        if config_path.suffix == ".json":
            data = json.loads(raw.decode("utf-8"))
        else:
            data = tomllib.loads(raw.decode("utf-8"))
            data = data.get("toolscribe", data)
    except (UnicodeDecodeError, json.JSONDecodeError, tomllib.TOMLDecodeError) as exc:
        msg = f"cannot parse configuration file {config_path}: {exc}"
        raise ConfigError(msg) from exc

    if not isinstance(data, Mapping):
        msg = f"configuration file {config_path} must contain a table/object"
        raise ConfigError(msg)

    return RunConfig.from_mapping(data)


__all__ = [
    "DEFAULT_NO_FINAL_RESPONSE_TEXT",
    "DEFAULT_TOOL_EXECUTION_ERROR_TEXT",
    "DEFAULT_TRUNCATION_MARKER",
    "PlaceholderMessages",
    "RunConfig",
    "TruncationConfig",
    "TruncationOverride",
    "load_config",
]
