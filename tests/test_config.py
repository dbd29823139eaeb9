from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from toolscribe.config import (
    DEFAULT_TRUNCATION_MARKER,
    RunConfig,
    TruncationConfig,
    TruncationOverride,
    load_config,
)
from toolscribe.core.errors import ConfigError
from toolscribe.core.truncation import TRUNCATORS, Truncator, register_truncator, truncate


def test_defaults_match_documented_values():
    config = RunConfig()
    assert config.memory_enabled is True
    assert config.truncation.max_characters == 50_000
    assert config.truncation.method == "smart"
    assert config.truncation.include_size_info is True
    assert config.truncation.truncation_marker == DEFAULT_TRUNCATION_MARKER
    assert config.truncation.warn_threshold == 10_000
    assert config.truncation.preserve_lines == 5
    assert config.placeholders.no_final_response_text == "[Tool execution completed - no final response]"
    assert config.placeholders.tool_execution_error == "[Tool execution failed]"


def test_truncation_config_rejects_invalid_values():
    with pytest.raises(ValidationError):
        TruncationConfig(max_characters=0)
    with pytest.raises(ValidationError):
        TruncationConfig(method="zip")
    with pytest.raises(ValidationError):
        TruncationConfig.model_validate({"max_characters": 10, "unknown": True})


def test_registered_truncator_is_selectable():
    class Upper(Truncator):
        def truncate(self, content: str, config: TruncationConfig) -> str:
            return content.upper()[: config.max_characters]

    register_truncator("upper", Upper())
    try:
        config = TruncationConfig(max_characters=3, method="upper")
        assert truncate("abcdef", config) == "ABC"
        assert TruncationOverride(method="upper").apply(TruncationConfig()).method == "upper"
    finally:
        TRUNCATORS.pop("upper")

    with pytest.raises(ValidationError):
        TruncationConfig(method="upper")


def test_configs_are_immutable():
    config = TruncationConfig()
    with pytest.raises(ValidationError):
        config.max_characters = 10  # type: ignore[misc]


def test_effective_truncation_merges_per_tool_override():
    config = RunConfig(
        truncation=TruncationConfig(max_characters=1_000, method="end"),
        per_tool_truncation={"search": TruncationOverride(method="structured")},
    )

    search = config.effective_truncation("search")
    assert search.method == "structured"
    assert search.max_characters == 1_000

    assert config.effective_truncation("fetch") is config.truncation
    assert config.effective_truncation(None) is config.truncation


def test_empty_override_returns_base():
    base = TruncationConfig()
    assert TruncationOverride().apply(base) is base


def test_from_mapping_wraps_validation_errors():
    with pytest.raises(ConfigError) as excinfo:
        RunConfig.from_mapping({"truncation": {"max_characters": -1}})
    assert "invalid run configuration" in str(excinfo.value)


def test_load_config_reads_toml_table(tmp_path: Path):
    path = tmp_path / "run.toml"
    path.write_text(
        "\n".join(
            [
                "[toolscribe]",
                "memory_enabled = false",
                "",
                "[toolscribe.truncation]",
                "max_characters = 2000",
                'method = "end"',
                "",
                "[toolscribe.per_tool_truncation.search]",
                "max_characters = 100",
                "",
                "[toolscribe.placeholders]",
                'no_final_response_text = "(silent)"',
            ]
        ),
        encoding="utf-8",
    )

    config = load_config(path)

    assert config.memory_enabled is False
    assert config.truncation.max_characters == 2000
    assert config.effective_truncation("search").max_characters == 100
    assert config.effective_truncation("search").method == "end"
    assert config.placeholders.no_final_response_text == "(silent)"


def test_load_config_reads_bare_toml(tmp_path: Path):
    path = tmp_path / "run.toml"
    path.write_text("[truncation]\nmethod = \"middle\"\n", encoding="utf-8")

    assert load_config(path).truncation.method == "middle"


def test_load_config_reads_json(tmp_path: Path):
    path = tmp_path / "run.json"
    path.write_text(json.dumps({"truncation": {"include_size_info": False}}), encoding="utf-8")

    assert load_config(path).truncation.include_size_info is False


@pytest.mark.parametrize(
    ("filename", "content"),
    [
        ("broken.toml", "[toolscribe\n"),
        ("broken.json", "{not json"),
        ("list.json", "[1, 2]"),
        ("unknown.toml", "[toolscribe]\nmystery = 1\n"),
    ],
)
def test_load_config_rejects_invalid_files(tmp_path: Path, filename: str, content: str):
    path = tmp_path / filename
    path.write_text(content, encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(path)


def test_load_config_reports_missing_file(tmp_path: Path):
    with pytest.raises(ConfigError) as excinfo:
        load_config(tmp_path / "absent.toml")
    assert "cannot read configuration file" in str(excinfo.value)
