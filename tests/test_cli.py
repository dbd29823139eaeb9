from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from tests.fixtures import engine_events
from toolscribe.cli import build_parser, main
from toolscribe.config import TruncationConfig
from toolscribe.core.truncation import TRUNCATORS, Truncator, register_truncator


class _Upper(Truncator):
    def truncate(self, content: str, config: TruncationConfig) -> str:
        return content.upper()[: config.max_characters]


def _write_events(path: Path, events: list[dict]) -> Path:
    path.write_text("\n".join(json.dumps(event) for event in events) + "\n", encoding="utf-8")
    return path


def test_transcribe_prints_history_lines(tmp_path: Path, capsys: pytest.CaptureFixture[str]):
    events = _write_events(tmp_path / "events.jsonl", engine_events.search_run())

    exit_code = main(["transcribe", str(events), "--query", "weather?"])

    assert exit_code == 0
    lines = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert [line["role"] for line in lines] == ["user", "assistant", "tool"]
    assert lines[1]["content"] == "It is sunny."
    assert lines[2]["tool_call_id"] == lines[1]["tool_calls"][0]["id"]
    assert "created_at" not in lines[0]


def test_transcribe_writes_workspace(tmp_path: Path, capsys: pytest.CaptureFixture[str]):
    events = _write_events(tmp_path / "events.jsonl", engine_events.search_run())
    workspace = tmp_path / "ws"

    exit_code = main(["transcribe", str(events), "--query", "weather?", "--workspace", str(workspace)])

    assert exit_code == 0
    history = (workspace / "history.jsonl").read_text(encoding="utf-8").splitlines()
    assert len(history) == 3
    telemetry = list((workspace / "events").glob("*.json"))
    assert len(telemetry) == 1
    assert json.loads(telemetry[0].read_text(encoding="utf-8"))["attributes"]["tool_call_count"] == 1
    assert "3 messages" in capsys.readouterr().out


def test_transcribe_uses_config_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]):
    config = tmp_path / "run.toml"
    config.write_text("[toolscribe]\nmemory_enabled = false\n", encoding="utf-8")
    events = _write_events(tmp_path / "events.jsonl", engine_events.search_run())

    exit_code = main(["transcribe", str(events), "--query", "q", "--config", str(config)])

    assert exit_code == 0
    assert capsys.readouterr().out == ""


def test_transcribe_reports_invalid_config(tmp_path: Path):
    config = tmp_path / "run.toml"
    config.write_text("[toolscribe]\nunknown = 1\n", encoding="utf-8")
    events = _write_events(tmp_path / "events.jsonl", [])

    assert main(["transcribe", str(events), "--query", "q", "--config", str(config)]) == 1


def test_transcribe_skips_malformed_event_lines(
    tmp_path: Path, capsys: pytest.CaptureFixture[str], caplog: pytest.LogCaptureFixture
):
    caplog.set_level(logging.INFO, logger="toolscribe")
    lines = [json.dumps(event) for event in engine_events.search_run()]
    lines.insert(2, "{broken")
    events = tmp_path / "events.jsonl"
    events.write_text("\n".join(lines) + "\n", encoding="utf-8")

    exit_code = main(["transcribe", str(events), "--query", "weather?"])

    assert exit_code == 0
    history = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert [line["role"] for line in history] == ["user", "assistant", "tool"]
    assert "events.jsonl:3: invalid JSON event" in caplog.text
    assert "rejected=1" in caplog.text


def test_parser_accepts_registered_truncation_method():
    register_truncator("upper", _Upper())
    try:
        args = build_parser().parse_args(["truncate", "file.txt", "-m", "upper"])
    finally:
        TRUNCATORS.pop("upper")
    assert args.method == "upper"


def test_transcribe_reports_missing_event_file(tmp_path: Path):
    assert main(["transcribe", str(tmp_path / "absent.jsonl"), "--query", "q"]) == 1


def test_truncate_prints_bounded_content(tmp_path: Path, capsys: pytest.CaptureFixture[str]):
    source = tmp_path / "big.txt"
    source.write_text("a" * 5_000, encoding="utf-8")

    exit_code = main(["truncate", str(source), "-n", "100", "-m", "end"])

    assert exit_code == 0
    output = capsys.readouterr().out
    assert output.startswith("a" * 100 + "\n\n[... CONTENT TRUNCATED ...]\n\n")
    assert "(5,000 → 100 chars)" in output


def test_truncate_structured_without_size_info(tmp_path: Path, capsys: pytest.CaptureFixture[str]):
    source = tmp_path / "big.json"
    source.write_text(json.dumps(list(range(500))), encoding="utf-8")

    exit_code = main(["truncate", str(source), "--max-characters", "200", "--method", "structured", "--no-size-info"])

    assert exit_code == 0
    parsed = json.loads(capsys.readouterr().out)
    assert parsed[-1]["_originalLength"] == 500


def test_parser_rejects_non_positive_budget():
    parser = build_parser()
    with pytest.raises(SystemExit):
        parser.parse_args(["truncate", "file.txt", "-n", "0"])
