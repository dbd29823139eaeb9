"""Command line interface for toolscribe."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Iterator, Sequence

from .config import RunConfig, TruncationConfig, load_config
from .core.errors import ConfigError, FatalStreamError
from .core.truncation import TRUNCATORS, truncate
from .io.adapters.local import LocalWorkspace
from .io.adapters.memory import InMemoryHistoryStore
from .io.schema import HistoryEntry
from .runtime.loop import EventStreamRun
from .runtime.telemetry import EventBusTelemetry, LoggingTelemetry

LOGGER = logging.getLogger(__name__)


def _read_event_lines(path: Path) -> Iterator[Any]:
    with path.open("r", encoding="utf-8") as handle:
        for number, line in enumerate(handle, start=1):
            if not line.strip():
                continue
            try:
                event = json.loads(line)
            except json.JSONDecodeError as exc:
                LOGGER.warning("%s:%s: invalid JSON event: %s", path, number, exc.msg)
                # Passed through raw so the run rejects and counts it.
                event = line
            yield event


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer '{value}'") from exc
    if number <= 0:
        raise argparse.ArgumentTypeError("value must be greater than zero")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Rebuild conversation transcripts from agent execution events")
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Only log errors")
    subparsers = parser.add_subparsers(dest="command", required=True)

    transcribe_parser = subparsers.add_parser(
        "transcribe", help="replay a JSON-lines event file and write the resulting history"
    )
    transcribe_parser.add_argument("events", type=Path, help="JSON-lines file with one event per line")
    transcribe_parser.add_argument("--query", required=True, help="Original user query of the run")
    transcribe_parser.add_argument("-c", "--config", type=Path, help="TOML or JSON run configuration")
    transcribe_parser.add_argument(
        "-w",
        "--workspace",
        type=Path,
        help="Directory receiving history.jsonl and telemetry events instead of stdout",
    )

    truncate_parser = subparsers.add_parser("truncate", help="apply the content truncator to a file")
    truncate_parser.add_argument("file", type=Path, help="File whose content should be truncated")
    truncate_parser.add_argument("-n", "--max-characters", type=_positive_int, default=50_000, help="Character budget")
    truncate_parser.add_argument(
        "-m",
        "--method",
        choices=sorted(TRUNCATORS),
        default="smart",
        help="Truncation strategy",
    )
    truncate_parser.add_argument(
        "--no-size-info",
        action="store_true",
        help="Omit original and resulting sizes from the marker",
    )

    return parser


def _configure_logging(args: argparse.Namespace) -> None:
    level = logging.WARNING
    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.ERROR
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _handle_transcribe(args: argparse.Namespace) -> int:
    config = load_config(args.config) if args.config else RunConfig()
    events = _read_event_lines(args.events)

    if args.workspace:
        workspace = LocalWorkspace(args.workspace)
        run = EventStreamRun(
            events,
            args.query,
            config=config,
            history=workspace.history,
            telemetry=EventBusTelemetry(workspace.events),
        )
        result = asyncio.run(run.run())
        workspace.flush()
        print(f"History written to {workspace.history.path} ({result.history_messages} messages)")
        return 0

    store = InMemoryHistoryStore()
    run = EventStreamRun(events, args.query, config=config, history=store, telemetry=LoggingTelemetry())
    asyncio.run(run.run())
    for message in store.messages:
        sys.stdout.write(HistoryEntry.from_message(message).model_dump_json(exclude={"created_at"}))
        sys.stdout.write("\n")
    return 0


def _handle_truncate(args: argparse.Namespace) -> int:
    config = TruncationConfig(
        max_characters=args.max_characters,
        method=args.method,
        include_size_info=not args.no_size_info,
    )
    content = args.file.read_text(encoding="utf-8")
    rendered = truncate(content, config)
    sys.stdout.write(rendered)
    if not rendered.endswith("\n"):
        sys.stdout.write("\n")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args)
    try:
        if args.command == "transcribe":
            return _handle_transcribe(args)
        if args.command == "truncate":
            return _handle_truncate(args)
    except (ConfigError, FatalStreamError, OSError) as exc:
        LOGGER.error("%s", exc)
        return 1
    parser.error("no command provided")
    return 2


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
