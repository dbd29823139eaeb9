"""Local filesystem-backed persistence adapters."""

from __future__ import annotations

import json
import tempfile
from pathlib import Path
from typing import Any, Iterator, Optional, cast
from uuid import uuid4

from toolscribe.core.message import Message

from ..interfaces import EventBus, HistoryStore
from ..schema import HistoryEntry, JSONValue, SystemEvent


def _ensure_directory(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def _write_payload(directory: Path, payload: dict[str, JSONValue], prefix: str) -> Path:
    _ensure_directory(directory)
    file_path = directory / f"{prefix}-{uuid4().hex}.json"
    file_path.write_text(
        json.dumps(payload, ensure_ascii=False, sort_keys=True),
        encoding="utf-8",
    )
    return file_path


def _next_json_file(directory: Path) -> Optional[Path]:
    if not directory.exists():
        return None
    json_files = sorted(
        (p for p in directory.iterdir() if p.suffix == ".json"),
        key=lambda p: (p.stat().st_mtime_ns, p.name),
    )
    if not json_files:
        return None
    return json_files[0]


class LocalHistoryStore(HistoryStore):
    """Append history messages to a JSON-lines file."""

    def __init__(self, path: Path | str):
        self._path = Path(path)
        _ensure_directory(self._path.parent)

    @property
    def path(self) -> Path:
        """File backing this store."""

        return self._path

    def append(self, message: Message) -> None:
        entry = HistoryEntry.from_message(message)
        line = entry.model_dump_json()
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")

    def entries(self) -> Iterator[HistoryEntry]:
        """Yield the stored entries in append order."""

        if not self._path.exists():
            return
        with self._path.open("r", encoding="utf-8") as handle:
            for line in handle:
                if line.strip():
                    yield HistoryEntry.model_validate_json(line)

    def messages(self) -> list[Message]:
        return [entry.to_message() for entry in self.entries()]

    def flush(self) -> None:
        _ensure_directory(self._path.parent)


class LocalEventBus(EventBus):
    """Filesystem-backed event bus for telemetry."""

    def __init__(self, directory: Path | str):
        self._directory = Path(directory)
        _ensure_directory(self._directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def read(self) -> Optional[SystemEvent]:
        candidate = _next_json_file(self._directory)
        if candidate is None:
            return None
        payload = candidate.read_text(encoding="utf-8")
        event = cast(SystemEvent, SystemEvent.model_validate_json(payload))
        candidate.unlink()
        return event

    def write(self, event: SystemEvent) -> None:
        payload = cast(dict[str, Any], event.model_dump(mode="json"))
        _write_payload(self._directory, payload, prefix="event")

    def flush(self) -> None:
        _ensure_directory(self._directory)


class LocalWorkspace:
    """Convenience wrapper bundling the local history store and event bus."""

    def __init__(self, base_path: Path | str | None = None):
        if base_path is None:
            base = Path(tempfile.mkdtemp(prefix="toolscribe-"))
        else:
            base = Path(base_path)
            _ensure_directory(base)
        self.base_path = base
        self.history = LocalHistoryStore(base / "history.jsonl")
        self.events = LocalEventBus(base / "events")

    def flush(self) -> None:
        """Flush all underlying adapters."""

        self.history.flush()
        self.events.flush()


__all__ = [
    "LocalEventBus",
    "LocalHistoryStore",
    "LocalWorkspace",
]
