from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

from toolscribe.core.message import Message, ToolCallRecord
from toolscribe.io.adapters.local import LocalEventBus, LocalHistoryStore, LocalWorkspace
from toolscribe.io.adapters.memory import InMemoryEventBus, InMemoryHistoryStore
from toolscribe.io.schema import EventLevel, HistoryEntry, SystemEvent


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _event(event_id: str) -> SystemEvent:
    return SystemEvent(
        event_id=event_id,
        timestamp=_now(),
        origin="runtime",
        level=EventLevel.WARNING,
        message="orphaned tool start",
    )


def test_local_history_store_appends_json_lines(tmp_path: Path) -> None:
    store = LocalHistoryStore(tmp_path / "nested" / "history.jsonl")
    call = ToolCallRecord(id="call-1", name="search", args={"query": "x"})

    store.append(Message.user("what is x?"))
    store.append(Message.assistant("answer", [call]))
    store.append(Message.tool("call-1", "result text"))

    lines = store.path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 3
    assistant = json.loads(lines[1])
    assert assistant["role"] == "assistant"
    assert assistant["tool_calls"] == [{"id": "call-1", "name": "search", "args": {"query": "x"}}]
    assert json.loads(lines[2])["tool_call_id"] == "call-1"


def test_local_history_store_restores_messages(tmp_path: Path) -> None:
    store = LocalHistoryStore(tmp_path / "history.jsonl")
    call = ToolCallRecord(id="call-1", name="search", args={"query": "x", "limit": [1, 2]})
    written = [
        Message.user("q"),
        Message.assistant("a", [call]),
        Message.tool("call-1", "r"),
    ]
    for message in written:
        store.append(message)

    restored = store.messages()

    assert [message.role for message in restored] == [message.role for message in written]
    assert restored[1].tool_calls == (call,)
    assert restored[2].tool_call_id == "call-1"


def test_local_history_store_without_file_has_no_entries(tmp_path: Path) -> None:
    store = LocalHistoryStore(tmp_path / "history.jsonl")

    assert list(store.entries()) == []


def test_local_event_bus_roundtrip(tmp_path: Path) -> None:
    bus = LocalEventBus(tmp_path / "events")
    event = _event("evt-1")

    bus.write(event)

    assert len(list(bus.directory.glob("*.json"))) == 1
    assert bus.read() == event
    assert bus.read() is None


def test_workspace_bundles_history_and_events(tmp_path: Path) -> None:
    workspace = LocalWorkspace(tmp_path / "ws")
    workspace.history.append(Message.user("hello"))
    workspace.events.write(_event("evt-2"))
    workspace.flush()

    assert (tmp_path / "ws" / "history.jsonl").exists()
    assert (tmp_path / "ws" / "events").is_dir()
    entries = list(workspace.history.entries())
    assert isinstance(entries[0], HistoryEntry)
    assert entries[0].content == "hello"


def test_workspace_defaults_to_temporary_directory() -> None:
    workspace = LocalWorkspace()

    assert workspace.base_path.exists()
    assert workspace.base_path.name.startswith("toolscribe-")


def test_in_memory_adapters() -> None:
    store = InMemoryHistoryStore()
    store.append(Message.user("q"))
    store.flush()
    assert len(store) == 1

    bus = InMemoryEventBus()
    first, second = _event("a"), _event("b")
    bus.write(first)
    bus.write(second)
    assert bus.read() == first
    assert bus.read() == second
    assert bus.read() is None
