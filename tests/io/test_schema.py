from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from toolscribe.core.message import Message, MessageRole, ToolCallRecord
from toolscribe.io.schema import EventLevel, HistoryEntry, StoredToolCall, SystemEvent


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def test_history_entry_from_assistant_message() -> None:
    call = ToolCallRecord(id="call-1", name="search", args={"filters": {"lang": ["en"]}})
    entry = HistoryEntry.from_message(Message.assistant("done", [call]))

    assert entry.role is MessageRole.ASSISTANT
    assert entry.tool_calls == [StoredToolCall(id="call-1", name="search", args={"filters": {"lang": ["en"]}})]
    assert entry.tool_call_id is None


def test_history_entry_roundtrip_through_json() -> None:
    entry = HistoryEntry.from_message(Message.tool("call-1", "result"))

    restored = HistoryEntry.model_validate_json(entry.model_dump_json())

    assert restored == entry
    assert restored.to_message() == Message.tool("call-1", "result")


def test_history_entry_rejects_unknown_fields() -> None:
    with pytest.raises(ValidationError):
        HistoryEntry.model_validate({"role": "user", "content": "q", "unknown": 1})


def test_stored_tool_call_requires_id_and_name() -> None:
    with pytest.raises(ValidationError):
        StoredToolCall(id="", name="search")
    with pytest.raises(ValidationError):
        StoredToolCall(id="call-1", name="")


def test_system_event_roundtrip() -> None:
    event = SystemEvent(
        event_id="evt-1",
        timestamp=_now(),
        origin="toolscribe.runtime",
        level=EventLevel.ERROR,
        message="run failed",
        attributes={"error_type": "streaming_error", "event_count": 3},
    )

    dumped = json.dumps(event.model_dump(mode="json"))
    restored = SystemEvent.model_validate_json(dumped)

    assert restored == event


def test_system_event_defaults_to_info_level() -> None:
    event = SystemEvent(event_id="evt-2", timestamp=_now(), origin="cli", message="hello")

    assert event.level is EventLevel.INFO
    assert event.attributes == {}
