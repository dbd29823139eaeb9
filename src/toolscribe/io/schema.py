"""Serialized forms of history messages and telemetry events."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Union

from pydantic import BaseModel, ConfigDict, Field

from toolscribe.core.message import Message, MessageRole, ToolCallRecord, thaw_json_structure

JSONPrimitive = Union[str, int, float, bool, None]
JSONValue = Union[JSONPrimitive, Dict[str, "JSONValue"], List["JSONValue"]]


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class EventLevel(str, Enum):
    """Severity levels for :class:`SystemEvent`."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class StoredToolCall(BaseModel):
    """Tool call as persisted alongside an assistant message."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(..., min_length=1, description="Correlation id shared with the tool result.")
    name: str = Field(..., min_length=1, description="Name of the invoked tool.")
    args: Dict[str, JSONValue] = Field(default_factory=dict, description="Arguments the tool was invoked with.")


class HistoryEntry(BaseModel):
    """One history message as written to persistent storage."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    role: MessageRole = Field(..., description="Role of the message author.")
    content: str = Field(..., description="Text content of the message.")
    tool_calls: List[StoredToolCall] = Field(default_factory=list, description="Tool calls made by an assistant message.")
    tool_call_id: str | None = Field(None, description="Tool call referenced by a tool message.")
    created_at: datetime = Field(default_factory=_utcnow, description="Timestamp when the entry was written.")

    @classmethod
    def from_message(cls, message: Message) -> HistoryEntry:
        return cls(
            role=message.role,
            content=message.content,
            tool_calls=[
                StoredToolCall(id=call.id, name=call.name, args=thaw_json_structure(call.args))
                for call in message.tool_calls or ()
            ],
            tool_call_id=message.tool_call_id,
        )

    def to_message(self) -> Message:
        calls = [ToolCallRecord(id=call.id, name=call.name, args=call.args) for call in self.tool_calls]
        return Message(
            role=self.role,
            content=self.content,
            tool_calls=tuple(calls) or None,
            tool_call_id=self.tool_call_id,
        )


class SystemEvent(BaseModel):
    """Telemetry emitted by the runtime."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    event_id: str = Field(..., description="Unique identifier for the event.")
    timestamp: datetime = Field(..., description="Timestamp for the event in UTC.")
    origin: str = Field(..., description="Component that emitted the event.")
    level: EventLevel = Field(default=EventLevel.INFO, description="Severity level of the event.")
    message: str = Field(..., description="Human-readable description of the event.")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Structured data for diagnostics or analytics.")


__all__ = [
    "EventLevel",
    "HistoryEntry",
    "JSONValue",
    "StoredToolCall",
    "SystemEvent",
]
