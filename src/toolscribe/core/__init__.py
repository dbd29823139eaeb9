"""Core data structures: events, messages, identifiers and error types."""

from __future__ import annotations

from .errors import (
    ConfigError,
    CorrelationAnomaly,
    FatalStreamError,
    HistoryWriteError,
    SerializationFailure,
    ToolscribeError,
    ValidationError,
)
from .events import Event, EventKind, validate_event
from .ids import IdentifierResolver
from .message import Message, MessageRole, ToolCallRecord, ToolResultRecord

__all__ = [
    "ConfigError",
    "CorrelationAnomaly",
    "Event",
    "EventKind",
    "FatalStreamError",
    "HistoryWriteError",
    "IdentifierResolver",
    "Message",
    "MessageRole",
    "SerializationFailure",
    "ToolCallRecord",
    "ToolResultRecord",
    "ToolscribeError",
    "ValidationError",
    "validate_event",
]
