"""Reconstruct persistent conversation transcripts from agent execution events.

The package consumes the ordered event stream of an agent-execution engine,
pairs tool start and end events into call/result records, bounds the size of
stored tool output and appends the resulting user, assistant and tool
messages to a history store.
"""

from __future__ import annotations

from .config import RunConfig, TruncationConfig, TruncationOverride, load_config
from .core import Event, EventKind, Message, MessageRole, ToolCallRecord, ToolResultRecord
from .core.truncation import truncate
from .runtime import EventStreamRun, RunResult, transcribe

__all__ = [
    "Event",
    "EventKind",
    "EventStreamRun",
    "Message",
    "MessageRole",
    "RunConfig",
    "RunResult",
    "ToolCallRecord",
    "ToolResultRecord",
    "TruncationConfig",
    "TruncationOverride",
    "load_config",
    "transcribe",
    "truncate",
]

__version__ = "0.1.0"
