"""Persistence interfaces and schemas for toolscribe."""

from .schema import EventLevel, HistoryEntry, StoredToolCall, SystemEvent
from .interfaces import EventBus, HistoryStore

__all__ = [
    "EventBus",
    "EventLevel",
    "HistoryEntry",
    "HistoryStore",
    "StoredToolCall",
    "SystemEvent",
]
