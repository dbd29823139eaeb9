"""In-memory persistence adapters."""

from __future__ import annotations

from collections import deque
from typing import Deque, Optional

from toolscribe.core.message import Message

from ..interfaces import EventBus, HistoryStore
from ..schema import SystemEvent


class InMemoryHistoryStore(HistoryStore):
    """Keep appended messages in a list."""

    def __init__(self) -> None:
        self.messages: list[Message] = []

    def append(self, message: Message) -> None:
        self.messages.append(message)

    def flush(self) -> None:
        return None

    def __len__(self) -> int:
        return len(self.messages)


class InMemoryEventBus(EventBus):
    """FIFO queue of telemetry events."""

    def __init__(self) -> None:
        self._events: Deque[SystemEvent] = deque()

    def read(self) -> Optional[SystemEvent]:
        if not self._events:
            return None
        return self._events.popleft()

    def write(self, event: SystemEvent) -> None:
        self._events.append(event)

    def flush(self) -> None:
        return None


__all__ = ["InMemoryEventBus", "InMemoryHistoryStore"]
