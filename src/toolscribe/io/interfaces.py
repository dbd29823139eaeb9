"""Abstract interfaces for toolscribe persistence components."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Awaitable, Optional

from toolscribe.core.message import Message

from .schema import SystemEvent


class HistoryStore(ABC):
    """Append-only sink for reconstructed :class:`Message` values.

    Implementations may return an awaitable from :meth:`append`; the history
    assembler awaits it when present.
    """

    @abstractmethod
    def append(self, message: Message) -> Optional[Awaitable[None]]:
        """Persist one message."""

    @abstractmethod
    def flush(self) -> None:
        """Ensure all written messages are visible to readers."""


class EventBus(ABC):
    """Transport for :class:`SystemEvent` telemetry."""

    @abstractmethod
    def read(self) -> Optional[SystemEvent]:
        """Retrieve the next available event, if any."""

    @abstractmethod
    def write(self, event: SystemEvent) -> None:
        """Publish a new event to the bus."""

    @abstractmethod
    def flush(self) -> None:
        """Flush buffered events and release resources."""


__all__ = ["EventBus", "HistoryStore"]
