"""Concrete persistence adapter implementations."""

from .local import LocalEventBus, LocalHistoryStore, LocalWorkspace
from .memory import InMemoryEventBus, InMemoryHistoryStore

__all__ = [
    "InMemoryEventBus",
    "InMemoryHistoryStore",
    "LocalEventBus",
    "LocalHistoryStore",
    "LocalWorkspace",
]
