"""Execution event schema and validation."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from .errors import ValidationError


class EventKind(str, Enum):
    """Kinds of events emitted by the agent-execution engine."""

    TOOL_START = "tool_start"
    TOOL_END = "tool_end"
    TOOL_ERROR = "tool_error"
    TOKEN = "token"
    RUN_END = "run_end"


TOOL_EVENT_KINDS = frozenset({EventKind.TOOL_START, EventKind.TOOL_END, EventKind.TOOL_ERROR})
_KIND_VALUES = {kind.value for kind in EventKind}


@dataclass(frozen=True, slots=True)
class Event:
    """A single event pulled from the execution engine.

    ``kind`` is kept as the raw string the engine produced so malformed events
    can reach :func:`validate_event` instead of failing at construction time.
    """

    kind: str
    run_id: str | None = None
    name: str | None = None
    payload: Any = None

    @property
    def event_kind(self) -> EventKind:
        return EventKind(self.kind)


def validate_event(event: Any) -> Event:
    """Return ``event`` unchanged when well-formed, raise :class:`ValidationError` otherwise."""

    if not isinstance(event, Event):
        msg = f"expected an Event, got {type(event).__name__}"
        raise ValidationError(msg)

    if not isinstance(event.kind, str) or event.kind not in _KIND_VALUES:
        msg = f"unrecognized event kind {event.kind!r}"
        raise ValidationError(msg)

    kind = EventKind(event.kind)
    if kind in TOOL_EVENT_KINDS:
        if not isinstance(event.run_id, str) or not event.run_id:
            msg = f"{kind.value} event is missing a run_id"
            raise ValidationError(msg)

    # Ends and errors take their name from the pending start.
    if kind is EventKind.TOOL_START:
        if not isinstance(event.name, str) or not event.name:
            msg = f"tool_start event {event.run_id!r} is missing a tool name"
            raise ValidationError(msg)

    return event


__all__ = [
    "Event",
    "EventKind",
    "TOOL_EVENT_KINDS",
    "validate_event",
]
