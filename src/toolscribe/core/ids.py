"""Correlation identifiers for reconstructed tool calls."""

from __future__ import annotations

import uuid
from collections.abc import Callable, Mapping


def _uuid4_string() -> str:
    return str(uuid.uuid4())


class IdentifierResolver:
    """Hand out the id shared by a tool call and its result.

    Ids supplied by the execution engine are preserved verbatim so they keep
    matching the engine's own protocol; otherwise a fresh id is generated.
    """

    def __init__(self, factory: Callable[[], str] | None = None) -> None:
        self._factory = factory or _uuid4_string

    def resolve(self, supplied_id: str | None = None) -> str:
        if isinstance(supplied_id, str) and supplied_id:
            return supplied_id

        generated = self._factory()
        if not isinstance(generated, str) or not generated:
            msg = "identifier factory must return a non-empty string"
            raise ValueError(msg)
        return generated


def supplied_tool_call_id(payload: object) -> str | None:
    """Extract an engine-assigned tool call id from an event payload, if any."""

    if not isinstance(payload, Mapping):
        return None
    for key in ("tool_call_id", "toolCallId", "id"):
        value = payload.get(key)
        if isinstance(value, str) and value:
            return value
    return None


__all__ = ["IdentifierResolver", "supplied_tool_call_id"]
