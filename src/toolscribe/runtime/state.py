"""State primitives owned by a single run."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from toolscribe.core.message import ToolCallRecord, ToolResultRecord


@dataclass(slots=True)
class PendingInvocation:
    """A started tool invocation waiting for its end event."""

    run_id: str
    tool_name: str
    args: Any
    supplied_id: str | None = None
    sequence: int = 0


@dataclass(slots=True)
class RunState:
    """Aggregated state for one pass over one event stream.

    ``tool_calls`` is kept in ``tool_start`` acceptance order and
    ``tool_results`` in ``tool_end`` acceptance order; the two can diverge when
    the engine interleaves invocations.
    """

    pending: dict[str, PendingInvocation] = field(default_factory=dict)
    tool_calls: list[ToolCallRecord] = field(default_factory=list)
    tool_results: list[ToolResultRecord] = field(default_factory=list)
    final_output: Any = None
    event_count: int = 0
    rejected_count: int = 0
    orphan_count: int = 0
    response_length: int = 0
    # Start sequence numbers of resolved calls, parallel to ``tool_calls``.
    call_sequences: list[int] = field(default_factory=list)
    next_sequence: int = 0

    def discard(self) -> None:
        """Drop all correlation state once the run is over."""

        self.pending.clear()
