"""Pair tool start and end events into call/result records."""

from __future__ import annotations

import bisect
import json
import logging
from collections.abc import Mapping
from typing import Any

from toolscribe.core.errors import CorrelationAnomaly, SerializationFailure
from toolscribe.core.events import Event, EventKind
from toolscribe.core.ids import IdentifierResolver, supplied_tool_call_id
from toolscribe.core.message import ToolCallRecord, ToolResultRecord
from toolscribe.core.truncation import coerce_text, render_content, serialize_json

from .state import PendingInvocation, RunState

LOGGER = logging.getLogger(__name__)


class ToolInvocationCorrelator:
    """Maintain pending invocations of one run and resolve them into records.

    Duplicate starts, ends without a start and starts without an end are
    resolved by policy: they are logged and recorded in :attr:`anomalies`,
    never raised and never turned into synthetic records.
    """

    def __init__(self, state: RunState, resolver: IdentifierResolver | None = None) -> None:
        self._state = state
        self._resolver = resolver or IdentifierResolver()
        self.anomalies: list[CorrelationAnomaly] = []
        self._issued_ids: set[str] = set()

    def on_tool_start(self, event: Event) -> None:
        run_id = str(event.run_id)

        if run_id in self._state.pending:
            LOGGER.warning(
                "duplicate tool_start for run_id=%s (tool=%s); keeping the most recent",
                run_id,
                event.name,
            )

        sequence = self._state.next_sequence
        self._state.next_sequence += 1
        self._state.pending[run_id] = PendingInvocation(
            run_id=run_id,
            tool_name=str(event.name),
            args=_extract_args(event.payload),
            supplied_id=supplied_tool_call_id(event.payload),
            sequence=sequence,
        )
        LOGGER.debug("tool_start run_id=%s name=%s", run_id, event.name)

    def on_tool_end(self, event: Event) -> tuple[ToolCallRecord, ToolResultRecord] | None:
        run_id = str(event.run_id)

        pending = self._state.pending.pop(run_id, None)
        if pending is None:
            anomaly = CorrelationAnomaly(f"{event.kind} without matching tool_start: run_id={run_id}")
            self.anomalies.append(anomaly)
            self._state.orphan_count += 1
            LOGGER.warning("%s", anomaly)
            return None

        call_id = self._resolve_id(pending.supplied_id or supplied_tool_call_id(event.payload))
        call = _build_call(call_id, pending)
        is_error = event.kind == EventKind.TOOL_ERROR.value or _payload_flags_error(event.payload)
        result = ToolResultRecord(
            tool_call_id=call_id,
            content=_extract_content(event),
            is_error=is_error,
            tool_name=pending.tool_name,
        )

        position = bisect.bisect_right(self._state.call_sequences, pending.sequence)
        self._state.call_sequences.insert(position, pending.sequence)
        self._state.tool_calls.insert(position, call)
        self._state.tool_results.append(result)

        LOGGER.debug(
            "resolved tool call id=%s name=%s error=%s",
            call_id,
            pending.tool_name,
            is_error,
        )
        return call, result

    def _resolve_id(self, supplied_id: str | None) -> str:
        if supplied_id and supplied_id in self._issued_ids:
            LOGGER.warning("tool call id %s already used in this run; generating a new one", supplied_id)
            supplied_id = None
        call_id = self._resolver.resolve(supplied_id)
        self._issued_ids.add(call_id)
        return call_id

    def finish(self) -> list[PendingInvocation]:
        """Log and discard starts that never received an end."""

        orphans = sorted(self._state.pending.values(), key=lambda item: item.sequence)
        for orphan in orphans:
            anomaly = CorrelationAnomaly(
                f"tool_start without matching end: run_id={orphan.run_id} tool={orphan.tool_name}"
            )
            self.anomalies.append(anomaly)
            LOGGER.warning("%s", anomaly)
        self._state.orphan_count += len(orphans)
        self._state.discard()
        return orphans


def _extract_args(payload: Any) -> Any:
    if isinstance(payload, Mapping):
        for key in ("input", "args"):
            if key in payload:
                return payload[key]
        return {}
    return payload


def _build_call(call_id: str, pending: PendingInvocation) -> ToolCallRecord:
    args = _sanitize_args(pending)
    try:
        return ToolCallRecord(id=call_id, name=pending.tool_name, args=args)
    except (TypeError, ValueError) as exc:
        LOGGER.warning(
            "arguments of tool %s (run_id=%s) are not valid JSON: %s",
            pending.tool_name,
            pending.run_id,
            exc,
        )
        return ToolCallRecord(id=call_id, name=pending.tool_name, args={"input": coerce_text(pending.args)})


def _sanitize_args(pending: PendingInvocation) -> dict[str, Any]:
    raw = pending.args
    if raw is None:
        return {}

    try:
        plain = json.loads(serialize_json(raw))
    except SerializationFailure as exc:
        LOGGER.warning(
            "arguments of tool %s (run_id=%s) are not serializable: %s",
            pending.tool_name,
            pending.run_id,
            exc,
        )
        return {"input": coerce_text(raw)}

    if isinstance(plain, dict):
        return plain
    return {"input": plain}


def _extract_content(event: Event) -> str:
    payload = event.payload
    if event.kind == EventKind.TOOL_ERROR.value:
        if isinstance(payload, Mapping):
            error = payload.get("error")
        else:
            error = payload
        if error is None or (isinstance(error, str) and not error):
            return ""
        if isinstance(error, BaseException):
            return str(error) or type(error).__name__
        return render_content(error)

    if isinstance(payload, Mapping):
        if "output" in payload:
            return render_content(payload["output"])
        if not payload:
            return render_content(None)
        # No output envelope: the mapping itself is the tool output.
        return render_content(dict(payload))
    return render_content(payload)


def _payload_flags_error(payload: Any) -> bool:
    if not isinstance(payload, Mapping):
        return False
    if payload.get("is_error") is True:
        return True
    return payload.get("status") == "error"
