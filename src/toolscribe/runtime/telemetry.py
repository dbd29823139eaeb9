"""Run-level metrics and the sinks that receive them."""

from __future__ import annotations

import inspect
import logging
from collections import deque
from datetime import datetime, timezone
from typing import Any, Literal, Protocol
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from toolscribe.io.interfaces import EventBus
from toolscribe.io.schema import EventLevel, SystemEvent

LOGGER = logging.getLogger(__name__)


class RunMetrics(BaseModel):
    """Summary of one completed run."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    event_count: int = Field(..., ge=0, description="Events pulled from the source.")
    total_response_length: int = Field(0, ge=0, description="Characters of streamed model text.")
    method: Literal["event-stream"] = "event-stream"
    success: bool = True
    error_type: str | None = None
    execution_time_ms: int = Field(0, ge=0)
    tool_call_count: int = Field(0, ge=0)
    orphan_count: int = Field(0, ge=0)
    rejected_count: int = Field(0, ge=0)
    history_messages: int = Field(0, ge=0)


class TelemetrySink(Protocol):
    """Sink interface used to collect run metrics."""

    def record(self, metrics: RunMetrics) -> Any:
        ...


class NullTelemetry:
    """Discard every metric."""

    def record(self, metrics: RunMetrics) -> None:
        return None


class LoggingTelemetry:
    """Log metrics at INFO level."""

    def record(self, metrics: RunMetrics) -> None:
        LOGGER.info(
            "run metrics events=%s response_length=%s tool_calls=%s success=%s elapsed_ms=%s",
            metrics.event_count,
            metrics.total_response_length,
            metrics.tool_call_count,
            metrics.success,
            metrics.execution_time_ms,
        )


class InMemoryTelemetry:
    """Ring buffer of recorded metrics for local inspection and tests."""

    def __init__(self, capacity: int = 200) -> None:
        self._buffer: deque[RunMetrics] = deque(maxlen=max(1, capacity))

    def record(self, metrics: RunMetrics) -> None:
        self._buffer.append(metrics)

    def tail(self, limit: int | None = None) -> list[RunMetrics]:
        records = list(self._buffer)
        if limit is None or limit >= len(records):
            return records
        return records[-limit:]

    def __len__(self) -> int:
        return len(self._buffer)


class EventBusTelemetry:
    """Publish metrics as :class:`SystemEvent` records on an :class:`EventBus`."""

    def __init__(self, bus: EventBus, *, origin: str = "toolscribe.runtime") -> None:
        self._bus = bus
        self._origin = origin

    def record(self, metrics: RunMetrics) -> None:
        level = EventLevel.INFO if metrics.success else EventLevel.ERROR
        event = SystemEvent(
            event_id=uuid4().hex,
            timestamp=datetime.now(tz=timezone.utc),
            origin=self._origin,
            level=level,
            message="run completed" if metrics.success else "run failed",
            attributes=metrics.model_dump(mode="json"),
        )
        self._bus.write(event)


async def emit_metrics(sink: TelemetrySink | None, metrics: RunMetrics) -> None:
    """Fire-and-forget delivery; sink failures are swallowed."""

    if sink is None:
        return
    try:
        outcome = sink.record(metrics)
        if inspect.isawaitable(outcome):
            await outcome
    except Exception:
        LOGGER.debug("telemetry sink failed", exc_info=True)


__all__ = [
    "EventBusTelemetry",
    "InMemoryTelemetry",
    "LoggingTelemetry",
    "NullTelemetry",
    "RunMetrics",
    "TelemetrySink",
    "emit_metrics",
]
