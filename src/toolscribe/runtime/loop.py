"""Drive one pass over an event stream and persist the reconstructed run."""

from __future__ import annotations

import logging
import time
from asyncio import CancelledError
from collections.abc import AsyncIterable, AsyncIterator, Iterable
from dataclasses import dataclass
from typing import Any

from toolscribe.config import RunConfig
from toolscribe.core.errors import FatalStreamError, ValidationError
from toolscribe.core.events import Event, EventKind, validate_event
from toolscribe.core.ids import IdentifierResolver
from toolscribe.core.message import ToolCallRecord, ToolResultRecord
from toolscribe.core.output import normalize_output
from toolscribe.core.stream import BaseEventStream, IterableEventStream
from toolscribe.io.interfaces import HistoryStore

from .correlator import ToolInvocationCorrelator
from .history import HistoryAssembler
from .state import RunState
from .telemetry import RunMetrics, TelemetrySink, emit_metrics

LOGGER = logging.getLogger(__name__)

STREAMING_ERROR = "streaming_error"


@dataclass(frozen=True, slots=True)
class RunResult:
    """Outcome of a completed run."""

    final_output: str
    tool_calls: tuple[ToolCallRecord, ...]
    tool_results: tuple[ToolResultRecord, ...]
    event_count: int
    history_messages: int
    cancelled: bool = False


class EventStreamRun(AsyncIterator[Event]):
    """Consume the events of one run and rebuild its transcript.

    Iterating the run yields every valid event to the caller while the
    correlation state is updated. When the stream ends (source exhausted or
    ``run_end`` received) the output is normalized, history is written and
    metrics are emitted. Closing or cancelling the run early still flushes the
    tool calls resolved so far. A failing source raises
    :class:`FatalStreamError` and writes no history.
    """

    def __init__(
        self,
        source: BaseEventStream | AsyncIterable[Any] | Iterable[Any],
        query: str,
        /,
        *,
        config: RunConfig | None = None,
        history: HistoryStore | None = None,
        telemetry: TelemetrySink | None = None,
        resolver: IdentifierResolver | None = None,
    ) -> None:
        if isinstance(source, BaseEventStream):
            self._stream = source
        else:
            self._stream = IterableEventStream(source)
        self._query = query
        self._config = config or RunConfig()
        self._history = history
        self._telemetry = telemetry
        self._closed = False
        self._started_at = time.monotonic()

        self.state = RunState()
        self.correlator = ToolInvocationCorrelator(self.state, resolver)
        self.result: RunResult | None = None

    def __aiter__(self) -> EventStreamRun:
        return self

    async def __anext__(self) -> Event:
        while True:
            if self._closed:
                raise StopAsyncIteration

            try:
                event = await self._stream.__anext__()
            except StopAsyncIteration:
                await self._complete()
                raise
            except CancelledError:
                await self._complete(cancelled=True)
                raise
            except FatalStreamError as exc:
                await self._fail(exc)
                raise
            except Exception as exc:
                fatal = FatalStreamError(f"event source failed: {exc}")
                await self._fail(fatal)
                raise fatal from exc

            self.state.event_count += 1
            try:
                validate_event(event)
            except ValidationError as exc:
                self.state.rejected_count += 1
                LOGGER.warning("skipping invalid event: %s", exc)
                continue

            try:
                self._handle_event(event)
            except Exception:
                LOGGER.error(
                    "error processing event kind=%s run_id=%s",
                    event.kind,
                    event.run_id,
                    exc_info=True,
                )
                continue

            if event.kind == EventKind.RUN_END.value:
                await self._complete()

            return event

    @property
    def closed(self) -> bool:
        """Whether the run has finished and released its source."""

        return self._closed

    async def run(self) -> RunResult:
        """Consume the whole stream and return the run outcome."""

        async for _ in self:
            pass
        return self._require_result()

    async def aclose(self) -> None:
        """Stop consuming; resolved tool calls are still written to history."""

        if self._closed:
            return
        await self._complete(cancelled=True)

    def _handle_event(self, event: Event) -> None:
        kind = event.event_kind
        if kind is EventKind.TOOL_START:
            self.correlator.on_tool_start(event)
        elif kind in (EventKind.TOOL_END, EventKind.TOOL_ERROR):
            self.correlator.on_tool_end(event)
        elif kind is EventKind.TOKEN:
            if isinstance(event.payload, str):
                self.state.response_length += len(event.payload)
        elif kind is EventKind.RUN_END:
            self.state.final_output = event.payload
        else:  # pragma: no cover
            LOGGER.debug("Unhandled event kind: %s", event.kind)

    async def _complete(self, *, cancelled: bool = False) -> None:
        if self._closed:
            return
        self._closed = True

        if cancelled:
            LOGGER.info(
                "run stopped early; flushing %s resolved tool calls",
                len(self.state.tool_calls),
            )

        self.correlator.finish()
        final_output = normalize_output(self.state.final_output)
        history_messages = await self._write_history(final_output)

        self.result = RunResult(
            final_output=final_output,
            tool_calls=tuple(self.state.tool_calls),
            tool_results=tuple(self.state.tool_results),
            event_count=self.state.event_count,
            history_messages=history_messages,
            cancelled=cancelled,
        )
        LOGGER.info(
            "run complete events=%s tool_calls=%s orphans=%s rejected=%s",
            self.state.event_count,
            len(self.state.tool_calls),
            self.state.orphan_count,
            self.state.rejected_count,
        )

        await emit_metrics(self._telemetry, self._metrics(success=True, history_messages=history_messages))
        await self._stream.close()

    async def _fail(self, exc: FatalStreamError) -> None:
        if self._closed:
            return
        self._closed = True

        LOGGER.error("event stream failed after %s events: %s", self.state.event_count, exc)
        self.correlator.finish()
        await emit_metrics(
            self._telemetry,
            self._metrics(success=False, history_messages=0, error_type=STREAMING_ERROR),
        )
        await self._stream.close()

    async def _write_history(self, final_output: str) -> int:
        if self._history is None:
            LOGGER.debug("no history store configured; skipping history")
            return 0
        assembler = HistoryAssembler(self._config, self._history)
        return await assembler.assemble(self._query, self.state, final_output)

    def _metrics(
        self,
        *,
        success: bool,
        history_messages: int,
        error_type: str | None = None,
    ) -> RunMetrics:
        elapsed_ms = int((time.monotonic() - self._started_at) * 1000)
        return RunMetrics(
            event_count=self.state.event_count,
            total_response_length=self.state.response_length,
            success=success,
            error_type=error_type,
            execution_time_ms=max(elapsed_ms, 0),
            tool_call_count=len(self.state.tool_calls),
            orphan_count=self.state.orphan_count,
            rejected_count=self.state.rejected_count,
            history_messages=history_messages,
        )

    def _require_result(self) -> RunResult:
        if self.result is None:
            msg = "run has not completed"
            raise RuntimeError(msg)
        return self.result


async def transcribe(
    source: BaseEventStream | AsyncIterable[Any] | Iterable[Any],
    query: str,
    /,
    **options: Any,
) -> RunResult:
    """Run ``source`` to completion; see :class:`EventStreamRun` for options."""

    return await EventStreamRun(source, query, **options).run()


__all__ = ["EventStreamRun", "RunResult", "transcribe"]
