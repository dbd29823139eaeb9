"""Event stream iterators and engine event normalization."""

from __future__ import annotations

import abc
import asyncio
import inspect
from collections import deque
from collections.abc import AsyncIterable, Iterable, Mapping
from typing import Any, AsyncIterator, Deque, List, Protocol

from .errors import FatalStreamError
from .events import Event, EventKind

# Engine-native event names mapped onto canonical kinds.
ENGINE_EVENT_KINDS = {
    "on_tool_start": EventKind.TOOL_START.value,
    "on_tool_end": EventKind.TOOL_END.value,
    "on_tool_error": EventKind.TOOL_ERROR.value,
    "on_chat_model_stream": EventKind.TOKEN.value,
    "on_chain_end": EventKind.RUN_END.value,
}


class EventNormalizer(Protocol):
    async def normalize_chunk(self, chunk: Any) -> List[Event]:
        """Map one raw engine item into zero or more canonical events."""


class EngineEventNormalizer(EventNormalizer):
    """Normalize raw engine items into :class:`Event` instances.

    Accepted inputs are ready-made :class:`Event` objects, canonical mappings
    (``kind``/``run_id``/``name``/``payload``) and engine-native mappings
    (``event``/``run_id``/``name``/``data``). Items that cannot be read at all
    become events with an empty kind so the validator rejects them. Nested
    ``on_chain_end`` events (those carrying parent ids) are dropped; only the
    root chain ends the run.
    """

    async def normalize_chunk(self, chunk: Any) -> List[Event]:
        if isinstance(chunk, Event):
            return [chunk]

        mapping = _coerce_mapping(chunk)
        if mapping is None:
            return [Event(kind="", payload=chunk)]

        if "kind" in mapping:
            return [
                Event(
                    kind=_as_text(mapping.get("kind")),
                    run_id=mapping.get("run_id"),
                    name=mapping.get("name"),
                    payload=mapping.get("payload"),
                )
            ]

        raw_name = _as_text(mapping.get("event"))
        kind = ENGINE_EVENT_KINDS.get(raw_name)
        if kind is None:
            if raw_name.startswith("on_"):
                # Other engine lifecycle events carry nothing we record.
                return []
            return [Event(kind=raw_name, run_id=mapping.get("run_id"), payload=mapping)]

        data = mapping.get("data")
        if not isinstance(data, Mapping):
            data = {}

        if kind == EventKind.RUN_END.value:
            if mapping.get("parent_ids"):
                return []
            return [Event(kind=kind, run_id=mapping.get("run_id"), payload=data.get("output"))]

        if kind == EventKind.TOKEN.value:
            return [Event(kind=kind, run_id=mapping.get("run_id"), payload=_chunk_text(data))]

        payload = dict(data)
        if kind == EventKind.TOOL_END.value:
            payload.setdefault("output", None)
        return [
            Event(
                kind=kind,
                run_id=mapping.get("run_id"),
                name=mapping.get("name"),
                payload=payload,
            )
        ]


class BaseEventStream(AsyncIterator[Event], metaclass=abc.ABCMeta):
    """Shared async iterator over canonical events of one run.

    Subclasses source raw engine items by implementing :meth:`_get_next_chunk`.
    Each item is normalized into events which are buffered so consumers see a
    linear stream. The stream stops after the first ``run_end`` event. Any
    failure of the underlying source is raised as :class:`FatalStreamError`.
    """

    def __init__(self, normalizer: EventNormalizer | None = None) -> None:
        self._normalizer = normalizer or EngineEventNormalizer()
        self._buffer: Deque[Event] = deque()
        self._closed = False
        self._finalized = False
        self._close_lock = asyncio.Lock()

    def __aiter__(self) -> BaseEventStream:
        return self

    async def __anext__(self) -> Event:
        if self._closed and not self._buffer:
            raise StopAsyncIteration

        if self._finalized and not self._buffer:
            await self.close()
            raise StopAsyncIteration

        buffered = self._pop_buffered_event()
        if buffered is not None:
            return await self._finalize_if_needed(buffered)

        while True:
            if self._closed:
                raise StopAsyncIteration

            if self._finalized:
                await self.close()
                raise StopAsyncIteration

            chunk = await self._consume_chunk()
            events = await self._normalizer.normalize_chunk(chunk)
            if not events:
                continue

            self._buffer.extend(events)
            buffered = self._pop_buffered_event()
            if buffered is not None:
                return await self._finalize_if_needed(buffered)

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        """Release source resources and prevent additional iteration."""

        async with self._close_lock:
            if self._closed:
                return

            self._closed = True
            self._buffer.clear()
            await self._on_close()

    async def aclose(self) -> None:
        await self.close()

    async def _consume_chunk(self) -> Any:
        try:
            return await self._get_next_chunk()
        except StopAsyncIteration:
            await self.close()
            raise
        except asyncio.CancelledError:
            raise
        except FatalStreamError:
            await self.close()
            raise
        except Exception as exc:
            await self.close()
            msg = f"event source failed: {exc}"
            raise FatalStreamError(msg) from exc

    async def _finalize_if_needed(self, event: Event) -> Event:
        if event.kind == EventKind.RUN_END.value:
            self._finalized = True
            if not self._buffer:
                await self.close()
        return event

    def _pop_buffered_event(self) -> Event | None:
        if not self._buffer:
            return None
        return self._buffer.popleft()

    @abc.abstractmethod
    async def _get_next_chunk(self) -> Any:
        """Retrieve the next raw item from the engine."""

    async def _on_close(self) -> None:
        """Allow subclasses to dispose source resources when closing."""


class IterableEventStream(BaseEventStream):
    """Event stream reading from any async or plain iterable of raw items."""

    def __init__(
        self,
        source: AsyncIterable[Any] | Iterable[Any],
        *,
        normalizer: EventNormalizer | None = None,
    ) -> None:
        self._source = source
        self._async_iterator: Any = None
        self._sync_iterator: Any = None
        if hasattr(source, "__aiter__"):
            self._async_iterator = source.__aiter__()
        elif isinstance(source, Iterable):
            self._sync_iterator = iter(source)
        else:
            msg = "event source must be an iterable or async iterable"
            raise TypeError(msg)
        self._source_closed = False
        super().__init__(normalizer)

    async def _get_next_chunk(self) -> Any:
        if self._async_iterator is not None:
            return await self._async_iterator.__anext__()

        await asyncio.sleep(0)
        try:
            return next(self._sync_iterator)
        except StopIteration as exc:
            raise StopAsyncIteration from exc

    async def _on_close(self) -> None:
        if self._source_closed:
            return
        self._source_closed = True

        for target in (self._async_iterator, self._source):
            if target is None:
                continue
            for closer_name in ("aclose", "close"):
                closer = getattr(target, closer_name, None)
                if closer is None or not callable(closer):
                    continue
                result = closer()
                if inspect.isawaitable(result):
                    await result
                return


async def replay_stream(stream: BaseEventStream) -> List[Event]:
    """Collect all events emitted by an event stream."""

    events: List[Event] = []
    try:
        async for event in stream:
            events.append(event)
    finally:
        await stream.close()
    return events


def _coerce_mapping(value: Any) -> Mapping[str, Any] | None:
    if isinstance(value, Mapping):
        return value

    if hasattr(value, "model_dump"):
        dumped = value.model_dump()
        if isinstance(dumped, Mapping):
            return dumped

    return None


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return ""


def _chunk_text(data: Mapping[str, Any]) -> str:
    chunk = data.get("chunk")
    if chunk is None:
        return ""
    if isinstance(chunk, Mapping):
        content = chunk.get("content")
    else:
        content = getattr(chunk, "content", None)
    if isinstance(content, str):
        return content
    return ""


__all__ = [
    "BaseEventStream",
    "ENGINE_EVENT_KINDS",
    "EngineEventNormalizer",
    "EventNormalizer",
    "IterableEventStream",
    "replay_stream",
]
