"""Write a run's reconstructed conversation to the history store."""

from __future__ import annotations

import inspect
import logging
from typing import Callable

from toolscribe.config import RunConfig, TruncationConfig
from toolscribe.core.errors import HistoryWriteError
from toolscribe.core.message import Message, ToolResultRecord
from toolscribe.core.truncation import truncate
from toolscribe.io.interfaces import HistoryStore

from .state import RunState

LOGGER = logging.getLogger(__name__)

Truncate = Callable[[str, TruncationConfig], str]


class HistoryAssembler:
    """Append the user, assistant and tool messages of one run.

    Messages are written in a fixed order: the user query, the assistant
    answer carrying every tool call, then one tool message per result in
    result order. Each append is isolated so a failing write only loses that
    message.
    """

    def __init__(
        self,
        config: RunConfig,
        store: HistoryStore,
        *,
        truncator: Truncate = truncate,
    ) -> None:
        self._config = config
        self._store = store
        self._truncate = truncator
        self.errors: list[HistoryWriteError] = []

    async def assemble(self, query: str, state: RunState, final_output: str) -> int:
        """Write the messages for ``state`` and return how many were stored."""

        if not self._config.memory_enabled:
            LOGGER.debug("memory disabled; skipping history for this run")
            return 0

        written = 0
        if await self._append(Message.user(query), label="user"):
            written += 1

        if await self._append(self._assistant_message(state, final_output), label="assistant"):
            written += 1

        for index, result in enumerate(state.tool_results):
            message = self._tool_message(result)
            if message is None:
                continue
            if await self._append(message, label=f"tool[{index}]"):
                written += 1

        LOGGER.info(
            "history written messages=%s tool_calls=%s failures=%s",
            written,
            len(state.tool_calls),
            len(self.errors),
        )
        return written

    def _assistant_message(self, state: RunState, final_output: str) -> Message:
        content = final_output
        if not content and state.tool_calls:
            content = self._config.placeholders.no_final_response_text
        try:
            return Message.assistant(content, state.tool_calls)
        except (TypeError, ValueError) as exc:
            self._record_failure(f"cannot attach tool calls to assistant message: {exc}")
            return Message.assistant(content)

    def _tool_message(self, result: ToolResultRecord) -> Message | None:
        content = result.content
        if result.is_error and not content:
            content = self._config.placeholders.tool_execution_error
        try:
            config = self._config.effective_truncation(result.tool_name)
            content = self._truncate(content, config)
            return Message.tool(result.tool_call_id, content)
        except Exception as exc:
            self._record_failure(f"cannot build tool message for {result.tool_call_id}: {exc}")
            return None

    async def _append(self, message: Message, *, label: str) -> bool:
        try:
            outcome = self._store.append(message)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as exc:
            self._record_failure(f"failed to append {label} message: {exc}")
            return False
        return True

    def _record_failure(self, text: str) -> None:
        error = HistoryWriteError(text)
        self.errors.append(error)
        LOGGER.error("%s", error, exc_info=True)
