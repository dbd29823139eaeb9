"""History message schema and tool invocation records."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
import json
import math
from types import MappingProxyType
from typing import Any


class MessageRole(str, Enum):
    """Roles of the messages appended to the history store."""

    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True, slots=True)
class ToolCallRecord:
    """A reconstructed tool invocation attached to the assistant message."""

    id: str
    name: str
    args: Mapping[str, Any]

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id:
            msg = "tool call id must be a non-empty string"
            raise ValueError(msg)
        if not isinstance(self.name, str) or not self.name:
            msg = "tool call name must be a non-empty string"
            raise ValueError(msg)
        if not isinstance(self.args, Mapping):
            msg = "tool call args must be a mapping"
            raise TypeError(msg)

        plain_args = thaw_json_structure(dict(self.args))
        ensure_json_compatible(plain_args, path="ToolCallRecord.args")

        sanitized = json.loads(json.dumps(plain_args, allow_nan=False))
        object.__setattr__(self, "args", freeze_json_structure(sanitized))


@dataclass(frozen=True, slots=True)
class ToolResultRecord:
    """Serialized output of one resolved tool invocation."""

    tool_call_id: str
    content: str
    is_error: bool = False
    tool_name: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.tool_call_id, str) or not self.tool_call_id:
            msg = "tool result must reference a non-empty tool call id"
            raise ValueError(msg)
        if not isinstance(self.content, str):
            msg = "tool result content must be a string"
            raise TypeError(msg)


@dataclass(frozen=True, slots=True)
class Message:
    """A single message handed to the history store.

    User and assistant messages carry text; assistant messages may also carry
    the tool calls made during the run. Tool messages reference the id of one
    of those calls through ``tool_call_id``.
    """

    role: MessageRole
    content: str
    tool_calls: tuple[ToolCallRecord, ...] | None = None
    tool_call_id: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.content, str):  # pragma: no cover
            msg = "message content must be a string"
            raise TypeError(msg)

        normalized_tool_calls: tuple[ToolCallRecord, ...] | None = None
        if self.tool_calls is not None:
            if self.role is not MessageRole.ASSISTANT:
                msg = "only assistant messages can carry tool calls"
                raise ValueError(msg)
            if not isinstance(self.tool_calls, Sequence) or isinstance(
                self.tool_calls, (str, bytes, bytearray)
            ):
                msg = "tool_calls must be a sequence of ToolCallRecord instances"
                raise TypeError(msg)
            candidates = tuple(self.tool_calls)
            if not candidates:
                msg = "tool_calls cannot be empty"
                raise ValueError(msg)
            seen: set[str] = set()
            for call in candidates:
                if not isinstance(call, ToolCallRecord):
                    msg = "tool_calls must contain ToolCallRecord instances"
                    raise TypeError(msg)
                if call.id in seen:
                    msg = f"duplicate tool call id '{call.id}'"
                    raise ValueError(msg)
                seen.add(call.id)
            normalized_tool_calls = candidates
            object.__setattr__(self, "tool_calls", normalized_tool_calls)

        if self.role is MessageRole.TOOL:
            if not isinstance(self.tool_call_id, str) or not self.tool_call_id:
                msg = "tool messages require a non-empty tool_call_id"
                raise ValueError(msg)
        elif self.tool_call_id is not None:
            msg = "tool_call_id is only valid on tool messages"
            raise ValueError(msg)

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def assistant(
        cls,
        content: str,
        tool_calls: Sequence[ToolCallRecord] | None = None,
    ) -> Message:
        return cls(
            role=MessageRole.ASSISTANT,
            content=content,
            tool_calls=tuple(tool_calls) if tool_calls else None,
        )

    @classmethod
    def tool(cls, tool_call_id: str, content: str) -> Message:
        return cls(role=MessageRole.TOOL, content=content, tool_call_id=tool_call_id)


def ensure_json_compatible(value: Any, *, path: str) -> None:
    if isinstance(value, Mapping):
        for key, inner in value.items():
            if not isinstance(key, str):
                msg = f"{path} keys must be strings"
                raise TypeError(msg)
            ensure_json_compatible(inner, path=f"{path}.{key}")
        return

    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        for index, item in enumerate(value):
            ensure_json_compatible(item, path=f"{path}[{index}]")
        return

    if isinstance(value, (bool, type(None), str)):
        return

    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            msg = f"{path} contains non-finite float values"
            raise ValueError(msg)
        return

    msg = f"{path} contains unsupported value type {type(value).__name__}"
    raise TypeError(msg)


def freeze_json_structure(value: Any) -> Any:
    if isinstance(value, dict):
        frozen_dict = {key: freeze_json_structure(inner) for key, inner in value.items()}
        return MappingProxyType(frozen_dict)

    if isinstance(value, list):
        return tuple(freeze_json_structure(inner) for inner in value)

    return value


def thaw_json_structure(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {key: thaw_json_structure(inner) for key, inner in value.items()}

    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return [thaw_json_structure(inner) for inner in value]

    return value
