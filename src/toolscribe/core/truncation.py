"""Size-bounded truncation of stored tool output.

Strategies implement :class:`Truncator` and are registered by method name, so
callers only ever go through :func:`truncate`. None of the functions in this
module raise: every failure path degrades to shorter, valid text.
"""

from __future__ import annotations

import abc
import dataclasses
import json
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from .errors import SerializationFailure

if TYPE_CHECKING:
    from ..config import TruncationConfig


LOGGER = logging.getLogger(__name__)

NO_OUTPUT_TEXT = "No output"
SERIALIZATION_FAILED_TEXT = "Serialization failed"

# Share of the budget spent on kept elements; the rest is room for the marker.
STRUCTURED_BUDGET_RATIO = 0.8
MIDDLE_KEEP_RATIO = 0.4


class Truncator(abc.ABC):
    """A truncation strategy."""

    @abc.abstractmethod
    def truncate(self, content: str, config: TruncationConfig) -> str:
        """Return ``content`` bounded according to ``config``."""


class EndTrim(Truncator):
    """Keep the head of the content and append the marker."""

    def truncate(self, content: str, config: TruncationConfig) -> str:
        limit = config.max_characters
        if len(content) <= limit:
            return content

        size_info = ""
        if config.include_size_info:
            size_info = f" ({len(content):,} → {limit:,} chars)"
        return content[:limit] + config.truncation_marker + size_info


class MiddleTrim(Truncator):
    """Keep the head and the tail of the content around the marker."""

    def truncate(self, content: str, config: TruncationConfig) -> str:
        limit = config.max_characters
        if len(content) <= limit:
            return content

        keep = int(limit * MIDDLE_KEEP_RATIO)
        head = content[:keep]
        tail = content[len(content) - keep :] if keep else ""
        size_info = ""
        if config.include_size_info:
            size_info = f" ({len(content):,} chars total)"
        return head + config.truncation_marker + size_info + tail


class StructurePreserving(Truncator):
    """Trim JSON arrays and objects while keeping the result parseable.

    Arrays keep a prefix of elements followed by exactly one marker element,
    objects keep a prefix of keys plus ``_truncated`` bookkeeping keys.
    Content that is not a JSON array or object is trimmed at the end.
    """

    def truncate(self, content: str, config: TruncationConfig) -> str:
        limit = config.max_characters
        if len(content) <= limit:
            return content

        try:
            parsed = json.loads(content)
        except (ValueError, RecursionError):
            LOGGER.debug("structured truncation: content is not JSON, trimming end")
            return _END_TRIM.truncate(content, config)

        budget = int(limit * STRUCTURED_BUDGET_RATIO)
        if isinstance(parsed, list):
            return _dump_json(self._truncate_array(parsed, budget), indent=2)
        if isinstance(parsed, dict):
            return _dump_json(self._truncate_object(parsed, budget), indent=2)
        return _END_TRIM.truncate(content, config)

    def _truncate_array(self, items: list[Any], budget: int) -> list[Any]:
        kept: list[Any] = []
        size = len("[]")
        for item in items:
            item_size = len(_dump_json(item)) + len(", ")
            if size + item_size > budget:
                break
            kept.append(item)
            size += item_size

        kept.append(
            {
                "_truncated": True,
                "_originalLength": len(items),
                "_showingFirst": len(kept),
                "_message": f"Array truncated: showing {len(kept)} of {len(items)} items",
            }
        )
        return kept

    def _truncate_object(self, mapping: dict[str, Any], budget: int) -> dict[str, Any]:
        kept: dict[str, Any] = {}
        size = len("{}")
        for key, value in mapping.items():
            entry_size = len(_dump_json({key: value}))
            if size + entry_size > budget:
                break
            kept[key] = value
            size += entry_size

        showing = len(kept)
        kept["_truncated"] = True
        kept["_originalKeys"] = len(mapping)
        kept["_showingKeys"] = showing
        kept["_message"] = f"Object truncated: showing {showing} of {len(mapping)} keys"
        return kept


class SmartTrim(Truncator):
    """Pick a strategy from the shape of the content.

    JSON-looking content is trimmed structurally, XML-looking content keeps
    head and tail, everything else is trimmed by whole lines.
    """

    def truncate(self, content: str, config: TruncationConfig) -> str:
        limit = config.max_characters
        if len(content) <= limit:
            return content

        if _looks_like_json(content):
            return _STRUCTURED.truncate(content, config)
        if _looks_like_xml(content):
            return _MIDDLE_TRIM.truncate(content, config)
        return self._truncate_by_lines(content, config)

    def _truncate_by_lines(self, content: str, config: TruncationConfig) -> str:
        lines = content.split("\n")
        preserve = config.preserve_lines
        if len(lines) <= preserve * 2:
            return _END_TRIM.truncate(content, config)

        size_info = ""
        if config.include_size_info:
            size_info = f" ({len(lines):,} lines, {len(content):,} chars total)"
        result = (
            "\n".join(lines[:preserve])
            + config.truncation_marker
            + size_info
            + "\n".join(lines[-preserve:])
        )
        if len(result) > config.max_characters:
            return _END_TRIM.truncate(result, config)
        return result


_END_TRIM = EndTrim()
_MIDDLE_TRIM = MiddleTrim()
_STRUCTURED = StructurePreserving()

TRUNCATORS: dict[str, Truncator] = {
    "end": _END_TRIM,
    "middle": _MIDDLE_TRIM,
    "structured": _STRUCTURED,
    "smart": SmartTrim(),
}


def register_truncator(method: str, truncator: Truncator) -> None:
    """Make ``truncator`` available under ``method``."""

    if not isinstance(method, str) or not method:
        msg = "truncation method name must be a non-empty string"
        raise ValueError(msg)
    if not isinstance(truncator, Truncator):
        msg = "truncator must implement the Truncator interface"
        raise TypeError(msg)
    TRUNCATORS[method] = truncator


def get_truncator(method: str) -> Truncator:
    truncator = TRUNCATORS.get(method)
    if truncator is None:
        LOGGER.warning("unknown truncation method %r; using 'end'", method)
        return _END_TRIM
    return truncator


def truncate(content: str, config: TruncationConfig) -> str:
    """Bound ``content`` to ``config.max_characters`` using ``config.method``.

    Content within the budget is returned unchanged.
    """

    if not isinstance(content, str):
        content = render_content(content)

    limit = config.max_characters
    if len(content) <= limit:
        return content

    if len(content) > config.warn_threshold:
        LOGGER.info(
            "content size %s chars -> truncating (limit: %s, method: %s)",
            f"{len(content):,}",
            f"{limit:,}",
            config.method,
        )

    truncator = get_truncator(config.method)
    try:
        return truncator.truncate(content, config)
    except Exception:
        LOGGER.warning(
            "truncation method %r failed; falling back to 'end'",
            config.method,
            exc_info=True,
        )
        return _END_TRIM.truncate(content, config)


def serialize_json(value: Any) -> str:
    """Render ``value`` as indented JSON or raise :class:`SerializationFailure`."""

    try:
        return json.dumps(value, indent=2, ensure_ascii=False, default=_json_default)
    except Exception as exc:
        msg = f"cannot serialize {type(value).__name__}: {exc}"
        raise SerializationFailure(msg) from exc


def render_content(value: Any) -> str:
    """Render arbitrary tool output as text.

    Strings pass through, ``None`` becomes ``"No output"`` and everything else
    is rendered as JSON. Values that cannot be serialized (cycles, exotic
    objects) fall back to their textual coercion.
    """

    if isinstance(value, str):
        return value
    if value is None:
        return NO_OUTPUT_TEXT

    try:
        return serialize_json(value)
    except SerializationFailure as exc:
        LOGGER.warning("serialization failure, storing textual fallback: %s", exc)
        return coerce_text(value)


def coerce_text(value: Any) -> str:
    try:
        text = str(value)
    except Exception:
        LOGGER.warning("textual coercion of %s failed", type(value).__name__, exc_info=True)
        return SERIALIZATION_FAILED_TEXT
    return text or SERIALIZATION_FAILED_TEXT


def truncate_value(value: Any, config: TruncationConfig) -> str:
    """Render ``value`` and bound the result."""

    return truncate(render_content(value), config)


def _dump_json(value: Any, indent: int | None = None) -> str:
    return json.dumps(value, indent=indent, ensure_ascii=False)


def _json_default(value: Any) -> Any:
    if hasattr(value, "model_dump"):
        dumped = value.model_dump()
        if isinstance(dumped, Mapping):
            return dict(dumped)
        return dumped
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, Mapping):
        return dict(value)
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    return str(value)


def _looks_like_json(content: str) -> bool:
    stripped = content.strip()
    return (stripped.startswith("{") and stripped.endswith("}")) or (
        stripped.startswith("[") and stripped.endswith("]")
    )


def _looks_like_xml(content: str) -> bool:
    stripped = content.strip()
    return stripped.startswith("<") and stripped.endswith(">")


__all__ = [
    "EndTrim",
    "MiddleTrim",
    "NO_OUTPUT_TEXT",
    "SERIALIZATION_FAILED_TEXT",
    "SmartTrim",
    "StructurePreserving",
    "TRUNCATORS",
    "Truncator",
    "coerce_text",
    "get_truncator",
    "register_truncator",
    "render_content",
    "serialize_json",
    "truncate",
    "truncate_value",
]
