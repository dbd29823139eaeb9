"""Canonicalization of the run's final output into one string."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Union

from .errors import SerializationFailure
from .truncation import coerce_text, serialize_json

LOGGER = logging.getLogger(__name__)

# Checked in order; the first present field wins.
OUTPUT_FIELDS = ("output", "answer", "text", "content")


@dataclass(frozen=True, slots=True)
class EmptyOutput:
    """The run finished without any final output."""


@dataclass(frozen=True, slots=True)
class TextOutput:
    text: str


@dataclass(frozen=True, slots=True)
class SegmentOutput:
    """A sequence of segments, each possibly carrying a ``text`` field."""

    segments: tuple[Any, ...]


@dataclass(frozen=True, slots=True)
class FieldOutput:
    """An object exposing one of :data:`OUTPUT_FIELDS`."""

    field: str
    value: Any


@dataclass(frozen=True, slots=True)
class UnknownOutput:
    payload: Any


OutputShape = Union[EmptyOutput, TextOutput, SegmentOutput, FieldOutput, UnknownOutput]


def classify_output(payload: Any) -> OutputShape:
    """Map a raw final-output payload onto an :data:`OutputShape`."""

    if payload is None:
        return EmptyOutput()
    if isinstance(payload, str):
        return TextOutput(payload)
    if isinstance(payload, Sequence) and not isinstance(payload, (bytes, bytearray)):
        return SegmentOutput(tuple(payload))

    for field in OUTPUT_FIELDS:
        present, value = _read_field(payload, field)
        if present:
            return FieldOutput(field, value)

    return UnknownOutput(payload)


def normalize_output(payload: Any) -> str:
    """Return the canonical text of ``payload``; never raises."""

    shape = classify_output(payload)

    if isinstance(shape, EmptyOutput):
        return ""
    if isinstance(shape, TextOutput):
        return shape.text
    if isinstance(shape, SegmentOutput):
        return "".join(_segment_text(segment) for segment in shape.segments)
    if isinstance(shape, FieldOutput):
        if isinstance(shape.value, str):
            return shape.value
        return _render(shape.value)

    LOGGER.warning("unexpected output format: %s", type(shape.payload).__name__)
    return _render(shape.payload)


def _segment_text(segment: Any) -> str:
    if isinstance(segment, str):
        return segment
    present, value = _read_field(segment, "text")
    if present and isinstance(value, str):
        return value
    return _render(segment)


def _read_field(payload: Any, field: str) -> tuple[bool, Any]:
    if isinstance(payload, Mapping):
        value = payload.get(field)
    else:
        try:
            value = getattr(payload, field, None)
        except Exception:
            return False, None
    if value is None or (isinstance(value, str) and not value):
        return False, None
    return True, value


def _render(value: Any) -> str:
    try:
        return serialize_json(value)
    except SerializationFailure as exc:
        LOGGER.warning("cannot render final output as JSON: %s", exc)
        return coerce_text(value)


__all__ = [
    "EmptyOutput",
    "FieldOutput",
    "OUTPUT_FIELDS",
    "OutputShape",
    "SegmentOutput",
    "TextOutput",
    "UnknownOutput",
    "classify_output",
    "normalize_output",
]
