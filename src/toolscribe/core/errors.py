"""Custom exception types used by toolscribe."""

from __future__ import annotations


class ToolscribeError(RuntimeError):
    """Base class for every error raised by toolscribe."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ValidationError(ToolscribeError):
    """Raised when an execution event is malformed and must be skipped."""


class CorrelationAnomaly(ToolscribeError):
    """An orphaned tool start or tool end that cannot be paired."""


class SerializationFailure(ToolscribeError):
    """Content could not be rendered as-is and was replaced by a fallback."""


class HistoryWriteError(ToolscribeError):
    """A single history append failed."""


class FatalStreamError(ToolscribeError):
    """The event source itself failed; terminates the run."""


class ConfigError(ToolscribeError):
    """Raised when a configuration file cannot be loaded."""
