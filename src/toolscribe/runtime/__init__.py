"""Async runtime reconstructing transcripts from execution event streams."""

from .correlator import ToolInvocationCorrelator
from .history import HistoryAssembler
from .loop import EventStreamRun, RunResult, transcribe
from .state import PendingInvocation, RunState
from .telemetry import (
    EventBusTelemetry,
    InMemoryTelemetry,
    LoggingTelemetry,
    NullTelemetry,
    RunMetrics,
    TelemetrySink,
)

__all__ = [
    "EventBusTelemetry",
    "EventStreamRun",
    "HistoryAssembler",
    "InMemoryTelemetry",
    "LoggingTelemetry",
    "NullTelemetry",
    "PendingInvocation",
    "RunMetrics",
    "RunResult",
    "RunState",
    "TelemetrySink",
    "ToolInvocationCorrelator",
    "transcribe",
]
