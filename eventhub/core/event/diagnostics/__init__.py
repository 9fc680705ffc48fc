"""Dispatch diagnostics: per-publish traces, handler timings and event frequency."""

from eventhub.core.event.diagnostics.recorder import (
    DEFAULT_SLOW_THRESHOLD_MS,
    DiagnosticsRecorder,
    NullDiagnosticsRecorder,
)
from eventhub.core.event.diagnostics.trace import (
    EventFrequency,
    EventTrace,
    HandlerInvocation,
    SubscriberAnalysis,
)

__all__ = [
    "DEFAULT_SLOW_THRESHOLD_MS",
    "DiagnosticsRecorder",
    "NullDiagnosticsRecorder",
    "EventFrequency",
    "EventTrace",
    "HandlerInvocation",
    "SubscriberAnalysis",
]
