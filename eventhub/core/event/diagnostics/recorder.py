"""
Diagnostics recorder for the EventHub.

Purpose
-------
Measures what dispatch costs: one trace per publish with a timing for every
handler invoked, rolling duration windows per subscriber and event type, and
an occurrence counter per event type. The query surface feeds an external
inspection tool (slow subscribers, event frequency, recent traces).

Design Decisions
----------------
- **Same interface, two implementations**: `NullDiagnosticsRecorder` keeps
  no state but still runs the handler and hands back its exception, so the
  dispatch loop is identical whether diagnostics are on or off.
- **Bounded memory**: traces live in a ring buffer, durations in fixed-size
  windows. The oldest entry is evicted on overflow.
- **Never changes dispatch outcomes**: bookkeeping failures are logged and
  dropped; the handler's own exception is returned, never raised.
- **Eventual consistency**: concurrent publishers may race on a window;
  losing a sample is acceptable, corrupting a structure is not, so updates
  go through one lock.
"""

from __future__ import annotations

import threading
import time
import traceback
import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Dict, List, Optional, Type

from eventhub.core.event.diagnostics.trace import (
    EventFrequency,
    EventTrace,
    HandlerInvocation,
    SubscriberAnalysis,
)
from eventhub.core.event.subscription import Subscription
from eventhub.core.logging.logger import get_logger

logger = get_logger(__name__)

DEFAULT_TRACE_CAPACITY = 1000
DEFAULT_DURATION_WINDOW = 100
DEFAULT_SLOW_THRESHOLD_MS = 16.0
CALL_SITE_DEPTH = 8

# Turns a handler exception into the fault that is logged and traced.
FaultReporter = Callable[[Exception], BaseException]


class NullDiagnosticsRecorder:
    """
    Recorder used when diagnostics are disabled.

    `track_invocation` still calls the handler and returns its exception.
    """

    enabled = False

    def start_trace(self, event: Any, *, stack_skip: int = 0) -> Optional[EventTrace]:
        return None

    def track_invocation(
        self,
        trace: Optional[EventTrace],
        subscription: Subscription,
        invoke: Callable[[], Any],
        *,
        event: Any = None,
        on_error: Optional[FaultReporter] = None,
    ) -> Optional[Exception]:
        try:
            invoke()
        except Exception as exc:
            if on_error is not None:
                on_error(exc)
            return exc
        return None

    def complete_trace(self, trace: Optional[EventTrace], event: Any) -> None:
        return None

    def get_slow_subscribers(
        self, threshold_ms: float = DEFAULT_SLOW_THRESHOLD_MS
    ) -> List[SubscriberAnalysis]:
        return []

    def get_event_frequency(self) -> List[EventFrequency]:
        return []

    def get_recent_traces(self, event_type: Optional[Type[Any]] = None) -> List[EventTrace]:
        return []

    def get_summary(self) -> Dict[str, Any]:
        return {"enabled": False}

    def clear(self) -> None:
        return None


class DiagnosticsRecorder(NullDiagnosticsRecorder):
    """
    Collects per-publish traces and per-handler timings.

    Examples
    --------
    >>> recorder = DiagnosticsRecorder(trace_capacity=100)
    >>> hub = EventHub(diagnostics=recorder)
    >>> hub.publish(Damage(amount=3))
    >>> [row.name for row in recorder.get_slow_subscribers(threshold_ms=5)]
    ['Physics::on_damage_Damage']
    """

    enabled = True

    def __init__(
        self,
        *,
        trace_capacity: int = DEFAULT_TRACE_CAPACITY,
        duration_window: int = DEFAULT_DURATION_WINDOW,
        capture_call_site: bool = True,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        if trace_capacity < 1:
            raise ValueError("trace_capacity must be >= 1")
        if duration_window < 1:
            raise ValueError("duration_window must be >= 1")

        self._trace_capacity = trace_capacity
        self._duration_window = duration_window
        self._capture_call_site = capture_call_site
        self._clock = clock

        self._lock = threading.Lock()
        self._traces: Deque[EventTrace] = deque(maxlen=trace_capacity)
        self._durations: Dict[str, Deque[float]] = {}
        self._frequency: Dict[Type[Any], int] = {}

    @property
    def trace_capacity(self) -> int:
        return self._trace_capacity

    @property
    def duration_window(self) -> int:
        return self._duration_window

    # ------------------------------------------------------------------ #
    # Per-publish lifecycle
    # ------------------------------------------------------------------ #

    def _describe_call_site(self, stack_skip: int) -> str:
        if not self._capture_call_site:
            return ""
        # +2 drops this helper and start_trace
        frames = traceback.extract_stack()[: -(stack_skip + 2)]
        return "".join(traceback.format_list(frames[-CALL_SITE_DEPTH:]))

    def start_trace(self, event: Any, *, stack_skip: int = 0) -> Optional[EventTrace]:
        event_type = type(event)
        trace = EventTrace(
            event_id=str(uuid.uuid4()),
            event_type=event_type,
            timestamp=datetime.now(timezone.utc),
            call_site=self._describe_call_site(stack_skip),
        )

        with self._lock:
            self._traces.append(trace)
            self._frequency[event_type] = self._frequency.get(event_type, 0) + 1

        return trace

    def track_invocation(
        self,
        trace: Optional[EventTrace],
        subscription: Subscription,
        invoke: Callable[[], Any],
        *,
        event: Any = None,
        on_error: Optional[FaultReporter] = None,
    ) -> Optional[Exception]:
        error: Optional[Exception] = None
        was_canceled = bool(getattr(event, "canceled", False))
        started = self._clock()
        try:
            invoke()
        except Exception as exc:
            error = exc
        duration_ms = (self._clock() - started) * 1000.0
        canceled_here = not was_canceled and bool(getattr(event, "canceled", False))

        fault: Optional[BaseException] = error
        if error is not None and on_error is not None:
            fault = on_error(error)

        try:
            self._record_invocation(trace, subscription, duration_ms, fault, canceled_here)
        except Exception as exc:
            logger.warning(
                "Diagnostics failed to record handler invocation",
                extra={
                    "subscriber": subscription.name,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )

        return error

    def _record_invocation(
        self,
        trace: Optional[EventTrace],
        subscription: Subscription,
        duration_ms: float,
        error: Optional[BaseException],
        canceled_event: bool = False,
    ) -> None:
        if trace is None:
            return

        trace.add_invocation(
            HandlerInvocation(
                subscriber_name=subscription.name,
                priority=subscription.priority,
                duration_ms=duration_ms,
                error=error,
                canceled_event=canceled_event,
            )
        )

        key = f"{subscription.name}_{trace.event_name}"
        with self._lock:
            window = self._durations.get(key)
            if window is None:
                window = deque(maxlen=self._duration_window)
                self._durations[key] = window
            window.append(duration_ms)

    def complete_trace(self, trace: Optional[EventTrace], event: Any) -> None:
        if trace is None:
            return
        invocations = trace.get_invocations()
        trace.was_canceled = bool(getattr(event, "canceled", False))
        trace.total_duration_ms = sum(inv.duration_ms for inv in invocations)
        trace.completed = True

    # ------------------------------------------------------------------ #
    # Analysis
    # ------------------------------------------------------------------ #

    def get_slow_subscribers(
        self, threshold_ms: float = DEFAULT_SLOW_THRESHOLD_MS
    ) -> List[SubscriberAnalysis]:
        """Handlers whose average duration exceeds `threshold_ms`, slowest first."""
        with self._lock:
            windows = {key: list(values) for key, values in self._durations.items()}

        rows = [
            SubscriberAnalysis(
                name=key,
                average_duration_ms=sum(values) / len(values),
                max_duration_ms=max(values),
                invocation_count=len(values),
            )
            for key, values in windows.items()
            if values
        ]
        rows = [row for row in rows if row.average_duration_ms > threshold_ms]
        rows.sort(key=lambda row: row.average_duration_ms, reverse=True)
        return rows

    def get_event_frequency(self) -> List[EventFrequency]:
        """Publish counts per event type, most frequent first."""
        with self._lock:
            items = list(self._frequency.items())
        items.sort(key=lambda item: item[1], reverse=True)
        return [EventFrequency(event_type=event_type, frequency=count) for event_type, count in items]

    def get_recent_traces(self, event_type: Optional[Type[Any]] = None) -> List[EventTrace]:
        """Stored traces, oldest first, optionally only for one event type."""
        with self._lock:
            traces = list(self._traces)
        if event_type is not None:
            traces = [trace for trace in traces if trace.event_type is event_type]
        return traces

    def get_summary(self) -> Dict[str, Any]:
        with self._lock:
            trace_count = len(self._traces)
            tracked = len(self._durations)
        return {
            "enabled": True,
            "trace_count": trace_count,
            "trace_capacity": self._trace_capacity,
            "tracked_subscribers": tracked,
            "event_frequency": {
                row.event_name: row.frequency for row in self.get_event_frequency()
            },
        }

    def clear(self) -> None:
        with self._lock:
            self._traces.clear()
            self._durations.clear()
            self._frequency.clear()
