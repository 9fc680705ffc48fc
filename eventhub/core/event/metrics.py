"""
EventMetrics and EventMetricsRecorder for the EventHub.

Purpose
-------
Cheap, always-available counters for the hub: publishes and handler faults
per event type, plus subscription churn (registered, removed, purged as
stale). Unlike the diagnostics recorder these never time anything, so they
stay enabled in production builds.

Design Decisions
----------------
- **Immutable snapshots**: EventMetrics is frozen; mutations go through recorder
- **Separation**: Recorder (mutable) vs Metrics (immutable snapshot)
- **Lock per recorder**: publishers on several threads may record at once
"""

from __future__ import annotations

import threading
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class EventMetrics:
    """
    Immutable snapshot of hub metrics.

    Attributes
    ----------
    events_published:
        Mapping of event type names to publish counts.
    handler_errors:
        Mapping of event type names to handler fault counts.
    subscriptions_registered:
        Total registrations accepted since creation.
    subscriptions_removed:
        Total records removed by unbind/unregister/dispose.
    stale_removed:
        Total records purged because their subscriber was no longer live.

    Examples
    --------
    >>> metrics = EventMetrics(
    ...     events_published={"Damage": 40},
    ...     handler_errors={"Damage": 1},
    ... )
    >>> metrics.get_summary()["error_rate"]
    2.5
    """

    events_published: dict[str, int] = field(default_factory=dict)
    handler_errors: dict[str, int] = field(default_factory=dict)
    subscriptions_registered: int = 0
    subscriptions_removed: int = 0
    stale_removed: int = 0

    def get_summary(self) -> dict[str, Any]:
        """
        Generate a formatted summary of metrics.

        Returns
        -------
        dict[str, Any]:
            total_events_published, events_by_type, total_errors,
            errors_by_event, subscriptions_registered, subscriptions_removed,
            stale_removed and error_rate (percentage of publishes that
            produced a handler fault, 0-100).
        """
        total_events = sum(self.events_published.values())
        total_errors = sum(self.handler_errors.values())

        error_rate = (total_errors / max(1, total_events)) * 100.0

        return {
            "total_events_published": total_events,
            "events_by_type": dict(self.events_published),
            "total_errors": total_errors,
            "errors_by_event": dict(self.handler_errors),
            "subscriptions_registered": self.subscriptions_registered,
            "subscriptions_removed": self.subscriptions_removed,
            "stale_removed": self.stale_removed,
            "error_rate": round(error_rate, 2),
        }


class EventMetricsRecorder:
    """
    Mutable metrics recorder for the EventHub.

    Examples
    --------
    >>> recorder = EventMetricsRecorder()
    >>> recorder.record_publish("Damage")
    >>> recorder.record_error("Damage")
    >>> recorder.snapshot().handler_errors["Damage"]
    1
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events_published: defaultdict[str, int] = defaultdict(int)
        self._handler_errors: defaultdict[str, int] = defaultdict(int)
        self._registered = 0
        self._removed = 0
        self._stale_removed = 0

    def record_publish(self, event_name: str) -> None:
        with self._lock:
            self._events_published[event_name] += 1

    def record_error(self, event_name: str) -> None:
        with self._lock:
            self._handler_errors[event_name] += 1

    def record_registered(self, count: int = 1) -> None:
        with self._lock:
            self._registered += count

    def record_removed(self, count: int = 1) -> None:
        with self._lock:
            self._removed += count

    def record_stale(self, count: int) -> None:
        with self._lock:
            self._stale_removed += count

    def reset(self) -> None:
        with self._lock:
            self._events_published.clear()
            self._handler_errors.clear()
            self._registered = 0
            self._removed = 0
            self._stale_removed = 0

    def snapshot(self) -> EventMetrics:
        """
        Return an immutable snapshot of current metrics.

        Creates new dict instances to prevent accidental mutation leaks.
        """
        with self._lock:
            return EventMetrics(
                events_published=dict(self._events_published),
                handler_errors=dict(self._handler_errors),
                subscriptions_registered=self._registered,
                subscriptions_removed=self._removed,
                stale_removed=self._stale_removed,
            )
