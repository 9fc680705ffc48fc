"""
Diagnostics records: traces, per-handler invocations and report rows.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from eventhub.core.event.types import SubscriberPriority


@dataclass(slots=True)
class HandlerInvocation:
    """Timing and outcome of one handler call within a trace."""

    subscriber_name: str
    priority: SubscriberPriority
    duration_ms: float
    error: Optional[BaseException] = None
    canceled_event: bool = False

    @property
    def failed(self) -> bool:
        return self.error is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subscriber": self.subscriber_name,
            "priority": self.priority.name,
            "duration_ms": round(self.duration_ms, 4),
            "error": None if self.error is None else f"{type(self.error).__name__}: {self.error}",
            "canceled_event": self.canceled_event,
        }


@dataclass(slots=True)
class EventTrace:
    """
    Diagnostics record of one publish call.

    `invocations` is appended to while the publish runs; read it through
    `get_invocations()` for a consistent copy.
    """

    event_id: str
    event_type: type
    timestamp: datetime
    call_site: str = ""
    invocations: List[HandlerInvocation] = field(default_factory=list)
    total_duration_ms: float = 0.0
    was_canceled: bool = False
    completed: bool = False
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def event_name(self) -> str:
        return self.event_type.__name__

    def add_invocation(self, invocation: HandlerInvocation) -> None:
        with self._lock:
            self.invocations.append(invocation)

    def get_invocations(self) -> List[HandlerInvocation]:
        with self._lock:
            return list(self.invocations)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_type": self.event_name,
            "timestamp": self.timestamp.isoformat(),
            "total_duration_ms": round(self.total_duration_ms, 4),
            "was_canceled": self.was_canceled,
            "completed": self.completed,
            "invocations": [inv.to_dict() for inv in self.get_invocations()],
            "call_site": self.call_site,
        }


@dataclass(frozen=True, slots=True)
class SubscriberAnalysis:
    """Row of the slow-subscriber report."""

    name: str
    average_duration_ms: float
    max_duration_ms: float
    invocation_count: int


@dataclass(frozen=True, slots=True)
class EventFrequency:
    """Row of the event-frequency report."""

    event_type: type
    frequency: int

    @property
    def event_name(self) -> str:
        return self.event_type.__name__
