"""
Event System for eventhub.

Purpose
-------
Synchronous, priority-ordered publish/subscribe between game objects whose
lifetimes the hub does not own. There is no global hub: the application
creates one (see `initialize_event_system`) and passes it around.
"""

from .binding import EventSubscriber, discover_handlers, on_event
from .context import event_log_context
from .diagnostics import (
    DiagnosticsRecorder,
    EventFrequency,
    EventTrace,
    HandlerInvocation,
    NullDiagnosticsRecorder,
    SubscriberAnalysis,
)
from .hub import EventHub
from .metrics import EventMetrics, EventMetricsRecorder
from .reference import LivenessPolicy, SubscriberReference
from .registry import SubscriptionRegistry
from .setup import initialize_event_system, shutdown_event_system
from .subscription import Subscription, SubscriptionHandle
from .types import (
    EventCallback,
    GameEvent,
    LivenessPredicate,
    SubscriberPriority,
)

__all__ = [
    "EventHub",
    "GameEvent",
    "SubscriberPriority",
    "EventCallback",
    "LivenessPredicate",
    "Subscription",
    "SubscriptionHandle",
    "SubscriptionRegistry",
    "SubscriberReference",
    "LivenessPolicy",
    "EventMetrics",
    "EventMetricsRecorder",
    "DiagnosticsRecorder",
    "NullDiagnosticsRecorder",
    "EventTrace",
    "HandlerInvocation",
    "SubscriberAnalysis",
    "EventFrequency",
    "EventSubscriber",
    "on_event",
    "discover_handlers",
    "event_log_context",
    "initialize_event_system",
    "shutdown_event_system",
]
