"""
eventhub: priority-ordered event dispatch for game objects.

Examples
--------
>>> from eventhub import EventHub, GameEvent, SubscriberPriority
>>> hub = EventHub()
>>> hub.listen(Damage, hud, hud.on_damage, SubscriberPriority.LOW)
>>> hub.publish(Damage(amount=5))
"""

from eventhub.core.event import (
    DiagnosticsRecorder,
    EventHub,
    EventSubscriber,
    GameEvent,
    LivenessPolicy,
    NullDiagnosticsRecorder,
    SubscriberPriority,
    SubscriptionHandle,
    initialize_event_system,
    on_event,
    shutdown_event_system,
)
from eventhub.core.exceptions import (
    ConfigurationError,
    EventHubException,
    HandlerFault,
    InvalidSubscription,
)
from eventhub.core.logging import get_logger, setup_logging, shutdown_logging

__version__ = "1.0.0"

__all__ = [
    "EventHub",
    "GameEvent",
    "SubscriberPriority",
    "SubscriptionHandle",
    "LivenessPolicy",
    "EventSubscriber",
    "on_event",
    "DiagnosticsRecorder",
    "NullDiagnosticsRecorder",
    "initialize_event_system",
    "shutdown_event_system",
    "EventHubException",
    "InvalidSubscription",
    "HandlerFault",
    "ConfigurationError",
    "get_logger",
    "setup_logging",
    "shutdown_logging",
]
