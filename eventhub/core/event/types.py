"""
Core Event Types for the eventhub dispatch engine.

Purpose
-------
Provides the fundamental type definitions for the event system: the event
base class with its one-way cancellation flag, the fixed five-level
subscriber priority scale, and the callable aliases used by subscriptions.

Design Decisions
----------------
- **GameEvent works with any subclass style**: plain classes, dataclasses,
  frozen dataclasses and slotted dataclasses all carry the cancellation flag.
  The flag lives in a base-class slot and is written with
  `object.__setattr__` so frozen subclasses can still be canceled.
- **SubscriberPriority is an IntEnum**: the numeric value is the dispatch
  order, so sorting is a plain key lookup.

Priority Levels
---------------
- ESSENTIAL (0): Always executed first, even if the event was canceled.
- HIGH (1): Default for declarative (method) subscriptions.
- MEDIUM (2): Default for dynamic (callback) subscriptions.
- LOW (3): Final standard level.
- CLEANUP (4): Always executed last, even if the event was canceled.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any, Callable, Type, TypeVar


class GameEvent:
    """
    Base class for every event published through an EventHub.

    Subclasses describe something that happened and are conceptually
    immutable apart from the cancellation flag.

    Examples
    --------
    >>> @dataclass
    ... class Damage(GameEvent):
    ...     amount: int
    ...
    >>> evt = Damage(amount=5)
    >>> evt.canceled
    False
    >>> evt.stop_propagation()
    >>> evt.canceled
    True
    """

    __slots__ = ("_canceled",)

    @property
    def canceled(self) -> bool:
        """True once any handler has called `stop_propagation()`."""
        return getattr(self, "_canceled", False)

    def stop_propagation(self) -> None:
        """
        Prevent handlers of lower priority from handling this event.

        ESSENTIAL and CLEANUP handlers still run. The flag cannot be reset.
        """
        object.__setattr__(self, "_canceled", True)

    @classmethod
    def event_name(cls) -> str:
        return cls.__name__


class SubscriberPriority(IntEnum):
    """
    Dispatch order for subscriptions (lower runs earlier).

    Examples
    --------
    >>> SubscriberPriority.ESSENTIAL < SubscriberPriority.CLEANUP
    True
    >>> SubscriberPriority.CLEANUP.runs_when_canceled
    True
    >>> SubscriberPriority.HIGH.runs_when_canceled
    False
    """

    ESSENTIAL = 0
    HIGH = 1
    MEDIUM = 2
    LOW = 3
    CLEANUP = 4

    @property
    def runs_when_canceled(self) -> bool:
        return self in (SubscriberPriority.ESSENTIAL, SubscriberPriority.CLEANUP)


DEFAULT_STATIC_PRIORITY = SubscriberPriority.HIGH
DEFAULT_DYNAMIC_PRIORITY = SubscriberPriority.MEDIUM

TEvent = TypeVar("TEvent", bound=GameEvent)

# Static handler: unbound function invoked as method(target, event)
MethodThunk = Callable[[Any, Any], Any]

# Dynamic handler: standalone callable invoked as callback(event)
EventCallback = Callable[[Any], Any]

EventType = Type[GameEvent]

# Host-supplied liveness check for a managed subscriber kind
LivenessPredicate = Callable[[Any], bool]
