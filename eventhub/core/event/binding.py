"""
Declarative handler binding.

Marks methods as handlers with `@on_event` and registers them on a hub in
one call. `EventSubscriber` is a convenience base class that binds itself on
construction and tears everything down on `close()`.

Examples
--------
>>> class Player(EventSubscriber):
...     @on_event(Damage, priority=SubscriberPriority.ESSENTIAL)
...     def on_damage(self, evt: Damage) -> None:
...         self.health -= evt.amount
...
>>> with Player(hub) as player:
...     hub.publish(Damage(amount=5))
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Iterator, List, Optional, Set, Tuple, Type

from eventhub.core.event.types import (
    DEFAULT_DYNAMIC_PRIORITY,
    DEFAULT_STATIC_PRIORITY,
    EventCallback,
    GameEvent,
    SubscriberPriority,
)
from eventhub.core.exceptions import InvalidSubscription
from eventhub.core.logging.logger import get_logger

if TYPE_CHECKING:
    from eventhub.core.event.hub import EventHub
    from eventhub.core.event.subscription import SubscriptionHandle

logger = get_logger(__name__)

HANDLER_MARKER = "__eventhub_handlers__"

HandlerSpec = Tuple[Type[GameEvent], Callable[..., Any], SubscriberPriority]


def on_event(
    event_type: Type[GameEvent],
    priority: SubscriberPriority = DEFAULT_STATIC_PRIORITY,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Mark a method as the static handler for `event_type`.

    Stackable: a method decorated several times handles each event type.

    Raises
    ------
    InvalidSubscription:
        If `event_type` is not a GameEvent subclass or `priority` is unknown.
    """
    if not isinstance(event_type, type) or not issubclass(event_type, GameEvent):
        raise InvalidSubscription(
            f"event type must inherit from GameEvent: {event_type!r}", event_type
        )
    try:
        level = SubscriberPriority(priority)
    except ValueError:
        raise InvalidSubscription(f"unknown priority {priority!r}", event_type) from None

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        marks: List[Tuple[Type[GameEvent], SubscriberPriority]] = list(
            getattr(func, HANDLER_MARKER, ())
        )
        # Decorators apply bottom-up; keep declaration order
        marks.insert(0, (event_type, level))
        setattr(func, HANDLER_MARKER, marks)
        return func

    return decorator


def discover_handlers(subscriber: Any) -> Iterator[HandlerSpec]:
    """
    Yield `(event_type, function, priority)` for every marked method.

    Walks the class hierarchy most-derived first. A method overridden in a
    subclass replaces the base definition, marked or not.
    """
    seen: Set[str] = set()
    for klass in type(subscriber).__mro__:
        for name, attr in vars(klass).items():
            if name in seen:
                continue
            seen.add(name)
            for event_type, priority in getattr(attr, HANDLER_MARKER, ()):
                yield event_type, attr, priority


class EventSubscriber:
    """
    Base class for objects whose lifetime bounds their subscriptions.

    Registers its `@on_event` methods on construction. `subscribe()` adds
    dynamic handlers whose handles are tracked. `close()` (or leaving the
    `with` block) removes everything this object registered.
    """

    def __init__(self, hub: "EventHub") -> None:
        self._hub = hub
        self._handles: List["SubscriptionHandle"] = []
        self._closed = False
        hub.bind(self)

    @property
    def hub(self) -> "EventHub":
        return self._hub

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(
        self,
        event_type: Type[GameEvent],
        callback: EventCallback,
        priority: SubscriberPriority = DEFAULT_DYNAMIC_PRIORITY,
    ) -> "SubscriptionHandle":
        if self._closed:
            raise InvalidSubscription("subscriber is closed", event_type)
        handle = self._hub.listen(event_type, self, callback, priority)
        # Handles disposed directly by callers are dropped here.
        self._handles = [h for h in self._handles if not h.disposed]
        self._handles.append(handle)
        return handle

    def unsubscribe(self, handle: "SubscriptionHandle") -> bool:
        """Dispose a handle returned by `subscribe` and stop tracking it."""
        try:
            self._handles.remove(handle)
        except ValueError:
            pass
        return self._hub.unregister_one(handle)

    @property
    def subscription_count(self) -> int:
        """Tracked dynamic handles that are still active."""
        return sum(1 for handle in self._handles if not handle.disposed)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        removed = self._hub.unbind(self)
        handles, self._handles = self._handles, []
        for handle in handles:
            if self._hub.unregister_one(handle):
                removed += 1

        logger.debug(
            "EventSubscriber closed",
            extra={"subscriber": type(self).__name__, "removed_count": removed},
        )

    def __enter__(self) -> "EventSubscriber":
        return self

    def __exit__(self, exc_type: Optional[type], exc: Optional[BaseException], tb: Any) -> None:
        self.close()
