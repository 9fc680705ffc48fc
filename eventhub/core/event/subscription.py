"""
Subscription records and handles.

Purpose
-------
Describes one handler binding (event type, subscriber reference, invocation
thunk, priority, static/dynamic discriminator) and the disposer handed back
to callers of `EventHub.register` / `EventHub.listen`.

Design Decisions
----------------
- **Immutable records**: a Subscription never changes after creation; the
  registry adds and removes whole records.
- **No strong reference to the subscriber**: static handlers are stored as
  the unbound function and called as `method(target, event)` on the resolved
  target. Dynamic callbacks that are bound methods of their own subscriber
  are held through `weakref.WeakMethod`.
- **Idempotent handles**: disposing a handle twice is a no-op.
"""

from __future__ import annotations

import inspect
import threading
import weakref
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Optional

from eventhub.core.event.reference import LivenessPolicy, SubscriberReference
from eventhub.core.event.types import (
    EventCallback,
    MethodThunk,
    SubscriberPriority,
)
from eventhub.core.exceptions import InvalidSubscription

if TYPE_CHECKING:
    from eventhub.core.event.registry import SubscriptionRegistry


def _callable_name(fn: Any, fallback: str) -> str:
    return getattr(fn, "__name__", None) or fallback


@dataclass(frozen=True, slots=True, eq=False)
class Subscription:
    """
    One handler bound to one event type at one priority.

    Attributes
    ----------
    event_type:
        The concrete GameEvent subclass this record handles.
    reference:
        Weak reference to the subscriber plus liveness metadata.
    method:
        Static case: unbound function invoked as `method(target, event)`.
    callback:
        Dynamic case: zero-argument accessor returning the live callback,
        or None once a weakly held bound method has been reclaimed.
    priority:
        Dispatch order and cancellation exemption.
    is_dynamic:
        True for closure/callback subscriptions, False for method bindings.
    name:
        Diagnostic name, `"<SubscriberType>::<handler>"`.
    """

    event_type: Any
    reference: SubscriberReference
    method: Optional[MethodThunk]
    callback: Optional[Callable[[], Optional[EventCallback]]]
    priority: SubscriberPriority
    is_dynamic: bool
    name: str = field(default="")

    @classmethod
    def create(
        cls,
        event_type: Any,
        target: Any,
        method: Optional[Callable[..., Any]] = None,
        priority: SubscriberPriority = SubscriberPriority.HIGH,
        is_dynamic: bool = False,
        callback: Optional[EventCallback] = None,
        policy: Optional[LivenessPolicy] = None,
    ) -> "Subscription":
        """
        Build a record, normalizing handlers so none of them owns `target`.

        Raises
        ------
        InvalidSubscription:
            If `target` is None, a static method is bound to a different
            object, or `priority` is not a valid level.
        """
        if target is None:
            raise InvalidSubscription("subscriber cannot be None", event_type)

        try:
            priority = SubscriberPriority(priority)
        except ValueError:
            raise InvalidSubscription(f"unknown priority {priority!r}", event_type) from None

        reference = SubscriberReference(target, policy)
        thunk: Optional[MethodThunk] = None
        accessor: Optional[Callable[[], Optional[EventCallback]]] = None
        handler_name = "DynamicHandler"

        if not is_dynamic and method is not None:
            if inspect.ismethod(method):
                if method.__self__ is not target:
                    raise InvalidSubscription(
                        "static handler is bound to a different object than the subscriber",
                        event_type,
                    )
                thunk = method.__func__
            else:
                thunk = method
            handler_name = _callable_name(thunk, "handler")

        if is_dynamic and callback is not None:
            weak_callback = None
            if inspect.ismethod(callback) and callback.__self__ is target and reference.is_weak:
                try:
                    weak_callback = weakref.WeakMethod(callback)
                except TypeError:
                    weak_callback = None
            if weak_callback is not None:
                accessor = weak_callback
            else:
                strong = callback
                accessor = lambda: strong  # noqa: E731
            handler_name = _callable_name(callback, "DynamicHandler")

        return cls(
            event_type=event_type,
            reference=reference,
            method=thunk,
            callback=accessor,
            priority=priority,
            is_dynamic=is_dynamic,
            name=f"{reference.target_name}::{handler_name}",
        )

    @property
    def event_name(self) -> str:
        return getattr(self.event_type, "__name__", repr(self.event_type))

    def is_live(self) -> bool:
        if not self.reference.is_live():
            return False
        if self.is_dynamic and self.callback is not None and self.callback() is None:
            return False
        return True

    def matches_callback(self, callback: Optional[EventCallback]) -> bool:
        if callback is None or self.callback is None:
            return False
        current = self.callback()
        return current is callback or (current is not None and current == callback)

    def invoke(self, event: Any) -> None:
        """
        Deliver `event` to the handler if the subscriber is still live.

        Handler exceptions propagate to the caller (the dispatch loop isolates
        them per handler).
        """
        target = self.reference.resolve()
        if target is None:
            return

        if self.is_dynamic:
            fn = self.callback() if self.callback is not None else None
            if fn is not None:
                fn(event)
        elif self.method is not None:
            self.method(target, event)

    def __repr__(self) -> str:
        kind = "dynamic" if self.is_dynamic else "static"
        return (
            f"<Subscription {self.name} -> {self.event_name} "
            f"{self.priority.name} {kind}>"
        )


class SubscriptionHandle:
    """
    Disposer returned for every registration.

    Calling `dispose()` (or the handle itself) removes exactly the record it
    was created for. Idempotent.

    Examples
    --------
    >>> handle = hub.listen(Damage, owner, on_damage)
    >>> handle.dispose()
    True
    >>> handle()
    False
    """

    __slots__ = ("_registry", "_subscription", "_lock", "_disposed")

    def __init__(self, registry: "SubscriptionRegistry", subscription: Subscription) -> None:
        self._registry = registry
        self._subscription = subscription
        self._lock = threading.Lock()
        self._disposed = False

    @property
    def subscription(self) -> Subscription:
        return self._subscription

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> bool:
        """Remove the subscription. Returns True only on the first effective call."""
        with self._lock:
            if self._disposed:
                return False
            self._disposed = True
        return self._registry.remove(self._subscription)

    def __call__(self) -> bool:
        return self.dispose()

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else "active"
        return f"<SubscriptionHandle {self._subscription!r} {state}>"
