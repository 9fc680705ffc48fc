"""
SubscriptionRegistry: storage and lookup for EventHub subscriptions.

Purpose
-------
Maps each concrete event type to the list of subscription records bound to
it, and owns insertion, removal, snapshotting for dispatch, and the sweep of
stale records.

Responsibilities
----------------
- Validate records before storing them (raise InvalidSubscription)
- Keep records per event type in registration order
- Remove records by target (static or dynamic), by identity, or when stale
- Hand out snapshots that stay valid while other threads mutate the registry
- Provide introspection (counts, event types)

Design Decisions
----------------
- **One re-entrant lock**: every mutation and every snapshot runs under the
  same `threading.RLock`. Handlers run outside the lock (dispatch iterates a
  snapshot), so a handler may register or unregister on the same registry.
- **Copy-on-snapshot**: `snapshot_for()` returns a tuple copy. A concurrent
  `register()` never makes iteration throw or yield a record twice.
- **Registration order is the tie-break**: lists are only appended to and
  filtered, never reordered, so a stable sort by priority at dispatch time
  runs equal priorities first-registered-first.
- **Duplicates are legal**: the same handler registered twice runs twice.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Type

from eventhub.core.event.subscription import Subscription
from eventhub.core.event.types import EventCallback, GameEvent
from eventhub.core.exceptions import InvalidSubscription


class SubscriptionRegistry:
    """
    Thread-safe registry of subscription records keyed by event type.

    Examples
    --------
    >>> registry = SubscriptionRegistry()
    >>> record = Subscription.create(Damage, player, Player.on_damage)
    >>> registry.register(record)
    >>> registry.snapshot_for(Damage)
    (<Subscription Player::on_damage -> Damage HIGH static>,)
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._subscriptions: Dict[Type[GameEvent], List[Subscription]] = {}

    # ------------------------------------------------------------------ #
    # Validation
    # ------------------------------------------------------------------ #

    @staticmethod
    def validate(record: Subscription) -> None:
        """
        Check the record invariants.

        Raises
        ------
        InvalidSubscription:
            If the event type is missing or not a GameEvent subclass, a static
            record has no method, or a dynamic record has no callback.
        """
        event_type = record.event_type
        if event_type is None:
            raise InvalidSubscription("event type cannot be None")

        if not isinstance(event_type, type) or not issubclass(event_type, GameEvent):
            raise InvalidSubscription(
                f"event type must inherit from GameEvent: {event_type!r}", event_type
            )

        if record.is_dynamic:
            if record.callback is None:
                raise InvalidSubscription("dynamic subscription requires a callback", event_type)
        elif record.method is None:
            raise InvalidSubscription("static subscription requires a valid method", event_type)

        if record.method is not None and not callable(record.method):
            raise InvalidSubscription("static handler is not callable", event_type)

    # ------------------------------------------------------------------ #
    # Modification
    # ------------------------------------------------------------------ #

    def register(self, record: Subscription) -> None:
        """Validate and append a record to the list for its event type."""
        self.validate(record)
        with self._lock:
            self._subscriptions.setdefault(record.event_type, []).append(record)

    def remove(self, record: Subscription) -> bool:
        """Remove one record by identity. Returns True if it was present."""
        with self._lock:
            records = self._subscriptions.get(record.event_type)
            if not records:
                return False
            for index, existing in enumerate(records):
                if existing is record:
                    del records[index]
                    if not records:
                        del self._subscriptions[record.event_type]
                    return True
        return False

    def remove_many(self, records: Iterable[Subscription]) -> int:
        """Remove each given record by identity; returns how many were present."""
        return sum(1 for record in records if self.remove(record))

    def remove_by_target(
        self,
        target: Any,
        *,
        dynamic_only: bool,
        callback: Optional[EventCallback] = None,
        event_type: Optional[Type[GameEvent]] = None,
    ) -> int:
        """
        Remove every record bound to `target` with a matching dynamic flag.

        Parameters
        ----------
        target:
            The subscriber whose records should be removed.
        dynamic_only:
            True removes only dynamic records, False only static ones.
        callback:
            When given, only records with exactly this callback are removed.
        event_type:
            When given, only this event type's list is searched.

        Returns
        -------
        int:
            Number of records removed.
        """

        def matches(record: Subscription) -> bool:
            if record.is_dynamic != dynamic_only:
                return False
            if not record.reference.refers_to(target):
                return False
            if callback is not None and not record.matches_callback(callback):
                return False
            return True

        return self._remove_where(matches, event_type=event_type)

    def sweep_stale(self) -> int:
        """Remove every record whose subscriber is no longer live."""
        return self._remove_where(lambda record: not record.is_live())

    def clear(self) -> int:
        """Remove all records and return how many there were."""
        with self._lock:
            total = self.count()
            self._subscriptions.clear()
            return total

    def _remove_where(
        self,
        predicate: Callable[[Subscription], bool],
        *,
        event_type: Optional[Type[GameEvent]] = None,
    ) -> int:
        removed = 0
        with self._lock:
            keys = [event_type] if event_type is not None else list(self._subscriptions)
            for key in keys:
                records = self._subscriptions.get(key)
                if not records:
                    continue
                kept = [record for record in records if not predicate(record)]
                removed += len(records) - len(kept)
                if kept:
                    self._subscriptions[key] = kept
                else:
                    del self._subscriptions[key]
        return removed

    # ------------------------------------------------------------------ #
    # Lookup
    # ------------------------------------------------------------------ #

    def snapshot_for(self, event_type: Type[GameEvent]) -> Tuple[Subscription, ...]:
        """Current records for `event_type`, in registration order."""
        with self._lock:
            records = self._subscriptions.get(event_type)
            return tuple(records) if records else ()

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    def count(self, event_type: Optional[Type[GameEvent]] = None) -> int:
        with self._lock:
            if event_type is not None:
                return len(self._subscriptions.get(event_type, ()))
            return sum(len(records) for records in self._subscriptions.values())

    def event_types(self) -> List[Type[GameEvent]]:
        """Event types that currently have subscriptions, sorted by name."""
        with self._lock:
            return sorted(self._subscriptions, key=lambda t: (t.__module__, t.__qualname__))

    def records_for_target(self, target: Any) -> List[Subscription]:
        with self._lock:
            return [
                record
                for records in self._subscriptions.values()
                for record in records
                if record.reference.refers_to(target)
            ]
