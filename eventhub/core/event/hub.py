"""
EventHub: synchronous, priority-ordered publish/subscribe with weak subscribers.

Purpose
-------
Provides the EventHub class: the single entry point game and application code
uses to register handlers, publish events and inspect dispatch.

Responsibilities
----------------
- Register static (method) and dynamic (callback) handlers with priorities
- Publish events to every live handler of the event's exact type, in
  ascending priority order, honouring cancellation
- Isolate handler failures (one failing handler never blocks others)
- Purge subscriptions whose subscriber is gone, lazily during dispatch and
  periodically through the stale collector
- Metrics, diagnostics and introspection
- LogContext integration for structured logging

Design Decisions
----------------
- **Instance-based**: no module-level hub. The composing application owns
  one hub per process (tests create as many as they like).
- **Synchronous, caller-thread dispatch**: handlers run on the thread that
  calls `publish`, in order. A handler may publish, register or unregister
  re-entrantly; it iterates a snapshot so the current dispatch is unaffected.
- **Non-owning**: the hub never keeps a subscriber alive. See
  `eventhub.core.event.reference`.
- **publish never raises**: handler faults are logged and counted;
  bookkeeping failures are logged and swallowed.
- **Config-driven tunables**: sweep interval and diagnostics settings are
  resolved as explicit argument -> ConfigManager -> Config -> default.

Dependencies
------------
- eventhub.core.logging.logger (structured logging)
- eventhub.core.config (Config, ConfigManager)
- eventhub.core.event.registry (SubscriptionRegistry)
- eventhub.core.event.collector (StaleCollector)
- eventhub.core.event.diagnostics (DiagnosticsRecorder, NullDiagnosticsRecorder)
- eventhub.core.event.metrics (EventMetricsRecorder, EventMetrics)
- eventhub.core.event.errors (handle_handler_fault)
- eventhub.core.event.context (event_log_context)
"""

from __future__ import annotations

import time
from operator import attrgetter
from typing import TYPE_CHECKING, Any, Callable, List, Optional, Type, Union

from eventhub.core.config.config import Config
from eventhub.core.event.binding import discover_handlers
from eventhub.core.event.collector import StaleCollector
from eventhub.core.event.context import event_log_context
from eventhub.core.event.diagnostics import DiagnosticsRecorder, NullDiagnosticsRecorder
from eventhub.core.event.errors import handle_handler_fault
from eventhub.core.event.metrics import EventMetrics, EventMetricsRecorder
from eventhub.core.event.reference import LivenessPolicy
from eventhub.core.event.registry import SubscriptionRegistry
from eventhub.core.event.subscription import Subscription, SubscriptionHandle
from eventhub.core.event.types import (
    DEFAULT_DYNAMIC_PRIORITY,
    DEFAULT_STATIC_PRIORITY,
    EventCallback,
    GameEvent,
    LivenessPredicate,
    SubscriberPriority,
)
from eventhub.core.logging.logger import get_logger

if TYPE_CHECKING:
    from eventhub.core.config.manager import ConfigManager

logger = get_logger(__name__)

_priority_key = attrgetter("priority")


class EventHub:
    """
    Priority-ordered event hub with weakly held subscribers.

    Thread Safety
    -------------
    Registration, removal and publish may be called from any thread. The
    registry serializes mutations; dispatch iterates a snapshot and invokes
    handlers outside every lock.

    Examples
    --------
    >>> hub = EventHub()
    >>> hub.register(Damage, player, Player.on_damage, SubscriberPriority.ESSENTIAL)
    >>> handle = hub.listen(Damage, hud, hud.on_damage)
    >>> hub.publish(Damage(amount=5))
    >>> handle.dispose()
    True
    """

    def __init__(
        self,
        registry: Optional[SubscriptionRegistry] = None,
        config_manager: Optional["ConfigManager"] = None,
        *,
        sweep_interval_seconds: Optional[float] = None,
        diagnostics: Union[None, bool, NullDiagnosticsRecorder] = None,
        metrics: Optional[EventMetricsRecorder] = None,
        enable_metrics: bool = True,
        liveness_policy: Optional[LivenessPolicy] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize EventHub.

        Parameters
        ----------
        registry:
            Optional SubscriptionRegistry instance. Creates default if None.
        config_manager:
            Optional ConfigManager for loading tunables.
        sweep_interval_seconds:
            Automatic stale sweep interval; <= 0 disables it. Uses config if None.
        diagnostics:
            True/False selects the real or null recorder; a recorder instance
            is used as-is. Uses config if None.
        metrics:
            Optional EventMetricsRecorder. Creates default if None.
        enable_metrics:
            Whether to collect lightweight counters. Default True.
        liveness_policy:
            Host liveness predicates. Creates an empty policy if None.
        clock:
            Monotonic clock used by the stale collector.
        """
        self._config_manager = config_manager
        self._registry = registry or SubscriptionRegistry()
        self._metrics = metrics or EventMetricsRecorder()
        self._metrics_enabled = enable_metrics
        self._liveness = liveness_policy or LivenessPolicy()

        interval = self._load_setting(
            key="event.sweep_interval_seconds",
            override=sweep_interval_seconds,
            fallback=Config.SWEEP_INTERVAL_SECONDS,
            cast=float,
        )
        self._collector = StaleCollector(self._registry, interval, clock=clock)
        self._diagnostics = self._build_diagnostics(diagnostics)

        logger.info(
            "EventHub initialized",
            extra={
                "metrics_enabled": self._metrics_enabled,
                "diagnostics_enabled": self._diagnostics.enabled,
                "sweep_interval_seconds": self._collector.interval_seconds,
            },
        )

    # ------------------------------------------------------------------ #
    # Configuration Loading
    # ------------------------------------------------------------------ #

    def _load_setting(
        self,
        key: str,
        override: Any,
        fallback: Any,
        cast: Callable[[Any], Any],
    ) -> Any:
        """
        Resolve a tunable with fallback chain: override -> ConfigManager -> fallback.

        `fallback` is the environment-level value from `Config`, which itself
        falls back to the built-in default.
        """
        if override is not None:
            return cast(override)

        if self._config_manager is None:
            return cast(fallback)

        try:
            value = self._config_manager.get(key, fallback)
            return cast(value)
        except Exception as exc:
            logger.warning(
                "Failed to load setting from config, using default",
                extra={
                    "config_key": key,
                    "default_value": fallback,
                    "error": str(exc),
                },
            )
            return cast(fallback)

    def _build_diagnostics(
        self, diagnostics: Union[None, bool, NullDiagnosticsRecorder]
    ) -> NullDiagnosticsRecorder:
        if isinstance(diagnostics, NullDiagnosticsRecorder):
            return diagnostics

        enabled = self._load_setting(
            key="event.diagnostics.enabled",
            override=diagnostics,
            fallback=Config.DIAGNOSTICS_ENABLED,
            cast=bool,
        )
        if not enabled:
            return NullDiagnosticsRecorder()

        return DiagnosticsRecorder(
            trace_capacity=self._load_setting(
                key="event.diagnostics.trace_capacity",
                override=None,
                fallback=Config.TRACE_CAPACITY,
                cast=int,
            ),
            duration_window=self._load_setting(
                key="event.diagnostics.duration_window",
                override=None,
                fallback=Config.DURATION_WINDOW,
                cast=int,
            ),
            capture_call_site=self._load_setting(
                key="event.diagnostics.capture_call_site",
                override=None,
                fallback=Config.CAPTURE_CALL_SITE,
                cast=bool,
            ),
        )

    # ------------------------------------------------------------------ #
    # Subscription API
    # ------------------------------------------------------------------ #

    def register(
        self,
        event_type: Type[GameEvent],
        target: Any,
        method: Optional[Callable[..., Any]] = None,
        priority: SubscriberPriority = DEFAULT_STATIC_PRIORITY,
        is_dynamic: bool = False,
        callback: Optional[EventCallback] = None,
    ) -> SubscriptionHandle:
        """
        Register a handler for `event_type` on behalf of `target`.

        Parameters
        ----------
        event_type:
            Concrete GameEvent subclass to handle. Subclasses of it are not
            delivered to this handler.
        target:
            The subscriber. Held weakly; once it is gone the handler stops.
        method:
            Static case: a function of `(target, event)`, or a method bound
            to `target`.
        priority:
            Dispatch level. Default HIGH.
        is_dynamic:
            True when `callback` is the handler.
        callback:
            Dynamic case: a callable of `(event)`.

        Returns
        -------
        SubscriptionHandle:
            Disposer removing exactly this registration.

        Raises
        ------
        InvalidSubscription:
            If the event type is not a GameEvent subclass, the subscriber is
            None, or the handler matching `is_dynamic` is missing.
        """
        record = Subscription.create(
            event_type,
            target,
            method=method,
            priority=priority,
            is_dynamic=is_dynamic,
            callback=callback,
            policy=self._liveness,
        )
        self._registry.register(record)

        if self._metrics_enabled:
            self._metrics.record_registered()

        logger.debug(
            "EventHub: registered subscription",
            extra={
                "event_type": record.event_name,
                "subscriber": record.name,
                "priority": record.priority.name,
                "dynamic": record.is_dynamic,
            },
        )
        return SubscriptionHandle(self._registry, record)

    def listen(
        self,
        event_type: Type[GameEvent],
        target: Any,
        callback: EventCallback,
        priority: SubscriberPriority = DEFAULT_DYNAMIC_PRIORITY,
    ) -> SubscriptionHandle:
        """
        Register a dynamic callback owned by `target`.

        Examples
        --------
        >>> handle = hub.listen(Damage, hud, hud.on_damage)
        >>> handle()  # unsubscribe
        True
        """
        return self.register(
            event_type, target, priority=priority, is_dynamic=True, callback=callback
        )

    def unregister_all(self, target: Any) -> int:
        """
        Remove every static subscription of `target`.

        Dynamic subscriptions are left in place; they are removed through
        their handles or `unregister_callback`.
        """
        removed = self._registry.remove_by_target(target, dynamic_only=False)
        self._record_removed(removed, target)
        return removed

    def unregister_callback(
        self,
        target: Any,
        callback: Optional[EventCallback] = None,
        event_type: Optional[Type[GameEvent]] = None,
    ) -> int:
        """Remove dynamic subscriptions of `target`, optionally only one callback."""
        removed = self._registry.remove_by_target(
            target, dynamic_only=True, callback=callback, event_type=event_type
        )
        self._record_removed(removed, target)
        return removed

    def unregister_one(self, handle: SubscriptionHandle) -> bool:
        """Dispose of one handle. Safe to call repeatedly."""
        removed = handle.dispose()
        if removed and self._metrics_enabled:
            self._metrics.record_removed()
        return removed

    def invalidate(self, target: Any) -> int:
        """
        Mark every subscription of `target` as no longer live.

        Records are not removed here; the next publish of their event type or
        the next sweep purges them. They are never invoked again.
        """
        records = self._registry.records_for_target(target)
        for record in records:
            record.reference.invalidate()
        return len(records)

    def _record_removed(self, removed: int, target: Any) -> None:
        if removed and self._metrics_enabled:
            self._metrics.record_removed(removed)
        logger.debug(
            "EventHub: unregistered subscriptions",
            extra={"subscriber": type(target).__name__, "removed_count": removed},
        )

    # ------------------------------------------------------------------ #
    # Declarative binding
    # ------------------------------------------------------------------ #

    def bind(self, subscriber: Any) -> int:
        """Register every `@on_event` method of `subscriber` as a static handler."""
        bound = 0
        for event_type, function, priority in discover_handlers(subscriber):
            self.register(event_type, subscriber, function, priority)
            bound += 1
        return bound

    def unbind(self, subscriber: Any) -> int:
        """Remove every static subscription of `subscriber`."""
        return self.unregister_all(subscriber)

    # ------------------------------------------------------------------ #
    # Publish API
    # ------------------------------------------------------------------ #

    def publish(self, event: GameEvent) -> None:
        """
        Deliver `event` to every live handler of its exact type.

        Handlers run in ascending priority order, ties in registration order.
        Once a handler cancels the event, only ESSENTIAL and CLEANUP handlers
        still run. Handler exceptions are logged and never propagate; neither
        does anything else.

        Examples
        --------
        >>> hub.publish(Damage(amount=5))
        """
        self._maybe_sweep()

        if not isinstance(event, GameEvent):
            logger.error(
                "EventHub: refused to publish an object that is not a GameEvent",
                extra={"event_type": type(event).__name__},
            )
            return

        event_name = type(event).__name__
        trace = None
        try:
            trace = self._diagnostics.start_trace(event, stack_skip=1)
        except Exception as exc:
            self._log_bookkeeping_failure("start_trace", event_name, exc)

        try:
            with event_log_context(event):
                self._dispatch(event, event_name, trace)
        except Exception as exc:
            logger.error(
                "EventHub: dispatch failed",
                extra={
                    "event_type": event_name,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )
        finally:
            try:
                self._diagnostics.complete_trace(trace, event)
            except Exception as exc:
                self._log_bookkeeping_failure("complete_trace", event_name, exc)

    def _dispatch(self, event: GameEvent, event_name: str, trace: Any) -> None:
        if self._metrics_enabled:
            self._metrics.record_publish(event_name)

        snapshot = self._registry.snapshot_for(type(event))
        if not snapshot:
            logger.debug(
                "EventHub: no subscriptions for event",
                extra={"event_type": event_name},
            )
            return

        stale: List[Subscription] = []
        for record in sorted(snapshot, key=_priority_key):
            if not record.is_live():
                stale.append(record)
                continue

            if event.canceled and not record.priority.runs_when_canceled:
                continue

            self._diagnostics.track_invocation(
                trace,
                record,
                lambda record=record: record.invoke(event),
                event=event,
                on_error=lambda exc, record=record: handle_handler_fault(
                    logger=logger,
                    event_name=event_name,
                    subscription=record,
                    exc=exc,
                    metrics=self._metrics if self._metrics_enabled else None,
                ),
            )

        if stale:
            removed = self._registry.remove_many(stale)
            if removed and self._metrics_enabled:
                self._metrics.record_stale(removed)
            logger.debug(
                "EventHub: purged stale subscriptions",
                extra={"event_type": event_name, "removed_count": removed},
            )

    def _maybe_sweep(self) -> None:
        try:
            removed = self._collector.maybe_sweep()
        except Exception as exc:
            logger.warning(
                "EventHub: stale sweep failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return
        if removed and self._metrics_enabled:
            self._metrics.record_stale(removed)

    @staticmethod
    def _log_bookkeeping_failure(step: str, event_name: str, exc: Exception) -> None:
        logger.warning(
            "EventHub: diagnostics bookkeeping failed",
            extra={
                "step": step,
                "event_type": event_name,
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
        )

    # ------------------------------------------------------------------ #
    # Stale collection & liveness
    # ------------------------------------------------------------------ #

    def configure_sweep_interval(self, seconds: float) -> None:
        """Set the automatic stale sweep interval; <= 0 disables it."""
        self._collector.configure(seconds)

    def sweep_now(self) -> int:
        """Remove every stale subscription now. Returns how many were removed."""
        removed = self._collector.sweep_now()
        if removed and self._metrics_enabled:
            self._metrics.record_stale(removed)
        return removed

    def register_liveness_predicate(
        self, kind: Type[Any], predicate: LivenessPredicate
    ) -> None:
        """
        Tell the hub how to recognise a torn-down subscriber of class `kind`.

        Applies to subscriptions registered after this call.

        Examples
        --------
        >>> hub.register_liveness_predicate(SceneNode, lambda node: not node.destroyed)
        """
        self._liveness.register(kind, predicate)

    @property
    def collector(self) -> StaleCollector:
        return self._collector

    # ------------------------------------------------------------------ #
    # Metrics & Introspection
    # ------------------------------------------------------------------ #

    @property
    def diagnostics(self) -> NullDiagnosticsRecorder:
        """The diagnostics recorder (a null recorder when disabled)."""
        return self._diagnostics

    def get_metrics(self) -> Optional[EventMetrics]:
        """
        Return an immutable snapshot of current hub metrics.

        Returns
        -------
        Optional[EventMetrics]:
            Metrics snapshot if metrics are enabled, None otherwise.
        """
        if not self._metrics_enabled:
            return None
        return self._metrics.snapshot()

    def get_metrics_summary(self) -> dict[str, Any]:
        metrics = self.get_metrics()
        if metrics is None:
            return {}
        summary = metrics.get_summary()
        summary["total_subscriptions"] = self._registry.count()
        return summary

    def get_subscription_count(self, event_type: Optional[Type[GameEvent]] = None) -> int:
        """
        Number of stored subscriptions, stale ones included until purged.

        Examples
        --------
        >>> hub.get_subscription_count()
        12
        >>> hub.get_subscription_count(Damage)
        3
        """
        return self._registry.count(event_type)

    def get_event_types(self) -> List[Type[GameEvent]]:
        return self._registry.event_types()

    def clear(self) -> None:
        """
        Remove all subscriptions.

        Primarily intended for tests or full system reinit.
        """
        total = self._registry.clear()
        if total and self._metrics_enabled:
            self._metrics.record_removed(total)
        logger.info(
            "EventHub: cleared all subscriptions",
            extra={"previous_subscription_count": total},
        )

    # ------------------------------------------------------------------ #
    # Configuration Toggles
    # ------------------------------------------------------------------ #

    def enable_metrics(self) -> None:
        self._metrics_enabled = True
        logger.info("EventHub: metrics enabled")

    def disable_metrics(self) -> None:
        self._metrics_enabled = False
        logger.info("EventHub: metrics disabled")
