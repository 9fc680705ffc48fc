"""
StaleCollector: passive garbage collection of dead subscriptions.

The collector never polls and owns no thread. It runs opportunistically from
`EventHub.publish` when its interval has elapsed, or on demand through
`sweep_now()`. Every sweep, automatic or manual, resets the timer. An interval
of zero or less disables automatic sweeping only.
"""

from __future__ import annotations

import threading
import time
from typing import Callable

from eventhub.core.event.registry import SubscriptionRegistry
from eventhub.core.logging.logger import get_logger

logger = get_logger(__name__)

Clock = Callable[[], float]


class StaleCollector:
    def __init__(
        self,
        registry: SubscriptionRegistry,
        interval_seconds: float = 30.0,
        *,
        clock: Clock = time.monotonic,
    ) -> None:
        self._registry = registry
        self._clock = clock
        self._lock = threading.Lock()
        self._interval = float(interval_seconds)
        self._last_sweep = clock()
        self._total_removed = 0
        self._sweep_count = 0

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def enabled(self) -> bool:
        return self._interval > 0

    @property
    def last_sweep(self) -> float:
        return self._last_sweep

    @property
    def total_removed(self) -> int:
        return self._total_removed

    @property
    def sweep_count(self) -> int:
        return self._sweep_count

    def configure(self, interval_seconds: float) -> None:
        """Set the automatic sweep interval in seconds (<= 0 disables)."""
        self._interval = float(interval_seconds)
        logger.info(
            "Stale subscription sweep configured",
            extra={
                "sweep_interval_seconds": self._interval,
                "auto_sweep_enabled": self.enabled,
            },
        )

    def is_due(self) -> bool:
        if self._interval <= 0:
            return False
        return self._clock() - self._last_sweep >= self._interval

    def maybe_sweep(self) -> int:
        """Sweep if the interval has elapsed; returns records removed."""
        if not self.is_due():
            return 0
        return self.sweep_now()

    def sweep_now(self) -> int:
        """Remove every stale record immediately and reset the timer."""
        with self._lock:
            removed = self._registry.sweep_stale()
            self._last_sweep = self._clock()
            self._sweep_count += 1
            self._total_removed += removed

        if removed > 0:
            logger.info(
                "Stale subscription sweep removed records",
                extra={"removed_count": removed},
            )
        return removed
