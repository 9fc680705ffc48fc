"""
Error handling helpers for the EventHub dispatch loop.

Purpose
-------
Centralizes what happens when a handler raises: build a `HandlerFault`,
count it, and log it with full context. The dispatch loop calls this for
every failing handler and then moves on to the next one.

Design Decisions
----------------
- **Single entry point** for all handler failures so logs look the same
  whichever handler failed.
- **Never raises**: error isolation is per handler.
"""

from __future__ import annotations

from logging import Logger
from typing import Optional

from eventhub.core.event.metrics import EventMetricsRecorder
from eventhub.core.event.subscription import Subscription
from eventhub.core.exceptions import HandlerFault


def handle_handler_fault(
    *,
    logger: Logger,
    event_name: str,
    subscription: Subscription,
    exc: BaseException,
    metrics: Optional[EventMetricsRecorder],
) -> HandlerFault:
    """
    Log a handler failure and update metrics.

    Parameters
    ----------
    logger:
        Logger instance to use for error logging.
    event_name:
        Name of the event that was being dispatched.
    subscription:
        The record whose handler raised.
    exc:
        The exception that was raised.
    metrics:
        Optional EventMetricsRecorder to update. If None, metrics are skipped.

    Returns
    -------
    HandlerFault:
        The fault describing this failure (for callers that want to attach it
        somewhere, e.g. a trace).
    """
    fault = HandlerFault(event_name, subscription.name, exc)

    if metrics is not None:
        metrics.record_error(event_name)

    logger.error(
        "EventHub handler error",
        extra={
            "event_type": event_name,
            "subscriber": subscription.name,
            "priority": subscription.priority.name,
            "dynamic": subscription.is_dynamic,
            "error": str(exc),
            "error_type": type(exc).__name__,
            "error_code": fault.error_code,
        },
        exc_info=(type(exc), exc, exc.__traceback__),
    )
    return fault
