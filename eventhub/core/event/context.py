"""
Event log context helpers.

Enriches the logging context with the type of the event being published so
every record emitted while its handlers run carries `event_type`. The
publish reuses the caller's correlation id, or opens a new one, so all of its
handlers log under the same id.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Optional

from eventhub.core.logging.logger import LogContext, get_logger

logger = get_logger(__name__)


@contextmanager
def event_log_context(event: Any) -> Iterator[None]:
    """
    Scope `event_type` to one publish.

    This is best-effort: a failure to set up the context is logged at debug
    level and dispatch proceeds without it.
    """
    scope: Optional[LogContext] = None
    try:
        scope = LogContext(event_type=type(event).__name__)
        scope.__enter__()
    except Exception as exc:
        scope = None
        logger.debug(
            "Failed to apply event log context",
            extra={
                "event_type": type(event).__name__,
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
        )

    try:
        yield
    finally:
        if scope is not None:
            scope.__exit__(None, None, None)
