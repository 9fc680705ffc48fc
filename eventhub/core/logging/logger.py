"""
Structured logging for eventhub.

Purpose
-------
Handlers run on the publisher's thread, so anything they log must not block
on I/O. Records go through a bounded queue to a background listener that
writes them to stdout, as JSON in production and as plain text elsewhere.

Responsibilities
----------------
- `setup_logging()` / `shutdown_logging()`: install and remove the queue
  pipeline on the root logger. Importing eventhub never configures logging.
- Carry dispatch context (`event_type`, `correlation_id`, `component`,
  `operation`) from a ContextVar onto every record.
- Count enqueued and dropped records for `get_logging_health()`.

Design Decisions
----------------
- A full queue drops the record and counts it; publish never waits on logging.
- Fields passed with `extra={...}` end up under "extra" in the JSON output;
  the context fields are promoted to top-level keys.

Dependencies
------------
- eventhub.core.config.config.Config (level, JSON switch, queue size)
"""

from __future__ import annotations

import json
import logging
import queue
import sys
import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass
from datetime import datetime, timezone
from logging import Logger
from logging.handlers import QueueHandler, QueueListener
from typing import Any, Dict, Optional

from eventhub.core.config.config import Config

CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-30s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
QUEUE_MAX_SIZE = 10_000

_INSTALLED_ATTR = "_eventhub_queue_handler"

_log_context: ContextVar[Dict[str, Any]] = ContextVar("eventhub_log_context", default={})


# ============================================================================
# Health
# ============================================================================


@dataclass(slots=True)
class _QueueCounters:
    enqueued: int = 0
    dropped: int = 0
    listener_errors: int = 0


@dataclass(frozen=True, slots=True)
class LoggingHealth:
    initialized: bool
    queue_size: int
    queue_max_size: int
    records_enqueued: int
    records_dropped: int
    listener_errors: int


_counters = _QueueCounters()
_log_queue: Optional["queue.Queue[logging.LogRecord]"] = None
_listener: Optional[QueueListener] = None


def _level() -> int:
    return getattr(logging, str(Config.LOG_LEVEL).upper(), logging.INFO)


def _use_json() -> bool:
    if Config.LOG_JSON is None:
        return Config.is_production()
    return bool(Config.LOG_JSON)


# ============================================================================
# Filter & Formatter
# ============================================================================


class ContextFilter(logging.Filter):
    """Copy the current log context onto records that do not set the keys."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        for key, value in _log_context.get({}).items():
            if not hasattr(record, key):
                setattr(record, key, value)

        if not getattr(record, "correlation_id", None):
            record.correlation_id = "N/A"
        if not getattr(record, "component", None):
            record.component = record.name.split(".", 1)[0]
        if not getattr(record, "operation", None):
            record.operation = "N/A"
        return True


# Attributes every LogRecord has; anything else came from `extra` or a filter.
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}


class JSONFormatter(logging.Formatter):
    CONTEXT_ATTRS = ("correlation_id", "component", "operation")

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for attr in self.CONTEXT_ATTRS:
            value = getattr(record, attr, None)
            if value not in (None, "N/A"):
                data[attr] = value

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS
            and key not in self.CONTEXT_ATTRS
            and not key.startswith("_")
        }
        if extra:
            data["extra"] = extra

        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)

        return json.dumps(data, default=str)


# ============================================================================
# Queue pipeline
# ============================================================================


class _DroppingQueueHandler(QueueHandler):
    def enqueue(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        try:
            self.queue.put_nowait(record)
            _counters.enqueued += 1
        except queue.Full:
            _counters.dropped += 1


class _CountingQueueListener(QueueListener):
    def handleError(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        _counters.listener_errors += 1


def _console_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(_level())
    if _use_json():
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(fmt=CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    return handler


def setup_logging() -> None:
    """Install the queue pipeline on the root logger. Idempotent."""
    global _counters, _log_queue, _listener

    root = logging.getLogger()
    if getattr(root, _INSTALLED_ATTR, None) is not None:
        return

    _counters = _QueueCounters()
    _log_queue = queue.Queue(QUEUE_MAX_SIZE)
    _listener = _CountingQueueListener(_log_queue, _console_handler(), respect_handler_level=True)
    _listener.start()

    queue_handler = _DroppingQueueHandler(_log_queue)
    queue_handler.setLevel(_level())
    queue_handler.addFilter(ContextFilter())

    root.setLevel(_level())
    root.addHandler(queue_handler)
    setattr(root, _INSTALLED_ATTR, queue_handler)

    logging.getLogger(__name__).info(
        "Logging initialized",
        extra={
            "environment": Config.ENVIRONMENT,
            "log_level": logging.getLevelName(_level()),
            "json": _use_json(),
            "queue_max_size": QUEUE_MAX_SIZE,
        },
    )


def shutdown_logging() -> None:
    """Remove the pipeline and flush what the listener still holds."""
    global _log_queue, _listener

    root = logging.getLogger()
    queue_handler = getattr(root, _INSTALLED_ATTR, None)
    if queue_handler is None:
        return

    root.removeHandler(queue_handler)
    setattr(root, _INSTALLED_ATTR, None)

    if _listener is not None:
        _listener.stop()
        for handler in _listener.handlers:
            handler.flush()
            handler.close()
        _listener = None
    _log_queue = None


def get_logging_health() -> LoggingHealth:
    installed = getattr(logging.getLogger(), _INSTALLED_ATTR, None) is not None
    return LoggingHealth(
        initialized=installed,
        queue_size=_log_queue.qsize() if _log_queue is not None else 0,
        queue_max_size=_log_queue.maxsize if _log_queue is not None else 0,
        records_enqueued=_counters.enqueued,
        records_dropped=_counters.dropped,
        listener_errors=_counters.listener_errors,
    )


# ============================================================================
# Context
# ============================================================================


def get_logger(name: str) -> Logger:
    return logging.getLogger(name)


def generate_correlation_id() -> str:
    return uuid.uuid4().hex[:8]


class LogContext:
    """
    Scope log context fields to a block.

    Nested scopes keep the outer correlation id unless given a new one.

    >>> with LogContext(component="combat", operation="apply_damage"):
    ...     hub.publish(Damage(amount=5))
    """

    def __init__(
        self,
        component: Optional[str] = None,
        operation: Optional[str] = None,
        correlation_id: Optional[str] = None,
        **extra: Any,
    ) -> None:
        current = _log_context.get({})
        self.context: Dict[str, Any] = {
            **current,
            **extra,
            "correlation_id": correlation_id
            or current.get("correlation_id")
            or generate_correlation_id(),
        }
        if component is not None:
            self.context["component"] = component
        if operation is not None:
            self.context["operation"] = operation
        self._token: Optional[Token[Dict[str, Any]]] = None

    def __enter__(self) -> "LogContext":
        self._token = _log_context.set(self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _log_context.reset(self._token)
            self._token = None


def set_log_context(
    component: Optional[str] = None,
    operation: Optional[str] = None,
    correlation_id: Optional[str] = None,
    **extra: Any,
) -> None:
    """Merge fields into the current context without a scope."""
    current = {**_log_context.get({}), **extra}
    if component is not None:
        current["component"] = component
    if operation is not None:
        current["operation"] = operation
    if correlation_id:
        current["correlation_id"] = correlation_id
    _log_context.set(current)


def get_log_context() -> Dict[str, Any]:
    return dict(_log_context.get({}))


def clear_log_context() -> None:
    _log_context.set({})
