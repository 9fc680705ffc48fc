"""
Infrastructure exceptions for the eventhub dispatch engine.

Purpose
-------
Define the structured exception hierarchy for the event system: malformed
subscriptions, handler faults captured during dispatch, and configuration
errors.

Design Notes
------------
- All exceptions inherit from `EventHubException`.
- Each exception carries:
  - `message`: human-readable description
  - `details`: additional structured context (dict)
  - `severity`: `ErrorSeverity` value for logging/alerting
  - `is_retryable`: whether the operation can be retried
  - `error_code`: short, stable identifier for programmatic use
- `InvalidSubscription` is raised to callers of `register`.
- `HandlerFault` is never raised out of `publish`; it is built to log and
  report a failing handler and is attached to diagnostics traces.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels for logging and alerting."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class EventHubException(Exception):
    """
    Base exception for all eventhub errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling

    Example:
        >>> raise EventHubException(
        ...     "Registry corrupted",
        ...     {"event_type": "Damage"}
        ... )
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message: str = message
        self.details: Dict[str, Any] = details or {}
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        self.is_retryable: bool = (
            is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        )
        self.error_code: str = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"severity={self.severity.value!r}, "
            f"is_retryable={self.is_retryable!r}"
            ")"
        )


class InvalidSubscription(EventHubException):
    """
    Raised when a subscription cannot be registered.

    Covers a missing event type, an event type that is not a GameEvent
    subclass, and records missing both a method and a callback.

    Args:
        reason: Description of what is wrong with the registration
        event_type: The offending event type (may be None)
    """

    DEFAULT_SEVERITY = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE = False

    def __init__(self, reason: str, event_type: Any = None) -> None:
        self.reason = reason
        self.event_type = event_type
        super().__init__(
            f"Invalid subscription: {reason}",
            details={
                "reason": reason,
                "event_type": getattr(event_type, "__name__", repr(event_type)),
            },
            error_code="INVALID_SUBSCRIPTION",
        )


class HandlerFault(EventHubException):
    """
    An exception raised by a handler during dispatch.

    Never propagated to publishers. Built by the dispatch loop so the
    failure can be logged with full context and attached to a trace.

    Args:
        event_type: Name of the event being dispatched
        subscriber: Diagnostic name of the failing handler
        original_error: The exception the handler raised
    """

    DEFAULT_SEVERITY = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE = False

    def __init__(
        self, event_type: str, subscriber: str, original_error: BaseException
    ) -> None:
        self.event_type = event_type
        self.subscriber = subscriber
        self.original_error = original_error
        super().__init__(
            f"Handler {subscriber} failed while handling {event_type}: "
            f"{original_error}",
            details={
                "event_type": event_type,
                "subscriber": subscriber,
                "error": str(original_error),
                "error_type": type(original_error).__name__,
            },
            error_code="HANDLER_FAULT",
        )


class ConfigurationError(EventHubException):
    """
    Raised when a configuration value is invalid.

    Args:
        config_key: The configuration key that has issues
        message: Description of the configuration problem
    """

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL
    DEFAULT_RETRYABLE = False

    def __init__(self, config_key: str, message: str) -> None:
        self.config_key = config_key
        super().__init__(
            f"Configuration error for {config_key}: {message}",
            details={"config_key": config_key, "message": message},
            error_code="CONFIG_ERROR",
        )
