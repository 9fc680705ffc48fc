"""
Static configuration for eventhub.

Purpose
-------
Provides centralized static configuration loaded from environment variables
with sensible defaults, type validation, and bounds checking. These are the
process-wide settings a host sets at startup: logging behaviour, the stale
subscription sweep interval, and whether the diagnostics recorder is built.

Responsibilities
----------------
- Load configuration from environment variables with .env support
- Provide type-safe access to all static configuration values
- Track which values came from the environment versus defaults

Non-Responsibilities
--------------------
- Tunables merged from YAML files (handled by ConfigManager)
- Per-hub overrides (passed to EventHub directly)

Dependencies
------------
- python-dotenv: Environment variable loading

Environment Variables
---------------------
- EVENTHUB_ENV: development | testing | staging | production
- EVENTHUB_LOG_LEVEL: Logging level (default: INFO)
- EVENTHUB_LOG_JSON: Force JSON console logs (default: production only)
- EVENTHUB_SWEEP_INTERVAL_SECONDS: Stale sweep interval, 0 disables (default: 30)
- EVENTHUB_DIAGNOSTICS_ENABLED: Build the diagnostics recorder
  (default: True outside production)
- EVENTHUB_TRACE_CAPACITY: Max traces kept by diagnostics (default: 1000)
- EVENTHUB_DURATION_WINDOW: Rolling duration samples per handler (default: 100)
- EVENTHUB_CAPTURE_CALL_SITE: Record the publisher's stack in traces (default: True)
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from dotenv import load_dotenv

load_dotenv()

_bootstrap_logger = logging.getLogger(__name__)


class Environment(Enum):
    """Deployment environment types."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"

    @classmethod
    def from_string(cls, value: str) -> "Environment":
        """
        Parse environment string safely with fallback.

        Example
        -------
        >>> Environment.from_string("production") == Environment.PRODUCTION
        True
        >>> Environment.from_string("invalid") == Environment.DEVELOPMENT
        True
        """
        try:
            return cls(value.lower())
        except ValueError:
            _bootstrap_logger.warning(
                "Unknown environment '%s', defaulting to development", value
            )
            return cls.DEVELOPMENT


class _ConfigLoadMetrics:
    """Tracks which values came from the environment and any parse errors."""

    def __init__(self) -> None:
        self.env_vars_loaded: Dict[str, bool] = {}
        self.validation_errors: Dict[str, str] = {}
        self.defaults_used: Dict[str, Any] = {}
        self.last_reload: Optional[str] = None

    def record_env_load(self, key: str, from_env: bool, value: Any, default: Any) -> None:
        self.env_vars_loaded[key] = from_env
        if not from_env:
            self.defaults_used[key] = default

    def record_validation_error(self, key: str, error: str) -> None:
        self.validation_errors[key] = error

    def get_summary(self) -> Dict[str, Any]:
        return {
            "total_configs": len(self.env_vars_loaded),
            "from_environment": sum(1 for v in self.env_vars_loaded.values() if v),
            "from_defaults": sum(1 for v in self.env_vars_loaded.values() if not v),
            "validation_errors": len(self.validation_errors),
            "defaults_used": list(self.defaults_used.keys()),
            "last_reload": self.last_reload,
        }


class Config:
    """
    Centralized static configuration for eventhub.

    Usage
    -----
    >>> Config.SWEEP_INTERVAL_SECONDS
    30.0
    >>> Config.is_production()
    False
    """

    _metrics: Optional[_ConfigLoadMetrics] = None

    # Environment / logging
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_JSON: Optional[bool] = None

    # Dispatch
    SWEEP_INTERVAL_SECONDS: float = 30.0

    # Diagnostics
    DIAGNOSTICS_ENABLED: bool = True
    TRACE_CAPACITY: int = 1000
    DURATION_WINDOW: int = 100
    CAPTURE_CALL_SITE: bool = True

    # =========================================================================
    # Helper Methods
    # =========================================================================

    @classmethod
    def _init_metrics(cls) -> None:
        if cls._metrics is None:
            cls._metrics = _ConfigLoadMetrics()

    @classmethod
    def _reject(cls, key: str, error: str) -> None:
        _bootstrap_logger.warning(error)
        if cls._metrics:
            cls._metrics.record_validation_error(key, error)

    @classmethod
    def _safe_int(
        cls,
        key: str,
        default: int,
        min_val: Optional[int] = None,
        max_val: Optional[int] = None,
    ) -> int:
        """
        Safely parse integer from environment with validation.

        Example
        -------
        >>> Config._safe_int("EVENTHUB_TRACE_CAPACITY", 1000, min_val=1)
        1000
        """
        cls._init_metrics()
        raw_value = os.getenv(key)

        if raw_value is None:
            if cls._metrics:
                cls._metrics.record_env_load(key, False, default, default)
            return default

        try:
            value = int(raw_value)
        except ValueError:
            cls._reject(key, f"{key}='{raw_value}' is not a valid integer, using default {default}")
            return default

        if min_val is not None and value < min_val:
            cls._reject(key, f"{key}={value} is below minimum {min_val}, using default {default}")
            return default
        if max_val is not None and value > max_val:
            cls._reject(key, f"{key}={value} exceeds maximum {max_val}, using default {default}")
            return default

        if cls._metrics:
            cls._metrics.record_env_load(key, True, value, default)
        return value

    @classmethod
    def _safe_float(cls, key: str, default: float) -> float:
        cls._init_metrics()
        raw_value = os.getenv(key)

        if raw_value is None:
            if cls._metrics:
                cls._metrics.record_env_load(key, False, default, default)
            return default

        try:
            value = float(raw_value)
        except ValueError:
            cls._reject(key, f"{key}='{raw_value}' is not a valid number, using default {default}")
            return default

        if cls._metrics:
            cls._metrics.record_env_load(key, True, value, default)
        return value

    @classmethod
    def _parse_bool(cls, key: str, raw_value: str) -> Optional[bool]:
        normalized = raw_value.lower().strip()
        if normalized in {"true", "yes", "1", "on"}:
            return True
        if normalized in {"false", "no", "0", "off"}:
            return False
        cls._reject(key, f"{key}='{raw_value}' is not a valid boolean")
        return None

    @classmethod
    def _safe_bool(cls, key: str, default: bool) -> bool:
        """
        Safely parse boolean from environment.

        Recognizes: true/false, yes/no, 1/0, on/off (case-insensitive).
        """
        cls._init_metrics()
        raw_value = os.getenv(key)

        if raw_value is None:
            if cls._metrics:
                cls._metrics.record_env_load(key, False, default, default)
            return default

        value = cls._parse_bool(key, raw_value)
        if value is None:
            return default

        if cls._metrics:
            cls._metrics.record_env_load(key, True, value, default)
        return value

    @classmethod
    def _safe_optional_bool(cls, key: str) -> Optional[bool]:
        cls._init_metrics()
        raw_value = os.getenv(key)
        if raw_value is None:
            if cls._metrics:
                cls._metrics.record_env_load(key, False, None, None)
            return None
        value = cls._parse_bool(key, raw_value)
        if cls._metrics and value is not None:
            cls._metrics.record_env_load(key, True, value, None)
        return value

    @classmethod
    def _safe_str(cls, key: str, default: str) -> str:
        cls._init_metrics()
        value = os.getenv(key, default)
        if cls._metrics:
            cls._metrics.record_env_load(key, key in os.environ, value, default)
        return value

    # =========================================================================
    # Configuration Loading
    # =========================================================================

    @classmethod
    def load(cls) -> None:
        """
        Load all configuration from environment variables.

        Called on module import; call again to pick up changed variables.
        """
        cls._init_metrics()

        cls.ENVIRONMENT = Environment.from_string(
            cls._safe_str("EVENTHUB_ENV", "development")
        ).value

        level = cls._safe_str("EVENTHUB_LOG_LEVEL", "INFO").upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            cls._reject("EVENTHUB_LOG_LEVEL", f"Invalid EVENTHUB_LOG_LEVEL '{level}', using INFO")
            level = "INFO"
        cls.LOG_LEVEL = level
        cls.LOG_JSON = cls._safe_optional_bool("EVENTHUB_LOG_JSON")

        cls.SWEEP_INTERVAL_SECONDS = cls._safe_float("EVENTHUB_SWEEP_INTERVAL_SECONDS", 30.0)

        cls.DIAGNOSTICS_ENABLED = cls._safe_bool(
            "EVENTHUB_DIAGNOSTICS_ENABLED", not cls.is_production()
        )
        cls.TRACE_CAPACITY = cls._safe_int(
            "EVENTHUB_TRACE_CAPACITY", 1000, min_val=1, max_val=1_000_000
        )
        cls.DURATION_WINDOW = cls._safe_int(
            "EVENTHUB_DURATION_WINDOW", 100, min_val=1, max_val=100_000
        )
        cls.CAPTURE_CALL_SITE = cls._safe_bool("EVENTHUB_CAPTURE_CALL_SITE", True)

        if cls._metrics:
            cls._metrics.last_reload = datetime.now(timezone.utc).isoformat()

    # =========================================================================
    # Environment Checks
    # =========================================================================

    @classmethod
    def is_production(cls) -> bool:
        return cls.ENVIRONMENT.lower() == "production"

    # =========================================================================
    # Metrics & Summary
    # =========================================================================

    @classmethod
    def get_metrics(cls) -> Optional[_ConfigLoadMetrics]:
        """Get configuration loading metrics."""
        return cls._metrics

    @classmethod
    def get_config_summary(cls) -> Dict[str, Any]:
        """
        Get configuration summary for debugging.

        Example
        -------
        >>> Config.get_config_summary()["sweep_interval_seconds"]
        30.0
        """
        return {
            "environment": cls.ENVIRONMENT,
            "log_level": cls.LOG_LEVEL,
            "log_json": cls.LOG_JSON,
            "sweep_interval_seconds": cls.SWEEP_INTERVAL_SECONDS,
            "diagnostics_enabled": cls.DIAGNOSTICS_ENABLED,
            "trace_capacity": cls.TRACE_CAPACITY,
            "duration_window": cls.DURATION_WINDOW,
            "capture_call_site": cls.CAPTURE_CALL_SITE,
        }


# Load on import
Config.load()
