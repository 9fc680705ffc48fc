"""
ConfigManager: dot-notation tunables for eventhub.

Purpose
-------
- Provide hierarchical, dot-notation access to tunable dispatch settings
  (e.g. `"event.sweep_interval_seconds"`).
- Back configuration with YAML defaults plus in-memory runtime overrides.

Responsibilities
----------------
- Load and deep-merge YAML defaults from a config directory.
- Overlay runtime overrides applied through `set()`.
- Serve reads with hit/miss metrics.

Key Design Decisions
--------------------
- YAML is the single source for **defaults**; overrides live in memory only.
- Nested YAML mappings are addressed with dot notation.
- A missing or unreadable config directory is not an error: the manager
  falls back to whatever defaults were passed in.

Dependencies
------------
- PyYAML: YAML parsing
- `eventhub.core.logging.logger.get_logger` – structured logging interface
"""

from __future__ import annotations

import copy
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, MutableMapping, Optional, Union

import yaml

from eventhub.core.exceptions import ConfigurationError
from eventhub.core.logging.logger import get_logger

logger = get_logger(__name__)

_MISSING = object()


@dataclass(slots=True)
class ConfigManagerMetrics:
    gets: int = 0
    sets: int = 0
    hits: int = 0
    misses: int = 0
    yaml_files_loaded: int = 0
    load_errors: int = 0
    total_get_time_ms: float = 0.0


class ConfigManager:
    """
    Dot-notation configuration backed by YAML defaults and runtime overrides.

    Examples
    --------
    >>> manager = ConfigManager(config_dir="config")
    >>> manager.get("event.sweep_interval_seconds", 30.0)
    30.0
    >>> manager.set("event.sweep_interval_seconds", 5)
    >>> manager.get("event.sweep_interval_seconds")
    5
    """

    def __init__(
        self,
        config_dir: Optional[Union[str, Path]] = "config",
        *,
        defaults: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self._lock = threading.RLock()
        self._defaults: Dict[str, Any] = copy.deepcopy(dict(defaults or {}))
        self._overrides: Dict[str, Any] = {}
        self._metrics = ConfigManagerMetrics()
        self._config_dir = Path(config_dir) if config_dir is not None else None

        if self._config_dir is not None:
            self._load_yaml_configs(self._config_dir)

    # =========================================================================
    # YAML LOADING & DEFAULTS
    # =========================================================================

    @staticmethod
    def _deep_merge_dict(
        target: MutableMapping[str, Any],
        source: Mapping[str, Any],
    ) -> None:
        """Recursively merge `source` into `target` (in-place)."""
        for key, value in source.items():
            if isinstance(value, dict) and isinstance(target.get(key), dict):
                ConfigManager._deep_merge_dict(target[key], value)
            else:
                target[key] = copy.deepcopy(value)

    def _load_yaml_configs(self, config_dir: Path) -> None:
        """Deep-merge every `*.yaml` / `*.yml` under `config_dir` into defaults."""
        if not config_dir.exists():
            logger.debug(
                "Config directory not found; using built-in defaults only",
                extra={"config_dir": str(config_dir)},
            )
            return

        yaml_files = sorted(config_dir.rglob("*.yaml")) + sorted(config_dir.rglob("*.yml"))

        for yaml_file in yaml_files:
            try:
                with yaml_file.open("r", encoding="utf-8") as handle:
                    data = yaml.safe_load(handle)
            except (OSError, yaml.YAMLError) as exc:
                self._metrics.load_errors += 1
                logger.warning(
                    "Failed to load YAML config",
                    extra={
                        "file": str(yaml_file),
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                )
                continue

            if isinstance(data, dict):
                self._deep_merge_dict(self._defaults, data)
                self._metrics.yaml_files_loaded += 1
                logger.debug("Loaded YAML config", extra={"file": str(yaml_file)})
            elif data is not None:
                logger.warning(
                    "Ignoring non-dict YAML root object",
                    extra={"file": str(yaml_file), "root_type": type(data).__name__},
                )

        logger.info(
            "YAML configs loaded",
            extra={
                "yaml_file_count": self._metrics.yaml_files_loaded,
                "config_dir": str(config_dir),
            },
        )

    @staticmethod
    def _lookup(tree: Mapping[str, Any], key: str) -> Any:
        value: Any = tree
        for part in key.split("."):
            if not isinstance(value, Mapping) or part not in value:
                return _MISSING
            value = value[part]
        return value

    # =========================================================================
    # READ API
    # =========================================================================

    def get(self, key: str, default: Any = None) -> Any:
        """
        Retrieve a configuration value by dot-notation path.

        Overrides win over YAML defaults; `default` is returned when neither
        defines the key.
        """
        start_time = time.perf_counter()
        with self._lock:
            self._metrics.gets += 1
            try:
                value = self._lookup(self._overrides, key)
                if value is _MISSING:
                    value = self._lookup(self._defaults, key)
                if value is _MISSING:
                    self._metrics.misses += 1
                    return default
                self._metrics.hits += 1
                return copy.deepcopy(value)
            finally:
                self._metrics.total_get_time_ms += (time.perf_counter() - start_time) * 1000

    # =========================================================================
    # WRITE API
    # =========================================================================

    def set(self, key: str, value: Any) -> None:
        """
        Apply a runtime override for a dot-notation key.

        Raises
        ------
        ConfigurationError
            If the key is empty or addresses through a non-mapping value.
        """
        if not key or any(not part for part in key.split(".")):
            raise ConfigurationError(key or "<empty>", "key must be a non-empty dot path")

        parts = key.split(".")
        with self._lock:
            node: MutableMapping[str, Any] = self._overrides
            for part in parts[:-1]:
                child = node.setdefault(part, {})
                if not isinstance(child, dict):
                    raise ConfigurationError(key, f"'{part}' is not a mapping")
                node = child
            node[parts[-1]] = value
            self._metrics.sets += 1

        logger.info("Configuration override applied", extra={"config_key": key})

    def reset_overrides(self) -> None:
        """Drop all runtime overrides."""
        with self._lock:
            self._overrides.clear()

    # =========================================================================
    # METRICS
    # =========================================================================

    def get_metrics(self) -> Dict[str, Any]:
        with self._lock:
            gets = self._metrics.gets
            return {
                "gets": gets,
                "sets": self._metrics.sets,
                "hits": self._metrics.hits,
                "misses": self._metrics.misses,
                "yaml_files_loaded": self._metrics.yaml_files_loaded,
                "load_errors": self._metrics.load_errors,
                "avg_get_time_ms": round(self._metrics.total_get_time_ms / max(1, gets), 4),
            }
