"""
Event System Initialization.

Purpose
-------
Compose the process-wide EventHub at application startup and tear it down
at shutdown. The hub is returned to the caller; nothing here keeps a
module-level instance.

Responsibilities
----------------
- Configure logging when the host has not done so
- Load YAML tunables into a ConfigManager
- Build the EventHub from them
- Clear subscriptions and flush logging on shutdown
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional, Union

from eventhub.core.config.manager import ConfigManager
from eventhub.core.event.hub import EventHub
from eventhub.core.logging.logger import get_logger, setup_logging, shutdown_logging

logger = get_logger(__name__)


def initialize_event_system(
    config_dir: Union[str, Path, None] = "config",
    *,
    configure_logging: bool = True,
    **hub_options: Any,
) -> EventHub:
    """
    Build the application's EventHub.

    Parameters
    ----------
    config_dir:
        Directory of YAML files for the ConfigManager. None skips YAML and
        uses environment settings only.
    configure_logging:
        Call `setup_logging()` first. Idempotent.
    **hub_options:
        Passed through to `EventHub` (explicit values win over config).
    """
    if configure_logging:
        setup_logging()

    logger.info("Initializing event system...")

    config_manager: Optional[ConfigManager] = None
    if config_dir is not None:
        config_manager = ConfigManager(config_dir)

    hub = EventHub(config_manager=config_manager, **hub_options)

    logger.info(
        "Event system initialization complete",
        extra={"config_dir": None if config_dir is None else str(config_dir)},
    )
    return hub


def shutdown_event_system(hub: EventHub, *, flush_logging: bool = True) -> None:
    """Remove every subscription from `hub` and optionally stop logging."""
    logger.info("Shutting down event system...")

    try:
        hub.clear()
        hub.diagnostics.clear()
    except Exception as exc:
        logger.error(
            "Error while clearing EventHub",
            extra={"error": str(exc), "error_type": type(exc).__name__},
            exc_info=True,
        )

    logger.info("Event system shutdown complete")

    if flush_logging:
        shutdown_logging()
