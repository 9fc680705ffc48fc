"""
Pytest Configuration and Fixtures for eventhub Tests
====================================================

Purpose
-------
Centralized fixtures for the eventhub test suite: sample events and
subscribers, a controllable clock, and hubs wired for deterministic tests.

Architecture Notes
------------------
- Unit tests only; nothing here touches the network or the filesystem
  outside pytest's tmp_path
- Hubs are created per test with automatic sweeping disabled unless a
  test turns it on through the fake clock
- Environment variables are set before eventhub is imported so the
  Config class loads test settings
"""

from __future__ import annotations

import os

os.environ.setdefault("EVENTHUB_ENV", "testing")
os.environ.setdefault("EVENTHUB_LOG_LEVEL", "DEBUG")

from dataclasses import dataclass, field
from typing import Any, List, Optional

import pytest

from eventhub.core.event.hub import EventHub
from eventhub.core.event.types import GameEvent


# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config):
    """Configure pytest environment."""
    os.environ["EVENTHUB_ENV"] = "testing"
    os.environ["EVENTHUB_LOG_LEVEL"] = "DEBUG"


# ============================================================================
# SAMPLE EVENTS
# ============================================================================


@dataclass
class Damage(GameEvent):
    amount: int = 1
    source: str = "test"


@dataclass(frozen=True)
class Heal(GameEvent):
    amount: int = 1


class Spawned(GameEvent):
    pass


@dataclass
class CriticalDamage(Damage):
    multiplier: float = 2.0


# ============================================================================
# SAMPLE SUBSCRIBERS
# ============================================================================


class Recorder:
    """
    Subscriber that appends `(label, event)` to a shared log.

    `cancel` makes `on_damage` stop propagation; `fail` makes it raise.
    """

    def __init__(self, label: str, log: List[Any], *, cancel: bool = False, fail: bool = False):
        self.label = label
        self.log = log
        self.cancel = cancel
        self.fail = fail

    def on_damage(self, evt: Damage) -> None:
        self.log.append(self.label)
        if self.fail:
            raise RuntimeError(f"{self.label} failed")
        if self.cancel:
            evt.stop_propagation()

    def on_heal(self, evt: Heal) -> None:
        self.log.append(self.label)

    def on_any(self, evt: GameEvent) -> None:
        self.log.append((self.label, type(evt).__name__))


@dataclass
class SceneNode:
    """Host-managed object that can be destroyed while still referenced."""

    name: str
    destroyed: bool = False
    hits: List[int] = field(default_factory=list)

    def on_damage(self, evt: Damage) -> None:
        self.hits.append(evt.amount)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def log() -> List[Any]:
    """Shared call log for Recorder subscribers."""
    return []


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def hub(clock: FakeClock) -> EventHub:
    """
    Hub with diagnostics on and automatic sweeping disabled.

    Scope: function
    """
    return EventHub(sweep_interval_seconds=0, diagnostics=True, clock=clock)


@pytest.fixture
def quiet_hub(clock: FakeClock) -> EventHub:
    """Hub with diagnostics and metrics off."""
    return EventHub(
        sweep_interval_seconds=0,
        diagnostics=False,
        enable_metrics=False,
        clock=clock,
    )


@pytest.fixture
def mock_config_manager(mocker):
    """
    Mock ConfigManager for unit tests.

    `get` answers from the `values` dict attached to the mock, falling back
    to the caller's default.
    """
    mock_config = mocker.MagicMock()
    mock_config.values = {}

    def _get(key: str, default: Optional[Any] = None) -> Any:
        return mock_config.values.get(key, default)

    mock_config.get = mocker.MagicMock(side_effect=_get)
    return mock_config
