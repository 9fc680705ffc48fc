"""
Configuration for eventhub.

- `Config`: static, environment-driven settings (loaded on import).
- `eventhub.core.config.manager.ConfigManager`: dot-notation tunables from
  YAML defaults plus runtime overrides. Import it from its module; it depends
  on the logging subsystem, which itself reads `Config`.
"""

from eventhub.core.config.config import Config, Environment

__all__ = ["Config", "Environment"]
