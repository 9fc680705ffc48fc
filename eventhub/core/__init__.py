"""
Core infrastructure layer for eventhub.

Purpose
-------
Groups the subsystems the event hub is built on:

- Configuration (`eventhub.core.config`)
- Structured logging (`eventhub.core.logging`)
- Exceptions (`eventhub.core.exceptions`)
- The event system itself (`eventhub.core.event`)

This module is intentionally thin: no re-exports, no side effects. Import
from the subpackages directly.
"""
