"""Infrastructure configuration module - public API.

This module provides centralized configuration management for the background
job and event retry layer using Pydantic BaseSettings.

Exports:
    Settings: Main settings class (for testing/overrides)
    RetrySettings, DeadLetterSettings, SchedulerSettings, MonitoringSettings

Example:
    ```python
    from infrastructure.services import get_settings

    settings = get_settings()

    max_attempts = settings.retry.max_attempts
    cleanup_schedule = settings.scheduler.data_cleanup_schedule

    if settings.is_production:
        # Production-specific logic...
    ```
"""

from infrastructure.configuration.settings import Settings
from infrastructure.configuration.infrastructure import (
    DeadLetterSettings,
    MonitoringSettings,
    RetrySettings,
    SchedulerSettings,
)

__all__ = [
    "Settings",
    "RetrySettings",
    "DeadLetterSettings",
    "SchedulerSettings",
    "MonitoringSettings",
]
