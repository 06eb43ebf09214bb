"""Scheduled task driver settings."""

from pydantic import Field

from infrastructure.configuration.base import InfrastructureSettings


class SchedulerSettings(InfrastructureSettings):
    """Scheduled task configuration.

    Schedule expressions use the grammar ``every [N] <unit> [at <time>]``,
    e.g. ``every 5 minutes``, ``every day at 02:00``, ``every monday at 08:00``.

    Environment Variables:
        SCHEDULER_ENABLED: Start the scheduler loop (default: True)
        SCHEDULER_POLL_INTERVAL_SECONDS: Sleep between pending-job checks (default: 1)
        SCHEDULER_MAX_WORKERS: Threads used to run due tasks (default: 4)
        SCHEDULER_HEARTBEAT_SCHEDULE: default "every 5 minutes"
        SCHEDULER_DATA_CLEANUP_SCHEDULE: default "every day at 02:00"
        SCHEDULER_LOW_STOCK_ALERT_SCHEDULE: default "every 5 minutes"
        SCHEDULER_INVENTORY_REPORT_SCHEDULE: default "every monday at 08:00"
        SCHEDULER_CACHE_OPTIMIZATION_SCHEDULE: default "every 10 minutes"
        SCHEDULER_BUSINESS_HOURS_START: default "08:00"
        SCHEDULER_BUSINESS_HOURS_END: default "18:00"
    """

    enabled: bool = Field(default=True, alias="SCHEDULER_ENABLED")
    poll_interval_seconds: int = Field(default=1, alias="SCHEDULER_POLL_INTERVAL_SECONDS")
    max_workers: int = Field(default=4, alias="SCHEDULER_MAX_WORKERS")

    heartbeat_schedule: str = Field(
        default="every 5 minutes", alias="SCHEDULER_HEARTBEAT_SCHEDULE"
    )
    data_cleanup_schedule: str = Field(
        default="every day at 02:00", alias="SCHEDULER_DATA_CLEANUP_SCHEDULE"
    )
    low_stock_alert_schedule: str = Field(
        default="every 5 minutes", alias="SCHEDULER_LOW_STOCK_ALERT_SCHEDULE"
    )
    inventory_report_schedule: str = Field(
        default="every monday at 08:00", alias="SCHEDULER_INVENTORY_REPORT_SCHEDULE"
    )
    cache_optimization_schedule: str = Field(
        default="every 10 minutes", alias="SCHEDULER_CACHE_OPTIMIZATION_SCHEDULE"
    )

    business_hours_start: str = Field(
        default="08:00", alias="SCHEDULER_BUSINESS_HOURS_START"
    )
    business_hours_end: str = Field(default="18:00", alias="SCHEDULER_BUSINESS_HOURS_END")
