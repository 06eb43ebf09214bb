"""Task monitoring and performance tracking settings."""

from pydantic import Field

from infrastructure.configuration.base import InfrastructureSettings


class MonitoringSettings(InfrastructureSettings):
    """Scheduled task monitoring configuration.

    Environment Variables:
        MONITORING_HISTORY_LIMIT: Execution records kept per task (default: 50)
        MONITORING_PERFORMANCE_WINDOW_SIZE: Samples kept per task (default: 200)
        MONITORING_PERFORMANCE_WINDOW_SECONDS: Max sample age (default: 86400)
        MONITORING_FAILURE_ALERT_RATE: Failure rate (%) that triggers an alert (default: 50.0)
        MONITORING_FAILURE_ALERT_MIN_EXECUTIONS: Executions needed before alerting (default: 3)
        MONITORING_SLOW_EXECUTION_ALERT_MS: Single execution duration that alerts (default: 10 min)
        MONITORING_STUCK_TASK_HOURS: Hours without a run before a task counts as stuck
        MONITORING_HIGH_FAILURE_RATE_PERCENT: Failure rate (%) flagged by the health check
        MONITORING_SLOW_TASK_MS: Mean duration flagged by the health check (default: 5 min)
    """

    history_limit: int = Field(default=50, alias="MONITORING_HISTORY_LIMIT")
    performance_window_size: int = Field(
        default=200, alias="MONITORING_PERFORMANCE_WINDOW_SIZE"
    )
    performance_window_seconds: int = Field(
        default=86400, alias="MONITORING_PERFORMANCE_WINDOW_SECONDS"
    )
    failure_alert_rate: float = Field(
        default=50.0, alias="MONITORING_FAILURE_ALERT_RATE"
    )
    failure_alert_min_executions: int = Field(
        default=3, alias="MONITORING_FAILURE_ALERT_MIN_EXECUTIONS"
    )
    slow_execution_alert_ms: int = Field(
        default=600000, alias="MONITORING_SLOW_EXECUTION_ALERT_MS"
    )
    stuck_task_hours: int = Field(default=24, alias="MONITORING_STUCK_TASK_HOURS")
    high_failure_rate_percent: float = Field(
        default=10.0, alias="MONITORING_HIGH_FAILURE_RATE_PERCENT"
    )
    slow_task_ms: int = Field(default=300000, alias="MONITORING_SLOW_TASK_MS")
