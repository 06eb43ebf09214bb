"""Health assessment and reporting for scheduled tasks."""

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import List, Optional, Tuple

from infrastructure.clock import Clock
from jobs.models import PerformanceThresholds, TaskMetrics
from jobs.monitoring import TaskMonitor
from jobs.performance import TaskPerformanceTracker
from jobs.registry import TaskRegistry

HEALTHY_SUCCESS_RATE = 95.0


class PerformanceRating(str, Enum):
    EXCELLENT = "EXCELLENT"
    GOOD = "GOOD"
    FAIR = "FAIR"
    POOR = "POOR"
    NO_DATA = "NO_DATA"
    UNKNOWN = "UNKNOWN"


class HealthRating(str, Enum):
    HEALTHY = "HEALTHY"
    STABLE = "STABLE"
    DEGRADED = "DEGRADED"
    UNHEALTHY = "UNHEALTHY"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class TaskSystemHealth:
    """Snapshot of the scheduled task system."""

    total_tasks: int
    running_tasks: int
    healthy_tasks: int
    stuck_tasks: Tuple[str, ...] = ()
    high_failure_tasks: Tuple[str, ...] = ()
    slow_tasks: Tuple[str, ...] = ()

    @property
    def is_healthy(self) -> bool:
        return not (self.stuck_tasks or self.high_failure_tasks or self.slow_tasks)


def find_stuck_tasks(
    names: List[str], monitor: TaskMonitor, clock: Clock, max_hours: float
) -> List[str]:
    """Tasks not running whose last start is older than max_hours."""
    threshold = clock.now() - timedelta(hours=max_hours)
    stuck = []
    for name in names:
        latest = monitor.latest(name)
        if latest is not None and not latest.is_running and latest.started_at < threshold:
            stuck.append(name)
    return stuck


def find_high_failure_tasks(
    tracker: TaskPerformanceTracker, max_failure_rate_percent: float
) -> List[str]:
    return [
        name
        for name, metrics in tracker.all_metrics().items()
        if metrics.count and metrics.failure_rate * 100 > max_failure_rate_percent
    ]


def find_slow_tasks(tracker: TaskPerformanceTracker, max_mean_duration_ms: float) -> List[str]:
    return [
        name
        for name, metrics in tracker.all_metrics().items()
        if metrics.count and metrics.mean_duration_ms > max_mean_duration_ms
    ]


def assess_system_health(
    registry: TaskRegistry,
    monitor: TaskMonitor,
    tracker: TaskPerformanceTracker,
    clock: Clock,
    stuck_task_hours: float = 24,
    high_failure_rate_percent: float = 10.0,
    slow_task_ms: float = 300_000,
) -> TaskSystemHealth:
    names = registry.names()
    metrics = [tracker.metrics_for(name) for name in names]
    healthy = sum(1 for m in metrics if m.count and m.success_rate * 100 >= HEALTHY_SUCCESS_RATE)
    return TaskSystemHealth(
        total_tasks=len(names),
        running_tasks=len([n for n in monitor.running() if n in registry]),
        healthy_tasks=healthy,
        stuck_tasks=tuple(find_stuck_tasks(names, monitor, clock, stuck_task_hours)),
        high_failure_tasks=tuple(find_high_failure_tasks(tracker, high_failure_rate_percent)),
        slow_tasks=tuple(find_slow_tasks(tracker, slow_task_ms)),
    )


def rate_performance(
    metrics: TaskMetrics, thresholds: Optional[PerformanceThresholds]
) -> PerformanceRating:
    if metrics.count == 0:
        return PerformanceRating.NO_DATA
    if thresholds is None:
        return PerformanceRating.UNKNOWN

    success_rate = metrics.success_rate * 100
    if (
        success_rate >= thresholds.min_success_rate
        and metrics.mean_duration_ms <= thresholds.max_duration_ms
    ):
        return PerformanceRating.EXCELLENT
    if success_rate >= thresholds.min_success_rate * 0.9:
        return PerformanceRating.GOOD
    if success_rate >= thresholds.min_success_rate * 0.8:
        return PerformanceRating.FAIR
    return PerformanceRating.POOR


def rate_health(metrics: TaskMetrics) -> HealthRating:
    if metrics.count == 0:
        return HealthRating.UNKNOWN

    success_rate = metrics.success_rate * 100
    if success_rate >= 98.0 and metrics.failure_count == 0:
        return HealthRating.HEALTHY
    if success_rate >= 95.0:
        return HealthRating.STABLE
    if success_rate >= 85.0:
        return HealthRating.DEGRADED
    return HealthRating.UNHEALTHY


def generate_monitoring_report(
    registry: TaskRegistry,
    monitor: TaskMonitor,
    tracker: TaskPerformanceTracker,
    clock: Clock,
    stuck_task_hours: float = 24,
    high_failure_rate_percent: float = 10.0,
    slow_task_ms: float = 300_000,
) -> str:
    """Plain-text report of system health and per-task details."""
    health = assess_system_health(
        registry,
        monitor,
        tracker,
        clock,
        stuck_task_hours=stuck_task_hours,
        high_failure_rate_percent=high_failure_rate_percent,
        slow_task_ms=slow_task_ms,
    )
    lines = [
        "=== Scheduled Task Monitoring Report ===",
        f"Generated at: {clock.now().isoformat()}",
        "",
        "System Overview:",
        f"- Total Tasks: {health.total_tasks}",
        f"- Currently Running: {health.running_tasks}",
        f"- Healthy Tasks: {health.healthy_tasks}",
        f"- Overall Status: {'HEALTHY' if health.is_healthy else 'ATTENTION REQUIRED'}",
        "",
    ]

    if health.stuck_tasks:
        lines.append(f"Stuck Tasks (no execution in {stuck_task_hours:g}h):")
        lines.extend(f"- {name}" for name in health.stuck_tasks)
        lines.append("")

    if health.high_failure_tasks:
        lines.append(f"High Failure Rate Tasks (>{high_failure_rate_percent:g}%):")
        for name in health.high_failure_tasks:
            rate = tracker.metrics_for(name).failure_rate * 100
            lines.append(f"- {name} ({rate:.1f}% failure rate)")
        lines.append("")

    if health.slow_tasks:
        lines.append(f"Slow Tasks (>{slow_task_ms / 1000:g}s average):")
        for name in health.slow_tasks:
            mean_seconds = round(tracker.metrics_for(name).mean_duration_ms / 1000)
            lines.append(f"- {name} ({mean_seconds}s average)")
        lines.append("")

    lines.append("Task Details:")
    for descriptor in registry.all():
        metrics = tracker.metrics_for(descriptor.name)
        latest = monitor.latest(descriptor.name)
        lines.append(f"- {descriptor.name}: {descriptor.description}")
        lines.append(f"  Schedule: {descriptor.schedule_expression}")
        lines.append(f"  Status: {latest.status.value.upper() if latest else 'NEVER_EXECUTED'}")
        lines.append(f"  Executions: {metrics.count}")
        lines.append(f"  Success Rate: {metrics.success_rate * 100:.1f}%")
        lines.append(f"  Mean Duration: {metrics.mean_duration_ms:.0f}ms (p95 {metrics.p95_duration_ms:.0f}ms)")
        lines.append(
            f"  Performance: {rate_performance(metrics, tracker.thresholds_for(descriptor.name)).value}"
        )
        lines.append(f"  Health: {rate_health(metrics).value}")
        if latest is not None:
            lines.append(f"  Last Run: {latest.started_at.isoformat()}")
            if latest.error:
                lines.append(f"  Last Error: {latest.error}")
        lines.append("")

    return "\n".join(lines)
