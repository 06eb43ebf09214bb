"""Test factories for scheduled task records and samples."""

from datetime import datetime, timezone
from typing import Optional

from jobs.models import PerformanceSample, TaskExecutionRecord, TaskStatus


def make_performance_sample(
    task_name: str = "stub-task",
    duration_ms: float = 100.0,
    succeeded: bool = True,
    timestamp: Optional[datetime] = None,
) -> PerformanceSample:
    return PerformanceSample(
        task_name=task_name,
        duration_ms=duration_ms,
        succeeded=succeeded,
        timestamp=timestamp or datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


def make_execution_record(
    task_name: str = "stub-task",
    status: TaskStatus = TaskStatus.SUCCEEDED,
    started_at: Optional[datetime] = None,
    error: Optional[str] = None,
) -> TaskExecutionRecord:
    started = started_at or datetime(2024, 1, 1, tzinfo=timezone.utc)
    return TaskExecutionRecord(
        task_name=task_name,
        started_at=started,
        status=status,
        finished_at=None if status is TaskStatus.RUNNING else started,
        error=error,
        duration_ms=None if status is TaskStatus.RUNNING else 0.0,
    )
