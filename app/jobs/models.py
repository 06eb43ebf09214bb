"""Scheduled task models."""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, Optional
from uuid import uuid4

from jobs.schedules import ScheduleSpec, parse_schedule_expression


class TaskStatus(Enum):
    """Status of one task execution."""

    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class TaskDescriptor:
    """Catalog entry for a scheduled task.

    Attributes:
        name: Unique task name (e.g., 'data-cleanup')
        description: Human readable description
        schedule_expression: When the task runs, e.g. 'every day at 02:00'
    """

    name: str
    description: str
    schedule_expression: str

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("Task name is required")
        # Fails with InvalidScheduleError for a malformed expression.
        parse_schedule_expression(self.schedule_expression)

    @property
    def schedule(self) -> ScheduleSpec:
        return parse_schedule_expression(self.schedule_expression)


@dataclass
class TaskExecutionRecord:
    """One execution of a scheduled task.

    Created RUNNING at start and completed exactly once.
    """

    task_name: str
    started_at: datetime
    execution_id: str = field(default_factory=lambda: str(uuid4()))
    status: TaskStatus = TaskStatus.RUNNING
    finished_at: Optional[datetime] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    duration_ms: Optional[float] = None
    summary: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_running(self) -> bool:
        return self.status is TaskStatus.RUNNING

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_name": self.task_name,
            "execution_id": self.execution_id,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "error": self.error,
            "error_type": self.error_type,
            "duration_ms": self.duration_ms,
            "summary": dict(self.summary),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TaskExecutionRecord":
        finished_at = data.get("finished_at")
        return cls(
            task_name=data["task_name"],
            execution_id=data["execution_id"],
            status=TaskStatus(data["status"]),
            started_at=datetime.fromisoformat(data["started_at"]),
            finished_at=datetime.fromisoformat(finished_at) if finished_at else None,
            error=data.get("error"),
            error_type=data.get("error_type"),
            duration_ms=data.get("duration_ms"),
            summary=dict(data.get("summary") or {}),
        )


@dataclass(frozen=True)
class PerformanceSample:
    """Timing of one completed execution."""

    task_name: str
    duration_ms: float
    succeeded: bool
    timestamp: datetime


@dataclass(frozen=True)
class PerformanceThresholds:
    """Per-task alerting thresholds.

    Attributes:
        max_duration_ms: Executions slower than this are flagged
        min_success_rate: Percentage below which the task is flagged
        min_executions_for_alert: Samples required before flagging anything
    """

    max_duration_ms: float
    min_success_rate: float
    min_executions_for_alert: int


@dataclass(frozen=True)
class TaskMetrics:
    """Rolling statistics over a task's retained samples.

    Rates are fractions in [0, 1]; count is 0 when no samples are retained.
    """

    task_name: str
    count: int = 0
    success_count: int = 0
    failure_count: int = 0
    mean_duration_ms: float = 0.0
    p95_duration_ms: float = 0.0
    max_duration_ms: float = 0.0

    @property
    def success_rate(self) -> float:
        return self.success_count / self.count if self.count else 0.0

    @property
    def failure_rate(self) -> float:
        return self.failure_count / self.count if self.count else 0.0

    @classmethod
    def from_samples(cls, task_name: str, samples: Iterable[PerformanceSample]) -> "TaskMetrics":
        samples = list(samples)
        if not samples:
            return cls(task_name=task_name)
        durations = sorted(s.duration_ms for s in samples)
        successes = sum(1 for s in samples if s.succeeded)
        # Nearest-rank percentile.
        rank = max(1, math.ceil(0.95 * len(durations)))
        return cls(
            task_name=task_name,
            count=len(samples),
            success_count=successes,
            failure_count=len(samples) - successes,
            mean_duration_ms=sum(durations) / len(durations),
            p95_duration_ms=durations[rank - 1],
            max_duration_ms=durations[-1],
        )
