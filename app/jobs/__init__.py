"""Scheduled task framework.

Exports:
    ScheduledTask, TaskJob: Execution wrapper and job capability
    TaskRegistry: Named task descriptors
    TaskMonitor: Execution history, failure alerts, operator retry
    TaskPerformanceTracker: Sliding-window duration and success metrics
    JobScheduler: Drives tasks on their schedules
"""

from jobs.base import ScheduledTask, TaskJob
from jobs.models import (
    PerformanceSample,
    PerformanceThresholds,
    TaskDescriptor,
    TaskExecutionRecord,
    TaskMetrics,
    TaskStatus,
)
from jobs.monitoring import TaskMonitor
from jobs.performance import TaskPerformanceTracker
from jobs.registry import TaskRegistry
from jobs.scheduler import JobScheduler

__all__ = [
    "ScheduledTask",
    "TaskJob",
    "TaskDescriptor",
    "TaskExecutionRecord",
    "TaskStatus",
    "TaskMetrics",
    "PerformanceSample",
    "PerformanceThresholds",
    "TaskRegistry",
    "TaskMonitor",
    "TaskPerformanceTracker",
    "JobScheduler",
]
