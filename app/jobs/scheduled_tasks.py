"""Registration of the built-in scheduled tasks.

Heartbeat and data cleanup always run. Tasks that depend on an
application collaborator (inventory, reporting, cache) are only registered
when that collaborator is supplied.
"""

from typing import List, Optional

from infrastructure.logging import get_module_logger
from jobs.base import ScheduledTask, TaskJob
from jobs.models import TaskDescriptor
from jobs.runtime import BackgroundRuntime
from jobs.tasks import (
    CacheBackend,
    CacheOptimizationTask,
    DataCleanupTask,
    InventoryMonitor,
    InventoryReportTask,
    LowStockAlertTask,
    ReportSource,
    SchedulerHeartbeatTask,
    StorageJanitor,
)

logger = get_module_logger()


def init(
    runtime: BackgroundRuntime,
    inventory_monitor: Optional[InventoryMonitor] = None,
    report_source: Optional[ReportSource] = None,
    cache_backend: Optional[CacheBackend] = None,
    storage_janitor: Optional[StorageJanitor] = None,
) -> List[TaskDescriptor]:
    """Register the built-in tasks on the runtime's scheduler.

    Returns:
        Descriptors of the tasks that were registered.
    """
    settings = runtime.settings
    schedules = settings.scheduler
    clock = runtime.clock

    jobs = [
        (SchedulerHeartbeatTask(clock=clock), schedules.heartbeat_schedule),
        (
            DataCleanupTask(
                runtime.ledger,
                runtime.dead_letter_queue,
                ledger_retention_days=settings.retry.ledger_retention_days,
                dead_letter_retention_days=settings.dead_letter.retention_days,
                janitor=storage_janitor,
            ),
            schedules.data_cleanup_schedule,
        ),
    ]
    if inventory_monitor is not None:
        jobs.append(
            (
                LowStockAlertTask(
                    inventory_monitor,
                    runtime.notifier,
                    publisher=runtime.publisher,
                    clock=clock,
                    business_hours_start=schedules.business_hours_start,
                    business_hours_end=schedules.business_hours_end,
                ),
                schedules.low_stock_alert_schedule,
            )
        )
    if report_source is not None:
        jobs.append(
            (
                InventoryReportTask(report_source, runtime.notifier, clock=clock),
                schedules.inventory_report_schedule,
            )
        )
    if cache_backend is not None:
        jobs.append(
            (
                CacheOptimizationTask(cache_backend, runtime.notifier, clock=clock),
                schedules.cache_optimization_schedule,
            )
        )

    descriptors = [register(runtime, job, expression) for job, expression in jobs]
    logger.info("scheduled_tasks_initialized", tasks=[d.name for d in descriptors])
    return descriptors


def register(runtime: BackgroundRuntime, job: TaskJob, expression: str) -> TaskDescriptor:
    """Wrap a job with monitoring and bind it to a schedule."""
    task = ScheduledTask(job, runtime.monitor, runtime.tracker, clock=runtime.clock)
    return runtime.scheduler.add_task(task, expression)
