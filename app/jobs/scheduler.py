"""Cron-like driver for scheduled tasks.

JobScheduler binds each task's schedule expression onto a
`schedule.Scheduler`. Due runs are submitted to a worker pool, so
different tasks run concurrently while ScheduledTask itself prevents a
task from overlapping with its own previous run.
"""

import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Any, Dict, List, Optional

import schedule

from infrastructure.logging import clear_log_context, get_module_logger
from jobs.base import ScheduledTask
from jobs.exceptions import ConcurrentExecutionError, UnknownTaskError
from jobs.models import TaskDescriptor, TaskExecutionRecord
from jobs.registry import TaskRegistry
from jobs.schedules import parse_schedule_expression

logger = get_module_logger()


class JobScheduler:
    """Runs registered ScheduledTasks on their schedules."""

    def __init__(
        self,
        registry: TaskRegistry,
        max_workers: int = 4,
        scheduler: Optional[schedule.Scheduler] = None,
        worker_pool: Optional[Executor] = None,
    ) -> None:
        self._registry = registry
        self._scheduler = scheduler or schedule.Scheduler()
        self._max_workers = max_workers
        self._pool = worker_pool
        self._tasks: Dict[str, ScheduledTask] = {}
        self._jobs: Dict[str, schedule.Job] = {}
        self._lock = threading.Lock()
        self._cease_continuous_run: Optional[threading.Event] = None
        self._stopped = False

    def add_task(self, task: ScheduledTask, expression: str) -> TaskDescriptor:
        """Register a task and bind it to its schedule.

        Raises:
            InvalidScheduleError: If the expression is malformed.
            DuplicateTaskError: If a task with the same name is registered.
        """
        spec = parse_schedule_expression(expression)
        descriptor = self._registry.register(
            TaskDescriptor(name=task.name, description=task.description, schedule_expression=expression)
        )
        job = spec.apply(self._scheduler, self._submit, task.name).tag(task.name)
        with self._lock:
            self._tasks[task.name] = task
            self._jobs[task.name] = job
        logger.info("scheduled_task_added", task_name=task.name, schedule=spec.describe())
        return descriptor

    def start(self) -> None:
        """Create the worker pool ahead of the first run."""
        self._get_or_create_pool()
        logger.info("job_scheduler_started", tasks=len(self._tasks))

    def run_pending(self) -> None:
        """Submit every task that is due."""
        self._scheduler.run_pending()

    def run_continuously(self, interval: float = 1) -> threading.Event:
        """Continuously run, while executing pending jobs at each
        elapsed time interval.

        Missed runs are not replayed: a job due every minute polled once
        an hour runs once per poll.

        Returns:
            threading.Event which can be set to cease the continuous run.
        """
        cease_continuous_run = threading.Event()
        self._cease_continuous_run = cease_continuous_run
        scheduler = self

        class ScheduleThread(threading.Thread):
            def run(self) -> None:
                while not cease_continuous_run.is_set():
                    try:
                        scheduler.run_pending()
                    except Exception as e:
                        logger.exception("schedule_loop_error", error=str(e))
                    cease_continuous_run.wait(interval)

        continuous_thread = ScheduleThread(name="job-scheduler", daemon=True)
        continuous_thread.start()
        logger.info("job_scheduler_running_continuously", interval=interval)
        return cease_continuous_run

    def trigger(self, name: str) -> "Future[Optional[TaskExecutionRecord]]":
        """Run a task now, outside its schedule.

        Raises:
            UnknownTaskError: If the task is not registered with this scheduler.
        """
        if name not in self._tasks:
            raise UnknownTaskError(name)
        pool = self._get_or_create_pool()
        if pool is None:
            raise RuntimeError("Job scheduler has been stopped")
        logger.info("scheduled_task_triggered", task_name=name)
        return pool.submit(self._safe_run, name)

    def job_status(self) -> List[Dict[str, Any]]:
        """Schedule, last run and next run of every task."""
        with self._lock:
            jobs = list(self._jobs.items())
        status = []
        for name, job in jobs:
            status.append(
                {
                    "task_name": name,
                    "schedule": self._registry.get(name).schedule_expression,
                    "last_run": job.last_run.isoformat() if job.last_run else None,
                    "next_run": job.next_run.isoformat() if job.next_run else None,
                }
            )
        return status

    def stop(self, wait: bool = True) -> None:
        """Stop the continuous run, clear schedules and shut the pool down."""
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
            pool = self._pool
        if self._cease_continuous_run is not None:
            self._cease_continuous_run.set()
        self._scheduler.clear()
        if pool is not None:
            pool.shutdown(wait=wait)
        logger.info("job_scheduler_stopped")

    def _submit(self, name: str) -> None:
        pool = self._get_or_create_pool()
        if pool is None:
            logger.error("job_scheduler_unavailable", task_name=name)
            return
        pool.submit(self._safe_run, name)

    def _safe_run(self, name: str) -> Optional[TaskExecutionRecord]:
        clear_log_context()
        task = self._tasks[name]
        try:
            return task.execute()
        except ConcurrentExecutionError:
            logger.info("scheduled_task_skipped", task_name=name, reason="already_running")
        except Exception as e:
            logger.exception("scheduled_task_crashed", task_name=name, error=str(e))
        return None

    def _get_or_create_pool(self) -> Optional[Executor]:
        with self._lock:
            if self._stopped:
                return None
            if self._pool is None:
                self._pool = ThreadPoolExecutor(
                    max_workers=self._max_workers, thread_name_prefix="scheduled-task"
                )
                logger.debug("created_scheduled_task_pool", max_workers=self._max_workers)
            return self._pool
