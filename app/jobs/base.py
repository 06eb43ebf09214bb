"""Scheduled task execution wrapper.

Concrete jobs implement the TaskJob capability (name, description,
run_body) and know nothing about monitoring. ScheduledTask composes a job
with the monitor and performance tracker and gives every execution the
same shape:

    1. reject with ConcurrentExecutionError if the task is already RUNNING
    2. open a RUNNING record and start timing
    3. run the job body
    4. record SUCCEEDED or FAILED, a PerformanceSample and the duration

A failing job body never raises past execute(): the scheduler learns about
it from the returned record's status. A completion that cannot be written
to the store is kept by the monitor, so the task is not left RUNNING.
"""

from typing import Any, Optional, Protocol

from infrastructure.clock import Clock, SystemClock
from infrastructure.logging import bind_log_context, get_module_logger
from infrastructure.resilience.exceptions import ProcessorError
from jobs.models import PerformanceSample, TaskExecutionRecord, TaskStatus
from jobs.monitoring import TaskMonitor
from jobs.performance import TaskPerformanceTracker

logger = get_module_logger()


class TaskJob(Protocol):
    """Business step of a scheduled task."""

    @property
    def name(self) -> str: ...

    @property
    def description(self) -> str: ...

    def run_body(self) -> Any:
        """Do the work. A returned dict is kept as the execution summary."""
        ...


class ScheduledTask:
    """Runs a TaskJob with timing, monitoring and uniform error handling."""

    def __init__(
        self,
        job: TaskJob,
        monitor: TaskMonitor,
        tracker: TaskPerformanceTracker,
        clock: Optional[Clock] = None,
    ) -> None:
        self._job = job
        self._monitor = monitor
        self._tracker = tracker
        self._clock = clock or SystemClock()
        monitor.attach(job.name, self.execute)

    @property
    def name(self) -> str:
        return self._job.name

    @property
    def description(self) -> str:
        return self._job.description

    @property
    def job(self) -> TaskJob:
        return self._job

    def execute(self) -> TaskExecutionRecord:
        """Run the job once.

        Returns:
            The completed TaskExecutionRecord (SUCCEEDED or FAILED).

        Raises:
            ConcurrentExecutionError: If this task is already running.
        """
        record = self._monitor.record_start(self.name)
        started = self._clock.monotonic()

        with bind_log_context(task_name=self.name, execution_id=record.execution_id):
            logger.info("scheduled_task_started", description=self.description)
            try:
                result = self._job.run_body()
            except Exception as e:
                error = ProcessorError.wrap(e)
                duration_ms = self._elapsed_ms(started)
                completed = self._complete(
                    record,
                    TaskStatus.FAILED,
                    duration_ms,
                    error=str(error),
                    error_type=error.error_type,
                )
                self._record_sample(duration_ms, succeeded=False)
                try:
                    self._monitor.handle_task_failure(self.name, error)
                except Exception as alert_error:
                    logger.exception("task_failure_handling_failed", error=str(alert_error))
                return completed

            duration_ms = self._elapsed_ms(started)
            completed = self._complete(
                record,
                TaskStatus.SUCCEEDED,
                duration_ms,
                summary=result if isinstance(result, dict) else None,
            )
            self._record_sample(duration_ms, succeeded=True)
            return completed

    def _complete(
        self,
        record: TaskExecutionRecord,
        status: TaskStatus,
        duration_ms: float,
        error: Optional[str] = None,
        error_type: Optional[str] = None,
        summary: Optional[dict] = None,
    ) -> TaskExecutionRecord:
        try:
            return self._monitor.record_completion(
                self.name,
                status,
                error=error,
                error_type=error_type,
                duration_ms=duration_ms,
                execution_id=record.execution_id,
                summary=summary,
            )
        except Exception as e:
            logger.exception("task_completion_record_failed", status=status.value, error=str(e))

        record.status = status
        record.finished_at = self._clock.now()
        record.error = error
        record.error_type = error_type
        record.duration_ms = duration_ms
        record.summary = dict(summary or {})
        self._monitor.keep_unpersisted(record)
        return record

    def _elapsed_ms(self, started: float) -> float:
        return (self._clock.monotonic() - started) * 1000

    def _record_sample(self, duration_ms: float, succeeded: bool) -> None:
        self._tracker.record(
            PerformanceSample(
                task_name=self.name,
                duration_ms=duration_ms,
                succeeded=succeeded,
                timestamp=self._clock.now(),
            )
        )
