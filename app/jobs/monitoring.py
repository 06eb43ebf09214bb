"""Task execution monitoring.

TaskMonitor keeps a bounded, persisted execution history per task name and
enforces that a task never has two RUNNING executions. It also gives
operators a manual path to re-run a failed task: task-level retries are
never automatic.
"""

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from infrastructure.clock import Clock, SystemClock
from infrastructure.concurrency import KeyedLock
from infrastructure.logging import get_module_logger
from infrastructure.notifications import Notifier, Severity, send_alert
from infrastructure.persistence import KeyValueStore
from jobs.exceptions import ConcurrentExecutionError, UnknownTaskError
from jobs.models import TaskExecutionRecord, TaskStatus

logger = get_module_logger()

TaskRunner = Callable[[], TaskExecutionRecord]


class TaskMonitor:
    """Execution history and status per task name.

    Attributes:
        KEY_PREFIX: Namespace of task histories in the backing store
    """

    KEY_PREFIX = "task_history:"

    def __init__(
        self,
        store: KeyValueStore,
        clock: Optional[Clock] = None,
        notifier: Optional[Notifier] = None,
        history_limit: int = 50,
        failure_alert_rate: float = 50.0,
        failure_alert_min_executions: int = 3,
    ) -> None:
        if history_limit < 1:
            raise ValueError("history_limit must be at least 1")
        self._store = store
        self._clock = clock or SystemClock()
        self._notifier = notifier
        self._history_limit = history_limit
        self._failure_alert_rate = failure_alert_rate
        self._failure_alert_min_executions = failure_alert_min_executions
        self._locks = KeyedLock()
        self._runners: Dict[str, TaskRunner] = {}
        self._unpersisted: Dict[str, Dict[str, Any]] = {}

    def attach(self, name: str, runner: TaskRunner) -> None:
        """Register the callable that retry_failed_task uses to re-run a task."""
        self._runners[name] = runner

    def record_start(self, name: str) -> TaskExecutionRecord:
        """Open a RUNNING execution record.

        Raises:
            ConcurrentExecutionError: If the task already has a RUNNING record.
        """
        with self._locks.hold(name):
            history = self._load(name)
            if history and history[0].is_running:
                logger.warning(
                    "task_already_running",
                    task_name=name,
                    execution_id=history[0].execution_id,
                    started_at=history[0].started_at.isoformat(),
                )
                raise ConcurrentExecutionError(name)

            record = TaskExecutionRecord(task_name=name, started_at=self._clock.now())
            history.insert(0, record)
            self._save(name, history)
            logger.debug("task_started", task_name=name, execution_id=record.execution_id)
            return record

    def record_completion(
        self,
        name: str,
        status: TaskStatus,
        error: Optional[str] = None,
        duration_ms: Optional[float] = None,
        execution_id: Optional[str] = None,
        error_type: Optional[str] = None,
        summary: Optional[dict] = None,
    ) -> TaskExecutionRecord:
        """Complete the RUNNING record of a task.

        Raises:
            ValueError: If status is RUNNING or no matching running record exists.
        """
        if status is TaskStatus.RUNNING:
            raise ValueError("Completion status must be SUCCEEDED or FAILED")

        with self._locks.hold(name):
            history = self._load(name)
            record = next(
                (
                    r
                    for r in history
                    if r.is_running and (execution_id is None or r.execution_id == execution_id)
                ),
                None,
            )
            if record is None:
                raise ValueError(f"No running execution of task '{name}'")

            now = self._clock.now()
            record.status = status
            record.finished_at = now
            record.error = error
            record.error_type = error_type
            record.duration_ms = (
                duration_ms
                if duration_ms is not None
                else (now - record.started_at).total_seconds() * 1000
            )
            record.summary = dict(summary or {})
            self._save(name, history)

        log = logger.info if status is TaskStatus.SUCCEEDED else logger.warning
        log(
            "task_completed",
            task_name=name,
            execution_id=record.execution_id,
            status=status.value,
            duration_ms=record.duration_ms,
            error=error,
        )
        return record

    def keep_unpersisted(self, record: TaskExecutionRecord) -> None:
        """Hold a completed record whose write to the store failed.

        Reads see the completed record in place of the RUNNING one left in
        the store, and the next successful write of the task's history
        persists it, so a storage outage never blocks later executions.
        """
        with self._locks.hold(record.task_name):
            self._unpersisted[record.task_name] = record.to_dict()
        logger.error(
            "task_completion_not_persisted",
            task_name=record.task_name,
            execution_id=record.execution_id,
            status=record.status.value,
        )

    def history(self, name: str, limit: Optional[int] = None) -> List[TaskExecutionRecord]:
        """Executions of a task, most recent first."""
        history = self._load(name)
        return history[:limit] if limit is not None else history

    def latest(self, name: str) -> Optional[TaskExecutionRecord]:
        history = self._load(name)
        return history[0] if history else None

    def all_statuses(self) -> Dict[str, TaskStatus]:
        """Latest status of every task that has run at least once."""
        statuses = {}
        for name in self.task_names():
            latest = self.latest(name)
            if latest is not None:
                statuses[name] = latest.status
        return statuses

    def running(self) -> List[str]:
        return [name for name, status in self.all_statuses().items() if status is TaskStatus.RUNNING]

    def last_started_at(self, name: str) -> Optional[datetime]:
        latest = self.latest(name)
        return latest.started_at if latest else None

    def task_names(self) -> List[str]:
        return sorted(key[len(self.KEY_PREFIX) :] for key in self._store.keys(self.KEY_PREFIX))

    def failure_rate(self, name: str) -> float:
        """Percentage of failed executions among the completed ones retained."""
        completed = [r for r in self._load(name) if not r.is_running]
        if not completed:
            return 0.0
        failures = sum(1 for r in completed if r.status is TaskStatus.FAILED)
        return failures / len(completed) * 100.0

    def handle_task_failure(self, name: str, error: BaseException) -> bool:
        """React to a failed execution.

        Always logs the failure. Alerts through the notifier when the failure
        rate over the retained history exceeds the alert rate and enough
        executions have completed.

        Returns:
            True if an alert was sent.
        """
        completed = [r for r in self._load(name) if not r.is_running]
        rate = self.failure_rate(name)
        logger.error(
            "scheduled_task_failed",
            task_name=name,
            error=str(error),
            error_type=getattr(error, "error_type", type(error).__name__),
            failure_rate=round(rate, 1),
        )

        if (
            self._notifier is None
            or len(completed) < self._failure_alert_min_executions
            or rate <= self._failure_alert_rate
        ):
            return False

        return send_alert(
            self._notifier,
            "High Task Failure Rate",
            f"Scheduled task '{name}' has high failure rate: {rate:.1f}% "
            f"(last error: {error})",
            Severity.ERROR,
            task_name=name,
        )

    def retry_failed_task(self, name: str) -> TaskExecutionRecord:
        """Manually re-run a task whose latest execution failed.

        Raises:
            UnknownTaskError: If no runner is attached for the task.
            ValueError: If the latest execution did not fail.
            ConcurrentExecutionError: If the task is running.
        """
        runner = self._runners.get(name)
        if runner is None:
            raise UnknownTaskError(name)

        latest = self.latest(name)
        if latest is None or latest.status is not TaskStatus.FAILED:
            status = latest.status.value if latest else "never_executed"
            raise ValueError(f"Task '{name}' has no failed execution to retry (status: {status})")

        logger.info(
            "task_retry_requested",
            task_name=name,
            failed_execution_id=latest.execution_id,
            last_error=latest.error,
        )
        return runner()

    def _storage_key(self, name: str) -> str:
        return f"{self.KEY_PREFIX}{name}"

    def _load(self, name: str) -> List[TaskExecutionRecord]:
        data = self._store.get(self._storage_key(name))
        if data is None:
            return []
        history = [TaskExecutionRecord.from_dict(r) for r in data.get("executions", [])]
        pending = self._unpersisted.get(name)
        if pending is not None:
            history = [
                TaskExecutionRecord.from_dict(pending) if r.execution_id == pending["execution_id"] else r
                for r in history
            ]
        return history

    def _save(self, name: str, history: List[TaskExecutionRecord]) -> None:
        trimmed = history[: self._history_limit]
        self._store.put(
            self._storage_key(name),
            {"task_name": name, "executions": [r.to_dict() for r in trimmed]},
        )
        self._unpersisted.pop(name, None)
