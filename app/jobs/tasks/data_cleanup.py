"""Daily data cleanup.

Prunes terminal retry-ledger markers and expired dead letter entries, then
runs the optional storage janitor steps. Every step runs even when an
earlier one fails; the task is reported failed if any step failed.
"""

from typing import Any, Callable, Dict, List, Optional, Protocol

from infrastructure.logging import get_module_logger
from infrastructure.resilience.retry import DeadLetterQueue, RetryLedger

logger = get_module_logger()


class StorageJanitor(Protocol):
    """File and session storage owned by the application."""

    def cleanup_orphaned_files(self) -> int:
        """Delete files no record points to. Returns the number removed."""
        ...

    def cleanup_expired_sessions(self) -> int:
        """Delete expired sessions. Returns the number removed."""
        ...


class DataCleanupTask:
    """Retention enforcement for retry bookkeeping and application storage."""

    name = "data-cleanup"
    description = "Prune retry ledger markers, expired dead letters, orphaned files and sessions"

    def __init__(
        self,
        ledger: RetryLedger,
        dead_letter_queue: DeadLetterQueue,
        ledger_retention_days: int = 30,
        dead_letter_retention_days: int = 30,
        janitor: Optional[StorageJanitor] = None,
    ) -> None:
        self._ledger = ledger
        self._dead_letter_queue = dead_letter_queue
        self._ledger_retention_days = ledger_retention_days
        self._dead_letter_retention_days = dead_letter_retention_days
        self._janitor = janitor

    def run_body(self) -> Dict[str, Any]:
        steps: Dict[str, Callable[[], int]] = {
            "ledger_entries_removed": lambda: self._ledger.cleanup(self._ledger_retention_days),
            "dead_letters_purged": lambda: self._dead_letter_queue.purge_older_than(
                self._dead_letter_retention_days
            ),
        }
        if self._janitor is not None:
            steps["orphaned_files_removed"] = self._janitor.cleanup_orphaned_files
            steps["expired_sessions_removed"] = self._janitor.cleanup_expired_sessions

        summary: Dict[str, Any] = {}
        failed: List[str] = []
        for step, run in steps.items():
            try:
                summary[step] = run()
            except Exception as e:
                failed.append(step)
                logger.error("cleanup_step_failed", step=step, error=str(e))

        logger.info("data_cleanup_completed", failed_steps=failed, **summary)
        if failed:
            raise RuntimeError(f"Cleanup steps failed: {', '.join(failed)}")
        return summary
