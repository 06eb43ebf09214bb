"""Retry ledger: persistence of in-flight retry campaigns.

Entries are keyed by event id (or event id and handler name) and stored
as dicts in a KeyValueStore. Every read-modify-write of an entry happens
under a per-key lock, so campaigns for different events never contend.

Lifecycle of an entry:
    begin() -> PENDING
    record_attempt() / record_failure() -> RETRYING while attempts remain
    clear() on success removes the entry
    mark_terminal() on exhaustion -> DEAD_LETTERED (or FAILED)
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from infrastructure.clock import Clock, SystemClock
from infrastructure.concurrency import KeyedLock
from infrastructure.events.models import Event
from infrastructure.logging import get_module_logger
from infrastructure.persistence import KeyValueStore
from infrastructure.resilience.exceptions import RetryCampaignActiveError
from infrastructure.resilience.retry.models import (
    LedgerStatus,
    RetryAttemptRecord,
    RetryLedgerEntry,
    campaign_key,
)

logger = get_module_logger()


class RetryLedger:
    """Keyed record of retry attempts.

    Attributes:
        KEY_PREFIX: Namespace of ledger entries in the backing store
    """

    KEY_PREFIX = "retry_ledger:"

    def __init__(self, store: KeyValueStore, clock: Optional[Clock] = None) -> None:
        self._store = store
        self._clock = clock or SystemClock()
        self._locks = KeyedLock()

    def begin(
        self,
        event: Event,
        max_attempts: int,
        handler: Optional[str] = None,
    ) -> RetryLedgerEntry:
        """Open a campaign for an event.

        A terminal marker left by a previous campaign is replaced.

        Raises:
            RetryCampaignActiveError: If a non-terminal campaign exists for the key.
        """
        key = campaign_key(event.event_id, handler)
        with self._locks.hold(key):
            existing = self._load(key)
            if existing is not None and not existing.status.is_terminal:
                logger.warning(
                    "retry_campaign_already_active",
                    key=key,
                    status=existing.status.value,
                    attempts=existing.attempt_count,
                )
                raise RetryCampaignActiveError(key)

            now = self._clock.now()
            entry = RetryLedgerEntry(
                key=key,
                event_id=event.event_id,
                event_type=event.event_type,
                handler=handler,
                max_attempts=max_attempts,
                created_at=now,
                updated_at=now,
            )
            self._save(entry)
            logger.debug("retry_campaign_started", key=key, max_attempts=max_attempts)
            return entry

    def record_attempt(self, key: str, attempt_number: int) -> RetryAttemptRecord:
        """Append the record of an attempt that is about to run."""
        with self._locks.hold(key):
            entry = self._require(key)
            now = self._clock.now()
            record = RetryAttemptRecord(
                event_id=entry.event_id,
                attempt_number=attempt_number,
                scheduled_at=now,
            )
            entry.attempts.append(record)
            entry.next_eligible_at = None
            entry.updated_at = now
            self._save(entry)
            return record

    def record_failure(
        self,
        key: str,
        attempt_number: int,
        error: str,
        next_eligible_at: Optional[datetime] = None,
    ) -> RetryLedgerEntry:
        """Record a failed attempt.

        Args:
            key: Ledger key
            attempt_number: Attempt that failed
            error: Error message
            next_eligible_at: When the next attempt may run, None if none will
        """
        with self._locks.hold(key):
            entry = self._require(key)
            now = self._clock.now()
            record = self._find_attempt(entry, attempt_number)
            record.error = error
            record.finished_at = now

            entry.last_error = error
            entry.first_failed_at = entry.first_failed_at or now
            entry.updated_at = now
            if next_eligible_at is not None:
                entry.status = LedgerStatus.RETRYING
                entry.next_eligible_at = next_eligible_at
            self._save(entry)

            logger.info(
                "retry_attempt_failed",
                key=key,
                attempt=attempt_number,
                max_attempts=entry.max_attempts,
                next_eligible_at=next_eligible_at.isoformat() if next_eligible_at else None,
                error=error,
            )
            return entry

    def clear(self, key: str, attempt_number: Optional[int] = None) -> Optional[RetryLedgerEntry]:
        """Remove the entry after a successful attempt.

        The returned entry has the succeeding attempt marked finished, so
        callers can report the complete attempt history.

        Returns:
            The removed entry, or None if there was none.
        """
        with self._locks.hold(key):
            entry = self._load(key)
            if entry is None:
                return None
            if attempt_number is not None:
                record = self._find_attempt(entry, attempt_number)
                record.finished_at = self._clock.now()
            self._store.delete(self._storage_key(key))
            logger.debug("retry_campaign_cleared", key=key, attempts=entry.attempt_count)
            return entry

    def mark_terminal(self, key: str, status: LedgerStatus = LedgerStatus.DEAD_LETTERED) -> RetryLedgerEntry:
        """Convert the entry into a terminal marker."""
        if not status.is_terminal:
            raise ValueError(f"{status.value} is not a terminal status")
        with self._locks.hold(key):
            entry = self._require(key)
            entry.status = status
            entry.next_eligible_at = None
            entry.updated_at = self._clock.now()
            self._save(entry)
            logger.info(
                "retry_campaign_terminal",
                key=key,
                status=status.value,
                attempts=entry.attempt_count,
            )
            return entry

    def release(self, key: str) -> bool:
        """Drop an entry whatever its status, so the key can start a new campaign.

        Returns:
            True if an entry was removed.
        """
        with self._locks.hold(key):
            removed = self._store.delete(self._storage_key(key))
        if removed:
            logger.warning("retry_campaign_released", key=key)
        return removed

    def get(self, key: str) -> Optional[RetryLedgerEntry]:
        """Entry for a ledger key, or None."""
        return self._load(key)

    def get_for_event(self, event_id: str, handler: Optional[str] = None) -> Optional[RetryLedgerEntry]:
        return self._load(campaign_key(event_id, handler))

    def entries(self) -> List[RetryLedgerEntry]:
        """All entries, active and terminal, oldest first."""
        result = []
        for storage_key in self._store.keys(self.KEY_PREFIX):
            data = self._store.get(storage_key)
            if data is not None:
                result.append(RetryLedgerEntry.from_dict(data))
        return sorted(result, key=lambda e: e.created_at)

    def active(self) -> List[RetryLedgerEntry]:
        """Campaigns that have not reached a terminal status."""
        return [e for e in self.entries() if not e.status.is_terminal]

    def statistics(self) -> Dict[str, Any]:
        """Ledger totals by status and per event type."""
        entries = self.entries()
        by_status = {status.value: 0 for status in LedgerStatus}
        by_event_type: Dict[str, Dict[str, Any]] = {}

        for entry in entries:
            by_status[entry.status.value] += 1
            stats = by_event_type.setdefault(
                entry.event_type,
                {"total": 0, "active": 0, "dead_lettered": 0, "failed": 0, "attempts": 0},
            )
            stats["total"] += 1
            stats["attempts"] += entry.attempt_count
            if entry.status is LedgerStatus.DEAD_LETTERED:
                stats["dead_lettered"] += 1
            elif entry.status is LedgerStatus.FAILED:
                stats["failed"] += 1
            else:
                stats["active"] += 1

        for stats in by_event_type.values():
            attempts = stats.pop("attempts")
            stats["average_attempts"] = attempts / stats["total"]

        total_attempts = sum(e.attempt_count for e in entries)
        return {
            "total": len(entries),
            "active": by_status[LedgerStatus.PENDING.value] + by_status[LedgerStatus.RETRYING.value],
            "by_status": by_status,
            "average_attempts": total_attempts / len(entries) if entries else 0.0,
            "by_event_type": by_event_type,
        }

    def cleanup(self, older_than_days: int) -> int:
        """Delete terminal markers last updated more than `older_than_days` ago.

        Active campaigns are never removed.

        Returns:
            Number of entries deleted.
        """
        cutoff = self._clock.now() - timedelta(days=older_than_days)
        removed = 0
        for entry in self.entries():
            if not entry.status.is_terminal or entry.updated_at >= cutoff:
                continue
            with self._locks.hold(entry.key):
                current = self._load(entry.key)
                if current and current.status.is_terminal and current.updated_at < cutoff:
                    self._store.delete(self._storage_key(entry.key))
                    removed += 1

        if removed:
            logger.info("retry_ledger_cleaned_up", removed=removed, older_than_days=older_than_days)
        return removed

    def _storage_key(self, key: str) -> str:
        return f"{self.KEY_PREFIX}{key}"

    def _load(self, key: str) -> Optional[RetryLedgerEntry]:
        data = self._store.get(self._storage_key(key))
        return RetryLedgerEntry.from_dict(data) if data is not None else None

    def _require(self, key: str) -> RetryLedgerEntry:
        entry = self._load(key)
        if entry is None:
            raise KeyError(f"No retry ledger entry for {key}")
        return entry

    def _save(self, entry: RetryLedgerEntry) -> None:
        self._store.put(self._storage_key(entry.key), entry.to_dict())

    @staticmethod
    def _find_attempt(entry: RetryLedgerEntry, attempt_number: int) -> RetryAttemptRecord:
        for record in reversed(entry.attempts):
            if record.attempt_number == attempt_number:
                return record
        raise KeyError(f"Attempt {attempt_number} not recorded for {entry.key}")
