"""Dead letter queue for events that exhausted their retries.

Entries are persisted as dicts in a KeyValueStore. A write that keeps
failing is never silently dropped: after `store_attempts` tries the
serialized entry is written to the CRITICAL log as a fallback and
DeadLetterDeliveryError is raised to the caller.

Replay is manual only: an operator calls replay(entry_id), which marks the
entry and re-publishes the event to the handler that failed.
"""

from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Protocol
from uuid import uuid4

from infrastructure.clock import Clock, SystemClock
from infrastructure.concurrency import KeyedLock
from infrastructure.events.models import Event
from infrastructure.logging import get_module_logger
from infrastructure.persistence import KeyValueStore
from infrastructure.resilience.exceptions import DeadLetterDeliveryError
from infrastructure.resilience.retry.models import DeadLetterEntry, campaign_key

logger = get_module_logger()


class ReplayTarget(Protocol):
    """Where replayed events are re-injected (the EventPublisher)."""

    def publish(self, event: Event) -> Any: ...

    def replay_to(self, event: Event, handler_name: str) -> Any: ...


@dataclass
class DeadLetterFilter:
    """Criteria for DeadLetterQueue.list.

    Attributes:
        event_type: Only entries for this event type
        error_type: Only entries whose final error has this class name
        handler: Only entries for this handler
        include_replayed: Include entries that were already replayed
        offset: Entries to skip (after filtering)
        limit: Maximum entries to return
    """

    event_type: Optional[str] = None
    error_type: Optional[str] = None
    handler: Optional[str] = None
    include_replayed: bool = True
    offset: int = 0
    limit: int = 50

    def matches(self, entry: DeadLetterEntry) -> bool:
        if self.event_type and entry.event.event_type != self.event_type:
            return False
        if self.error_type and entry.error_type != self.error_type:
            return False
        if self.handler and entry.handler != self.handler:
            return False
        if not self.include_replayed and entry.replayed_at is not None:
            return False
        return True


class DeadLetterQueue:
    """Durable sink for exhausted events.

    Attributes:
        KEY_PREFIX: Namespace of entries in the backing store
        PENDING_INDEX_PREFIX: Namespace of the campaign key -> un-replayed entry id index
    """

    KEY_PREFIX = "dead_letter:"
    PENDING_INDEX_PREFIX = "dead_letter_pending:"

    def __init__(
        self,
        store: KeyValueStore,
        clock: Optional[Clock] = None,
        store_attempts: int = 3,
        replay_target: Optional[ReplayTarget] = None,
    ) -> None:
        if store_attempts < 1:
            raise ValueError("store_attempts must be at least 1")
        self._store = store
        self._clock = clock or SystemClock()
        self._store_attempts = store_attempts
        self._replay_target = replay_target
        self._locks = KeyedLock()

    def bind_replay_target(self, target: ReplayTarget) -> None:
        """Set the publisher that replay() re-injects events into."""
        self._replay_target = target

    def send(
        self,
        event: Event,
        error: BaseException,
        attempts_made: int,
        handler: Optional[str] = None,
        first_failed_at: Optional[datetime] = None,
    ) -> DeadLetterEntry:
        """Append an exhausted event.

        Sending the same campaign (event id and handler) twice returns the
        existing, not yet replayed entry instead of creating a second one.

        Args:
            event: The event that exhausted its retries
            error: Final error (a ProcessorError keeps the original class name)
            attempts_made: Attempts used before giving up
            handler: Handler that failed
            first_failed_at: Time of the first failure, defaults to now

        Returns:
            The stored entry.

        Raises:
            DeadLetterDeliveryError: If the entry could not be stored.
        """
        key = campaign_key(event.event_id, handler)
        with self._locks.hold(key):
            existing = self._find_pending(key)
            if existing is not None:
                logger.info(
                    "dead_letter_duplicate_ignored",
                    entry_id=existing.entry_id,
                    event_id=event.event_id,
                    handler=handler,
                )
                return existing

            now = self._clock.now()
            entry = DeadLetterEntry(
                entry_id=str(uuid4()),
                event=event,
                final_error=str(error) or type(error).__name__,
                error_type=getattr(error, "error_type", type(error).__name__),
                attempts_made=attempts_made,
                first_failed_at=first_failed_at or now,
                sent_at=now,
                handler=handler,
            )
            self._write(entry)
            self._index_pending(entry)

        logger.error(
            "event_dead_lettered",
            entry_id=entry.entry_id,
            event_id=event.event_id,
            event_type=event.event_type,
            handler=handler,
            attempts_made=attempts_made,
            error_type=entry.error_type,
            error=entry.final_error,
        )
        return entry

    def get(self, entry_id: str) -> Optional[DeadLetterEntry]:
        data = self._store.get(self._storage_key(entry_id))
        return DeadLetterEntry.from_dict(data) if data is not None else None

    def list(self, filter: Optional[DeadLetterFilter] = None) -> List[DeadLetterEntry]:
        """Entries matching the filter, newest first."""
        criteria = filter or DeadLetterFilter()
        matching = [e for e in self._all_entries() if criteria.matches(e)]
        return matching[criteria.offset : criteria.offset + criteria.limit]

    def count(self) -> int:
        return len(self._store.keys(self.KEY_PREFIX))

    def statistics(self) -> Dict[str, Any]:
        """Totals by event type and error type, age range and average attempts."""
        entries = self._all_entries()
        if not entries:
            return {
                "total_entries": 0,
                "pending_replay": 0,
                "entries_by_event_type": {},
                "entries_by_error_type": {},
                "oldest_entry": None,
                "newest_entry": None,
                "average_attempts": 0.0,
            }

        return {
            "total_entries": len(entries),
            "pending_replay": sum(1 for e in entries if e.replayed_at is None),
            "entries_by_event_type": dict(Counter(e.event.event_type for e in entries)),
            "entries_by_error_type": dict(Counter(e.error_type for e in entries)),
            "oldest_entry": entries[-1].sent_at.isoformat(),
            "newest_entry": entries[0].sent_at.isoformat(),
            "average_attempts": sum(e.attempts_made for e in entries) / len(entries),
        }

    def replay(self, entry_id: str) -> Event:
        """Re-inject an entry's event for manual recovery.

        The entry is kept (marked replayed) so the history of what failed
        stays inspectable. Handler-specific entries are replayed to that
        handler only.

        Raises:
            KeyError: If no entry has this id.
            RuntimeError: If no replay target is bound.
        """
        if self._replay_target is None:
            raise RuntimeError("No replay target bound to the dead letter queue")

        entry = self.get(entry_id)
        if entry is None:
            raise KeyError(f"Dead letter entry {entry_id} not found")

        with self._locks.hold(entry.campaign_key):
            entry.replayed_at = self._clock.now()
            entry.replay_count += 1
            self._write(entry)
            self._unindex_pending(entry)

        logger.info(
            "dead_letter_replayed",
            entry_id=entry_id,
            event_id=entry.event.event_id,
            handler=entry.handler,
            replay_count=entry.replay_count,
        )
        if entry.handler:
            self._replay_target.replay_to(entry.event, entry.handler)
        else:
            self._replay_target.publish(entry.event)
        return entry.event

    def remove(self, entry_id: str) -> bool:
        entry = self.get(entry_id)
        removed = self._store.delete(self._storage_key(entry_id))
        if removed:
            if entry is not None:
                self._unindex_pending(entry)
            logger.info("dead_letter_entry_removed", entry_id=entry_id)
        return removed

    def purge_older_than(self, days: int) -> int:
        """Delete entries sent more than `days` ago.

        Returns:
            Number of entries removed.
        """
        cutoff = self._clock.now() - timedelta(days=days)
        removed = 0
        for entry in self._all_entries():
            if entry.sent_at < cutoff and self._store.delete(self._storage_key(entry.entry_id)):
                self._unindex_pending(entry)
                removed += 1
        if removed:
            logger.info("dead_letter_entries_purged", removed=removed, older_than_days=days)
        return removed

    def _write(self, entry: DeadLetterEntry) -> None:
        last_error: Optional[Exception] = None
        for attempt in range(1, self._store_attempts + 1):
            try:
                self._store.put(self._storage_key(entry.entry_id), entry.to_dict())
                return
            except Exception as e:
                last_error = e
                logger.warning(
                    "dead_letter_store_failed",
                    entry_id=entry.entry_id,
                    event_id=entry.event.event_id,
                    attempt=attempt,
                    max_attempts=self._store_attempts,
                    error=str(e),
                )

        # Fallback: the serialized entry survives in the log stream.
        logger.critical(
            "dead_letter_fallback",
            entry=entry.to_dict(),
            error=str(last_error),
        )
        raise DeadLetterDeliveryError(
            f"Failed to store dead letter entry for event {entry.event.event_id}: {last_error}",
            event_id=entry.event.event_id,
        ) from last_error

    def _find_pending(self, key: str) -> Optional[DeadLetterEntry]:
        index = self._store.get(self._index_key(key))
        if index is None:
            return None
        entry = self.get(index["entry_id"])
        if entry is None or entry.replayed_at is not None:
            return None
        return entry

    def _index_pending(self, entry: DeadLetterEntry) -> None:
        # Best effort: without the index the stored entry is only undeduplicated.
        try:
            self._store.put(self._index_key(entry.campaign_key), {"entry_id": entry.entry_id})
        except Exception as e:
            logger.warning(
                "dead_letter_index_write_failed",
                entry_id=entry.entry_id,
                campaign_key=entry.campaign_key,
                error=str(e),
            )

    def _unindex_pending(self, entry: DeadLetterEntry) -> None:
        index = self._store.get(self._index_key(entry.campaign_key))
        if index is not None and index.get("entry_id") == entry.entry_id:
            self._store.delete(self._index_key(entry.campaign_key))

    def _index_key(self, campaign: str) -> str:
        return f"{self.PENDING_INDEX_PREFIX}{campaign}"

    def _all_entries(self) -> List[DeadLetterEntry]:
        entries = []
        for storage_key in self._store.keys(self.KEY_PREFIX):
            data = self._store.get(storage_key)
            if data is not None:
                entries.append(DeadLetterEntry.from_dict(data))
        # Newest first; entries sent at the same instant keep reverse insertion order.
        ordered = sorted(enumerate(entries), key=lambda pair: (pair[1].sent_at, pair[0]), reverse=True)
        return [entry for _, entry in ordered]

    def _storage_key(self, entry_id: str) -> str:
        return f"{self.KEY_PREFIX}{entry_id}"
