"""Retry bookkeeping models.

Ledger entries and dead letter entries are persisted as plain dicts
(ISO timestamps), so every model here round-trips through to_dict/from_dict.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from infrastructure.events.models import Event
from infrastructure.resilience.exceptions import ProcessorError


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _format_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def campaign_key(event_id: str, handler: Optional[str] = None) -> str:
    """Ledger key of a retry campaign: one campaign per event per handler."""
    return f"{event_id}#{handler}" if handler else event_id


class LedgerStatus(Enum):
    """State of a retry campaign in the ledger.

    Values:
        PENDING: First attempt recorded, no failure yet
        RETRYING: At least one failure, next attempt scheduled
        FAILED: Exhausted but the dead letter write failed (terminal)
        DEAD_LETTERED: Exhausted and routed to the dead letter queue (terminal)
    """

    PENDING = "pending"
    RETRYING = "retrying"
    FAILED = "failed"
    DEAD_LETTERED = "dead_lettered"

    @property
    def is_terminal(self) -> bool:
        return self in (LedgerStatus.FAILED, LedgerStatus.DEAD_LETTERED)


class RetryOutcomeStatus(Enum):
    """Final result of execute_with_retry."""

    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"
    ALREADY_IN_FLIGHT = "already_in_flight"


@dataclass
class RetryAttemptRecord:
    """One attempt of a retry campaign."""

    event_id: str
    attempt_number: int
    scheduled_at: datetime
    error: Optional[str] = None
    finished_at: Optional[datetime] = None

    @property
    def succeeded(self) -> bool:
        return self.finished_at is not None and self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "attempt_number": self.attempt_number,
            "scheduled_at": _format_datetime(self.scheduled_at),
            "error": self.error,
            "finished_at": _format_datetime(self.finished_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RetryAttemptRecord":
        return cls(
            event_id=data["event_id"],
            attempt_number=int(data["attempt_number"]),
            scheduled_at=datetime.fromisoformat(data["scheduled_at"]),
            error=data.get("error"),
            finished_at=_parse_datetime(data.get("finished_at")),
        )


@dataclass
class RetryLedgerEntry:
    """In-flight (or terminal) retry campaign for one event and handler.

    Fields:
        key: Ledger key, event id or "{event_id}#{handler}"
        event_id: Id of the event being processed
        event_type: Type of the event, used for statistics
        handler: Name of the handler, if the campaign is per handler
        max_attempts: Attempt budget from the policy
        status: Current LedgerStatus
        attempts: One record per attempt, in order
        created_at: When the campaign began
        updated_at: Last mutation
        next_eligible_at: When the next attempt may run
        last_error: Error message of the latest failure
        first_failed_at: Time of the first failure
    """

    key: str
    event_id: str
    event_type: str
    max_attempts: int
    created_at: datetime
    updated_at: datetime
    handler: Optional[str] = None
    status: LedgerStatus = LedgerStatus.PENDING
    attempts: List[RetryAttemptRecord] = field(default_factory=list)
    next_eligible_at: Optional[datetime] = None
    last_error: Optional[str] = None
    first_failed_at: Optional[datetime] = None

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "event_id": self.event_id,
            "event_type": self.event_type,
            "handler": self.handler,
            "max_attempts": self.max_attempts,
            "status": self.status.value,
            "attempts": [record.to_dict() for record in self.attempts],
            "created_at": _format_datetime(self.created_at),
            "updated_at": _format_datetime(self.updated_at),
            "next_eligible_at": _format_datetime(self.next_eligible_at),
            "last_error": self.last_error,
            "first_failed_at": _format_datetime(self.first_failed_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RetryLedgerEntry":
        return cls(
            key=data["key"],
            event_id=data["event_id"],
            event_type=data["event_type"],
            handler=data.get("handler"),
            max_attempts=int(data["max_attempts"]),
            status=LedgerStatus(data["status"]),
            attempts=[RetryAttemptRecord.from_dict(r) for r in data.get("attempts", [])],
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
            next_eligible_at=_parse_datetime(data.get("next_eligible_at")),
            last_error=data.get("last_error"),
            first_failed_at=_parse_datetime(data.get("first_failed_at")),
        )


@dataclass(frozen=True)
class RetryOutcome:
    """Recorded result of one execute_with_retry call."""

    event_id: str
    status: RetryOutcomeStatus
    attempts: int
    handler: Optional[str] = None
    attempt_history: Tuple[RetryAttemptRecord, ...] = ()
    error: Optional[ProcessorError] = None
    elapsed_seconds: float = 0.0
    result: Any = None
    dead_letter_entry_id: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status is RetryOutcomeStatus.SUCCEEDED

    @property
    def exhausted(self) -> bool:
        return self.status is RetryOutcomeStatus.EXHAUSTED


@dataclass
class DeadLetterEntry:
    """An event that exhausted its retries.

    Append-only apart from replay bookkeeping (replayed_at, replay_count).
    """

    entry_id: str
    event: Event
    final_error: str
    error_type: str
    attempts_made: int
    first_failed_at: datetime
    sent_at: datetime
    handler: Optional[str] = None
    replayed_at: Optional[datetime] = None
    replay_count: int = 0

    @property
    def campaign_key(self) -> str:
        return campaign_key(self.event.event_id, self.handler)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entry_id": self.entry_id,
            "event": self.event.to_dict(),
            "final_error": self.final_error,
            "error_type": self.error_type,
            "attempts_made": self.attempts_made,
            "first_failed_at": _format_datetime(self.first_failed_at),
            "sent_at": _format_datetime(self.sent_at),
            "handler": self.handler,
            "replayed_at": _format_datetime(self.replayed_at),
            "replay_count": self.replay_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeadLetterEntry":
        return cls(
            entry_id=data["entry_id"],
            event=Event.from_dict(data["event"]),
            final_error=data["final_error"],
            error_type=data["error_type"],
            attempts_made=int(data["attempts_made"]),
            first_failed_at=datetime.fromisoformat(data["first_failed_at"]),
            sent_at=datetime.fromisoformat(data["sent_at"]),
            handler=data.get("handler"),
            replayed_at=_parse_datetime(data.get("replayed_at")),
            replay_count=int(data.get("replay_count", 0)),
        )
