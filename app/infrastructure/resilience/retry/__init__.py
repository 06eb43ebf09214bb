"""Event retry subsystem.

Provides retry policies with exponential backoff and jitter, a keyed retry
ledger, a dead letter queue and the executor tying them together.

Example:
    from infrastructure.resilience.retry import EventRetryExecutor, RetryPolicy

    future = executor.execute_with_retry(event, handler, RetryPolicy.critical())
    outcome = future.result(timeout=30)
"""

from infrastructure.resilience.retry.dead_letter import (
    DeadLetterFilter,
    DeadLetterQueue,
    ReplayTarget,
)
from infrastructure.resilience.retry.executor import EventRetryExecutor
from infrastructure.resilience.retry.ledger import RetryLedger
from infrastructure.resilience.retry.models import (
    DeadLetterEntry,
    LedgerStatus,
    RetryAttemptRecord,
    RetryLedgerEntry,
    RetryOutcome,
    RetryOutcomeStatus,
    campaign_key,
)
from infrastructure.resilience.retry.policy import RetryPolicy

__all__ = [
    "RetryPolicy",
    "RetryLedger",
    "RetryLedgerEntry",
    "RetryAttemptRecord",
    "LedgerStatus",
    "RetryOutcome",
    "RetryOutcomeStatus",
    "DeadLetterQueue",
    "DeadLetterEntry",
    "DeadLetterFilter",
    "ReplayTarget",
    "EventRetryExecutor",
    "campaign_key",
]
