"""Resilience patterns and implementations.

This package contains the error taxonomy for event processing and the
event retry subsystem (retry policies, retry ledger, dead letter queue).
"""

from infrastructure.resilience.exceptions import (
    DeadLetterDeliveryError,
    InvalidPolicyError,
    ProcessorError,
    RetryCampaignActiveError,
)
from infrastructure.resilience.retry import (
    DeadLetterEntry,
    DeadLetterFilter,
    DeadLetterQueue,
    EventRetryExecutor,
    LedgerStatus,
    RetryAttemptRecord,
    RetryLedger,
    RetryOutcome,
    RetryOutcomeStatus,
    RetryPolicy,
)

__all__ = [
    # Errors
    "InvalidPolicyError",
    "ProcessorError",
    "DeadLetterDeliveryError",
    "RetryCampaignActiveError",
    # Retry System
    "RetryPolicy",
    "RetryLedger",
    "RetryAttemptRecord",
    "LedgerStatus",
    "RetryOutcome",
    "RetryOutcomeStatus",
    "DeadLetterQueue",
    "DeadLetterEntry",
    "DeadLetterFilter",
    "EventRetryExecutor",
]
