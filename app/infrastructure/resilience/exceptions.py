"""Error taxonomy for event processing and retries."""

from typing import Optional


class InvalidPolicyError(ValueError):
    """Raised when a RetryPolicy is constructed with invalid values.

    Construction-time and fatal: values are never clamped into range.
    """


class ProcessorError(Exception):
    """Wraps whatever an event handler or task body raised.

    Always captured at the executor/wrapper boundary and turned into status,
    ledger entries and metrics; never propagated to publishers or the
    scheduler.

    Attributes:
        cause: The original exception
        error_type: Class name of the original exception
        attempt: Attempt number that failed, when known
    """

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        attempt: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.cause = cause
        self.error_type = type(cause).__name__ if cause is not None else type(self).__name__
        self.attempt = attempt

    @classmethod
    def wrap(cls, error: BaseException, attempt: Optional[int] = None) -> "ProcessorError":
        """Wrap an exception, passing existing ProcessorErrors through."""
        if isinstance(error, ProcessorError):
            return error
        return cls(str(error) or type(error).__name__, cause=error, attempt=attempt)


class DeadLetterDeliveryError(RuntimeError):
    """Raised when the dead letter queue cannot store an entry.

    This is the one processing failure that must surface loudly: losing it
    means an event silently disappears.
    """

    def __init__(self, message: str, event_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.event_id = event_id


class RetryCampaignActiveError(RuntimeError):
    """Raised when a retry campaign is already in flight for a ledger key."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Retry campaign already active for {key}")
        self.key = key
