"""Retry policy: backoff shape for one retry campaign.

A RetryPolicy is an immutable value object. Invalid values fail
construction with InvalidPolicyError; nothing is clamped into range.

Example:
    policy = RetryPolicy(max_attempts=3, initial_delay_seconds=0.01, jitter_enabled=False)
    policy.delay_for_attempt(1)  # 0.01
    policy.delay_for_attempt(2)  # 0.02
"""

import math
import random
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from infrastructure.configuration.infrastructure.retry import RetrySettings
from infrastructure.resilience.exceptions import InvalidPolicyError

DEFAULT_NON_RETRYABLE_ERRORS: Tuple[str, ...] = ("ValidationError", "AuthenticationError")

JITTER_MIN_FACTOR = 0.5
JITTER_MAX_FACTOR = 1.0

_module_rng = random.Random()


@dataclass(frozen=True)
class RetryPolicy:
    """Configuration describing the backoff shape of a retry campaign.

    Attributes:
        max_attempts: Total attempts including the first one (>= 1)
        initial_delay_seconds: Delay before the second attempt (>= 0)
        max_delay_seconds: Cap on any single delay (>= initial_delay_seconds)
        backoff_multiplier: Growth factor between delays (> 1.0)
        jitter_enabled: Randomize each delay downward into [0.5, 1.0] of its value
        retryable_errors: When non-empty, only these exception class names retry
        non_retryable_errors: Exception class names that never retry
    """

    max_attempts: int = 3
    initial_delay_seconds: float = 1.0
    max_delay_seconds: float = 30.0
    backoff_multiplier: float = 2.0
    jitter_enabled: bool = True
    retryable_errors: Tuple[str, ...] = ()
    non_retryable_errors: Tuple[str, ...] = DEFAULT_NON_RETRYABLE_ERRORS

    def __post_init__(self) -> None:
        """Validate policy values."""
        if isinstance(self.max_attempts, bool) or not isinstance(self.max_attempts, int):
            raise InvalidPolicyError("max_attempts must be an integer")
        if self.max_attempts < 1:
            raise InvalidPolicyError("max_attempts must be at least 1")
        for field_name in ("initial_delay_seconds", "max_delay_seconds", "backoff_multiplier"):
            value = getattr(self, field_name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise InvalidPolicyError(f"{field_name} must be a number")
            if not math.isfinite(value):
                raise InvalidPolicyError(f"{field_name} must be finite")
        if self.initial_delay_seconds < 0:
            raise InvalidPolicyError("initial_delay_seconds must be >= 0")
        if self.max_delay_seconds < self.initial_delay_seconds:
            raise InvalidPolicyError("max_delay_seconds must be >= initial_delay_seconds")
        if self.backoff_multiplier <= 1.0:
            raise InvalidPolicyError("backoff_multiplier must be greater than 1.0")
        object.__setattr__(self, "retryable_errors", tuple(self.retryable_errors))
        object.__setattr__(self, "non_retryable_errors", tuple(self.non_retryable_errors))

    def base_delay_for_attempt(self, attempt: int) -> float:
        """Capped exponential delay after a failed attempt, without jitter."""
        if attempt < 1:
            raise ValueError("attempt must be at least 1")
        try:
            delay = self.initial_delay_seconds * self.backoff_multiplier ** (attempt - 1)
        except OverflowError:
            return self.max_delay_seconds
        return min(self.max_delay_seconds, delay)

    def delay_for_attempt(self, attempt: int, rng: Optional[random.Random] = None) -> float:
        """Seconds to wait after failed attempt `attempt` before the next one.

        With jitter enabled the capped delay is multiplied by a uniform factor
        in [0.5, 1.0], so the result never exceeds max_delay_seconds. Pass a
        seeded random.Random for reproducible jitter.

        Args:
            attempt: The attempt number that just failed (1-based)
            rng: Optional random source for jitter

        Returns:
            Delay in seconds.
        """
        delay = self.base_delay_for_attempt(attempt)
        if self.jitter_enabled:
            delay *= (rng or _module_rng).uniform(JITTER_MIN_FACTOR, JITTER_MAX_FACTOR)
        return delay

    def is_retryable(self, error: BaseException) -> bool:
        """Whether a failure of this type should be retried.

        Matches on the class names of the exception and its bases, so a
        subclass of a listed error is treated like the listed error.
        """
        names = {cls.__name__ for cls in type(error).__mro__}
        if names.intersection(self.non_retryable_errors):
            return False
        if self.retryable_errors:
            return bool(names.intersection(self.retryable_errors))
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "max_attempts": self.max_attempts,
            "initial_delay_seconds": self.initial_delay_seconds,
            "max_delay_seconds": self.max_delay_seconds,
            "backoff_multiplier": self.backoff_multiplier,
            "jitter_enabled": self.jitter_enabled,
            "retryable_errors": list(self.retryable_errors),
            "non_retryable_errors": list(self.non_retryable_errors),
        }

    @classmethod
    def from_settings(cls, settings: RetrySettings) -> "RetryPolicy":
        """Build the process-wide default policy from RETRY_* settings."""
        return cls(
            max_attempts=settings.max_attempts,
            initial_delay_seconds=settings.initial_delay_seconds,
            max_delay_seconds=settings.max_delay_seconds,
            backoff_multiplier=settings.backoff_multiplier,
            jitter_enabled=settings.jitter_enabled,
        )

    # Presets

    @classmethod
    def default(cls) -> "RetryPolicy":
        """Default policy for most events."""
        return cls()

    @classmethod
    def critical(cls) -> "RetryPolicy":
        """Aggressive policy for critical events; only transient errors retry."""
        return cls(
            max_attempts=5,
            initial_delay_seconds=0.5,
            max_delay_seconds=60.0,
            backoff_multiplier=1.5,
            jitter_enabled=True,
            retryable_errors=("TimeoutError", "ConnectionError", "ServiceUnavailableError"),
        )

    @classmethod
    def conservative(cls) -> "RetryPolicy":
        """Few, slow retries for non-critical events."""
        return cls(
            max_attempts=2,
            initial_delay_seconds=2.0,
            max_delay_seconds=10.0,
            backoff_multiplier=2.0,
            jitter_enabled=False,
        )

    @classmethod
    def no_retry(cls) -> "RetryPolicy":
        """Fail fast: a single attempt, dead-lettered on failure."""
        return cls(
            max_attempts=1,
            initial_delay_seconds=0.0,
            max_delay_seconds=0.0,
            backoff_multiplier=2.0,
            jitter_enabled=False,
        )

    @classmethod
    def real_time(cls) -> "RetryPolicy":
        """Quick retries for latency-sensitive events."""
        return cls(
            max_attempts=3,
            initial_delay_seconds=0.1,
            max_delay_seconds=1.0,
            backoff_multiplier=2.0,
            jitter_enabled=True,
        )
