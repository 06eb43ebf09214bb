"""Cache maintenance.

The cache backend is owned by the application. This task checks it is
responsive, removes expired keys, evicts least-recently-used keys when
memory usage is above a threshold, keeps a bounded history of performance
snapshots, and alerts on low hit rate, high memory or slow responses.
"""

from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Deque, Dict, List, Optional, Protocol

from infrastructure.clock import Clock, SystemClock
from infrastructure.logging import get_module_logger
from infrastructure.notifications import Notifier, Severity, send_alert

logger = get_module_logger()


@dataclass(frozen=True)
class CacheStats:
    hits: int
    misses: int
    memory_usage_bytes: int
    max_memory_bytes: int
    connection_count: int = 0
    operations_per_second: float = 0.0
    average_response_ms: float = 0.0

    @property
    def hit_rate(self) -> float:
        """Percentage of lookups served from cache."""
        total = self.hits + self.misses
        return self.hits / total * 100 if total else 0.0

    @property
    def memory_usage_percent(self) -> float:
        if self.max_memory_bytes <= 0:
            return 0.0
        return self.memory_usage_bytes / self.max_memory_bytes * 100


class CacheBackend(Protocol):
    def ping(self) -> bool: ...

    def stats(self) -> CacheStats: ...

    def remove_expired_keys(self) -> int: ...

    def evict_lru(self, count: int) -> int: ...


@dataclass(frozen=True)
class CacheAlertThresholds:
    min_hit_rate: float = 80.0
    max_memory_usage: float = 85.0
    max_response_ms: float = 100.0


@dataclass(frozen=True)
class CacheSnapshot:
    timestamp: datetime
    hit_rate: float
    memory_usage_percent: float
    operations_per_second: float
    response_ms: float


class CacheOptimizationTask:
    """Keeps the cache healthy and within its memory budget."""

    name = "cache-optimization"
    description = "Remove expired cache keys, evict LRU keys under memory pressure and watch cache health"

    def __init__(
        self,
        backend: CacheBackend,
        notifier: Notifier,
        clock: Optional[Clock] = None,
        thresholds: Optional[CacheAlertThresholds] = None,
        eviction_threshold_percent: float = 80.0,
        eviction_batch_size: int = 100,
        max_history: int = 1000,
    ) -> None:
        self._backend = backend
        self._notifier = notifier
        self._clock = clock or SystemClock()
        self._thresholds = thresholds or CacheAlertThresholds()
        self._eviction_threshold_percent = eviction_threshold_percent
        self._eviction_batch_size = eviction_batch_size
        self._history: Deque[CacheSnapshot] = deque(maxlen=max_history)

    def run_body(self) -> Dict[str, Any]:
        if not self._is_healthy():
            send_alert(
                self._notifier,
                "Cache Health Issue",
                "Cache backend did not respond to a health check",
                Severity.ERROR,
            )
            raise RuntimeError("Cache backend is unhealthy")

        before = self._backend.stats()
        self._snapshot(before)

        expired_removed = self._backend.remove_expired_keys()
        evicted = 0
        if before.memory_usage_percent > self._eviction_threshold_percent:
            evicted = self._backend.evict_lru(self._eviction_batch_size)
            logger.info(
                "cache_lru_eviction",
                memory_usage_percent=round(before.memory_usage_percent, 1),
                evicted=evicted,
            )

        after = self._backend.stats()
        alerts = self._check_thresholds(after)

        summary = {
            "expired_keys_removed": expired_removed,
            "keys_evicted": evicted,
            "hit_rate": round(after.hit_rate, 1),
            "memory_usage_percent": round(after.memory_usage_percent, 1),
            "memory_freed_bytes": max(0, before.memory_usage_bytes - after.memory_usage_bytes),
            "alerts": alerts,
        }
        logger.info("cache_optimization_completed", **summary)
        return summary

    def history(self, hours: float = 24) -> List[CacheSnapshot]:
        cutoff = self._clock.now() - timedelta(hours=hours)
        return [s for s in self._history if s.timestamp >= cutoff]

    def throughput_trend(self) -> str:
        """Compare the last 10 snapshots' throughput with the 10 before them."""
        snapshots = list(self._history)
        recent, older = snapshots[-10:], snapshots[-20:-10]
        if not older or not recent:
            return "UNKNOWN"
        older_avg = sum(s.operations_per_second for s in older) / len(older)
        if older_avg == 0:
            return "UNKNOWN"
        recent_avg = sum(s.operations_per_second for s in recent) / len(recent)
        change = (recent_avg - older_avg) / older_avg * 100
        if change > 10:
            return "INCREASING"
        if change < -10:
            return "DECREASING"
        return "STABLE"

    def _is_healthy(self) -> bool:
        try:
            return bool(self._backend.ping())
        except Exception as e:
            logger.error("cache_health_check_failed", error=str(e))
            return False

    def _snapshot(self, stats: CacheStats) -> None:
        self._history.append(
            CacheSnapshot(
                timestamp=self._clock.now(),
                hit_rate=stats.hit_rate,
                memory_usage_percent=stats.memory_usage_percent,
                operations_per_second=stats.operations_per_second,
                response_ms=stats.average_response_ms,
            )
        )

    def _check_thresholds(self, stats: CacheStats) -> int:
        problems = []
        if stats.hits + stats.misses and stats.hit_rate < self._thresholds.min_hit_rate:
            problems.append(
                ("Low Cache Hit Rate",
                 f"Cache hit rate is {stats.hit_rate:.1f}%, below threshold of {self._thresholds.min_hit_rate}%")
            )
        if stats.memory_usage_percent > self._thresholds.max_memory_usage:
            problems.append(
                ("High Cache Memory Usage",
                 f"Cache memory usage is {stats.memory_usage_percent:.1f}%, above threshold of "
                 f"{self._thresholds.max_memory_usage}%")
            )
        if stats.average_response_ms > self._thresholds.max_response_ms:
            problems.append(
                ("Slow Cache Response",
                 f"Cache response time is {stats.average_response_ms}ms, above threshold of "
                 f"{self._thresholds.max_response_ms}ms")
            )

        for title, message in problems:
            send_alert(self._notifier, title, message, Severity.WARNING)
        return len(problems)
