"""Clock and timer abstraction.

Everything that reads the time or waits for a delay goes through a Clock,
so tests can swap in a VirtualClock and assert exact timings without
sleeping.

Usage:
    from infrastructure.clock import SystemClock, VirtualClock

    clock = SystemClock()
    handle = clock.call_later(2.5, lambda: print("fired"))
    handle.cancel()

    clock = VirtualClock()
    clock.call_later(0.010, callback)
    clock.advance(0.010)  # callback runs here, on the calling thread
"""

import heapq
import itertools
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Protocol, Tuple

from infrastructure.logging import get_module_logger

logger = get_module_logger()


class TimerHandle(Protocol):
    """Handle returned by Clock.call_later."""

    def cancel(self) -> None: ...


class Clock(Protocol):
    """Source of time and delayed callbacks.

    Methods:
        now: Current wall-clock time (timezone-aware, UTC)
        monotonic: Monotonic seconds for measuring durations
        call_later: Run a callback once after a delay without blocking the caller
    """

    def now(self) -> datetime: ...

    def monotonic(self) -> float: ...

    def call_later(
        self, delay_seconds: float, callback: Callable[[], None]
    ) -> TimerHandle: ...


class _TimerHandle:
    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class SystemClock:
    """Real clock whose timers share a single daemon thread.

    Pending callbacks sit in a heap ordered by due time; the timer thread
    sleeps until the earliest one is due and runs it. Callbacks must be
    short: anything heavier should hand work off to a worker pool.
    """

    def __init__(self) -> None:
        self._seq = itertools.count()
        self._timers: List[Tuple[float, int, _TimerHandle, Callable[[], None]]] = []
        self._condition = threading.Condition()
        self._thread: Optional[threading.Thread] = None
        self._closed = False

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def monotonic(self) -> float:
        return time.monotonic()

    def call_later(
        self, delay_seconds: float, callback: Callable[[], None]
    ) -> TimerHandle:
        handle = _TimerHandle()
        with self._condition:
            if self._closed:
                raise RuntimeError("cannot schedule timers on a closed clock")
            due = time.monotonic() + max(0.0, delay_seconds)
            heapq.heappush(self._timers, (due, next(self._seq), handle, callback))
            if self._thread is None:
                self._thread = threading.Thread(target=self._run_timers, name="clock-timer", daemon=True)
                self._thread.start()
            self._condition.notify()
        return handle

    def pending(self) -> int:
        """Number of scheduled, not cancelled callbacks."""
        with self._condition:
            return sum(1 for _, _, handle, _ in self._timers if not handle.cancelled)

    def close(self) -> None:
        """Drop pending callbacks and stop the timer thread."""
        with self._condition:
            self._closed = True
            self._timers.clear()
            self._condition.notify()
            thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    def _run_timers(self) -> None:
        while True:
            with self._condition:
                while not self._closed:
                    if self._timers:
                        wait = self._timers[0][0] - time.monotonic()
                        if wait <= 0:
                            break
                        self._condition.wait(wait)
                    else:
                        self._condition.wait()
                if self._closed:
                    return
                _, _, handle, callback = heapq.heappop(self._timers)
            if handle.cancelled:
                continue
            try:
                callback()
            except Exception as e:
                logger.exception("timer_callback_failed", error=str(e))


class VirtualClock:
    """Manually advanced clock for deterministic tests.

    Callbacks scheduled with call_later run synchronously inside advance(),
    in due-time order (ties in scheduling order). A callback that schedules
    another timer falling inside the same advance window runs in that same
    advance.
    """

    def __init__(self, start: Optional[datetime] = None) -> None:
        self._start = start or datetime(2024, 1, 1, tzinfo=timezone.utc)
        self._elapsed = 0.0
        self._seq = itertools.count()
        self._timers: List[Tuple[float, int, _TimerHandle, Callable[[], None]]] = []
        self._lock = threading.RLock()

    def now(self) -> datetime:
        with self._lock:
            return self._start + timedelta(seconds=self._elapsed)

    def monotonic(self) -> float:
        with self._lock:
            return self._elapsed

    def call_later(
        self, delay_seconds: float, callback: Callable[[], None]
    ) -> TimerHandle:
        handle = _TimerHandle()
        with self._lock:
            due = self._elapsed + max(0.0, delay_seconds)
            heapq.heappush(self._timers, (due, next(self._seq), handle, callback))
        return handle

    def advance(self, seconds: float) -> int:
        """Move time forward, running every callback that falls due.

        Args:
            seconds: Amount of virtual time to advance.

        Returns:
            Number of callbacks that ran.
        """
        ran = 0
        with self._lock:
            target = self._elapsed + seconds
        while True:
            with self._lock:
                # Float sums of delays can land a hair past the target.
                if not self._timers or self._timers[0][0] > target + 1e-9:
                    self._elapsed = max(self._elapsed, target)
                    return ran
                due, _, handle, callback = heapq.heappop(self._timers)
                self._elapsed = max(self._elapsed, due)
            if handle.cancelled:
                continue
            callback()
            ran += 1

    def pending(self) -> int:
        """Number of scheduled, not cancelled callbacks."""
        with self._lock:
            return sum(1 for _, _, handle, _ in self._timers if not handle.cancelled)
