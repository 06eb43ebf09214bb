"""Scheduler heartbeat."""

from typing import Any, Dict, Optional

from infrastructure.clock import Clock, SystemClock
from infrastructure.logging import get_module_logger

logger = get_module_logger()


class SchedulerHeartbeatTask:
    """Logs that the scheduler loop is alive."""

    name = "scheduler-heartbeat"
    description = "Log a heartbeat so a stalled scheduler is visible"

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._clock = clock or SystemClock()

    def run_body(self) -> Dict[str, Any]:
        now = self._clock.now()
        logger.info("scheduler_heartbeat", timestamp=now.isoformat())
        return {"timestamp": now.isoformat()}
