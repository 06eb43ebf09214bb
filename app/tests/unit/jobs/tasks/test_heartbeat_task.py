"""Unit tests for SchedulerHeartbeatTask."""

import pytest

from jobs.tasks import SchedulerHeartbeatTask

pytestmark = pytest.mark.unit


def test_heartbeat_reports_clock_time(clock):
    task = SchedulerHeartbeatTask(clock=clock)

    assert task.name == "scheduler-heartbeat"
    assert task.run_body() == {"timestamp": "2024-01-01T10:00:00+00:00"}
