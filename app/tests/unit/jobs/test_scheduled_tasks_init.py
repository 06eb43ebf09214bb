"""Unit tests for registration of the built-in tasks."""

from unittest.mock import MagicMock

import pytest

from jobs import scheduled_tasks
from jobs.models import TaskStatus
from tests.fixtures.doubles import StubJob

pytestmark = pytest.mark.unit


class TestInit:
    """Test which tasks are registered."""

    def test_core_tasks_always_registered(self, runtime):
        descriptors = scheduled_tasks.init(runtime)

        assert [d.name for d in descriptors] == ["scheduler-heartbeat", "data-cleanup"]
        assert runtime.registry.get("data-cleanup").schedule_expression == "every day at 02:00"

    def test_collaborator_tasks_registered_when_supplied(self, runtime):
        descriptors = scheduled_tasks.init(
            runtime,
            inventory_monitor=MagicMock(),
            report_source=MagicMock(),
            cache_backend=MagicMock(),
        )

        assert [d.name for d in descriptors] == [
            "scheduler-heartbeat",
            "data-cleanup",
            "low-stock-alert",
            "inventory-report",
            "cache-optimization",
        ]
        assert runtime.registry.get("inventory-report").schedule_expression == "every monday at 08:00"

    def test_registered_tasks_can_be_triggered(self, runtime):
        scheduled_tasks.init(runtime)

        heartbeat = runtime.scheduler.trigger("scheduler-heartbeat").result(timeout=1)
        cleanup = runtime.scheduler.trigger("data-cleanup").result(timeout=1)

        assert heartbeat.status is TaskStatus.SUCCEEDED
        assert heartbeat.summary == {"timestamp": runtime.clock.now().isoformat()}
        assert cleanup.status is TaskStatus.SUCCEEDED
        assert cleanup.summary == {"ledger_entries_removed": 0, "dead_letters_purged": 0}

    def test_init_twice_is_rejected(self, runtime):
        scheduled_tasks.init(runtime)

        with pytest.raises(ValueError):
            scheduled_tasks.init(runtime)


class TestRegister:
    """Test registering an application task."""

    def test_register_wraps_job_with_monitoring(self, runtime):
        job = StubJob(name="nightly-export")

        descriptor = scheduled_tasks.register(runtime, job, "every day at 03:00")
        record = runtime.scheduler.trigger("nightly-export").result(timeout=1)

        assert descriptor.name == "nightly-export"
        assert record.status is TaskStatus.SUCCEEDED
        assert runtime.monitor.latest("nightly-export").execution_id == record.execution_id
        assert runtime.tracker.metrics_for("nightly-export").count == 1
