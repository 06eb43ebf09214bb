"""Unit tests for schedule expression parsing."""

import pytest
import schedule

from jobs.exceptions import InvalidScheduleError
from jobs.schedules import ScheduleSpec, parse_schedule_expression

pytestmark = pytest.mark.unit


class TestParseScheduleExpression:
    """Test the `every [N] <unit> [at <time>]` grammar."""

    @pytest.mark.parametrize(
        "expression,expected",
        [
            ("every 5 minutes", ScheduleSpec(5, "minutes")),
            ("every minute", ScheduleSpec(1, "minutes")),
            ("every 1 minute", ScheduleSpec(1, "minutes")),
            ("every 30 seconds", ScheduleSpec(30, "seconds")),
            ("every 2 hours", ScheduleSpec(2, "hours")),
            ("every hour at :30", ScheduleSpec(1, "hours", ":30")),
            ("every day at 02:00", ScheduleSpec(1, "days", "02:00")),
            ("every 2 days at 23:59:30", ScheduleSpec(2, "days", "23:59:30")),
            ("every monday at 08:00", ScheduleSpec(1, "monday", "08:00")),
            ("every 2 weeks", ScheduleSpec(2, "weeks")),
            ("  Every   Day  at 02:00 ", ScheduleSpec(1, "days", "02:00")),
        ],
    )
    def test_valid_expressions(self, expression, expected):
        assert parse_schedule_expression(expression) == expected

    @pytest.mark.parametrize(
        "expression",
        [
            "",
            "daily",
            "every",
            "every 0 minutes",
            "every 5 minute",
            "every 5 fortnights",
            "every 2 mondays",
            "every 2 monday",
            "every day at 25:00",
            "every day at 2:00",
            "every day at 12:60",
            "every hour at 30",
            "every 10 seconds at :10",
            "every 2 weeks at 08:00",
            "every minute at :75",
        ],
    )
    def test_invalid_expressions(self, expression):
        with pytest.raises(InvalidScheduleError):
            parse_schedule_expression(expression)

    def test_non_string_rejected(self):
        with pytest.raises(InvalidScheduleError):
            parse_schedule_expression(None)

    def test_invalid_schedule_error_is_value_error(self):
        with pytest.raises(ValueError):
            parse_schedule_expression("sometimes")


class TestScheduleSpec:
    """Test binding onto the schedule library."""

    def test_describe_is_canonical(self):
        assert parse_schedule_expression("every Monday  at 08:00").describe() == "every monday at 08:00"
        assert parse_schedule_expression("every 5 minutes").describe() == "every 5 minutes"

    def test_is_weekday(self):
        assert parse_schedule_expression("every friday").is_weekday
        assert not parse_schedule_expression("every day").is_weekday

    @pytest.mark.parametrize(
        "expression,unit,interval",
        [
            ("every 5 minutes", "minutes", 5),
            ("every day at 02:00", "days", 1),
            ("every monday at 08:00", "weeks", 1),
        ],
    )
    def test_apply_registers_job(self, expression, unit, interval):
        scheduler = schedule.Scheduler()
        calls = []

        job = parse_schedule_expression(expression).apply(scheduler, calls.append, "ran")

        assert scheduler.jobs == [job]
        assert job.unit == unit
        assert job.interval == interval
        assert job.next_run is not None

        job.run()
        assert calls == ["ran"]

    def test_apply_sets_time_of_day(self):
        scheduler = schedule.Scheduler()

        job = parse_schedule_expression("every day at 02:00").apply(scheduler, lambda: None)

        assert job.next_run.hour == 2
        assert job.next_run.minute == 0
