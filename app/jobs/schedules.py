"""Schedule expressions.

Tasks are scheduled with a small, readable grammar that maps directly onto
the `schedule` library:

    every [N] <unit> [at <time>]

    every 5 minutes
    every hour at :30
    every day at 02:00
    every monday at 08:00
    every 2 weeks

Units are seconds, minutes, hours, days and weeks (the singular form is
accepted when N is omitted or 1) and weekday names. `at` is accepted for
minutes (":SS"), hours (":MM") and days / weekdays ("HH:MM" or "HH:MM:SS").
"""

import re
from dataclasses import dataclass
from typing import Any, Callable, Optional

import schedule

from jobs.exceptions import InvalidScheduleError

_EXPRESSION = re.compile(
    r"^every(?:\s+(?P<interval>\d+))?\s+(?P<unit>[a-z]+)(?:\s+at\s+(?P<at>\S+))?$"
)

_UNITS = {
    "second": "seconds",
    "seconds": "seconds",
    "minute": "minutes",
    "minutes": "minutes",
    "hour": "hours",
    "hours": "hours",
    "day": "days",
    "days": "days",
    "week": "weeks",
    "weeks": "weeks",
}

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

_AT_FORMATS = {
    "minutes": re.compile(r"^:\d{2}$"),
    "hours": re.compile(r"^:\d{2}$"),
    "days": re.compile(r"^\d{2}:\d{2}(:\d{2})?$"),
}


@dataclass(frozen=True)
class ScheduleSpec:
    """A parsed schedule expression.

    Attributes:
        interval: Number of units between runs
        unit: seconds, minutes, hours, days, weeks or a weekday name
        at: Optional time of day (or of hour / minute)
    """

    interval: int
    unit: str
    at: Optional[str] = None

    @property
    def is_weekday(self) -> bool:
        return self.unit in WEEKDAYS

    def describe(self) -> str:
        """Canonical expression for this schedule."""
        parts = ["every"]
        if self.interval != 1:
            parts.append(str(self.interval))
        parts.append(self.unit)
        if self.at:
            parts.extend(["at", self.at])
        return " ".join(parts)

    def apply(
        self, scheduler: schedule.Scheduler, job_func: Callable[..., Any], *args: Any, **kwargs: Any
    ) -> schedule.Job:
        """Register job_func on a schedule.Scheduler.

        Returns:
            The schedule.Job created.
        """
        job = getattr(scheduler.every(self.interval), self.unit)
        if self.at:
            job = job.at(self.at)
        return job.do(job_func, *args, **kwargs)


def parse_schedule_expression(expression: str) -> ScheduleSpec:
    """Parse `every [N] <unit> [at <time>]`.

    Raises:
        InvalidScheduleError: If the expression does not follow the grammar.
    """
    if not isinstance(expression, str):
        raise InvalidScheduleError(f"Schedule expression must be a string, got {type(expression).__name__}")

    normalized = " ".join(expression.strip().lower().split())
    match = _EXPRESSION.match(normalized)
    if not match:
        raise InvalidScheduleError(f"Invalid schedule expression: '{expression}'")

    interval = int(match.group("interval")) if match.group("interval") else 1
    raw_unit = match.group("unit")
    at = match.group("at")

    if interval < 1:
        raise InvalidScheduleError(f"Interval must be at least 1 in '{expression}'")

    if raw_unit in WEEKDAYS:
        if interval != 1:
            raise InvalidScheduleError(f"Weekday schedules cannot use an interval: '{expression}'")
        unit = raw_unit
    elif raw_unit in _UNITS:
        unit = _UNITS[raw_unit]
        if raw_unit == unit.rstrip("s") and interval != 1:
            raise InvalidScheduleError(f"Use the plural unit with an interval: '{expression}'")
    else:
        raise InvalidScheduleError(f"Unknown unit '{raw_unit}' in '{expression}'")

    if at is not None:
        _validate_at(unit, at, expression)

    return ScheduleSpec(interval=interval, unit=unit, at=at)


def _validate_at(unit: str, at: str, expression: str) -> None:
    kind = "days" if unit in WEEKDAYS else unit
    pattern = _AT_FORMATS.get(kind)
    if pattern is None:
        raise InvalidScheduleError(f"'at' is not supported for {unit}: '{expression}'")
    if not pattern.match(at):
        raise InvalidScheduleError(f"Invalid time '{at}' for {unit}: '{expression}'")

    values = [int(part) for part in at.split(":") if part]
    limits = (24, 60, 60) if kind == "days" else (60,)
    if any(value >= limit for value, limit in zip(values, limits)):
        raise InvalidScheduleError(f"Time '{at}' out of range in '{expression}'")
