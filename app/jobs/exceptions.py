"""Scheduled task framework errors."""


class DuplicateTaskError(ValueError):
    """Raised when a task name is registered twice."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Scheduled task '{name}' is already registered")
        self.name = name


class ConcurrentExecutionError(RuntimeError):
    """Raised when a task is started while a run of the same task is in progress.

    The caller must skip this cycle rather than retry immediately.
    """

    def __init__(self, name: str) -> None:
        super().__init__(f"Scheduled task '{name}' is already running")
        self.name = name


class UnknownTaskError(KeyError):
    """Raised when a task name is not registered."""

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Unknown scheduled task '{self.name}'"


class InvalidScheduleError(ValueError):
    """Raised for a schedule expression that cannot be parsed."""
