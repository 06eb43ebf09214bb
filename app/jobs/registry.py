"""Catalog of known scheduled tasks."""

import threading
from typing import Dict, List

from infrastructure.logging import get_module_logger
from jobs.exceptions import DuplicateTaskError, UnknownTaskError
from jobs.models import TaskDescriptor

logger = get_module_logger()


class TaskRegistry:
    """Registered once at startup, read-mostly afterward."""

    def __init__(self) -> None:
        self._tasks: Dict[str, TaskDescriptor] = {}
        self._lock = threading.Lock()

    def register(self, descriptor: TaskDescriptor) -> TaskDescriptor:
        """Add a task to the catalog.

        Raises:
            DuplicateTaskError: If a task with the same name exists.
        """
        with self._lock:
            if descriptor.name in self._tasks:
                raise DuplicateTaskError(descriptor.name)
            self._tasks[descriptor.name] = descriptor

        logger.info(
            "scheduled_task_registered",
            task_name=descriptor.name,
            description=descriptor.description,
            schedule=descriptor.schedule_expression,
        )
        return descriptor

    def all(self) -> List[TaskDescriptor]:
        """Descriptors in registration order."""
        with self._lock:
            return list(self._tasks.values())

    def get(self, name: str) -> TaskDescriptor:
        with self._lock:
            try:
                return self._tasks[name]
            except KeyError:
                raise UnknownTaskError(name) from None

    def names(self) -> List[str]:
        with self._lock:
            return list(self._tasks)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._tasks

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)
