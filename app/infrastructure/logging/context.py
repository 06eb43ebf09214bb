"""Context binding for structured logging.

Binds identifiers (event ids, task names, correlation ids) to every log
entry emitted inside a block, including entries from collaborators the
block calls into.

Usage:
    from infrastructure.logging import bind_log_context

    with bind_log_context(event_id="evt-1", attempt=2):
        logger.info("processing_event")

Dependencies:
    - structlog.contextvars
"""

import uuid
from contextlib import contextmanager
from typing import Any, Generator, Optional

import structlog


@contextmanager
def bind_log_context(
    correlation_id: Optional[str] = None,
    **extra_context: Any,
) -> Generator[None, None, None]:
    """Bind context to all logs within the context manager.

    Values that were already bound by an enclosing block are restored on
    exit, so nested blocks (an event attempt inside a task execution) do
    not clobber each other.

    Args:
        correlation_id: Identifier tying related entries together.
            Auto-generated if not provided and none is bound yet.
        **extra_context: Additional key-value pairs to include in logs.
    """
    previous = structlog.contextvars.get_contextvars()

    context: dict[str, Any] = {}
    if correlation_id is not None:
        context["correlation_id"] = correlation_id
    elif "correlation_id" not in previous:
        context["correlation_id"] = str(uuid.uuid4())
    context.update({k: v for k, v in extra_context.items() if v is not None})

    structlog.contextvars.bind_contextvars(**context)
    try:
        yield
    finally:
        structlog.contextvars.unbind_contextvars(*context.keys())
        restore = {k: previous[k] for k in context if k in previous}
        if restore:
            structlog.contextvars.bind_contextvars(**restore)


def get_correlation_id() -> Optional[str]:
    """Get the current correlation ID from the logging context."""
    ctx = structlog.contextvars.get_contextvars()
    return ctx.get("correlation_id")


def clear_log_context() -> None:
    """Clear all bound context.

    Worker threads call this before picking up new work so context does
    not leak between jobs.
    """
    structlog.contextvars.clear_contextvars()
