"""Structured logging infrastructure.

This package provides centralized logging configuration and utilities
using structlog.

Public API:
    - configure_logging(): Initialize logging for the process
    - get_module_logger(): Get a logger bound to the calling module
    - bind_log_context(): Context manager binding ids to log entries
    - get_correlation_id(): Get current correlation ID from context
    - clear_log_context(): Clear all bound context

Example:
    from infrastructure.logging import configure_logging, get_module_logger

    configure_logging()

    logger = get_module_logger()
    logger.info("module_initialized")
"""

from infrastructure.logging.setup import (
    configure_logging,
    get_module_logger,
)
from infrastructure.logging.context import (
    bind_log_context,
    clear_log_context,
    get_correlation_id,
)

__all__ = [
    "configure_logging",
    "get_module_logger",
    "bind_log_context",
    "clear_log_context",
    "get_correlation_id",
]
