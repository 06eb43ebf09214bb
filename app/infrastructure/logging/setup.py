"""Structlog configuration and module loggers.

Development runs render to the console, production runs (empty PREFIX)
render JSON lines tagged with the deployed git sha. Under pytest nothing is
emitted.

Usage:
    from infrastructure.logging import get_module_logger

    logger = get_module_logger()
    logger.info("retry_scheduled", event_id=event.event_id, delay_seconds=0.5)
"""

import inspect
import logging
import sys
from typing import Any, Dict, List, Optional

import structlog
from structlog.stdlib import BoundLogger

from infrastructure.services.providers import get_settings


def _is_test_environment() -> bool:
    return "pytest" in sys.modules


def _deployment_context(git_sha: str, prefix: str):
    """Processor adding the deployment identity to every entry."""

    def processor(_logger: Any, _method: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        event_dict.setdefault("git_sha", git_sha)
        if prefix:
            event_dict.setdefault("environment", prefix)
        return event_dict

    return processor


def configure_logging(
    log_level: Optional[str] = None,
    is_production: Optional[bool] = None,
) -> BoundLogger:
    """Configure structlog and the stdlib root logger.

    Args:
        log_level: Overrides settings.LOG_LEVEL (DEBUG, INFO, WARNING, ...)
        is_production: Overrides settings.is_production; selects JSON output

    Returns:
        The root structlog logger.
    """
    if _is_test_environment():
        # Bound loggers still need a processor chain; the root level above
        # CRITICAL keeps every entry from being written.
        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.stdlib.add_log_level,
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )
        logging.basicConfig(format="%(message)s", level=logging.CRITICAL + 1, force=True)
        return structlog.stdlib.get_logger()

    settings = get_settings()
    production = settings.is_production if is_production is None else is_production

    processors: List[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.CallsiteParameterAdder(
            parameters=[
                structlog.processors.CallsiteParameter.FILENAME,
                structlog.processors.CallsiteParameter.LINENO,
                structlog.processors.CallsiteParameter.FUNC_NAME,
            ]
        ),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if production:
        processors.append(_deployment_context(settings.GIT_SHA, settings.PREFIX))
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    level = (log_level or settings.LOG_LEVEL).upper()
    logging.basicConfig(format="%(message)s", level=getattr(logging, level, logging.INFO))

    return structlog.stdlib.get_logger()


# Configured on import so module-level loggers work from the first line.
logger: BoundLogger = configure_logging()


def get_module_logger() -> BoundLogger:
    """Logger bound to the calling module.

    In infrastructure/resilience/retry/executor.py the logger carries
    component="executor" and module_path="infrastructure.resilience.retry.executor".
    """
    current_frame = inspect.currentframe()
    caller = current_frame.f_back if current_frame is not None else None
    module = inspect.getmodule(caller) if caller is not None else None
    if module is None:
        return logger.bind(component="unknown")

    return logger.bind(component=module.__name__.rsplit(".", 1)[-1], module_path=module.__name__)
