"""
Loguru configuration for the authentication core.

This module configures loguru with:
- Trace ID of the current HTTP exchange in each log
- Configurable level and format from settings
- Redirection of standard library logs (httpx, httpcore, asyncio) to loguru
"""

import logging
import sys
from typing import Any

from loguru import logger

from suitecloud_auth.config import get_settings
from suitecloud_auth.core.trace_context import trace_id_context


def add_trace_id(record: dict[str, Any]) -> bool:
    """
    Adds the trace_id to the log record.

    Args:
        record: Loguru record

    Returns:
        True to indicate that the filter passed
    """
    trace_id = trace_id_context.get()
    record["extra"]["trace_id"] = trace_id if trace_id else "N/A"
    return True


def configure_logger() -> None:
    """
    Configures loguru with process settings.

    Removes the default loguru handler and adds a stderr handler using the
    configured level and format.
    """
    settings = get_settings()

    logger.remove()
    logger.add(
        sink=sys.stderr,
        level=settings.log_level.upper(),
        format=settings.log_format,
        filter=add_trace_id,
        colorize=True,
        serialize=False,
        backtrace=True,
        diagnose=False,
        enqueue=settings.logger_enqueue,
    )


# Configure logger when importing the module
configure_logger()


__all__ = [
    "logger",
    "InterceptHandler",
    "configure_logger",
    "intercept_standard_logging",
]


class InterceptHandler(logging.Handler):
    """
    Handler to redirect standard logging logs to loguru.

    Usage:
        import logging
        from suitecloud_auth.core.logging import InterceptHandler

        logging.getLogger("httpx").handlers = [InterceptHandler()]
    """

    def emit(self, record: logging.LogRecord) -> None:
        """
        Redirects a standard logging record to loguru.

        Args:
            record: logging.LogRecord record
        """
        loguru_logger = logger.opt(depth=6, exception=record.exc_info)
        loguru_logger.log(record.levelname, record.getMessage())


def intercept_standard_logging() -> None:
    """
    Configures redirection of standard logging to loguru.

    Intercepts logs from:
    - httpx / httpcore (token endpoint traffic)
    - asyncio (loopback callback server)
    """
    for logger_name in ["httpx", "httpcore", "asyncio"]:
        logging_logger = logging.getLogger(logger_name)
        logging_logger.handlers = [InterceptHandler()]
        logging_logger.propagate = False
