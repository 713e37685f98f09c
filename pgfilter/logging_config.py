"""
Logging configuration for pgfilter.

Filters log skipped and applied values under ``pgfilter.filter``; the
query builder logs joins and rendered SQL under ``pgfilter.query_builder``.
Levels come from environment variables:

- ``PGFILTER_LOG_LEVEL``: level of the ``pgfilter`` loggers (default INFO)
- ``PGFILTER_SQL_LOG_LEVEL``: level of ``pgfilter.query_builder``, for
  tracing generated SQL without filter noise (defaults to the above)

Only pgfilter's own loggers and asyncpg's are configured; the root logger
is left to the application.
"""

import functools
import inspect
import logging
import logging.config
import os
import sys
import time
from typing import Any, Dict


def get_log_level() -> str:
    return os.getenv("PGFILTER_LOG_LEVEL", "INFO").upper()


def get_sql_log_level() -> str:
    return os.getenv("PGFILTER_SQL_LOG_LEVEL", get_log_level()).upper()


def get_logging_config() -> Dict[str, Any]:
    """Get the logging configuration dictionary."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s | %(name)-28s | %(levelname)-8s | %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
                "stream": sys.stdout,
            },
        },
        "loggers": {
            "pgfilter": {
                "level": get_log_level(),
                "handlers": ["console"],
                "propagate": False,
            },
            "pgfilter.query_builder": {
                "level": get_sql_log_level(),
            },
            "asyncpg": {
                "level": "WARNING",
                "handlers": ["console"],
                "propagate": False,
            },
        },
    }


def setup_logging() -> None:
    """Apply the logging configuration."""
    logging.config.dictConfig(get_logging_config())

    logging.getLogger("pgfilter.logging").debug(
        "Logging configured with level %s (SQL: %s)", get_log_level(), get_sql_log_level()
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger under the ``pgfilter`` hierarchy.

    Module names outside the package (``__main__``, test modules) are
    nested under ``pgfilter`` so they share its handlers.
    """
    if name == "__main__":
        name = "pgfilter.main"
    elif not name.startswith("pgfilter"):
        name = f"pgfilter.{name}"

    return logging.getLogger(name)


def log_performance(logger: logging.Logger, operation: str):
    """
    Decorator that logs how long ``operation`` took, and failures at error level.

    Works for plain functions and coroutine functions.
    """

    def decorator(func):
        def finished(start_time: float) -> None:
            logger.debug("Operation '%s' completed in %.3fs", operation, time.perf_counter() - start_time)

        def failed(start_time: float, error: Exception) -> None:
            logger.error(
                "Operation '%s' failed after %.3fs: %s", operation, time.perf_counter() - start_time, error
            )

        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                start_time = time.perf_counter()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    failed(start_time, e)
                    raise
                finished(start_time)
                return result

            return async_wrapper

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            start_time = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                failed(start_time, e)
                raise
            finished(start_time)
            return result

        return sync_wrapper

    return decorator


if not logging.getLogger("pgfilter").handlers:
    setup_logging()
