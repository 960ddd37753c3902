"""Logging utilities for context1000.

This module provides standalone structlog logger factories that write
JSON-formatted or text-formatted logs to a file or to stderr. Each logger is
self-contained and does not modify global structlog configuration.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from os import getenv
from pathlib import Path
from typing import TYPE_CHECKING, Literal, cast

import structlog

from context1000.config._models import LoggingConfig

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

LogFormatType = Literal["json", "text"]


def _get_log_level() -> int:
    """Get the log level from environment variables.

    Checks CONTEXT1000_DEBUG first (sets DEBUG if present), then
    CONTEXT1000_LOG_LEVEL. Defaults to INFO if neither is set.

    Returns:
        The logging level as an integer.
    """
    if getenv("CONTEXT1000_DEBUG", None):
        return logging.DEBUG

    log_levels = logging.getLevelNamesMapping()
    return log_levels.get(getenv("CONTEXT1000_LOG_LEVEL", "info").upper(), logging.INFO)


def _log_level_from_string(level: str, *, respect_env: bool = False) -> int:
    """Convert a log level string to a logging level integer.

    Args:
        level: Log level string (debug, info, warning, error).
        respect_env: If True, CONTEXT1000_DEBUG overrides to DEBUG level.

    Returns:
        The logging level as an integer.
    """
    if respect_env and getenv("CONTEXT1000_DEBUG", None):
        return logging.DEBUG

    log_levels = logging.getLevelNamesMapping()
    return log_levels.get(level.upper(), logging.INFO)


def _create_logger(
    log_file_path: str,
    *,
    log_level: int | None = None,
    log_format: LogFormatType = "json",
    max_bytes: int | None = None,
    backup_count: int | None = None,
) -> "FilteringBoundLogger":  # noqa: UP037
    """Create a standalone structlog logger.

    Args:
        log_file_path: Path to the log file (opened in append mode). Empty
            writes to stderr.
        log_level: Override log level (uses env vars if not specified).
        log_format: Output format, either "json" or "text".
        max_bytes: Maximum size in bytes before rotation. Must be set with
            backup_count for rotation to be enabled.
        backup_count: Number of rotated log files to keep. Must be set with
            max_bytes for rotation to be enabled.

    Returns:
        A configured FilteringBoundLogger instance.
    """
    effective_level = log_level if log_level is not None else _get_log_level()

    # Use stdlib logger with RotatingFileHandler when both max_bytes and backup_count
    # are provided, otherwise use direct writing
    raw_logger: object
    if not log_file_path:
        raw_logger = structlog.WriteLoggerFactory(file=sys.stderr)()
    else:
        log_path = Path(log_file_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        if max_bytes is not None and backup_count is not None:
            stdlib_logger = logging.getLogger(
                f"context1000.{log_path.stem}.{id(log_path)}"
            )
            stdlib_logger.handlers.clear()
            stdlib_logger.propagate = False
            stdlib_logger.setLevel(effective_level)

            handler = RotatingFileHandler(
                log_path,
                maxBytes=max_bytes,
                backupCount=backup_count,
            )
            handler.setLevel(effective_level)
            # structlog renders the message; the handler writes it unchanged
            handler.setFormatter(logging.Formatter("%(message)s"))
            stdlib_logger.addHandler(handler)
            raw_logger = stdlib_logger
        else:
            raw_logger = structlog.WriteLoggerFactory(
                file=log_path.open("a", encoding="utf-8")
            )()

    processors: list[structlog.typing.Processor] = [
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if log_format == "json":
        processors.append(structlog.processors.dict_tracebacks)
        processors.append(structlog.processors.JSONRenderer())
    else:
        # Text format: "timestamp [level] event key=value ..."
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    wrapper_class = structlog.make_filtering_bound_logger(effective_level)

    # wrap_logger leaves the global structlog configuration untouched
    return cast(
        "FilteringBoundLogger",
        structlog.wrap_logger(
            raw_logger,
            processors=processors,
            wrapper_class=wrapper_class,
            context_class=dict,
        ),
    )


def create_logger(
    *,
    level: str | None = None,
    log_format: LogFormatType = "json",
    log_file: str = "",
    max_bytes: int | None = None,
    backup_count: int | None = None,
    component: str = "",
) -> "FilteringBoundLogger":  # noqa: UP037
    """Create a logger for catalog, store and watcher operations.

    The log level is determined by (in order of precedence):
    1. CONTEXT1000_DEBUG environment variable (if set, enables DEBUG level)
    2. The `level` parameter (if provided)
    3. CONTEXT1000_LOG_LEVEL environment variable
    4. Default: INFO

    Args:
        level: Optional log level string (debug, info, warning, error).
        log_format: Output format, either "json" or "text".
        log_file: Path to log file (stderr if empty).
        max_bytes: Maximum size in bytes before rotation.
        backup_count: Number of rotated log files to keep.
        component: Component name bound to all entries, if given.

    Returns:
        A FilteringBoundLogger instance.
    """
    effective_level: int | None = None
    if level is not None:
        effective_level = _log_level_from_string(level, respect_env=True)

    logger = _create_logger(
        log_file,
        log_level=effective_level,
        log_format=log_format,
        max_bytes=max_bytes,
        backup_count=backup_count,
    )

    if component:
        return logger.bind(component=component)
    return logger


def logger_from_config(
    config: LoggingConfig, *, component: str = ""
) -> "FilteringBoundLogger":  # noqa: UP037
    """Create a logger from the logging section of a configuration.

    Args:
        config: Logging settings.
        component: Component name bound to all entries, if given.

    Returns:
        A FilteringBoundLogger instance.
    """
    return create_logger(
        level=config.level.value,
        log_format=cast("LogFormatType", config.format.value),
        log_file=config.file,
        component=component,
    )
