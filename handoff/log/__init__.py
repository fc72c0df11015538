"""
Structured logging for masters and workers.

Extends Python's standard logging with:
- Structured fields passed as ``extra={...}`` and rendered as ``[key:value]``
- A TRACE level below DEBUG
- Process id and logger name on every line, so master and worker output
  interleaved on one console stays readable
- Derived "/"-separated child loggers sharing the root's handlers

Example:
    lg = create_root_lg("debug")
    worker_lg = derive_lg(lg, "worker")
    worker_lg.info("serving", extra={"servers": 2})
"""

import logging

from .config import LogConfig, resolve_level
from .constants import LogConstants
from .exceptions import InvalidLogLevelError, LogError
from .factory import LoggerFactory
from .formatter import LogFormatter
from .logger import Logger

logging.addLevelName(LogConstants.CUSTOM_LEVELS["TRACE"], "TRACE")


def create_root_lg(
    level: str | int | bool = "info", micros: bool = False, colors: bool = True
) -> Logger:
    """
    Create the root logger.

    Example:
        >>> lg = create_root_lg("debug")
    """
    return LoggerFactory.create_root(LogConfig.from_params(level, micros, colors))


def create_lg(
    name: str, level: str | int | bool = "info", micros: bool = False
) -> Logger:
    """Create a named logger with its own console handler."""
    return LoggerFactory.create(name, LogConfig.from_params(level, micros))


def derive_lg(lg: Logger, tags: str | list[str]) -> Logger:
    """
    Derive a logger with tags from a parent logger.

    Example:
        >>> parent_lg = create_root_lg("info")
        >>> child_lg = derive_lg(parent_lg, "worker")
    """
    return LoggerFactory.derive(lg, tags)


__all__ = [
    "Logger",
    "LoggerFactory",
    "LogConfig",
    "LogConstants",
    "LogFormatter",
    "LogError",
    "InvalidLogLevelError",
    "resolve_level",
    "create_root_lg",
    "create_lg",
    "derive_lg",
]
