"""
Configuration for loggers.

LogConfig is immutable so that a logger tree shares one consistent view of
its display settings.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .constants import LogConstants
from .exceptions import InvalidLogLevelError


def resolve_level(level: str | int | bool) -> int | bool:
    """
    Resolve a log level from a name, a number, or a boolean.

    Args:
        level: Level name ("info", "trace", ...), numeric value, or False
            to disable logging

    Returns:
        Numeric level, or False when logging is disabled

    Raises:
        InvalidLogLevelError: If the level name is unknown
    """
    if isinstance(level, bool):
        return logging.INFO if level else False
    if isinstance(level, int):
        return level
    if level.isnumeric():
        return int(level)
    name = level.lower()
    if name in LogConstants.LEVEL_NAMES:
        return LogConstants.LEVEL_NAMES[name]
    raise InvalidLogLevelError(level)


@dataclass(frozen=True)
class LogConfig:
    """
    Immutable logger configuration.

    Attributes:
        level: Numeric level, or False to disable logging
        micros: Show microsecond precision in timestamps
        colors: Enable ANSI colors in console output
    """

    level: int | bool = logging.INFO
    micros: bool = False
    colors: bool = True

    @classmethod
    def from_params(
        cls, level: str | int | bool = "info", micros: bool = False, colors: bool = True
    ) -> LogConfig:
        return cls(level=resolve_level(level), micros=micros, colors=colors)
