"""
Log formatter for console output.

Renders records as:

    [12:34:56,789] [I] worker serving        [servers:2] [4242] [/worker]

Extra fields are sorted by key and aligned at a fixed column; the process id
and logger name close the line so interleaved output from a master and its
workers stays attributable.
"""

import logging
import time
from typing import Any

from .config import LogConfig
from .constants import LogConstants
from .logger import FIELDS_ATTR


def _format_value(value: Any) -> str:
    if isinstance(value, BaseException):
        text = str(value)
        return f"{value.__class__.__name__}: {text}" if text else value.__class__.__name__
    if isinstance(value, (list, tuple)):
        return ",".join(str(v) for v in value)
    return str(value)


class LogFormatter(logging.Formatter):
    """Formatter producing the package's single-line structured output."""

    def __init__(self, config: LogConfig) -> None:
        super().__init__()
        self._config = config

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        base = time.strftime("%H:%M:%S", self.converter(record.created))
        if self._config.micros:
            micros = int((record.created - int(record.created)) * 1_000_000)
            return f"{base},{micros:06d}"
        return f"{base},{int(record.msecs):03d}"

    def _color(self, record: logging.LogRecord) -> tuple[str, str]:
        if not self._config.colors:
            return "", ""
        col = LogConstants.COLORS.get(record.levelno, LogConstants.DEFAULT_COLOR)
        return col + "m", LogConstants.RESET

    def _format_fields(self, record: logging.LogRecord, col: str, reset: str) -> str:
        fields = getattr(record, FIELDS_ATTR, None)
        if not fields:
            return ""
        parts = [f"[{key}:{_format_value(fields[key])}]" for key in sorted(fields)]
        return " " + col + " ".join(parts) + reset

    def format(self, record: logging.LogRecord) -> str:
        col, reset = self._color(record)
        head = f"[{self.formatTime(record)}] [{record.levelname[:1]}]"
        line = f"{col}{head}{reset} {record.getMessage()}"

        rule = (
            LogConstants.MICRO_RULE_WIDTH
            if self._config.micros
            else LogConstants.DEFAULT_RULE_WIDTH
        )
        visible = len(head) + 1 + len(record.getMessage())
        line += " " * max(0, rule - visible)
        line += self._format_fields(record, col, reset)

        gray = LogConstants.GRAY + "m" if self._config.colors else ""
        line += f" {gray}[{record.process}] [{record.name}]{reset}"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        if record.stack_info:
            line += "\n" + self.formatStack(record.stack_info)
        return line
