"""
Logger class for the logging system.

Extends the standard logger with structured fields: anything passed as
``extra={...}`` is kept together on the record and rendered by LogFormatter
as ``[key:value]`` pairs after the message.
"""

import logging
from typing import Any

from .config import LogConfig
from .constants import LogConstants

FIELDS_ATTR = "handoff_fields"


class Logger(logging.Logger):
    """
    Enhanced logger with structured extra fields and a TRACE level.

    Derived loggers (see LoggerFactory.derive) have no handlers of their own
    and hand records to their root logger's handlers.
    """

    def __init__(
        self,
        name: str,
        config: LogConfig | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize the logger.

        Args:
            name: Logger name ("/" for a root logger, "/a/b" for derived ones)
            config: Logger configuration (default: info level)
            extra: Fields added to every record this logger emits
        """
        if config is None:
            config = LogConfig()

        if config.level is False:
            super().__init__(name, logging.CRITICAL + 1)
        else:
            super().__init__(name, config.level)
        self._config = config
        self._extra: dict[str, Any] = dict(extra or {})
        self._root_logger: Logger | None = None

    @property
    def config(self) -> LogConfig:
        return self._config

    @property
    def root_logger(self) -> "Logger":
        """Logger owning the handlers this logger writes to."""
        return self._root_logger or self

    def makeRecord(  # type: ignore[override]
        self,
        name: str,
        level: int,
        fn: str,
        lno: int,
        msg: object,
        args: Any,
        exc_info: Any,
        func: str | None = None,
        extra: dict[str, Any] | None = None,
        sinfo: str | None = None,
    ) -> logging.LogRecord:
        """Create a record carrying the merged extra fields."""
        record = super().makeRecord(
            name, level, fn, lno, msg, args, exc_info, func=func, sinfo=sinfo
        )
        fields = dict(self._extra)
        if extra:
            fields.update(extra)
        setattr(record, FIELDS_ATTR, fields)
        return record

    def trace(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log a TRACE level message."""
        level = LogConstants.CUSTOM_LEVELS["TRACE"]
        if self.isEnabledFor(level):
            self._log(level, msg, args, **kwargs)

    def callHandlers(self, record: logging.LogRecord) -> None:
        """Derived loggers write through their root logger's handlers."""
        if self._root_logger is None:
            super().callHandlers(record)
            return
        for handler in self._root_logger.handlers:
            if record.levelno >= handler.level:
                handler.handle(record)
