"""
Factory for creating and deriving loggers.

Root loggers own a console handler; derived loggers are named below their
parent ("/" → "/master" → "/master/spawn") and write through the root's
handlers.
"""

import logging
import sys
from typing import Any

from .config import LogConfig
from .formatter import LogFormatter
from .logger import Logger


class LoggerFactory:
    """Factory for creating and configuring loggers."""

    @staticmethod
    def create_root(config: LogConfig) -> Logger:
        """
        Create the root logger ("/") with the specified configuration.

        Example:
            >>> config = LogConfig.from_params(level="info")
            >>> lg = LoggerFactory.create_root(config)
            >>> lg.info("master started", extra={"workers": 1})
            [12:34:56,789] [I] master started          [workers:1] [1234] [/]
        """
        return LoggerFactory.create("/", config)

    @staticmethod
    def create(
        name: str, config: LogConfig, extra: dict[str, Any] | None = None
    ) -> Logger:
        """
        Create a logger with its own console handler.

        An existing logger registered under the same name is returned as is.
        """
        existing = logging.root.manager.loggerDict.get(name)
        if isinstance(existing, Logger):
            return existing

        lg = Logger(name, config, extra)
        handler = logging.StreamHandler(sys.stdout)
        if config.level is not False:
            handler.setLevel(config.level)
        colors = config.colors and sys.stdout.isatty()
        handler.setFormatter(
            LogFormatter(LogConfig(level=config.level, micros=config.micros, colors=colors))
        )
        lg.addHandler(handler)
        lg.propagate = False

        logging.root.manager.loggerDict[name] = lg
        return lg

    @staticmethod
    def derive(parent: Logger, tags: str | list[str]) -> Logger:
        """
        Derive a child logger sharing the parent's handlers and level.

        Args:
            parent: Parent logger
            tags: Single tag or list of tags appended to the parent's name
        """
        if isinstance(tags, str):
            tags = [tags]
        base = "" if parent.name == "/" else parent.name
        name = base + "".join(f"/{tag}" for tag in tags)

        existing = logging.root.manager.loggerDict.get(name)
        if isinstance(existing, Logger):
            return existing

        lg = Logger(name, parent.config, dict(parent._extra))
        lg.setLevel(parent.level)
        lg._root_logger = parent.root_logger
        lg.propagate = False
        logging.root.manager.loggerDict[name] = lg
        return lg
