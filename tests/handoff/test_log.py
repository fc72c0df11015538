"""
Tests for the logging package.

Tests key features including:
- Structured extra fields rendering
- Level resolution, including TRACE and disabled logging
- Derived loggers writing through the root's handlers
"""

import logging
import os

import pytest

from handoff.log import (
    InvalidLogLevelError,
    LogConfig,
    LogConstants,
    Logger,
    LoggerFactory,
    create_lg,
    derive_lg,
    resolve_level,
)


@pytest.mark.unit
class TestResolveLevel:
    @pytest.mark.parametrize(
        "level,expected",
        [
            ("info", logging.INFO),
            ("DEBUG", logging.DEBUG),
            ("trace", LogConstants.CUSTOM_LEVELS["TRACE"]),
            ("30", 30),
            (40, 40),
            (True, logging.INFO),
            (False, False),
            ("false", False),
        ],
    )
    def test_levels(self, level, expected):
        assert resolve_level(level) == expected

    def test_invalid(self):
        with pytest.raises(InvalidLogLevelError, match="verbose"):
            resolve_level("verbose")


@pytest.mark.unit
class TestOutput:
    """Test rendered log lines."""

    def test_line_format(self, capsys):
        lg = create_lg("test_format", "debug")
        lg.info("worker serving", extra={"servers": 2, "master_pid": 7})
        line = capsys.readouterr().out.rstrip("\n")

        assert "] [I] worker serving" in line
        assert "[master_pid:7] [servers:2]" in line
        assert line.endswith(f"[{os.getpid()}] [test_format]")
        assert "\x1b[" not in line

    def test_fields_aligned(self, capsys):
        lg = create_lg("test_align", "info")
        lg.info("a", extra={"k": 1})
        lg.info("longer message", extra={"k": 1})
        first, second = capsys.readouterr().out.splitlines()
        assert first.index("[k:1]") == second.index("[k:1]")

    def test_exception_field(self, capsys):
        lg = create_lg("test_exc", "info")
        lg.error("boom", extra={"exception": ValueError("bad value")})
        assert "[exception:ValueError: bad value]" in capsys.readouterr().out

    def test_trace_level(self, capsys):
        lg = create_lg("test_trace", "trace")
        lg.trace("fine detail")
        assert "[T] fine detail" in capsys.readouterr().out

    def test_level_filters(self, capsys):
        lg = create_lg("test_filter", "warning")
        lg.info("hidden")
        lg.trace("hidden too")
        lg.warning("shown")
        out = capsys.readouterr().out
        assert "hidden" not in out
        assert "shown" in out

    def test_disabled(self, capsys):
        lg = create_lg("test_disabled", False)
        lg.critical("nothing")
        assert capsys.readouterr().out == ""

    def test_micros(self, capsys):
        lg = LoggerFactory.create(
            "test_micros", LogConfig.from_params("info", micros=True)
        )
        lg.info("x")
        stamp = capsys.readouterr().out.split("]")[0]
        assert len(stamp.split(",")[1]) == 6


@pytest.mark.unit
class TestDerive:
    """Test derived loggers."""

    def test_names(self):
        root = create_lg("/", "info")
        assert derive_lg(root, "master").name == "/master"
        assert derive_lg(root, ["worker", "serve"]).name == "/worker/serve"
        child = derive_lg(root, "worker")
        assert derive_lg(child, "watch").name == "/worker/watch"

    def test_writes_through_root(self, capsys):
        root = create_lg("test_root", "debug")
        child = derive_lg(root, "worker")

        assert isinstance(child, Logger)
        assert child.handlers == []
        assert child.root_logger is root
        child.debug("from child", extra={"pid": 1})

        out = capsys.readouterr().out
        assert "from child" in out
        assert out.rstrip().endswith("[test_root/worker]")

    def test_inherits_level(self, capsys):
        root = create_lg("test_lvl", "error")
        derive_lg(root, "worker").info("quiet")
        assert capsys.readouterr().out == ""

    def test_existing_logger_reused(self):
        first = create_lg("test_same", "info")
        assert create_lg("test_same", "debug") is first
