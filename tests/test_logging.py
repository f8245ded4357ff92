"""Tests for the application log formatter."""

import logging

from liveforge.main import LogFormatter


def _record(level=logging.INFO, msg="Build %s started", args=("build_1",)):
    return logging.LogRecord(
        name="liveforge.services.build.orchestrator",
        level=level,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=args,
        exc_info=None,
    )


def test_plain_format_has_no_ansi_codes():
    line = LogFormatter(color=False, datefmt="%H:%M:%S").format(_record())
    assert "\033[" not in line
    assert "INFO" in line
    assert "[        orchestrator]" in line
    assert line.endswith("Build build_1 started")


def test_color_format_tints_by_level():
    line = LogFormatter(color=True, datefmt="%H:%M:%S").format(_record(level=logging.ERROR))
    assert "\033[31m" in line
    assert "Build build_1 started" in line
