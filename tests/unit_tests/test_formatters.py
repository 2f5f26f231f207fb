"""
Console formatter tests.
"""

from __future__ import annotations

from datetime import datetime, timezone

from logfacility.formatters import ConsoleFormatter, colorize
from logfacility.levels import Severity
from logfacility.records import LogRecord, StackFrame

_TIMESTAMP = datetime(2024, 5, 1, 12, 30, 0, tzinfo=timezone.utc)


def _record(**kwargs) -> LogRecord:
    values = {"level": Severity.INFO, "message": "hello", "tag": "app", "timestamp": _TIMESTAMP}
    values.update(kwargs)
    return LogRecord(**values)


class TestConsoleFormatter:
    def test_columns_without_color(self) -> None:
        line = ConsoleFormatter.format(_record(), use_color=False)
        columns = line.split(ConsoleFormatter.SEPARATOR)
        assert len(columns) == 4
        assert columns[1].strip() == "INFO"
        assert columns[2].strip() == "app"
        assert columns[3] == "hello"
        assert len(columns[2]) == ConsoleFormatter.TAG_WIDTH

    def test_long_tag_is_truncated_from_the_left(self) -> None:
        tag = "x" * 40 + "tail"
        line = ConsoleFormatter.format(_record(tag=tag), use_color=False)
        column = line.split(ConsoleFormatter.SEPARATOR)[2]
        assert column.startswith("...")
        assert column.endswith("tail")
        assert len(column) == ConsoleFormatter.TAG_WIDTH

    def test_missing_tag_renders_blank_column(self) -> None:
        line = ConsoleFormatter.format(_record(tag=None), use_color=False)
        assert line.split(ConsoleFormatter.SEPARATOR)[2].strip() == ""

    def test_callstack_is_indented_below(self) -> None:
        frames = (StackFrame("main", "app.py", 10), StackFrame("run", "app.py", 20))
        lines = ConsoleFormatter.format(_record(callstack=frames), use_color=False).splitlines()
        assert len(lines) == 3
        assert lines[1] == "    main (app.py:10)"
        assert lines[2] == "    run (app.py:20)"

    def test_color_wraps_level(self) -> None:
        line = ConsoleFormatter.format(_record(level=Severity.ERROR), use_color=True)
        assert "\x1b[31m" in line
        assert line.endswith("hello")

    def test_colorize_unknown_color_only_resets(self) -> None:
        assert colorize("x", "nope") == "x\033[0m"
