"""
Record formatters and color utilities.
"""

from __future__ import annotations

from datetime import datetime

from .levels import Severity
from .records import LogRecord

# =============================================================================
# Console Formatter (Aligned Columns)
# =============================================================================

COLORS = {
    "reset": "\033[0m",
    "dim": "\033[2m",
    "timestamp": "\033[90m",
    "tag": "\033[35m",
}


def colorize(text: str, color: str) -> str:
    """Apply ANSI color to text."""
    return f"{COLORS.get(color, '')}{text}{COLORS['reset']}"


class ConsoleFormatter:
    """Handles human-readable console rendering (fixed width, right-aligned)."""

    _RESET = "\x1b[0m"
    _LEVEL_COLORS = {
        Severity.DEBUG: "\x1b[36m",
        Severity.VERBOSE: "\x1b[34m",
        Severity.INFO: "\x1b[32m",
        Severity.WARNING: "\x1b[33m",
        Severity.ERROR: "\x1b[31m",
        Severity.EXCEPTION: "\x1b[1;31m",
        Severity.ABORT: "\x1b[1;41m",
    }

    TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
    TIMESTAMP_WIDTH = 19
    LEVEL_WIDTH = 9
    TAG_WIDTH = 32
    SEPARATOR = " | "
    CALLSTACK_INDENT = "    "

    @classmethod
    def configure(
        cls,
        *,
        timestamp_format: str | None = None,
        level_width: int | None = None,
        tag_width: int | None = None,
        separator: str | None = None,
    ) -> None:
        """Configure alignment and rendering parameters."""
        if timestamp_format:
            cls.TIMESTAMP_FORMAT = timestamp_format
            cls.TIMESTAMP_WIDTH = len(datetime.now().strftime(timestamp_format))
        if level_width:
            cls.LEVEL_WIDTH = level_width
        if tag_width:
            cls.TAG_WIDTH = tag_width
        if separator is not None:
            cls.SEPARATOR = separator

    @staticmethod
    def _fit_right(text: str, width: int) -> str:
        if width <= 0:
            return text
        if len(text) > width:
            if width <= 3:
                text = text[-width:]
            else:
                text = "..." + text[-(width - 3) :]
        return f"{text:>{width}}"

    @classmethod
    def _colorize_level(cls, text: str, level: Severity, use_color: bool) -> str:
        if not use_color:
            return text
        color = cls._LEVEL_COLORS.get(level)
        if not color:
            return text
        return f"{color}{text}{cls._RESET}"

    @staticmethod
    def _maybe_color(text: str, color: str, use_color: bool) -> str:
        if not use_color:
            return text
        return colorize(text, color)

    @classmethod
    def format(cls, record: LogRecord, *, use_color: bool = True) -> str:
        """Format a record into an aligned line, followed by its callstack if any."""
        timestamp = record.timestamp.astimezone().strftime(cls.TIMESTAMP_FORMAT)
        level_text = cls._colorize_level(cls._fit_right(record.level.name, cls.LEVEL_WIDTH), record.level, use_color)

        line = "".join(
            [
                cls._maybe_color(cls._fit_right(timestamp, cls.TIMESTAMP_WIDTH), "timestamp", use_color),
                cls.SEPARATOR,
                level_text,
                cls.SEPARATOR,
                cls._maybe_color(cls._fit_right(record.tag or "", cls.TAG_WIDTH), "tag", use_color),
                cls.SEPARATOR,
                record.message,
            ]
        )
        if not record.callstack:
            return line

        frames = [cls._maybe_color(f"{cls.CALLSTACK_INDENT}{frame}", "dim", use_color) for frame in record.callstack]
        return "\n".join([line, *frames])
