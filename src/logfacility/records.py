"""
Immutable log records and callstack capture.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import FrameType, TracebackType
from typing import Any

from .levels import Severity

# Innermost frames from these modules are dropped so that a captured stack
# ends at the code that asked for the record.
_SKIPPED_MODULES = ("logfacility", "logging", "structlog", "threading")


@dataclass(frozen=True, slots=True)
class StackFrame:
    """One frame of a captured callstack."""

    symbol: str
    filename: str | None = None
    lineno: int | None = None

    def __str__(self) -> str:
        if self.filename is None:
            return self.symbol
        if self.lineno is None:
            return f"{self.symbol} ({self.filename})"
        return f"{self.symbol} ({self.filename}:{self.lineno})"


@dataclass(frozen=True, slots=True)
class LogRecord:
    """A single log event as produced at a call site.

    ``callstack`` is ordered outermost call first, like a Python traceback.
    """

    level: Severity
    message: str
    tag: str | None = None
    callstack: tuple[StackFrame, ...] | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation for destinations that serialize records."""
        data: dict[str, Any] = {
            "timestamp": self.timestamp.isoformat(),
            "level": self.level.name,
            "tag": self.tag,
            "message": self.message,
        }
        if self.callstack is not None:
            data["callstack"] = [str(frame) for frame in self.callstack]
        return data


def _is_skipped(module: str) -> bool:
    return any(module == name or module.startswith(name + ".") for name in _SKIPPED_MODULES)


def _frame_to_stack_frame(frame: FrameType, lineno: int | None = None) -> StackFrame:
    code = frame.f_code
    return StackFrame(
        symbol=code.co_qualname,
        filename=code.co_filename,
        lineno=frame.f_lineno if lineno is None else lineno,
    )


def capture_callstack(frame: FrameType | None = None) -> tuple[StackFrame, ...]:
    """Capture the current callstack, without the facility's own frames.

    Args:
        frame: Frame to start from; defaults to the caller's frame.
    """
    if frame is None:
        current = inspect.currentframe()
        frame = current.f_back if current is not None else None

    while frame is not None and _is_skipped(frame.f_globals.get("__name__", "")):
        frame = frame.f_back

    frames: list[StackFrame] = []
    while frame is not None:
        frames.append(_frame_to_stack_frame(frame))
        frame = frame.f_back
    frames.reverse()
    return tuple(frames)


def frames_from_traceback(tb: TracebackType | None) -> tuple[StackFrame, ...]:
    """Convert a traceback chain into frame descriptors, outermost first."""
    frames: list[StackFrame] = []
    while tb is not None:
        frames.append(_frame_to_stack_frame(tb.tb_frame, tb.tb_lineno))
        tb = tb.tb_next
    return tuple(frames)


def describe_exception(exc: BaseException) -> str:
    """Render an exception as ``TypeName: message``."""
    text = str(exc)
    name = type(exc).__qualname__
    return f"{name}: {text}" if text else name
