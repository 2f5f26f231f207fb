"""
Logger capability contract and reference destinations.

A logger is any object with ``open``, ``close`` and ``handle``. The facility
calls ``open`` once when the logger is added, ``handle`` for every record
routed to it (always from the logger's own delivery thread, in dispatch
order) and ``close`` once when it is removed.
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import IO, Any, Literal, Protocol, runtime_checkable

import orjson

from .formatters import ConsoleFormatter
from .io import dup_original, write_all
from .records import LogRecord
from .tags import CAPTURED_TAGS_BY_FD

LogFormat = Literal["console", "json"]


def orjson_dumps(v: Any, *, default: Any = None) -> str:
    """Fast JSON serialization using orjson."""
    return orjson.dumps(v, default=default, option=orjson.OPT_UTC_Z | orjson.OPT_NAIVE_UTC).decode()


# =============================================================================
# Logger Abstraction (Strategy Pattern)
# =============================================================================


@runtime_checkable
class LoggerProtocol(Protocol):
    """Structural type accepted by ``Facility.add_logger``."""

    def open(self) -> bool: ...

    def close(self) -> None: ...

    def handle(self, record: LogRecord) -> None: ...


class BaseLogger(ABC):
    """Abstract base class for log destinations."""

    def open(self) -> bool:
        """Acquire resources. Returning False (or raising) aborts attachment."""
        return True

    def close(self) -> None:
        """Release resources. Must tolerate a partially failed ``open``."""

    @abstractmethod
    def handle(self, record: LogRecord) -> None:
        """Write a record to the destination."""
        ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} at {id(self):#x}>"


class StreamLogger(BaseLogger):
    """Writes records to a standard file descriptor.

    ``open`` duplicates the target fd as it was before any capture, so the
    logger keeps writing to the real terminal whether it is added before or
    after the facility starts capturing that stream. Records captured from its own stream are skipped because the
    capture already passes those bytes through.

    Args:
        fd: Target file descriptor (default: stderr)
        fmt: Output format - "console" (colored human-readable) or "json"
    """

    def __init__(self, fd: int = 2, fmt: LogFormat = "console"):
        self._target_fd = fd
        self._fmt = fmt
        self._fd: int | None = None
        self._use_color = False

    def open(self) -> bool:
        try:
            self._fd = dup_original(self._target_fd)
        except OSError:
            return False
        self._use_color = self._fmt == "console" and os.isatty(self._fd)
        return True

    def handle(self, record: LogRecord) -> None:
        if self._fd is None or record.tag == CAPTURED_TAGS_BY_FD.get(self._target_fd):
            return
        if self._fmt == "json":
            output = orjson_dumps(record.to_dict())
        else:
            output = ConsoleFormatter.format(record, use_color=self._use_color)
        write_all(self._fd, (output + "\n").encode("utf-8", errors="replace"))

    def close(self) -> None:
        if self._fd is not None:
            os.close(self._fd)
            self._fd = None


class FileLogger(BaseLogger):
    """Local file destination with size based rotation (JSON lines)."""

    def __init__(self, path: str | Path, max_bytes: int = 10 * 1024 * 1024, backup_count: int = 5):
        self._path = Path(path)
        self._max_bytes = max_bytes
        self._backup_count = backup_count
        self._file: IO[str] | None = None

    @property
    def path(self) -> Path:
        return self._path

    def open(self) -> bool:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._file = open(self._path, "a", encoding="utf-8")
        except OSError:
            return False
        return True

    def handle(self, record: LogRecord) -> None:
        if self._file is None:
            return
        self._file.write(orjson_dumps(record.to_dict()) + "\n")
        self._file.flush()
        self._maybe_rotate(self._file)

    def _backup_path(self, index: int) -> Path:
        return self._path.with_name(f"{self._path.name}.{index}")

    def _maybe_rotate(self, current: IO[str]) -> None:
        if self._max_bytes <= 0 or self._path.stat().st_size <= self._max_bytes:
            return
        current.close()
        if self._backup_count > 0:
            for i in range(self._backup_count - 1, 0, -1):
                src = self._backup_path(i)
                if src.exists():
                    src.replace(self._backup_path(i + 1))
            self._path.replace(self._backup_path(1))
        else:
            self._path.unlink()
        self._file = open(self._path, "a", encoding="utf-8")

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
