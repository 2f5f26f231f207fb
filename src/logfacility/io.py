"""
Standard stream capture.

Redirects a standard file descriptor into a pipe, turns every line written
to it into a log record and writes the raw bytes through to the original
destination, so output still shows up where it used to.
"""

from __future__ import annotations

import os
import select
import sys
import threading
from collections.abc import Callable
from contextlib import suppress

from .delivery import facility_section
from .errors import StreamCaptureError
from .levels import Severity

EmitCallback = Callable[[str, str, Severity], None]

# Seconds between stop checks while the pipe is idle.
_POLL_INTERVAL = 0.05

# Captures currently redirecting a descriptor, keyed by that descriptor.
_active: dict[int, StreamCapture] = {}
_active_lock = threading.Lock()


def dup_original(fd: int) -> int:
    """Duplicate what ``fd`` pointed to before it was captured.

    When ``fd`` is not being captured this is a plain ``os.dup(fd)``.
    """
    with _active_lock:
        capture = _active.get(fd)
        if capture is not None and capture.original_fd is not None:
            return os.dup(capture.original_fd)
        return os.dup(fd)


def write_all(fd: int, data: bytes) -> None:
    view = memoryview(data)
    while view:
        written = os.write(fd, view)
        view = view[written:]


class StreamCapture:
    """Captures one file descriptor (1 or 2) for the lifetime of start/stop.

    The reader never waits for end-of-file to finish: other holders of the
    pipe's write end (child processes that inherited the descriptor, for
    instance) do not keep ``stop`` from returning. Their later writes fail
    with ``EPIPE`` once the capture is gone.

    Args:
        fd: File descriptor to capture.
        tag: Tag of the synthesized records.
        level: Level of the synthesized records.
        emit: Called as ``emit(line, tag, level)`` for every complete line.
        read_size: Maximum bytes per pipe read.
        join_timeout: Seconds ``stop`` waits for the reader to finish.
    """

    def __init__(
        self,
        fd: int,
        tag: str,
        level: Severity,
        emit: EmitCallback,
        *,
        read_size: int = 4096,
        join_timeout: float = 2.0,
    ):
        self.fd = fd
        self.tag = tag
        self.level = level
        self._emit = emit
        self._read_size = read_size
        self._join_timeout = join_timeout
        self._saved_fd: int | None = None
        self._thread: threading.Thread | None = None
        self._stopping = threading.Event()
        self._linebuf = bytearray()

    @property
    def active(self) -> bool:
        return self._thread is not None

    @property
    def original_fd(self) -> int | None:
        """Duplicate of the descriptor as it was before capture started."""
        return self._saved_fd

    def _flush_python_stream(self) -> None:
        # Text written through sys.stdout/sys.stderr but still buffered must
        # reach the fd mapping it was written under.
        stream = {1: sys.stdout, 2: sys.stderr}.get(self.fd)
        if stream is not None:
            with suppress(OSError, ValueError, AttributeError):
                stream.flush()

    def start(self) -> None:
        if self.active:
            return
        self._flush_python_stream()

        opened: list[int] = []
        try:
            saved_fd = os.dup(self.fd)
            opened.append(saved_fd)
            read_fd, write_fd = os.pipe()
            opened.extend((read_fd, write_fd))
            os.dup2(write_fd, self.fd)
        except OSError as exc:
            for fd in opened:
                os.close(fd)
            raise StreamCaptureError(fd=self.fd, operation="start", reason=str(exc)) from exc

        # self.fd is now the only write end of the pipe.
        os.close(write_fd)
        self._saved_fd = saved_fd
        self._stopping.clear()
        self._thread = threading.Thread(
            target=self._run,
            args=(read_fd, saved_fd),
            name=f"logfacility-capture-fd{self.fd}",
            daemon=True,
        )
        with _active_lock:
            _active[self.fd] = self
        self._thread.start()

    def stop(self) -> None:
        """Restore the original descriptor and emit whatever is still buffered.

        Waits at most ``join_timeout`` for the reader; no bytes are written
        through after the reader has finished.
        """
        thread, saved_fd = self._thread, self._saved_fd
        if thread is None or saved_fd is None:
            return
        self._flush_python_stream()

        with _active_lock:
            try:
                os.dup2(saved_fd, self.fd)
            except OSError as exc:
                raise StreamCaptureError(fd=self.fd, operation="stop", reason=str(exc)) from exc
            del _active[self.fd]

        self._stopping.set()
        thread.join(self._join_timeout)
        # A reader still running keeps writing through the saved descriptor.
        if not thread.is_alive():
            os.close(saved_fd)
        self._saved_fd = None
        self._thread = None

    def _run(self, read_fd: int, saved_fd: int) -> None:
        with facility_section():
            try:
                while not self._stopping.is_set():
                    try:
                        readable, _, _ = select.select([read_fd], [], [], _POLL_INTERVAL)
                    except OSError:
                        break
                    if readable and not self._forward(read_fd, saved_fd):
                        break

                # Whatever was written before the descriptor was restored.
                os.set_blocking(read_fd, False)
                while self._forward(read_fd, saved_fd):
                    pass

                if self._linebuf:
                    self._emit_line(bytes(self._linebuf))
                    self._linebuf.clear()
            finally:
                os.close(read_fd)

    def _forward(self, read_fd: int, saved_fd: int) -> bool:
        """Move one chunk from the pipe to the original descriptor.

        Returns False at end-of-file, or when nothing is readable in
        non-blocking mode.
        """
        try:
            chunk = os.read(read_fd, self._read_size)
        except OSError:
            return False
        if not chunk:
            return False
        with suppress(OSError):
            write_all(saved_fd, chunk)
        self._linebuf.extend(chunk)
        self._drain_lines()
        return True

    def _drain_lines(self) -> None:
        while True:
            index = self._linebuf.find(b"\n")
            if index < 0:
                return
            line = bytes(self._linebuf[:index])
            del self._linebuf[: index + 1]
            self._emit_line(line)

    def _emit_line(self, raw: bytes) -> None:
        line = raw.decode("utf-8", errors="replace").rstrip("\r")
        if line:
            self._emit(line, self.tag, self.level)
