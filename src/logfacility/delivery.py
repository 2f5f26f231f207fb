"""
Per-logger delivery queues.

Every attached logger gets its own FIFO queue and worker thread, so a slow or
failing destination never blocks producers or other destinations, and each
logger sees its records in dispatch order.
"""

from __future__ import annotations

import queue
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from .records import LogRecord

if TYPE_CHECKING:
    from .loggers import LoggerProtocol

ErrorCallback = Callable[["DeliveryQueue", "LogRecord | None", Exception], None]

_context = threading.local()


def current_delivery_queue() -> DeliveryQueue | None:
    """Return the queue whose worker is running on this thread, if any."""
    return getattr(_context, "delivery_queue", None)


def is_facility_thread() -> bool:
    """True on delivery workers, capture readers and inside dispatch."""
    return current_delivery_queue() is not None or getattr(_context, "depth", 0) > 0


@contextmanager
def facility_section() -> Iterator[None]:
    """Mark the current thread as running facility code."""
    _context.depth = getattr(_context, "depth", 0) + 1
    try:
        yield
    finally:
        _context.depth -= 1


class _Stop:
    pass


_STOP = _Stop()


class DeliveryQueue:
    """Serial delivery of records to one logger.

    The queue is bounded by ``max_size`` (0 means unbounded). A record that
    does not fit is dropped and counted; producers never block. ``close`` is
    invoked on the worker thread after the last ``handle``, so a logger is
    never handling a record while it is being closed.
    """

    def __init__(self, logger: LoggerProtocol, *, on_error: ErrorCallback, max_size: int = 0):
        self.logger = logger
        self._on_error = on_error
        self._queue: queue.Queue[LogRecord | threading.Event | _Stop] = queue.Queue(maxsize=max_size)
        self._dropped = 0
        self._dropped_lock = threading.Lock()
        self._stop_requested = False
        self._thread = threading.Thread(
            target=self._run,
            name=f"logfacility-delivery-{type(logger).__name__}",
            daemon=True,
        )

    @property
    def dropped(self) -> int:
        """Number of records discarded because the queue was full."""
        return self._dropped

    @property
    def alive(self) -> bool:
        return self._thread.is_alive()

    def is_current_thread(self) -> bool:
        return threading.current_thread() is self._thread

    def start(self) -> None:
        self._thread.start()

    def submit(self, record: LogRecord) -> bool:
        try:
            self._queue.put_nowait(record)
        except queue.Full:
            with self._dropped_lock:
                self._dropped += 1
            return False
        return True

    def flush(self, timeout: float | None = None) -> bool:
        """Wait until everything submitted before this call has been handled."""
        if not self.alive or self.is_current_thread():
            return True
        marker = threading.Event()
        try:
            self._queue.put(marker, timeout=timeout)
        except queue.Full:
            return False
        return marker.wait(timeout)

    def request_stop(self) -> None:
        """Ask the worker to drain, close the logger and exit."""
        if self.is_current_thread():
            # A logger removing itself from inside handle(); the worker
            # exits once the queue is empty.
            self._stop_requested = True
            return
        self._queue.put(_STOP)

    def join(self, timeout: float | None = None) -> bool:
        if self.is_current_thread():
            return False
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def stop(self, timeout: float | None = None) -> bool:
        self.request_stop()
        return self.join(timeout)

    def _run(self) -> None:
        _context.delivery_queue = self
        while not (self._stop_requested and self._queue.empty()):
            item = self._queue.get()
            if isinstance(item, _Stop):
                break
            if isinstance(item, threading.Event):
                item.set()
                continue
            try:
                self.logger.handle(item)
            except Exception as exc:
                self._on_error(self, item, exc)

        try:
            self.logger.close()
        except Exception as exc:
            self._on_error(self, None, exc)
        self._release_waiters()

    def _release_waiters(self) -> None:
        # Flush markers that raced with the worker exiting.
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return
            if isinstance(item, threading.Event):
                item.set()
