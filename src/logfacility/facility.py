"""
The dispatch core.

A ``Facility`` accepts records from any thread, filters them through its
``LevelGate`` and fans them out to the attached loggers, each through its own
``DeliveryQueue``. Records tagged ``TAG_INTERNAL`` only ever reach the
designated internal logger, which keeps diagnostics emitted by loggers (or by
the facility itself) from looping back through every destination.

Stream capture and the exception hooks are alternate producers that funnel
into ``Facility.log``.

Example:
    facility = Facility()
    facility.add_logger(StreamLogger(fd=2))
    facility.log("Server started", tag="app", level=Severity.INFO)
    facility.captures_standard_output = True
    ...
    facility.shutdown()
"""

from __future__ import annotations

import atexit
import threading
import time
from types import FrameType, TracebackType

from .config import settings as app_settings
from .config.logging import LoggingSettings
from .delivery import DeliveryQueue, current_delivery_queue, facility_section
from .errors import LoggerNotAttachedError, StreamCaptureError
from .hooks import RaiseMonitor, UncaughtExceptionHook
from .io import StreamCapture
from .levels import LevelGate, Severity
from .loggers import LoggerProtocol
from .records import LogRecord, StackFrame, capture_callstack, describe_exception, frames_from_traceback
from .tags import (
    CAPTURED_TAGS_BY_FD,
    TAG_CAPTURED_STDERR,
    TAG_CAPTURED_STDOUT,
    TAG_INITIALIZED_EXCEPTIONS,
    TAG_INTERNAL,
    TAG_UNCAUGHT_EXCEPTIONS,
)

__all__ = [
    "Facility",
    "shared_facility",
    "TAG_CAPTURED_STDERR",
    "TAG_CAPTURED_STDOUT",
    "TAG_INITIALIZED_EXCEPTIONS",
    "TAG_INTERNAL",
    "TAG_UNCAUGHT_EXCEPTIONS",
]

_CAPTURE_LEVELS = {
    1: Severity.INFO,
    2: Severity.ERROR,
}


class Facility:
    """Thread-safe fan-out of log records to attached loggers.

    Args:
        settings: Facility configuration; defaults to the environment-loaded
            ``logfacility.config.settings.logging``.
        debug: Whether to apply debug-build defaults (``min_log_level`` of
            DEBUG instead of INFO when not configured). Defaults to the
            environment settings.
    """

    def __init__(self, settings: LoggingSettings | None = None, *, debug: bool | None = None):
        if settings is None:
            settings = app_settings.logging
        if debug is None:
            debug = app_settings.environment.debug
        self._settings = settings
        self._gate = LevelGate(
            min_log_level=settings.resolved_min_log_level(debug),
            min_capture_callstack_level=settings.min_capture_callstack_level,
        )

        # Guards the logger set and the internal logger relation.
        self._lock = threading.RLock()
        self._queues: dict[int, DeliveryQueue] = {}
        # Loggers whose open() is running.
        self._opening: set[int] = set()
        self._internal_key: int | None = None

        # Serializes capture and hook toggles. Never held while dispatching.
        self._toggle_lock = threading.Lock()
        self._captures: dict[int, StreamCapture] = {}
        self._uncaught_hook = UncaughtExceptionHook(self._report_uncaught)
        self._raise_monitor = RaiseMonitor(self._report_raised)

    def __repr__(self) -> str:
        return f"<Facility loggers={len(self._queues)} {self._gate!r}>"

    def __enter__(self) -> Facility:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.shutdown()

    # =========================================================================
    # Thresholds
    # =========================================================================

    @property
    def settings(self) -> LoggingSettings:
        return self._settings

    @property
    def min_log_level(self) -> int:
        return self._gate.min_log_level

    @min_log_level.setter
    def min_log_level(self, level: int) -> None:
        self._gate.min_log_level = int(level)

    @property
    def min_capture_callstack_level(self) -> int:
        return self._gate.min_capture_callstack_level

    @min_capture_callstack_level.setter
    def min_capture_callstack_level(self, level: int) -> None:
        self._gate.min_capture_callstack_level = int(level)

    def is_enabled_for(self, level: int) -> bool:
        return self._gate.should_log(level)

    # =========================================================================
    # Logger registry
    # =========================================================================

    @property
    def loggers(self) -> frozenset[LoggerProtocol]:
        with self._lock:
            return frozenset(q.logger for q in self._queues.values())

    def add_logger(self, logger: LoggerProtocol) -> bool:
        """Open and attach a logger.

        Returns False without side effects if the logger is already attached
        (or being attached by another thread), and False if its ``open``
        fails (returns False or raises). ``open`` runs without holding the
        dispatch lock, so other threads keep logging meanwhile.
        """
        key = id(logger)
        with self._lock:
            if key in self._queues or key in self._opening:
                return False
            self._opening.add(key)

        try:
            reason = "open() returned False"
            try:
                opened = logger.open()
            except Exception as exc:
                opened = False
                reason = f"open() raised {exc!r}"
            if not opened:
                self._close_quietly(logger)
                self.log(f"Failed adding logger {logger!r}: {reason}", TAG_INTERNAL, Severity.ERROR)
                return False

            delivery = DeliveryQueue(logger, on_error=self._on_delivery_error, max_size=self._settings.queue_max_size)
            delivery.start()
            with self._lock:
                self._queues[key] = delivery
            return True
        finally:
            with self._lock:
                self._opening.discard(key)

    def remove_logger(self, logger: LoggerProtocol) -> None:
        """Detach a logger after delivering what was already queued for it.

        Removing a logger that is not attached does nothing.
        """
        with self._lock:
            delivery = self._queues.pop(id(logger), None)
            if delivery is None:
                return
            if self._internal_key == id(logger):
                self._internal_key = None
        delivery.stop()

    def remove_all_loggers(self, timeout: float | None = None) -> None:
        """Detach every logger, draining and closing them in parallel.

        Args:
            timeout: Upper bound in seconds for all workers to finish; None
                waits for every queue to drain.
        """
        with self._lock:
            deliveries = list(self._queues.values())
            self._queues.clear()
            self._internal_key = None

        for delivery in deliveries:
            delivery.request_stop()
        deadline = None if timeout is None else time.monotonic() + timeout
        for delivery in deliveries:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            delivery.join(remaining)

    @property
    def internal_logger(self) -> LoggerProtocol | None:
        with self._lock:
            if self._internal_key is None:
                return None
            return self._queues[self._internal_key].logger

    @internal_logger.setter
    def internal_logger(self, logger: LoggerProtocol | None) -> None:
        with self._lock:
            if logger is None:
                self._internal_key = None
                return
            if id(logger) not in self._queues:
                raise LoggerNotAttachedError(logger=logger)
            self._internal_key = id(logger)

    def dropped_records(self, logger: LoggerProtocol) -> int:
        """Number of records dropped for an attached logger because its queue was full."""
        with self._lock:
            delivery = self._queues.get(id(logger))
            return delivery.dropped if delivery is not None else 0

    # =========================================================================
    # Logging
    # =========================================================================

    def log(
        self,
        message: str,
        tag: str | None = None,
        level: int = Severity.INFO,
        *,
        exc_info: BaseException | None = None,
        stack_info: bool = False,
    ) -> None:
        """Log a message with an optional tag.

        Args:
            message: Record message.
            tag: Optional routing tag; ``TAG_INTERNAL`` routes to the internal
                logger only.
            level: Record severity.
            exc_info: Exception whose description is appended to the message
                and whose traceback becomes the callstack.
            stack_info: Capture the callstack regardless of
                ``min_capture_callstack_level``.
        """
        if level < self._gate.min_log_level:
            return

        callstack: tuple[StackFrame, ...] | None = None
        if exc_info is not None:
            message = f"{message}: {describe_exception(exc_info)}" if message else describe_exception(exc_info)
            if exc_info.__traceback__ is not None:
                callstack = frames_from_traceback(exc_info.__traceback__)
        if callstack is None and (stack_info or self._gate.should_capture_stack(level)):
            callstack = capture_callstack()
        self._log_record(message, tag, level, callstack)

    def log_exception(self, exc: BaseException, tag: str | None = None) -> None:
        """Log an exception at EXCEPTION level with its callstack.

        The callstack comes from the exception's traceback, or from the
        current stack when it was never raised.
        """
        if not self._gate.should_log(Severity.EXCEPTION):
            return
        if exc.__traceback__ is not None:
            callstack = frames_from_traceback(exc.__traceback__)
        else:
            callstack = capture_callstack()
        self._log_record(describe_exception(exc), tag, Severity.EXCEPTION, callstack)

    def flush(self, timeout: float | None = None) -> bool:
        """Wait for every queue to deliver what was enqueued before the call.

        Returns False if ``timeout`` expired first.
        """
        with self._lock:
            deliveries = list(self._queues.values())
        deadline = None if timeout is None else time.monotonic() + timeout
        flushed = True
        for delivery in deliveries:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            flushed = delivery.flush(remaining) and flushed
        return flushed

    def _log_record(
        self,
        message: str,
        tag: str | None,
        level: int,
        callstack: tuple[StackFrame, ...] | None,
    ) -> None:
        # Anything logged from inside a logger's handle() is internal.
        if tag != TAG_INTERNAL and current_delivery_queue() is not None:
            tag = TAG_INTERNAL
        record = LogRecord(level=Severity.coerce(level), message=str(message), tag=tag, callstack=callstack)
        self._dispatch(record)

    def _dispatch(self, record: LogRecord) -> None:
        with facility_section():
            with self._lock:
                if record.tag == TAG_INTERNAL:
                    internal = self._queues.get(self._internal_key) if self._internal_key is not None else None
                    # The internal logger's own diagnostics have nowhere to go.
                    if internal is None or internal.is_current_thread():
                        return
                    targets: tuple[DeliveryQueue, ...] = (internal,)
                else:
                    targets = tuple(self._queues.values())
            for delivery in targets:
                delivery.submit(record)

    def _on_delivery_error(self, delivery: DeliveryQueue, record: LogRecord | None, exc: Exception) -> None:
        if record is None:
            self.log(f"Logger {delivery.logger!r} failed to close: {exc!r}", TAG_INTERNAL, Severity.ERROR)
        elif record.tag != TAG_INTERNAL:
            self.log(f"Logger {delivery.logger!r} failed to handle record: {exc!r}", TAG_INTERNAL, Severity.ERROR)

    def _close_quietly(self, logger: LoggerProtocol) -> None:
        try:
            logger.close()
        except Exception as exc:
            self.log(f"Failed closing logger {logger!r}: {exc!r}", TAG_INTERNAL, Severity.ERROR)

    # =========================================================================
    # Stream capture
    # =========================================================================

    @property
    def captures_standard_output(self) -> bool:
        return 1 in self._captures

    @captures_standard_output.setter
    def captures_standard_output(self, enabled: bool) -> None:
        self._set_capture(1, enabled)

    @property
    def captures_standard_error(self) -> bool:
        return 2 in self._captures

    @captures_standard_error.setter
    def captures_standard_error(self, enabled: bool) -> None:
        self._set_capture(2, enabled)

    def _emit_captured(self, line: str, tag: str, level: Severity) -> None:
        self.log(line, tag, level)

    def _set_capture(self, fd: int, enabled: bool) -> None:
        with self._toggle_lock:
            capture = self._captures.get(fd)
            if enabled:
                if capture is not None:
                    return
                capture = StreamCapture(
                    fd,
                    CAPTURED_TAGS_BY_FD[fd],
                    _CAPTURE_LEVELS[fd],
                    self._emit_captured,
                    read_size=self._settings.capture_read_size,
                    join_timeout=self._settings.flush_timeout,
                )
                capture.start()
                self._captures[fd] = capture
            else:
                if capture is None:
                    return
                capture.stop()
                del self._captures[fd]

    # =========================================================================
    # Exception hooks
    # =========================================================================

    @property
    def logs_uncaught_exceptions(self) -> bool:
        return self._uncaught_hook.installed

    @logs_uncaught_exceptions.setter
    def logs_uncaught_exceptions(self, enabled: bool) -> None:
        with self._toggle_lock:
            if enabled:
                self._uncaught_hook.install()
            else:
                self._uncaught_hook.uninstall()

    @property
    def logs_initialized_exceptions(self) -> bool:
        return self._raise_monitor.installed

    @logs_initialized_exceptions.setter
    def logs_initialized_exceptions(self, enabled: bool) -> None:
        with self._toggle_lock:
            if enabled:
                self._raise_monitor.install()
            else:
                self._raise_monitor.uninstall()

    def _report_uncaught(self, exc: BaseException) -> None:
        self.log_exception(exc, TAG_UNCAUGHT_EXCEPTIONS)
        # The process is usually about to exit.
        self.flush(self._settings.flush_timeout)

    def _report_raised(self, exc: BaseException, frame: FrameType | None) -> None:
        if not self._gate.should_log(Severity.EXCEPTION):
            return
        callstack = capture_callstack(frame) if frame is not None else None
        self._log_record(describe_exception(exc), TAG_INITIALIZED_EXCEPTIONS, Severity.EXCEPTION, callstack)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def shutdown(self) -> None:
        """Restore streams, uninstall hooks and remove all loggers.

        Safe to call more than once.
        """
        self.logs_initialized_exceptions = False
        self.logs_uncaught_exceptions = False
        for fd in list(self._captures):
            try:
                self._set_capture(fd, False)
            except StreamCaptureError as exc:
                self.log(str(exc), TAG_INTERNAL, Severity.ERROR)
        self.flush(self._settings.flush_timeout)
        self.remove_all_loggers(timeout=self._settings.flush_timeout)


# =============================================================================
# Shared instance
# =============================================================================

_shared: Facility | None = None
_shared_lock = threading.Lock()


def shared_facility() -> Facility:
    """Return the process-wide facility, creating it on first use.

    The shared instance is shut down automatically at interpreter exit.
    """
    global _shared
    with _shared_lock:
        if _shared is None:
            _shared = Facility()
            atexit.register(_shared.shutdown)
        return _shared
