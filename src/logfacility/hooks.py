"""
Process-wide exception hooks.

``UncaughtExceptionHook`` wraps ``sys.excepthook`` and ``threading.excepthook``
so uncaught exceptions are reported before the previous hook runs.
``RaiseMonitor`` uses ``sys.monitoring`` RAISE events to report every
exception at the moment it is raised, whether or not it is caught later.
"""

from __future__ import annotations

import inspect
import sys
import threading
from collections.abc import Callable
from types import CodeType, FrameType, TracebackType
from typing import Any

from .delivery import is_facility_thread
from .errors import ExceptionHookError

# Raised as part of normal control flow, never worth a record.
_IGNORED_RAISES = (StopIteration, StopAsyncIteration, GeneratorExit)
_NOT_LOGGED_UNCAUGHT = (KeyboardInterrupt, SystemExit)

# Tool ids tried in order; 3 and 4 have no reserved purpose.
_TOOL_ID_PREFERENCE = (4, 3, 5, 2, 1, 0)
_TOOL_NAME = "logfacility"


class UncaughtExceptionHook:
    """Reports uncaught exceptions, then chains to the hooks it replaced."""

    def __init__(self, report: Callable[[BaseException], None]):
        self._report = report
        self._previous_excepthook: Callable[..., Any] | None = None
        self._previous_threading_excepthook: Callable[..., Any] | None = None
        # Bound once so identity checks on uninstall work.
        self._sys_hook = self._handle_sys_exception
        self._threading_hook = self._handle_thread_exception

    @property
    def installed(self) -> bool:
        return self._previous_excepthook is not None

    def install(self) -> None:
        if self.installed:
            return
        self._previous_excepthook = sys.excepthook
        self._previous_threading_excepthook = threading.excepthook
        sys.excepthook = self._sys_hook
        threading.excepthook = self._threading_hook

    def uninstall(self) -> None:
        if not self.installed:
            return
        # Hooks installed on top of ours are left in place.
        if sys.excepthook is self._sys_hook:
            sys.excepthook = self._previous_excepthook
        if threading.excepthook is self._threading_hook:
            threading.excepthook = self._previous_threading_excepthook
        self._previous_excepthook = None
        self._previous_threading_excepthook = None

    def _maybe_report(self, exc: BaseException | None) -> None:
        if exc is None or isinstance(exc, _NOT_LOGGED_UNCAUGHT):
            return
        self._report(exc)

    def _handle_sys_exception(
        self,
        exc_type: type[BaseException],
        exc: BaseException,
        tb: TracebackType | None,
    ) -> None:
        if exc is not None and exc.__traceback__ is None and tb is not None:
            exc = exc.with_traceback(tb)
        self._maybe_report(exc)
        previous = self._previous_excepthook or sys.__excepthook__
        previous(exc_type, exc, tb)

    def _handle_thread_exception(self, args: Any) -> None:
        self._maybe_report(args.exc_value)
        previous = self._previous_threading_excepthook or threading.__excepthook__
        previous(args)


class RaiseMonitor:
    """Reports every raised exception through ``sys.monitoring``.

    ``report`` receives the exception and the frame that raised it.
    Exceptions raised on facility threads, or while ``report`` itself runs,
    are not reported.
    """

    def __init__(self, report: Callable[[BaseException, FrameType | None], None]):
        self._report = report
        self._tool_id: int | None = None
        self._local = threading.local()

    @property
    def installed(self) -> bool:
        return self._tool_id is not None

    def install(self) -> None:
        if self.installed:
            return
        monitoring = getattr(sys, "monitoring", None)
        if monitoring is None:
            raise ExceptionHookError(reason="sys.monitoring is not available on this interpreter")

        for tool_id in _TOOL_ID_PREFERENCE:
            if monitoring.get_tool(tool_id) is None:
                break
        else:
            raise ExceptionHookError(reason="no free sys.monitoring tool id")

        try:
            monitoring.use_tool_id(tool_id, _TOOL_NAME)
        except ValueError as exc:
            raise ExceptionHookError(reason=str(exc)) from exc
        monitoring.register_callback(tool_id, monitoring.events.RAISE, self._on_raise)
        monitoring.set_events(tool_id, monitoring.events.RAISE)
        self._tool_id = tool_id

    def uninstall(self) -> None:
        if self._tool_id is None:
            return
        monitoring = sys.monitoring
        monitoring.set_events(self._tool_id, monitoring.events.NO_EVENTS)
        monitoring.register_callback(self._tool_id, monitoring.events.RAISE, None)
        monitoring.free_tool_id(self._tool_id)
        self._tool_id = None

    def _on_raise(self, code: CodeType, instruction_offset: int, exception: BaseException) -> None:
        if isinstance(exception, _IGNORED_RAISES) or is_facility_thread():
            return
        if getattr(self._local, "active", False):
            return
        self._local.active = True
        try:
            current = inspect.currentframe()
            self._report(exception, current.f_back if current is not None else None)
        finally:
            self._local.active = False
