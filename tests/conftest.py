import threading
import typing as t

import pytest
import structlog

from logfacility import BaseLogger, Facility, LogRecord
from logfacility import core as logfacility_core
from logfacility.config import LoggingSettings


class RecordingLogger(BaseLogger):
    """Logger double that keeps every record it handles."""

    def __init__(
        self,
        *,
        open_result: bool = True,
        fail_on: t.Callable[[LogRecord], bool] | None = None,
        on_handle: t.Callable[[LogRecord], None] | None = None,
    ) -> None:
        self.open_result = open_result
        self.fail_on = fail_on
        self.on_handle = on_handle
        self.records: list[LogRecord] = []
        self.open_calls = 0
        self.close_calls = 0
        self.handled_after_close = False
        self._lock = threading.Lock()

    def open(self) -> bool:
        self.open_calls += 1
        return self.open_result

    def close(self) -> None:
        self.close_calls += 1

    def handle(self, record: LogRecord) -> None:
        if self.close_calls:
            self.handled_after_close = True
        if self.on_handle is not None:
            self.on_handle(record)
        if self.fail_on is not None and self.fail_on(record):
            raise RuntimeError("handle failed")
        with self._lock:
            self.records.append(record)

    @property
    def messages(self) -> list[str]:
        with self._lock:
            return [record.message for record in self.records]


@pytest.fixture
def make_logger() -> t.Callable[..., RecordingLogger]:
    """Factory for RecordingLogger instances."""
    return RecordingLogger


@pytest.fixture
def settings() -> LoggingSettings:
    """Facility settings independent of the environment."""
    return LoggingSettings(min_log_level=0, queue_max_size=0, flush_timeout=2.0)


@pytest.fixture
def facility(settings: LoggingSettings):
    """A fresh facility, shut down after the test."""
    instance = Facility(settings, debug=True)
    yield instance
    instance.shutdown()


@pytest.fixture
def reset_structlog():
    """Restore structlog and the front end's facility binding."""
    yield
    structlog.reset_defaults()
    logfacility_core._facility = None
