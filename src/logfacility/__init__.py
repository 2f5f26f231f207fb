"""
logfacility: process-wide log dispatch.

A single ``Facility`` accepts records from any thread, filters them by
severity and fans them out to attached loggers:
- loggers: anything with open/close/handle (see ``BaseLogger``)
- stream capture: stdout/stderr lines become records
- exception hooks: uncaught and raised exceptions become records
- front ends: structlog (``get_logger``) and stdlib ``logging``

Library: structlog for call sites, orjson for JSON destinations,
pydantic-settings for configuration.
"""

from .core import configure_logging, get_logger
from .errors import ExceptionHookError, FacilityError, LoggerNotAttachedError, StreamCaptureError
from .facility import Facility, shared_facility
from .levels import MAX_LOG_LEVEL, MIN_LOG_LEVEL, LevelGate, Severity
from .loggers import BaseLogger, FileLogger, LoggerProtocol, StreamLogger
from .records import LogRecord, StackFrame
from .tags import (
    TAG_CAPTURED_STDERR,
    TAG_CAPTURED_STDOUT,
    TAG_INITIALIZED_EXCEPTIONS,
    TAG_INTERNAL,
    TAG_UNCAUGHT_EXCEPTIONS,
)

__all__ = [
    "BaseLogger",
    "ExceptionHookError",
    "Facility",
    "FacilityError",
    "FileLogger",
    "LevelGate",
    "LogRecord",
    "LoggerNotAttachedError",
    "LoggerProtocol",
    "MAX_LOG_LEVEL",
    "MIN_LOG_LEVEL",
    "Severity",
    "StackFrame",
    "StreamCaptureError",
    "StreamLogger",
    "TAG_CAPTURED_STDERR",
    "TAG_CAPTURED_STDOUT",
    "TAG_INITIALIZED_EXCEPTIONS",
    "TAG_INTERNAL",
    "TAG_UNCAUGHT_EXCEPTIONS",
    "configure_logging",
    "get_logger",
    "shared_facility",
]
