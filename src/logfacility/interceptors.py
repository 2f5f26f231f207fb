"""
Interceptors for capturing standard library logs.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from .core import current_facility
from .facility import Facility
from .levels import Severity


def severity_for_record(record: logging.LogRecord) -> Severity:
    """Map a stdlib record level onto the facility's severities."""
    if record.levelno >= logging.CRITICAL:
        return Severity.ABORT
    if record.levelno >= logging.ERROR:
        return Severity.EXCEPTION if record.exc_info else Severity.ERROR
    if record.levelno >= logging.WARNING:
        return Severity.WARNING
    if record.levelno >= logging.INFO:
        return Severity.INFO
    return Severity.DEBUG


class FacilityHandler(logging.Handler):
    """
    Redirect standard library logging events to a facility.
    This ensures third-party logs pass through the same loggers as
    everything else.
    """

    def __init__(self, facility: Facility | None = None, level: int = logging.NOTSET):
        super().__init__(level)
        self._facility = facility

    @property
    def facility(self) -> Facility:
        return self._facility if self._facility is not None else current_facility()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            # Skip records coming from structlog to avoid infinite loops
            if record.name == "structlog" or record.name.startswith("structlog."):
                return

            facility = self.facility
            severity = severity_for_record(record)
            if not facility.is_enabled_for(severity):
                return

            exc = record.exc_info[1] if record.exc_info else None
            facility.log(
                record.getMessage(),
                self._simplify_logger_name(record.name),
                severity,
                exc_info=exc,
                stack_info=bool(record.stack_info),
            )
        except Exception:
            self.handleError(record)

    @staticmethod
    def _simplify_logger_name(name: str) -> str:
        """
        Simplify a logger name for use as a tag.

        Rules:
        - "" -> "stdlib"
        - "uvicorn.access" -> "uvicorn.access"
        - Other -> keep last 2 parts
        """
        if not name:
            return "stdlib"
        parts = name.split(".")
        if len(parts) <= 2:
            return name
        return ".".join(parts[-2:])


def intercept_loggers(names: Iterable[str]) -> None:
    """Strip the handlers of named loggers (and their children) so they propagate to the root."""
    roots = list(names)
    if not roots:
        return

    for logger_name in roots:
        lg = logging.getLogger(logger_name)
        lg.handlers = []
        lg.propagate = True

    # Walk existing child loggers; they may have been created with handlers
    # before we got here.
    logger_dict = logging.Logger.manager.loggerDict
    for name, logger in list(logger_dict.items()):
        if isinstance(logger, logging.PlaceHolder):
            continue
        if any(name == root or name.startswith(root + ".") for root in roots):
            logger.handlers = []
            logger.propagate = True
