"""
structlog front end.

Routes structlog calls into a ``Facility``: the processor chain drops calls
below the facility's minimum level before any rendering happens, then the
final renderer turns the event dict into a facility record. Records are
never written by structlog itself.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable
from typing import Any

import structlog
from structlog.typing import EventDict, FilteringBoundLogger, WrappedLogger

from .facility import Facility, shared_facility
from .formatters import ConsoleFormatter
from .levels import Severity

# =============================================================================
# Global State
# =============================================================================

_facility: Facility | None = None

_METHOD_LEVELS = {
    "debug": Severity.DEBUG,
    "info": Severity.INFO,
    "msg": Severity.INFO,
    "warning": Severity.WARNING,
    "warn": Severity.WARNING,
    "error": Severity.ERROR,
    "err": Severity.ERROR,
    "exception": Severity.EXCEPTION,
    "critical": Severity.ABORT,
    "fatal": Severity.ABORT,
}


def current_facility() -> Facility:
    """The facility configured by ``configure_logging``, else the shared one."""
    return _facility if _facility is not None else shared_facility()


def get_logger(tag: str | None = None) -> FilteringBoundLogger:
    """Get a structlog logger whose records carry ``tag``."""
    return structlog.get_logger(_tag=tag)


# =============================================================================
# Structlog Processors
# =============================================================================


def _event_severity(method_name: str, event_dict: EventDict) -> Severity:
    severity = event_dict.get("severity")
    if severity is not None:
        return Severity.coerce(severity)
    level = _METHOD_LEVELS.get(method_name, Severity.INFO)
    # BoundLogger.exception() is error() with exc_info set.
    if level == Severity.ERROR and event_dict.get("exc_info"):
        return Severity.EXCEPTION
    return level


def drop_below_min_level(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Drop the event early if the facility would discard it anyway."""
    severity = _event_severity(method_name, event_dict)
    if not current_facility().is_enabled_for(severity):
        raise structlog.DropEvent
    event_dict.pop("severity", None)
    event_dict["_severity"] = severity
    return event_dict


def add_tag(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Resolve the record tag: a call-site ``tag=`` wins over the bound one."""
    bound = event_dict.pop("_tag", None)
    tag = event_dict.pop("tag", None)
    event_dict["_tag"] = tag if tag is not None else bound
    return event_dict


def _resolve_exc_info(exc_info: Any) -> BaseException | None:
    if isinstance(exc_info, BaseException):
        return exc_info
    if isinstance(exc_info, tuple):
        return exc_info[1]
    if exc_info:
        return sys.exc_info()[1]
    return None


def facility_renderer(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> str:
    """Hand the event to the facility. Returns empty to suppress default output."""
    severity = event_dict.pop("_severity", Severity.INFO)
    tag = event_dict.pop("_tag", None)
    exc = _resolve_exc_info(event_dict.pop("exc_info", None))
    stack_info = bool(event_dict.pop("stack_info", False))
    event = event_dict.pop("event", "")

    extras = " ".join(f"{k}={v}" for k, v in event_dict.items())
    message = f"{event} {extras}" if extras else str(event)

    current_facility().log(message, tag, severity, exc_info=exc, stack_info=stack_info)
    return ""


# =============================================================================
# Configuration Logic
# =============================================================================


def _configure_structlog() -> None:
    """Configure structlog processors and factory."""
    structlog.configure(
        processors=[
            drop_below_min_level,
            add_tag,
            facility_renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.NOTSET),
        context_class=dict,
        logger_factory=structlog.ReturnLoggerFactory(),
        cache_logger_on_first_use=False,
    )


def configure_logging(
    facility: Facility | None = None,
    *,
    intercept_stdlib: bool = True,
    intercepted_loggers: Iterable[str] = (),
) -> Facility:
    """
    Route structlog and stdlib logging into a facility.

    Args:
        facility: Target facility; defaults to the shared one.
        intercept_stdlib: Replace the root stdlib handlers with a
            ``FacilityHandler``.
        intercepted_loggers: Named stdlib loggers whose own handlers are
            removed so they propagate to the root.
    """
    # Import interceptors here to avoid circular imports
    from .interceptors import FacilityHandler, intercept_loggers

    global _facility
    _facility = facility
    target = current_facility()

    # 1. Console rendering for bundled destinations
    options = target.settings
    ConsoleFormatter.configure(
        timestamp_format=options.console_timestamp_format,
        level_width=options.console_level_width,
        tag_width=options.console_tag_width,
        separator=options.console_separator,
    )

    # 2. Configure Structlog
    _configure_structlog()

    # 3. Configure Stdlib Logging (Root)
    if intercept_stdlib:
        root_logger = logging.getLogger()
        root_logger.handlers = []
        # FacilityHandler applies the facility threshold, which can change at runtime.
        root_logger.setLevel(logging.NOTSET)
        root_logger.addHandler(FacilityHandler(facility))

    # 4. Intercept named loggers
    intercept_loggers(intercepted_loggers)
    return target
