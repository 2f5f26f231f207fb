"""
Facility exception hierarchy.

Nothing on the logging path raises; these are reported only to callers that
change facility configuration (internal logger, stream capture, hooks).
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class FacilityError(Exception):
    """Root of all facility errors."""

    def __init__(
        self,
        message: str,
        *,
        code: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.details = details or {}


class LoggerNotAttachedError(FacilityError):
    """Raised when a logger that is not attached is designated as internal logger."""

    def __init__(self, *, logger: Any) -> None:
        message = f"Logger {logger!r} must be added to the facility before it can be the internal logger"
        super().__init__(message, code="LOGGER_NOT_ATTACHED", details={"logger": repr(logger)})


class StreamCaptureError(FacilityError):
    """Redirecting or restoring a standard stream failed.

    The capture is left in the state it had before the request.
    """

    def __init__(self, *, fd: int, operation: str, reason: str) -> None:
        message = f"Failed to {operation} capture of fd {fd}: {reason}"
        details = {
            "fd": fd,
            "operation": operation,
            "reason": reason,
        }
        super().__init__(message, code="STREAM_CAPTURE_FAILED", details=details)


class ExceptionHookError(FacilityError):
    """The exception monitoring hook could not be installed."""

    def __init__(self, *, reason: str) -> None:
        super().__init__(f"Failed to install exception hook: {reason}", code="EXCEPTION_HOOK_FAILED")
