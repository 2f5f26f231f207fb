"""
Severity levels and the level gate.
"""

from __future__ import annotations

from enum import IntEnum


class Severity(IntEnum):
    """Totally ordered record severity; comparisons use the ordinal."""

    DEBUG = 0
    VERBOSE = 1
    INFO = 2
    WARNING = 3
    ERROR = 4
    EXCEPTION = 5
    ABORT = 6

    @classmethod
    def coerce(cls, value: int) -> Severity:
        """Clamp an arbitrary integer into the enumeration."""
        return cls(min(max(int(value), MIN_LOG_LEVEL), MAX_LOG_LEVEL))


MIN_LOG_LEVEL = Severity.DEBUG
MAX_LOG_LEVEL = Severity.ABORT


class LevelGate:
    """Threshold checks read on every logging call.

    Thresholds are plain ints so that a value above ``MAX_LOG_LEVEL`` mutes
    everything. Assignment is a single attribute store; readers see the new
    value on their next call.
    """

    __slots__ = ("min_log_level", "min_capture_callstack_level")

    def __init__(self, min_log_level: int = Severity.INFO, min_capture_callstack_level: int = Severity.EXCEPTION):
        self.min_log_level = int(min_log_level)
        self.min_capture_callstack_level = int(min_capture_callstack_level)

    def should_log(self, level: int) -> bool:
        return level >= self.min_log_level

    def should_capture_stack(self, level: int) -> bool:
        return level >= self.min_capture_callstack_level

    def __repr__(self) -> str:
        return (
            f"LevelGate(min_log_level={self.min_log_level}, "
            f"min_capture_callstack_level={self.min_capture_callstack_level})"
        )
