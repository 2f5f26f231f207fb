"""
Logging Facility Configuration.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..levels import Severity


class LoggingSettings(BaseSettings):
    """Dispatch facility configuration.

    The thresholds are plain integers: any value above ``Severity.ABORT``
    mutes the facility entirely.
    """

    model_config = SettingsConfigDict(
        env_prefix="LOGFACILITY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    min_log_level: int | None = Field(
        default=None,
        ge=0,
        description="Minimum level below which records are discarded (unset: DEBUG in debug builds, INFO otherwise)",
    )
    min_capture_callstack_level: int = Field(
        default=int(Severity.EXCEPTION),
        ge=0,
        description="Minimum level at which the callstack is captured with the record",
    )
    queue_max_size: int = Field(default=10000, ge=0, description="Per-logger queue bound (0 = unbounded)")
    flush_timeout: float = Field(default=2.0, gt=0, description="Seconds to wait for queues to drain on shutdown")
    capture_read_size: int = Field(default=4096, gt=0, description="Chunk size for captured stream reads")
    console_timestamp_format: str = Field(
        default="%Y-%m-%d %H:%M:%S",
        description="Console timestamp format",
    )
    console_level_width: int = Field(default=9, description="Console level column width")
    console_tag_width: int = Field(default=32, description="Console tag column width")
    console_separator: str = Field(default=" | ", description="Console column separator")

    def resolved_min_log_level(self, debug: bool) -> int:
        """Return the configured minimum level, or the build default."""
        if self.min_log_level is not None:
            return self.min_log_level
        return int(Severity.DEBUG if debug else Severity.INFO)
