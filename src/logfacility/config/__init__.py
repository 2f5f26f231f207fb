"""
logfacility Configuration Module.

Implements the Nested Settings Pattern for orthogonal configuration domains.
Each sub-module represents an independent concern with its own settings class.

Multi-Environment Support:
    Set `LOGFACILITY_ENV` to one of: development, testing, staging, production
    (in the process environment or in `.env` / `.env.local`).
    Domain settings load .env files in this order (later overrides earlier):
    1. .env
    2. .env.local
    3. .env.{environment}
    4. .env.{environment}.local
    Process environment variables override every file.

Usage:
    from logfacility.config import settings

    settings.environment.debug  # True outside production
    settings.logging.resolved_min_log_level(settings.environment.debug)
"""

from functools import cached_property

from pydantic_settings import BaseSettings, SettingsConfigDict

from .environment import EnvironmentSettings
from .logging import LoggingSettings


def _get_env_files() -> tuple[str, ...]:
    """Files that may select the environment itself."""
    return (".env", ".env.local")


class Settings(BaseSettings):
    """
    Composite settings aggregating all configuration domains.

    Sub-settings are loaded lazily and cached, so environment variables and
    .env files are read once, the first time a domain is accessed.
    """

    model_config = SettingsConfigDict(extra="ignore")

    @cached_property
    def environment(self) -> EnvironmentSettings:
        return EnvironmentSettings(_env_file=_get_env_files())

    @cached_property
    def logging(self) -> LoggingSettings:
        return LoggingSettings(_env_file=self.environment.env_files)

    @property
    def debug(self) -> bool:
        return self.environment.debug

    @property
    def min_log_level(self) -> int:
        return self.logging.resolved_min_log_level(self.environment.debug)


settings = Settings()

__all__ = ["EnvironmentSettings", "LoggingSettings", "Settings", "settings"]
