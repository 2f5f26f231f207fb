"""
Build Environment.

``LOGFACILITY_ENV`` decides whether the facility behaves like a debug or a
release build, and which ``.env`` files the other settings read.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


Environment = Literal["development", "testing", "staging", "production"]


def env_files_for(env: str) -> tuple[str, ...]:
    """``.env`` files for an environment, later entries overriding earlier ones."""
    return (
        ".env",
        ".env.local",
        f".env.{env}",
        f".env.{env}.local",
    )


class EnvironmentSettings(BaseSettings):
    """The current environment; production is the only release build."""

    model_config = SettingsConfigDict(
        env_prefix="LOGFACILITY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    env: Environment = Field(
        default="development",
        description="Current environment (development, testing, staging, production)",
    )

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @property
    def env_files(self) -> tuple[str, ...]:
        return env_files_for(self.env)

    @property
    def debug(self) -> bool:
        return not self.is_production
