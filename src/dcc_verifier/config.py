"""
Configuration — typed, validated settings loaded from environment/.env.

Uses pydantic-settings to:
  - Load from environment variables (prefix DCC_)
  - Fall back to a .env file
  - Validate types and constraints at startup

Only VerifierSettings is a BaseSettings instance. Sub-settings are plain
BaseModel classes populated through env_nested_delimiter="__", so
DCC_KEYS__PATH maps to keys.path.
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the .env file relative to the project root (two levels above this file),
# so settings load correctly regardless of the working directory at runtime.
_ENV_FILE = Path(__file__).parent.parent.parent / ".env"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class KeySettings(BaseModel):
    """
    Trusted key file.

    A JSON array of {"kid": base64, "publicKey": base64 SPKI DER} records.
    Without a file, certificates are still decoded and evaluated but can
    never be reported as verified.
    """

    path: Path | None = Field(default=None, description="Local key file to load at startup")


class VerifierSettings(BaseSettings):
    """
    Root settings.

    Load order (highest priority first):
      1. Environment variables
      2. .env file
      3. Default values
    """

    model_config = SettingsConfigDict(
        env_prefix="DCC_",
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    keys: KeySettings = Field(default_factory=lambda: KeySettings())

    log_level: str = Field(default="INFO")
    scheme_prefix: str = Field(default="HC1:", min_length=1)
    grace_period_days: int = Field(default=1, ge=0)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(_LOG_LEVELS)}, got {value!r}")
        return level

    @property
    def grace_period(self) -> timedelta:
        return timedelta(days=self.grace_period_days)
