"""
Configuration — typed, validated settings loaded from environment/.env.

Uses pydantic-settings to:
  - Load from environment variables (12-factor app)
  - Fall back to .env file
  - Validate paths, patterns and intervals at startup

Only AppSettings is a BaseSettings instance. Sub-settings are plain BaseModel
classes populated via env_nested_delimiter="__", so TRUST_ANCHORS__DIRECTORY
maps to trust_anchors.directory and POLICY__FILE to policy.file.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the .env file relative to the project root (two levels above this file),
# so settings load correctly regardless of the working directory at runtime.
_ENV_FILE = Path(__file__).parent.parent.parent / ".env"

DEFAULT_TRUST_ANCHORS_DIR = "/etc/grid-security/certificates"
DEFAULT_POLICY_FILE = "/etc/grid-security/vo-ca-ap-file"
DEFAULT_POLICY_FILE_PATTERN = "policy-*.info"

# Four hours, at most one week.
DEFAULT_REFRESH_INTERVAL_SECONDS = 4 * 60 * 60
MAX_REFRESH_INTERVAL_SECONDS = 7 * 24 * 60 * 60


class TrustAnchorsSettings(BaseModel):
    """
    Where the IGTF profile info files live and how often they are re-read.

    A refresh interval <= 0 disables periodic refresh.
    """

    directory: str = Field(
        default=DEFAULT_TRUST_ANCHORS_DIR,
        description="Trust anchors directory holding the profile *.info files",
    )
    policy_file_pattern: str = Field(
        default=DEFAULT_POLICY_FILE_PATTERN,
        description="File name pattern of the profile info files ('*' is a wildcard)",
    )
    refresh_interval_seconds: int = Field(
        default=DEFAULT_REFRESH_INTERVAL_SECONDS,
        le=MAX_REFRESH_INTERVAL_SECONDS,
        description="Seconds between refreshes (<= 0 disables refresh)",
    )

    @field_validator("directory", "policy_file_pattern")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value.strip()


class PolicySettings(BaseModel):
    """The VO-CA-AP policy file."""

    file: str = Field(default=DEFAULT_POLICY_FILE, description="VO-CA-AP policy file")

    @field_validator("file")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value.strip()


class AppSettings(BaseSettings):
    """
    Root application settings.

    Load order (highest priority first):
      1. Environment variables
      2. .env file
      3. Default values
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    trust_anchors: TrustAnchorsSettings = Field(default_factory=lambda: TrustAnchorsSettings())
    policy: PolicySettings = Field(default_factory=lambda: PolicySettings())

    run_on_startup: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def known_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value!r}")
        return level
