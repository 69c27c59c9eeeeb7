"""Unified configuration via pydantic-settings."""

import logging
from pathlib import Path
from typing import Annotated, Any

from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from fsleash.exceptions import ConfigError


class FsleashConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="FSLEASH_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Sandbox: absolute, or relative to the process root. Validated (and
    # possibly disabled) by SandboxBoundary, not here.
    base_directory: str | None = None

    # Listing
    default_max_entries: int = 50

    # Rate limiting
    rate_limit_rpm: int = 0
    rate_limit_burst: int = 5

    # Server
    server_name: str = "fsleash"

    # Logging & audit
    log_level: str = "INFO"
    log_dir: Path | None = None
    log_max_bytes: int = 10_485_760
    log_backup_count: int = 5
    audit_log_path: Path | None = None
    # Comma-separated in the environment
    sensitive_fields: Annotated[list[str], NoDecode] = []

    @field_validator("base_directory", mode="before")
    @classmethod
    def blank_base_directory_is_unset(cls, v: str | Path | None) -> str | None:
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator("default_max_entries")
    @classmethod
    def positive_max_entries(cls, v: int) -> int:
        if v < 1:
            raise ValueError("default_max_entries must be positive")
        return v

    @field_validator("log_level")
    @classmethod
    def known_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level: {v}")
        return level

    @field_validator("sensitive_fields", mode="before")
    @classmethod
    def parse_sensitive_fields(cls, v: list[str] | str) -> list[str]:
        if isinstance(v, str):
            return [f.strip() for f in v.split(",") if f.strip()]
        return v


def load_config(**overrides: Any) -> FsleashConfig:
    """Build the config from env/.env, raising ConfigError on invalid values."""
    try:
        return FsleashConfig(**overrides)
    except ValidationError as e:
        raise ConfigError(
            f"Invalid configuration: {e}", error_count=e.error_count()
        ) from e
