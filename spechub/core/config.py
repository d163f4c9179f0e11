"""
spechub-sync Configuration

Single source of truth for all configuration.
Uses Pydantic Settings for environment variable parsing.

The CLI builds a Settings instance (cached via get_settings) and hands it to
the orchestrator explicitly; library code never reads the environment itself.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """spechub-sync configuration from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SPECHUB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Credentials / target
    api_key: Optional[str] = Field(default=None, alias="POSTMAN_API_KEY")
    workspace_id: Optional[str] = Field(default=None, alias="POSTMAN_WORKSPACE_ID")

    # Remote service
    api_base_url: str = Field(default="https://api.getpostman.com")
    request_timeout_seconds: float = Field(default=30.0)

    # Eventual-consistency handling
    poll_interval_seconds: float = Field(default=2.0, ge=0)
    poll_max_attempts: int = Field(default=10, ge=1)
    # Pause before each dependent generation request; Spec Hub needs a moment
    # after a previous generation before it accepts the next one reliably.
    settle_delay_seconds: float = Field(default=3.0, ge=0)

    # Collection generation options
    enable_optional_parameters: bool = Field(default=True)
    folder_strategy: str = Field(default="Tags", description="Tags or Paths")
    apply_tags: bool = Field(default=True)

    # Environment document
    default_base_url: str = Field(default="https://api.example.com")
    response_time_threshold_ms: int = Field(default=2000, gt=0)

    # Observability
    log_level: str = Field(default="INFO")
    metrics_file: Optional[str] = Field(default=None, description="Prometheus textfile output path")

    @field_validator("api_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def upper_level(cls, v: str) -> str:
        return v.upper()


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
