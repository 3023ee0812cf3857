"""Configuration settings using Pydantic."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ApiLogsSettings(BaseSettings):
    """API call logging settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    enabled: bool = Field(default=True, alias="API_LOGS_ENABLED")

    # Correlation
    correlation_header: str = Field(default="Idempotency-Key", alias="API_LOGS_CORRELATION_HEADER")
    ensure_correlation_header: bool = Field(
        default=True,
        alias="API_LOGS_ENSURE_HEADER",
        description="Generate a correlation id when the caller sends none",
    )

    # Inbound / outbound filtering
    exclude_paths: list[str] = Field(
        default_factory=list,
        alias="API_LOGS_EXCLUDE_PATHS",
        description="Wildcard path patterns that are never logged, e.g. health/*",
    )
    outbound_enabled: bool = Field(default=True, alias="API_LOGS_OUTBOUND_ENABLED")
    outbound_exclude_hosts: list[str] = Field(
        default_factory=list,
        alias="API_LOGS_OUTBOUND_EXCLUDE_HOSTS",
        description="Wildcard host patterns whose outbound calls are not logged",
    )

    # Persistence
    database_path: Path = Field(default=Path("./data/api_logs.db"), alias="API_LOGS_DATABASE_PATH")
    retention_ttl_hours: int = Field(
        default=24 * 365,
        alias="API_LOGS_TTL_HOURS",
        description="Age after which call summaries are pruned",
    )

    # Channels
    channels_path: Path | None = Field(
        default=None,
        alias="API_LOGS_CHANNELS_PATH",
        description="YAML file mapping channel names to redactor lists",
    )
    log_dir: Path | None = Field(
        default=None,
        alias="API_LOGS_LOG_DIR",
        description="Write channels as JSONL files here instead of through logging",
    )

    # Completion
    defer_completion: bool = Field(default=False, alias="API_LOGS_DEFER_COMPLETION")
    completion_workers: int = Field(default=4, alias="API_LOGS_COMPLETION_WORKERS")
    completion_max_attempts: int = Field(default=3, alias="API_LOGS_COMPLETION_MAX_ATTEMPTS")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @field_validator("exclude_paths", "outbound_exclude_hosts", mode="before")
    @classmethod
    def _split_patterns(cls, value):
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value


@lru_cache
def get_settings() -> ApiLogsSettings:
    """Get API logging settings (cached)."""
    return ApiLogsSettings()
