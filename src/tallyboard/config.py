"""
Configuration management for Tallyboard.

Uses Pydantic Settings to load configuration from environment variables
with sensible defaults for development. Secrets (the webhook channel
secret, database credentials) should be set via environment variables
or a .env file.

Usage:
    from tallyboard.config import settings
    print(settings.lock_timeout_seconds)
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Every field can be overridden with a ``TALLYBOARD_``-prefixed variable,
    e.g. ``TALLYBOARD_MAX_INNINGS=7``.
    """

    model_config = SettingsConfigDict(
        env_prefix="TALLYBOARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # ==========================================================================
    # Database Configuration
    # ==========================================================================

    database_url: str = Field(
        default="sqlite:///tallyboard.db",
        description="SQLAlchemy URL for the row store",
    )

    # ==========================================================================
    # Scoring Rules
    # ==========================================================================

    max_innings: int = Field(
        default=6,
        description="Highest inning number a score can be recorded for",
    )
    max_runs_per_inning: int = Field(
        default=99,
        description="Most runs a single half-inning report may carry",
    )

    # ==========================================================================
    # Concurrency Configuration
    # ==========================================================================

    lock_timeout_seconds: float = Field(
        default=30.0,
        description="How long a command waits for the tournament lock before failing as busy",
    )
    lock_poll_interval_seconds: float = Field(
        default=0.2,
        description="Poll interval when waiting on a PostgreSQL advisory lock",
    )
    dedup_ttl_seconds: float = Field(
        default=60.0,
        description="Window during which a redelivered event id is ignored",
    )

    # ==========================================================================
    # Webhook Configuration
    # ==========================================================================

    channel_secret: Optional[str] = Field(
        default=None,
        description="Shared secret for webhook signatures (verification skipped when unset)",
    )

    # ==========================================================================
    # API Configuration
    # ==========================================================================

    api_host: str = Field(
        default="0.0.0.0",
        description="Host to bind the API server to",
    )
    api_port: int = Field(
        default=8000,
        description="Port for the API server",
    )

    # ==========================================================================
    # Logging Configuration
    # ==========================================================================

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    log_format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        description="Format string handed to logging.basicConfig",
    )

    # ==========================================================================
    # Validators
    # ==========================================================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return upper_v

    @field_validator("max_innings", "max_runs_per_inning")
    @classmethod
    def validate_at_least_one(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_innings and max_runs_per_inning must be at least 1")
        return v

    @field_validator("lock_timeout_seconds", "dedup_ttl_seconds")
    @classmethod
    def validate_positive_window(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts and TTL windows must be positive")
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures we only load settings once,
    which is important because loading from .env can be slow.
    """
    return Settings()


# Convenience alias for importing
settings = get_settings()
