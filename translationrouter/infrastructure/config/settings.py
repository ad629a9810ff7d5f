"""Configuration settings using pydantic-settings."""

from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class RouterSettings(BaseSettings):
    """Configuration settings for TranslationRouter.

    Settings can be loaded from environment variables or passed as a dictionary.
    Environment variables are prefixed with 'TRANSLATIONROUTER_'
    (e.g., TRANSLATIONROUTER_MAX_PROVIDER_ATTEMPTS=5).

    Example:
        ```python
        # From environment variables
        settings = RouterSettings()

        # From dictionary
        settings = RouterSettings(backoff_base_seconds=2.0)
        ```
    """

    model_config = SettingsConfigDict(
        env_prefix="TRANSLATIONROUTER_",
        case_sensitive=False,
        extra="ignore",
    )

    # RateLimitController configuration
    backoff_base_seconds: float = Field(
        default=1.0,
        description="Base cooldown after the first throttling failure, in seconds",
        gt=0,
    )
    max_exponent: int = Field(
        default=5,
        description="Cap on cooldown doublings (max cooldown = base * 2**max_exponent)",
        ge=0,
    )
    jitter_ratio: float = Field(
        default=0.2,
        description="Maximum random jitter as a fraction of the cooldown",
        ge=0.0,
        le=1.0,
    )

    # TranslationDispatcher configuration
    max_provider_attempts: int = Field(
        default=10,
        description="Upper bound on failover iterations per request",
        ge=1,
    )
    retry_permanent_errors_across_providers: bool = Field(
        default=False,
        description="Try one further candidate after a PermanentError",
    )
    exhausted_retry_seconds: float = Field(
        default=3600.0,
        description="How long an exhausted key whose provider cannot report usage stays out of rotation",
        gt=0,
    )

    # UsageSyncJob configuration
    usage_sync_interval_seconds: float = Field(
        default=3600.0,
        description="Delay between usage sync cycles, in seconds",
        gt=0,
    )

    # QuotaStore configuration
    redis_url: str | None = Field(
        default=None,
        description="Redis URL for quota persistence; in-memory store when unset",
    )
    redis_key_prefix: str = Field(
        default="translationrouter:",
        description="Prefix for every Redis key written by the quota store",
    )

    # Observability configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    json_logs: bool = Field(
        default=True,
        description="Render logs as JSON (False for human-readable console output)",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(_LOG_LEVELS)}")
        return level

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> "RouterSettings":
        """Create settings from a dictionary.

        Args:
            config: Dictionary with configuration values.

        Returns:
            RouterSettings instance.
        """
        return cls(**config)
