"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for the swap
alert pipeline, loading and validating environment variables once at
startup. The pipeline receives the resulting Settings object by reference
and never reads the environment itself.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from swap_alert_pipeline.errors import PipelineError

_ENV_FILE = ".env"
_ENV_FILE_ENCODING = "utf-8"

DEFAULT_CLASSIFIER_URL = (
    "https://api-inference.huggingface.co/models/"
    "distilbert-base-uncased-finetuned-sst-2-english"
)

RunMode = Literal["direct", "discovered"]


class ConfigMissingError(PipelineError, ValueError):
    """Raised when a parameter required for the requested mode is absent."""

    kind = "ConfigMissing"


def _validate_http_url(v: str | None, *, name: str) -> str | None:
    if v is None:
        return v
    if not v.startswith(("http://", "https://")):
        raise ValueError(f"{name} must be an HTTP(S) endpoint")
    return v


class RedisSettings(BaseSettings):
    """Redis connection settings."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    url: str = Field(
        default="redis://localhost:6379",
        alias="REDIS_URL",
        description="Redis connection string",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate Redis URL format."""
        if not v.startswith(("redis://", "rediss://")):
            raise ValueError("REDIS_URL must start with redis:// or rediss://")
        return v


class SwapFeedSettings(BaseSettings):
    """Upstream swap source settings (discovered mode)."""

    model_config = SettingsConfigDict(env_prefix="SWAP_FEED_", extra="ignore")

    url: str | None = Field(
        default=None,
        alias="SWAP_FEED_URL",
        description="HTTP endpoint returning a batch of recent swaps",
    )
    api_key: SecretStr | None = Field(
        default=None,
        alias="SWAP_FEED_API_KEY",
        description="API key sent as X-API-KEY",
    )
    chain: str = Field(
        default="solana",
        alias="SWAP_FEED_CHAIN",
        description="Chain name sent as the x-chain header",
    )
    timeout_seconds: float = Field(
        default=10.0,
        alias="SWAP_FEED_TIMEOUT_SECONDS",
        gt=0.0,
        le=300.0,
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        return _validate_http_url(v, name="SWAP_FEED_URL")


class ClassifierSettings(BaseSettings):
    """External sentiment classifier settings."""

    model_config = SettingsConfigDict(env_prefix="CLASSIFIER_", extra="ignore")

    api_key: SecretStr | None = Field(
        default=None,
        alias="HUGGINGFACE_API_KEY",
        description="Bearer token for the inference API",
    )
    url: str = Field(
        default=DEFAULT_CLASSIFIER_URL,
        alias="CLASSIFIER_URL",
        description="Text classification endpoint",
    )
    failure_policy: Literal["fail", "fallback"] = Field(
        default="fail",
        alias="CLASSIFIER_FAILURE_POLICY",
        description="'fail' aborts the run on classifier errors; 'fallback' uses a fixed score",
    )
    fallback_score: float = Field(
        default=0.5,
        alias="CLASSIFIER_FALLBACK_SCORE",
        ge=0.0,
        le=1.0,
        description="Score substituted when failure_policy is 'fallback'",
    )
    timeout_seconds: float = Field(
        default=15.0,
        alias="CLASSIFIER_TIMEOUT_SECONDS",
        gt=0.0,
        le=300.0,
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        _validate_http_url(v, name="CLASSIFIER_URL")
        return v


class SinkSettings(BaseSettings):
    """Downstream alert sink settings."""

    model_config = SettingsConfigDict(env_prefix="SINK_", extra="ignore")

    url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("SINK_URL", "CLOUDFLARE_WORKER_URL"),
        description="Endpoint receiving the alert POST",
    )
    timeout_seconds: float = Field(
        default=10.0,
        alias="SINK_TIMEOUT_SECONDS",
        gt=0.0,
        le=300.0,
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        return _validate_http_url(v, name="SINK_URL")


class PipelineSettings(BaseSettings):
    """Admission thresholds and store windows."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    min_threshold_usd: Decimal = Field(
        default=Decimal("5000"),
        alias="MIN_THRESHOLD_USD",
        description="Minimum swap size (USD) eligible for discovered-mode selection",
    )
    sentiment_threshold: float = Field(
        default=0.7,
        alias="SENTIMENT_THRESHOLD",
        ge=0.0,
        le=1.0,
        description="Events scoring below this are dropped",
    )
    dedup_ttl_seconds: int = Field(
        default=24 * 3600,
        alias="DEDUP_TTL_SECONDS",
        ge=1,
        description="Lifetime of a transaction claim",
    )
    whale_window_seconds: int = Field(
        default=3600,
        alias="WHALE_WINDOW_SECONDS",
        ge=1,
        description="Wallet activity counter TTL, refreshed on every swap",
    )
    whale_min_swaps: int = Field(
        default=2,
        alias="WHALE_MIN_SWAPS",
        ge=2,
        description="Counter value (inclusive of the current swap) that marks a whale",
    )
    base_tag: str = Field(
        default="#Solana",
        alias="BASE_TAG",
        description="Tag carried by every alert",
    )
    run_timeout_seconds: float = Field(
        default=30.0,
        alias="RUN_TIMEOUT_SECONDS",
        gt=0.0,
        le=900.0,
        description="Upper bound on a single triggered run",
    )

    @field_validator("min_threshold_usd")
    @classmethod
    def validate_min_threshold_usd(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("MIN_THRESHOLD_USD must be >= 0")
        return v


class Settings(BaseSettings):
    """Main application settings.

    Loads configuration from environment variables with support for
    .env files via python-dotenv.

    Example:
        ```python
        from swap_alert_pipeline.config import get_settings

        settings = get_settings()
        settings.validate_requirements(mode="discovered")
        print(settings.redis.url)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding=_ENV_FILE_ENCODING,
        extra="ignore",
    )

    # NOTE: Each nested BaseSettings must be given the same env_file, otherwise it
    # will only read from the process environment (and ignore `.env`).
    redis: RedisSettings = Field(
        default_factory=lambda: RedisSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    swap_feed: SwapFeedSettings = Field(
        default_factory=lambda: SwapFeedSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    classifier: ClassifierSettings = Field(
        default_factory=lambda: ClassifierSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    sink: SinkSettings = Field(
        default_factory=lambda: SinkSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    pipeline: PipelineSettings = Field(
        default_factory=lambda: PipelineSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )
    dry_run: bool = Field(
        default=False,
        alias="DRY_RUN",
        description="Build alerts without delivering them to the sink",
    )

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def validate_requirements(self, *, mode: RunMode) -> None:
        """Validate mode-specific requirements.

        Direct runs only deliver to the sink; discovered runs also need the
        swap feed and the classifier credential.

        Raises:
            ConfigMissingError: Naming the first absent variable.
        """
        if not self.sink.url:
            raise ConfigMissingError("SINK_URL is required")

        if mode == "discovered":
            if not self.swap_feed.url:
                raise ConfigMissingError("SWAP_FEED_URL is required for discovered runs")
            if not self.classifier.api_key:
                raise ConfigMissingError("HUGGINGFACE_API_KEY is required for discovered runs")

    def redacted_summary(self) -> dict[str, str | dict[str, str]]:
        """Get a summary of settings with secrets redacted.

        Returns:
            Dictionary of settings with sensitive values masked.
        """
        return {
            "redis_url": self._redact_url(self.redis.url),
            "swap_feed": {
                "url": self.swap_feed.url or "(not set)",
                "api_key": "(set)" if self.swap_feed.api_key else "(not set)",
                "chain": self.swap_feed.chain,
            },
            "classifier": {
                "url": self.classifier.url,
                "api_key": "(set)" if self.classifier.api_key else "(not set)",
                "failure_policy": self.classifier.failure_policy,
            },
            "sink_url": self._redact_url(self.sink.url) if self.sink.url else "(not set)",
            "pipeline": {
                "min_threshold_usd": str(self.pipeline.min_threshold_usd),
                "sentiment_threshold": str(self.pipeline.sentiment_threshold),
                "dedup_ttl_seconds": str(self.pipeline.dedup_ttl_seconds),
                "whale_window_seconds": str(self.pipeline.whale_window_seconds),
            },
            "log_level": self.log_level,
            "dry_run": str(self.dry_run),
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact password from URL if present."""
        if "@" in url and "://" in url:
            protocol_end = url.index("://") + 3
            at_pos = url.index("@")
            creds_part = url[protocol_end:at_pos]
            if ":" in creds_part:
                username = creds_part.split(":")[0]
                return f"{url[:protocol_end]}{username}:***@{url[at_pos + 1 :]}"
        return url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Raises:
        ValidationError: If environment variables have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different environment variables.
    """
    get_settings.cache_clear()
