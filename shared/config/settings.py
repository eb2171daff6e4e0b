"""
Centralized configuration management for the Daily Digest services.
Uses Pydantic Settings for validation and type safety.
"""

import re
from functools import lru_cache
from typing import Annotated, List, Optional
from urllib.parse import urlparse

from pydantic import AliasChoices, Field, validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class AppBaseSettings(BaseSettings):
    """Base settings with shared configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


class DatabaseSettings(AppBaseSettings):
    """Database configuration settings."""

    postgres_user: str = Field(
        default="postgres",
        validation_alias="POSTGRES_USER",
    )
    postgres_password: str = Field(
        default="",
        validation_alias="POSTGRES_PASSWORD",
    )
    postgres_db: str = Field(
        default="daily_digest",
        validation_alias="POSTGRES_DB",
    )
    postgres_host: str = Field(
        default="postgres",
        validation_alias="POSTGRES_HOST",
    )
    postgres_port: int = Field(
        default=5432,
        validation_alias="POSTGRES_PORT",
    )
    echo: bool = Field(
        default=False,
        validation_alias="DB_ECHO",
    )
    # declared last so the parts above are available to the validator
    database_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("DATABASE_URL", "POSTGRES_URL"),
    )

    @validator("database_url", pre=True, always=True)
    def validate_database_url(cls, v, values):
        """Assemble a PostgreSQL URL from its parts when none is given."""
        if not v:
            user = values.get("postgres_user", "postgres")
            password = values.get("postgres_password", "")
            host = values.get("postgres_host", "postgres")
            port = values.get("postgres_port", 5432)
            db = values.get("postgres_db", "daily_digest")
            return f"postgresql://{user}:{password}@{host}:{port}/{db}"
        return v


class RedisSettings(AppBaseSettings):
    """Redis configuration settings."""

    redis_host: str = Field(
        default="redis",
        validation_alias="REDIS_HOST",
    )
    redis_port: int = Field(
        default=6379,
        validation_alias="REDIS_PORT",
    )
    redis_db: int = Field(
        default=0,
        validation_alias="REDIS_DB",
    )
    redis_password: Optional[str] = Field(
        default=None,
        validation_alias="REDIS_PASSWORD",
    )
    events_enabled: bool = Field(
        default=True,
        validation_alias="DIGEST_EVENTS_ENABLED",
    )
    digest_stream: str = Field(
        default="digest_stream",
        validation_alias="DIGEST_STREAM",
    )
    redis_url: Optional[str] = Field(
        default=None,
        validation_alias="REDIS_URL",
    )

    @validator("redis_url", pre=True, always=True)
    def validate_redis_url(cls, v, values):
        """Ensure Redis URL is properly formatted."""
        if not v:
            host = values.get("redis_host", "redis")
            port = values.get("redis_port", 6379)
            db = values.get("redis_db", 0)
            password = values.get("redis_password")
            if password:
                return f"redis://:{password}@{host}:{port}/{db}"
            return f"redis://{host}:{port}/{db}"
        return v


class AISettings(AppBaseSettings):
    """Text-generation provider settings."""

    provider: str = Field(
        default="openai",
        validation_alias="AI_PROVIDER",
    )
    api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("AI_API_KEY", "OPENAI_API_KEY"),
    )
    model: str = Field(
        default="gpt-4o-mini",
        validation_alias=AliasChoices("AI_MODEL", "OPENAI_MODEL"),
    )
    gemini_api_key: Optional[str] = Field(
        default=None,
        validation_alias="GEMINI_API_KEY",
    )
    gemini_model: str = Field(
        default="gemini-2.0-flash",
        validation_alias="GEMINI_MODEL",
    )
    temperature: Optional[float] = Field(
        default=None,
        validation_alias="AI_TEMPERATURE",
    )
    max_input_chars: int = Field(
        default=16000,
        validation_alias="AI_MAX_INPUT_CHARS",
    )
    tldr_tokens: int = Field(
        default=150,
        validation_alias="AI_MAX_TOKENS",
    )
    detailed_tokens: int = Field(
        default=300,
        validation_alias="AI_DETAILED_TOKENS",
    )
    outline_tokens: int = Field(
        default=250,
        validation_alias="AI_OUTLINE_TOKENS",
    )
    topic_tokens: int = Field(
        default=140,
        validation_alias="AI_TOPIC_TOKENS",
    )
    timeout: float = Field(
        default=15.0,
        validation_alias="AI_TIMEOUT",
    )
    max_concurrency: int = Field(
        default=4,
        validation_alias="AI_MAX_CONCURRENCY",
    )

    @validator("provider")
    def validate_provider(cls, v):
        v = (v or "openai").strip().lower()
        if v not in ("openai", "gemini"):
            raise ValueError("AI_PROVIDER must be 'openai' or 'gemini'")
        return v

    @validator("temperature", pre=True)
    def empty_temperature_is_unset(cls, v):
        """An empty AI_TEMPERATURE means the provider default."""
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return v

    @validator("timeout")
    def validate_timeout(cls, v):
        if not 1.0 <= v <= 60.0:
            raise ValueError("AI_TIMEOUT must be between 1 and 60 seconds")
        return v


class NewsSettings(AppBaseSettings):
    """News provider and feed settings."""

    newsapi_key: Optional[str] = Field(
        default=None,
        validation_alias="NEWSAPI_KEY",
    )
    gnews_api_key: Optional[str] = Field(
        default=None,
        validation_alias="GNEWS_API_KEY",
    )
    default_topics: Annotated[List[str], NoDecode] = Field(
        default=["world", "business", "tech", "science"],
        validation_alias="FEEDS_TOPICS",
    )
    extra_feeds: Annotated[List[str], NoDecode] = Field(
        default=[],
        validation_alias="FEEDS_EXTRA",
    )
    http_timeout: float = Field(
        default=15.0,
        validation_alias="NEWS_HTTP_TIMEOUT",
    )
    per_host_cap: int = Field(
        default=3,
        validation_alias="NEWS_PER_HOST_CAP",
    )
    user_agent: str = Field(
        default="daily-digest/1.0 (+https://example.com)",
        validation_alias="NEWS_USER_AGENT",
    )

    @validator("default_topics", "extra_feeds", pre=True)
    def parse_list_from_string(cls, v):
        """Parse comma-separated string into list if needed."""
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @validator("default_topics")
    def lower_topics(cls, v):
        return [t.lower() for t in v]

    @validator("extra_feeds")
    def validate_extra_feeds(cls, v):
        """Validate that extra feeds are valid URLs."""
        for feed_url in v:
            parsed = urlparse(feed_url)
            if not parsed.scheme or not parsed.netloc:
                raise ValueError(f"Invalid RSS feed URL: {feed_url}")
            if parsed.scheme not in ["http", "https"]:
                raise ValueError(f"RSS feed URL must use HTTP or HTTPS: {feed_url}")
        return v


class DigestSettings(AppBaseSettings):
    """Digest generation tunables."""

    default_limit: int = Field(default=12, validation_alias="DIGEST_DEFAULT_LIMIT")
    min_limit: int = Field(default=4, validation_alias="DIGEST_MIN_LIMIT")
    max_limit: int = Field(default=50, validation_alias="DIGEST_MAX_LIMIT")
    max_per_source: int = Field(default=4, validation_alias="DIGEST_MAX_PER_SOURCE")
    fresh_window_hours: float = Field(default=36, validation_alias="DIGEST_FRESH_WINDOW_HOURS")
    wide_window_hours: float = Field(default=24 * 7, validation_alias="DIGEST_WIDE_WINDOW_HOURS")
    new_item_hours: float = Field(default=12, validation_alias="DIGEST_NEW_ITEM_HOURS")
    long_read_minutes: int = Field(default=8, validation_alias="DIGEST_LONG_READ_MINUTES")


class ServiceSettings(AppBaseSettings):
    """Service-specific configuration settings."""

    max_retries: int = Field(
        default=2,
        validation_alias="MAX_RETRIES",
    )
    retry_delay: float = Field(
        default=0.4,
        validation_alias="RETRY_DELAY",
    )
    retry_backoff_factor: float = Field(
        default=2.0,
        validation_alias="RETRY_BACKOFF_FACTOR",
    )
    redis_timeout: float = Field(
        default=5.0,
        validation_alias="REDIS_TIMEOUT",
    )


class SchedulerSettings(AppBaseSettings):
    """Daily sweep configuration."""

    enable_jobs: bool = Field(
        default=False,
        validation_alias="ENABLE_JOBS",
    )
    run_at: str = Field(
        default="08:00",
        validation_alias="DIGEST_SCHEDULE_TIME",
    )
    max_attempts: int = Field(
        default=3,
        validation_alias="SCHEDULER_MAX_ATTEMPTS",
    )

    @validator("run_at")
    def validate_run_at(cls, v):
        if not re.match(r"^([01]\d|2[0-3]):[0-5]\d$", v):
            raise ValueError("DIGEST_SCHEDULE_TIME must be HH:MM")
        return v


class LoggingSettings(AppBaseSettings):
    """Logging configuration settings."""

    level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
    )
    include_correlation_id: bool = Field(
        default=True,
        validation_alias="LOG_INCLUDE_CORRELATION_ID",
    )
    json_logs: bool = Field(
        default=False,
        validation_alias="JSON_LOGS",
    )


class Settings(AppBaseSettings):
    """Main settings class that combines all configuration sections."""

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    ai: AISettings = Field(default_factory=AISettings)
    news: NewsSettings = Field(default_factory=NewsSettings)
    digest: DigestSettings = Field(default_factory=DigestSettings)
    service: ServiceSettings = Field(default_factory=ServiceSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    service_name: str = Field(
        default="daily-digest",
        validation_alias="SERVICE_NAME",
    )
    environment: str = Field(
        default="development",
        validation_alias="ENVIRONMENT",
    )
    version: str = Field(
        default="1.0.0",
        validation_alias="SERVICE_VERSION",
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
