"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for the
Warnung Tracker, loading and validating environment variables at startup.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_FEED_URL = "https://warnung.bund.de/bbk.mowas/gefahrendurchsagen.json"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; WOW64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/65.0.3325.181 Safari/537.36"
)
DEFAULT_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8"
DEFAULT_ACCEPT_LANGUAGE = "en-US,en;q=0.8"
DEFAULT_COLLECTION = "Meldungen"


class FeedSettings(BaseSettings):
    """Warning feed HTTP settings."""

    model_config = SettingsConfigDict(
        env_prefix="FEED_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    url: str = Field(
        default=DEFAULT_FEED_URL,
        alias="FEED_URL",
        description="Warning feed URL",
    )
    user_agent: str = Field(default=DEFAULT_USER_AGENT, alias="FEED_USER_AGENT")
    accept: str = Field(default=DEFAULT_ACCEPT, alias="FEED_ACCEPT")
    accept_language: str = Field(
        default=DEFAULT_ACCEPT_LANGUAGE,
        alias="FEED_ACCEPT_LANGUAGE",
    )
    timeout_seconds: float = Field(
        default=30.0,
        alias="FEED_TIMEOUT_SECONDS",
        description="Overall request timeout",
        gt=0,
    )
    connect_timeout_seconds: float = Field(
        default=10.0,
        alias="FEED_CONNECT_TIMEOUT_SECONDS",
        description="TCP connect and TLS handshake timeout",
        gt=0,
    )
    expect_continue_timeout_seconds: float = Field(
        default=5.0,
        alias="FEED_EXPECT_CONTINUE_TIMEOUT_SECONDS",
        description=(
            "Expect: 100-continue wait; accepted for configuration parity, "
            "has no effect since httpx never sends Expect"
        ),
        ge=0,
    )
    idle_timeout_seconds: float = Field(
        default=90.0,
        alias="FEED_IDLE_TIMEOUT_SECONDS",
        description="How long idle pooled connections are kept",
        gt=0,
    )
    max_idle_connections: int = Field(
        default=200,
        alias="FEED_MAX_IDLE_CONNECTIONS",
        description="Maximum idle connections kept for reuse",
        ge=0,
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate feed URL format."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("FEED_URL must be an HTTP(S) endpoint")
        return v


class StoreSettings(BaseSettings):
    """Persistent key-value store settings."""

    model_config = SettingsConfigDict(
        env_prefix="STORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    backend: Literal["file", "sql"] = Field(
        default="file",
        alias="STORE_BACKEND",
        description="Store backing: JSON file per record, or SQL table",
    )
    path: str = Field(
        default="DB",
        alias="STORE_PATH",
        description="Root directory of the file store",
    )
    url: str = Field(
        default="sqlite:///DB/warnungen.db",
        alias="STORE_URL",
        description="SQLAlchemy URL of the SQL store",
    )
    collection: str = Field(
        default=DEFAULT_COLLECTION,
        alias="STORE_COLLECTION",
        description="Collection holding seen warnings",
        min_length=1,
    )


class Settings(BaseSettings):
    """Main application settings.

    Loads configuration from environment variables with support for
    .env files via python-dotenv.

    Example:
        ```python
        from warnung_tracker.config import get_settings

        settings = get_settings()
        print(settings.feed.url)
        print(settings.log_level)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    feed: FeedSettings = Field(default_factory=FeedSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def summary(self) -> dict[str, str]:
        """Get a flat summary of the settings for display."""
        store_location = self.store.path if self.store.backend == "file" else self.store.url
        return {
            "feed_url": self.feed.url,
            "timeout": f"{self.feed.timeout_seconds:g}s",
            "store_backend": self.store.backend,
            "store_location": store_location,
            "collection": self.store.collection,
            "log_level": self.log_level,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        The Settings instance.

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
