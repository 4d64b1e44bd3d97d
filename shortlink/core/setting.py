"""
Configuration Settings

This module defines application configuration using Pydantic Settings.
All configuration is loaded from environment variables or .env file.

Design Decisions:
- Uses pydantic-settings for type-safe configuration
- Supports multiple environments (production, staging, dev)
- Defaults to SQLite (file-based) for easy local development
- Can be switched to PostgreSQL for production via DATABASE_URL
- Limits and windows are expressed in milliseconds, like every stored timestamp
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = ["Settings", "settings"]

BASE_DIR = Path(__file__).resolve().parent.parent.parent


class EnvSettingsOptions(Enum):
    """Environment options for deployment."""
    production = "production"
    staging = "staging"
    development = "dev"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables or .env file.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Project Configuration
    ENV_SETTING: EnvSettingsOptions = Field(
        default=EnvSettingsOptions.development,
        description="Environment setting (production, staging, dev)"
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Root log level for the service"
    )

    # Database Configuration
    # For SQLite: sqlite+aiosqlite:///./shortlink.db (default)
    DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./shortlink.db",
        description="Database connection string (SQLite by default, PostgreSQL for production)"
    )
    AUTO_CREATE_TABLES: bool = Field(
        default=True,
        description="Create missing tables on startup (use alembic in production)"
    )
    SQLITE_BUSY_TIMEOUT_SECONDS: float = Field(
        default=15.0,
        description="How long a SQLite writer waits for a competing writer to finish"
    )

    # Application Configuration
    BASE_URL: str = Field(
        default="http://localhost:8000",
        description="Base URL for generating short URLs"
    )
    UNAVAILABLE_PATH: str = Field(
        default="/unavailable",
        description="Page that explains why a link can no longer be followed"
    )
    ADMIN_EMAILS: List[str] = Field(
        default_factory=list,
        description="Accounts created with one of these emails get the admin role"
    )
    RATE_LIMIT_ENABLED: bool = Field(
        default=True,
        description="Per-IP throttling of public endpoints (slowapi)"
    )

    # API Key Configuration
    API_KEY_PREFIX: str = Field(
        default="slk_",
        description="Prefix prepended to every generated API key"
    )
    API_KEY_LENGTH: int = Field(
        default=32,
        description="Number of random characters following the prefix"
    )

    # Burst Rate Limit (per API key)
    BURST_WINDOW_MS: int = Field(default=5000, description="Burst window length")
    BURST_MAX_REQUESTS: int = Field(default=10, description="Accepted requests per burst window")

    # Link Creation Quota (per account)
    QUOTA_WINDOW_MS: int = Field(default=5 * 60 * 60 * 1000, description="Rolling quota window")
    QUOTA_DEFAULT_LIMIT: int = Field(default=25, description="Links per window without an override")
    QUOTA_OVERRIDE_MIN: int = Field(default=1)
    QUOTA_OVERRIDE_MAX: int = Field(default=10000)

    # Slug Generation Configuration
    SLUG_MIN_AUTO_LENGTH: int = Field(default=3)
    SLUG_MAX_AUTO_LENGTH: int = Field(default=8)
    SLUG_ATTEMPTS_PER_LENGTH: int = Field(
        default=12,
        description="Random draws at one length before moving to the next"
    )

    # Crawler Preview Configuration
    PREVIEW_FETCH_TIMEOUT_SECONDS: float = Field(
        default=3.0,
        description="Upper bound on fetching a destination page for social previews"
    )
    PREVIEW_USER_AGENT: str = Field(
        default="Mozilla/5.0 (compatible; shortlink-preview/1.0)"
    )
    SERVICE_NAME: Optional[str] = Field(
        default=None,
        description="Optional friendly name for this service instance (for identification)"
    )


settings = Settings()
