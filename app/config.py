# =============================================================================
# app/config.py - Application Settings
# =============================================================================
# This module loads configuration from environment variables using pydantic-settings.
# It provides a single Settings class with all configuration values.
#
# Usage:
#   from app.config import settings
#   print(settings.SUPABASE_URL)
#
# Environment variables are loaded from:
# 1. System environment variables
# 2. .env file in project root (if exists)
#
# Only the Supabase settings are required. Payments, email and analytics
# degrade gracefully when their keys are missing.
# =============================================================================

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings are accessed via the global `settings` instance.
    """

    # -------------------------------------------------------------------------
    # Supabase Configuration
    # -------------------------------------------------------------------------
    # These are required - app won't start without them

    SUPABASE_URL: str = Field(
        ...,
        description="Supabase project URL (e.g., https://xxx.supabase.co)"
    )

    SUPABASE_ANON_KEY: str = Field(
        ...,
        description="Supabase anon/public API key"
    )

    SUPABASE_SERVICE_KEY: str = Field(
        ...,
        description="Supabase service_role key (bypasses RLS)"
    )

    SUPABASE_JWT_SECRET: str = Field(
        default="",
        description="Legacy HS256 JWT secret used to verify Supabase access tokens"
    )

    # -------------------------------------------------------------------------
    # Redis Configuration (for Celery)
    # -------------------------------------------------------------------------

    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL for Celery broker"
    )

    NOTIFICATIONS_ASYNC: bool = Field(
        default=False,
        description="Send drop notification emails from the Celery worker instead of inline"
    )

    # -------------------------------------------------------------------------
    # Dodo Payments
    # -------------------------------------------------------------------------

    DODO_PAYMENTS_API_KEY: str = Field(
        default="",
        description="Dodo Payments bearer token"
    )

    DODO_PAYMENTS_ENVIRONMENT: Literal["test_mode", "live_mode"] = Field(
        default="test_mode",
        description="Which Dodo Payments environment to call"
    )

    DODO_PAYMENTS_WEBHOOK_SECRET: str = Field(
        default="",
        description="Standard Webhooks secret (whsec_...) for payment webhooks"
    )

    DODO_INDIVIDUAL_PRODUCT_ID: str = Field(
        default="",
        description="Dodo product ID for the Individual plan"
    )

    DODO_BUSINESS_PRODUCT_ID: str = Field(
        default="",
        description="Dodo product ID for the Business plan"
    )

    # -------------------------------------------------------------------------
    # Email (Resend)
    # -------------------------------------------------------------------------

    RESEND_API_KEY: str = Field(
        default="",
        description="Resend API key; notification emails are skipped when empty"
    )

    RESEND_FROM_EMAIL: str = Field(
        default="DropAccess <noreply@app.dropaccess.net>",
        description="Sender for notification emails"
    )

    # -------------------------------------------------------------------------
    # Product Analytics (PostHog)
    # -------------------------------------------------------------------------

    POSTHOG_KEY: str = Field(
        default="",
        description="PostHog project API key; analytics is disabled when empty"
    )

    POSTHOG_HOST: str = Field(
        default="https://us.i.posthog.com",
        description="PostHog ingestion host"
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------

    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Current environment"
    )

    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode (verbose logging, auto-reload)"
    )

    APP_URL: str = Field(
        default="http://localhost:3000",
        description="Public URL of the web app (used in emails and payment return URLs)"
    )

    # -------------------------------------------------------------------------
    # Security
    # -------------------------------------------------------------------------

    SECRET_KEY: str = Field(
        default="dev-secret-key-change-in-production",
        min_length=16,
        description="Secret key for signing drop access session tokens"
    )

    # CORS origins (comma-separated string that gets parsed)
    CORS_ORIGINS: str = Field(
        default="http://localhost:3000",
        description="Allowed CORS origins (comma-separated)"
    )

    # -------------------------------------------------------------------------
    # Drop Settings
    # -------------------------------------------------------------------------

    DROP_BUCKET: str = Field(
        default="drops",
        description="Supabase Storage bucket holding drop files"
    )

    SIGNED_URL_TTL_SECONDS: int = Field(
        default=3600,
        ge=60,
        description="Lifetime of signed download URLs for file drops"
    )

    VERIFICATION_SESSION_MINUTES: int = Field(
        default=30,
        ge=1,
        le=1440,
        description="How long a verified recipient can view a drop before re-verifying"
    )

    MAX_UPLOAD_SIZE_MB: int = Field(
        default=1024,
        ge=1,
        description="Hard ceiling on a single upload, independent of plan"
    )

    # -------------------------------------------------------------------------
    # Pydantic Settings Configuration
    # -------------------------------------------------------------------------

    model_config = SettingsConfigDict(
        # Load from .env file in project root
        env_file=".env",
        env_file_encoding="utf-8",
        # Treat empty env values as unset
        env_ignore_empty=True,
        # Case-sensitive environment variable names
        case_sensitive=True,
    )

    # -------------------------------------------------------------------------
    # Computed Properties
    # -------------------------------------------------------------------------

    @property
    def cors_origins_list(self) -> list[str]:
        """
        Parse CORS_ORIGINS string into a list.

        Example: "http://localhost:3000, https://myapp.com" -> ["http://localhost:3000", "https://myapp.com"]
        """
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def max_upload_size_bytes(self) -> int:
        return self.MAX_UPLOAD_SIZE_MB * 1024 * 1024

    @property
    def app_url(self) -> str:
        """APP_URL without a trailing slash."""
        return self.APP_URL.rstrip("/")

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached Settings instance.

    Using lru_cache ensures we only parse .env and validate once,
    not on every access.

    Returns:
        Settings: The application settings instance
    """
    return Settings()


# Global settings instance for easy importing
# Usage: from app.config import settings
settings = get_settings()
