# app/config.py
"""
Centralized configuration with validation.

Uses pydantic-settings to load and validate all environment variables at startup.
Fail fast with clear error messages if required config is missing.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from app.constants import ScanDefaults, WebhookDefaults


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = Field(
        ...,
        description="PostgreSQL connection URL",
    )

    # Authentication
    ADMIN_API_KEY: str = Field(
        ...,
        description="API key for admin endpoints",
    )
    CRON_SECRET: str | None = Field(
        default=None,
        description="Bearer token expected by the scheduled cron endpoints",
    )

    # Payments
    PAYMENT_WEBHOOK_SECRET: str | None = Field(
        default=None,
        description="Shared secret used to sign payment-completed webhooks",
    )
    WEBHOOK_TOLERANCE_SECONDS: int = Field(
        default=WebhookDefaults.TOLERANCE_SECONDS,
        description="Maximum age of a signed webhook before it is rejected",
    )

    # Storage
    STORAGE_PROVIDER: str = Field(
        default="s3",
        description="Storage provider: s3, local",
    )
    LOCAL_STORAGE_PATH: str = Field(
        default="./storage",
        description="Path for local storage provider",
    )
    AWS_ACCESS_KEY_ID: str | None = None
    AWS_SECRET_ACCESS_KEY: str | None = None
    S3_BUCKET: str | None = None
    S3_ENDPOINT_URL: str | None = None
    S3_REGION: str = "eu-central-1"

    # Email Notifications
    RESEND_API_KEY: str | None = Field(
        default=None,
        description="Resend API key for transactional email",
    )
    EMAIL_FROM: str = Field(
        default="RentVault <notifications@rentvault.co>",
        description="From address for transactional email",
    )
    EMAIL_ENABLED: bool = Field(
        default=True,
        description="Enable transactional email (reminders, confirmations)",
    )
    SITE_URL: str = Field(
        default="https://rentvault.co",
        description="Public site URL used to build links in emails",
    )

    # Application
    ENVIRONMENT: str = Field(
        default="development",
        description="Environment: development, staging, production",
    )
    LOG_JSON: bool = Field(
        default=True,
        description="Emit single-line JSON logs (disable for local development)",
    )
    LOG_LEVEL: str = Field(default="INFO")

    # Lifecycle
    SCAN_BATCH_SIZE: int = Field(
        default=ScanDefaults.BATCH_SIZE,
        description="Max cases handled per scan phase in one cron invocation",
    )
    METRICS_CACHE_TTL_SECONDS: int = Field(
        default=300,
        description="TTL for the aggregated admin metrics cache",
    )

    @field_validator("DATABASE_URL")
    @classmethod
    def fix_database_url(cls, v: str) -> str:
        """Railway provides postgresql:// but SQLAlchemy needs postgresql+psycopg2://"""
        if v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+psycopg2://", 1)
        return v

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached application settings. Call at startup to validate config."""
    return Settings()
