"""Application settings using Pydantic Settings for typed configuration.

This module centralizes all configuration and provides type-safe access to settings.
Settings are loaded from environment variables with sensible defaults.
"""

from functools import lru_cache

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application-wide settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    env_name: str = Field(default="development", alias="ENV_NAME")

    # Database
    database_url: str = Field(default="sqlite:///./greenpass.db", alias="DATABASE_URL")
    auto_create_tables: bool = Field(default=True, alias="AUTO_CREATE_TABLES")
    persistence_retry_attempts: int = Field(
        default=3, alias="PERSISTENCE_RETRY_ATTEMPTS", ge=1, le=10
    )

    # Firebase (credentials come from GOOGLE_APPLICATION_CREDENTIALS)
    firebase_project_id: str | None = Field(default=None, alias="FIREBASE_PROJECT_ID")

    # CORS
    cors_origins: str = Field(default="*", alias="CORS_ORIGINS")

    # Onboarding entry hint cookies (set by marketing pages / SSO bridge)
    role_hint_cookie: str = Field(
        default="onboarding_role_hint", alias="ROLE_HINT_COOKIE"
    )
    role_lock_cookie: str = Field(
        default="onboarding_role_lock", alias="ROLE_LOCK_COOKIE"
    )

    # Payments (PayPal Orders v2)
    paypal_client_id: str | None = Field(default=None, alias="PAYPAL_CLIENT_ID")
    paypal_client_secret: str | None = Field(
        default=None, alias="PAYPAL_CLIENT_SECRET"
    )
    paypal_base_url: str = Field(
        default="https://api-m.sandbox.paypal.com", alias="PAYPAL_BASE_URL"
    )
    subscription_mode_enabled: bool = Field(
        default=True, alias="SUBSCRIPTION_MODE_ENABLED"
    )

    # Email (Resend)
    resend_api_key: str | None = Field(default=None, alias="RESEND_API_KEY")
    app_domain: str = Field(default="resend.dev", alias="APP_DOMAIN")
    client_url: str = Field(default="http://localhost:3000", alias="CLIENT_URL")

    @computed_field
    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        origins = []
        for o in self.cors_origins.split(","):
            trimmed = o.strip()
            if trimmed:
                origins.append(trimmed)
        return origins

    @computed_field
    @property
    def is_secure_cookie(self) -> bool:
        """Determine if cookies should be set with Secure flag."""
        return self.env_name.lower() not in {"dev", "development", "local", "test"}

    @computed_field
    @property
    def payments_configured(self) -> bool:
        """Both halves of the PayPal REST credential are present."""
        return bool(self.paypal_client_id and self.paypal_client_secret)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
