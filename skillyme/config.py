"""
Application Configuration - Pydantic Settings for type-safe config.

FAIL FAST - Critical config is validated at startup.
"""

import sys

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when critical configuration is missing or invalid."""

    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database Configuration - NO DEFAULT for production safety
    database_url: str = ""
    database_read_url: str | None = None  # Optional read replica
    database_pool_size: int = 10
    database_max_overflow: int = 10
    database_pool_timeout: int = 30
    database_pool_recycle: int = 3600

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 5000
    api_title: str = "Skillyme Payments API"
    api_version: str = "0.1.0"
    api_description: str = "M-Pesa payment verification and session access for Skillyme"

    # Bearer authentication (students and admins share the signing secret)
    jwt_secret: str = ""
    jwt_algorithm: str = "HS256"
    admin_jwt_expire_hours: int = 24

    # Links handed out in notification emails
    frontend_url: str = "http://localhost:8080"

    # Payments
    default_session_id: int = 1
    mpesa_verification_delay_seconds: float = 1.0
    max_mpesa_message_length: int = 1000

    # Secure access grants
    secure_access_ttl_days: int = 7

    # Email (transactional HTTP API). Empty key = log instead of send.
    email_api_key: str = ""
    email_api_url: str = "https://api.brevo.com/v3/smtp/email"
    email_from_address: str = "noreply@skillyme.com"
    email_from_name: str = "Skillyme Team"
    email_timeout_seconds: float = 15.0
    email_throttle_seconds: int = 30

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console

    # Observability - Metrics
    metrics_enabled: bool = True

    # Observability - Tracing
    tracing_enabled: bool = False
    otlp_endpoint: str = "http://otel-collector:4317"
    otlp_insecure: bool = True
    service_name: str = "skillyme-payments-api"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_critical_config(self) -> "Settings":
        """
        FAIL FAST: Validate critical configuration at startup.

        The app MUST NOT start if critical config is missing.
        """
        errors: list[str] = []

        if not self.database_url:
            errors.append("DATABASE_URL is required but empty or missing")
        elif not self.database_url.startswith(("postgresql", "postgres")):
            errors.append(
                f"DATABASE_URL must be a PostgreSQL URL, got: {self.database_url[:20]}..."
            )

        if not self.jwt_secret:
            errors.append("JWT_SECRET is required but empty or missing")

        if self.secure_access_ttl_days <= 0:
            errors.append("SECURE_ACCESS_TTL_DAYS must be positive")

        if errors:
            error_msg = "\n".join(
                [
                    "",
                    "=" * 60,
                    "CRITICAL CONFIGURATION ERROR - APPLICATION CANNOT START",
                    "=" * 60,
                    *[f"  ✗ {e}" for e in errors],
                    "=" * 60,
                    "",
                ]
            )
            print(error_msg, file=sys.stderr)
            raise ConfigurationError(error_msg)

        return self

    @property
    def read_database_url(self) -> str:
        """Get read database URL (fallback to primary if no replica)."""
        return self.database_read_url or self.database_url

    @property
    def email_enabled(self) -> bool:
        """Emails are only sent when a provider key is configured."""
        return bool(self.email_api_key.strip())

    def secure_access_link(self, token: str) -> str:
        """Build the join link mailed to a student after payment confirmation."""
        return f"{self.frontend_url.rstrip('/')}/secure-access/{token}"


# Global settings instance - validates at import time
settings = Settings()


def get_settings() -> Settings:
    """Get application settings instance."""
    return settings

