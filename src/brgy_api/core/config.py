"""Application configuration via Pydantic Settings.

All configuration is loaded from environment variables following 12-factor principles.
Settings are resolved once at startup; collaborators that depend on them
(token issuer, email notifier) validate their slice eagerly when the
application is built.
"""

import re
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(
        description="SQLAlchemy async connection string (postgresql+asyncpg:// or sqlite+aiosqlite://)",
    )
    database_schema: str | None = Field(
        default=None,
        description="PostgreSQL schema for isolated environments (e.g., pr_42)",
    )

    @field_validator("database_schema")
    @classmethod
    def validate_database_schema(cls, v: str | None) -> str | None:
        if v is None:
            return None
        if not re.match(r"^[a-z_][a-z0-9_]{0,62}$", v):
            msg = "Invalid database_schema: must match ^[a-z_][a-z0-9_]{0,62}$"
            raise ValueError(msg)
        return v

    # JWT
    jwt_secret_key: str | None = Field(
        default=None,
        min_length=32,
        description="Secret key for signing session tokens (minimum 32 characters)",
    )
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    jwt_expires_in_days: int = Field(
        default=7,
        description="Session token lifetime in days",
        gt=0,
    )

    # One-time passwords
    otp_ttl_minutes: int = Field(
        default=10,
        description="Minutes an emailed OTP code stays valid",
        gt=0,
    )

    # Email delivery
    email_backend: Literal["smtp", "console"] = Field(
        default="smtp",
        description="OTP delivery backend: 'smtp' sends mail, 'console' only logs the code",
    )
    email_host: str = Field(default="smtp.gmail.com", description="SMTP server host")
    email_port: int = Field(default=587, description="SMTP server port", gt=0)
    email_user: str = Field(default="", description="SMTP login user")
    email_password: str = Field(default="", description="SMTP login password")
    email_from: str | None = Field(
        default=None,
        description="Sender address (defaults to email_user)",
    )
    email_use_tls: bool = Field(default=True, description="Issue STARTTLS before login")
    email_timeout: float = Field(
        default=10.0,
        description="SMTP connection timeout in seconds",
        gt=0,
    )

    @property
    def email_sender(self) -> str:
        """Address used in the From header of outgoing mail."""
        return self.email_from or self.email_user

    # Uploads
    upload_dir: str = Field(
        default="./uploads",
        description="Directory for uploaded clearance documents",
    )
    upload_max_file_size_mb: int = Field(
        default=10,
        description="Maximum size of an uploaded clearance document in megabytes",
        gt=0,
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_dir: str | None = Field(
        default=None,
        description="Directory for log files (enables file logging with 24h rotation when set)",
    )

    # CORS
    cors_origins: str = Field(
        default="",
        description="Comma-separated list of allowed CORS origins (must be explicitly configured)",
    )
    cors_origin_regex: str = Field(
        default="",
        description="Regex pattern for allowed CORS origins",
    )

    @property
    def cors_origin_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        if not self.cors_origins.strip():
            return []
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    # Environment
    environment: str = Field(
        default="production",
        description="Deployment environment name (e.g. production, dev, staging)",
    )

    # API
    api_prefix: str = Field(
        default="/api",
        description="API route prefix",
    )
    rate_limit_max_requests: int = Field(
        default=100,
        description="Maximum API requests per client IP within one rate limit window",
        gt=0,
    )
    rate_limit_window_seconds: int = Field(
        default=900,
        description="Length of the rate limit window in seconds",
        gt=0,
    )
    trusted_proxy_headers: str = Field(
        default="",
        description=(
            "Comma-separated list of HTTP headers to check for real client IP, in priority order. "
            "Leave empty unless a reverse proxy overwrites these headers."
        ),
    )

    @property
    def trusted_proxy_header_list(self) -> list[str]:
        """Parse trusted proxy headers string into a list."""
        if not self.trusted_proxy_headers.strip():
            return []
        return [h.strip() for h in self.trusted_proxy_headers.split(",") if h.strip()]


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()  # type: ignore[call-arg]
