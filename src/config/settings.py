"""Application settings and configuration."""

import logging

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application (hardcoded constants)
    app_name: str = "SessionGuard API"
    app_version: str = "0.1.0"

    # Environment-specific settings
    debug: bool = False
    environment: str  # development, staging, production

    # PostgreSQL
    postgres_url: str
    postgres_pool_size: int = 10
    postgres_max_overflow: int = 20
    postgres_pool_timeout: int = 30
    postgres_pool_recycle: int = 3600
    postgres_echo: bool = False

    # API
    api_prefix: str = "/api"

    # CORS
    cors_allow_origins: str | None = None
    cors_allow_credentials: bool = True

    # JWT
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    jwt_issuer: str = "sessionguard"
    jwt_audience: str = "sessionguard-clients"
    access_token_expire_minutes: int = 60
    refresh_token_expire_days: int = 7

    # One-time codes
    otp_validity_minutes: int = 10
    otp_rate_limit_window_minutes: int = 15
    otp_max_requests_per_window: int = 5

    # Lockout
    lockout_max_failed_attempts: int = 5
    lockout_duration_minutes: int = 15

    # Refresh token cookie (browser clients)
    refresh_cookie_name: str = "refreshToken"
    refresh_cookie_secure: bool = True

    # Email (SMTP). Without smtp_host, emails are only logged.
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_password: str | None = None
    smtp_use_tls: bool = True
    email_from_address: str = "no-reply@sessionguard.local"
    email_from_name: str = "SessionGuard"

    # Per-IP throttling
    rate_limit_enabled: bool = True
    rate_limit_default: str = "100/minute"
    otp_endpoint_rate_limit: str = "5/minute"

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("environment", mode="before")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment value."""
        valid_envs = {"development", "staging", "production"}
        env = str(v).lower()
        if env not in valid_envs:
            raise ValueError(f"Environment must be one of {valid_envs}, got {env}")
        return env

    @field_validator("jwt_secret_key")
    @classmethod
    def validate_jwt_secret_key(cls, v: str) -> str:
        """HS256 keys shorter than 256 bits are rejected."""
        if len(v) < 32:
            raise ValueError("JWT secret key must be at least 32 characters long")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        fmt = v.lower()
        if fmt not in {"json", "text"}:
            raise ValueError(f"Log format must be 'json' or 'text', got {v}")
        return fmt

    @property
    def cors_origins(self) -> list[str]:
        """Configured CORS origins as a list."""
        if not self.cors_allow_origins:
            return []
        return [origin.strip() for origin in self.cors_allow_origins.split(",") if origin.strip()]

    @property
    def auth_path(self) -> str:
        """Path the refresh-token cookie is scoped to."""
        return f"{self.api_prefix}/auth"


settings = Settings()  # type: ignore[call-arg]
