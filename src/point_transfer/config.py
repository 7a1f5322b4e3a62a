"""Application configuration via pydantic-settings.

Reads from .env file or environment variables. Settings are validated and
frozen at startup; the composition root in main.py builds them once and hands
the instance to every component constructor.

Usage:
    from point_transfer.config import get_settings
    settings = get_settings()
    print(settings.balance_service_url)
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the point transfer service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # --- Application ---
    app_env: Literal["development", "staging", "production"] = "development"
    app_debug: bool = True
    app_log_level: str = "DEBUG"
    app_host: str = "0.0.0.0"
    app_port: int = 8002

    # --- Database ---
    database_url: str = (
        "postgresql+asyncpg://point_user:password123"
        "@localhost:5432/point_transfer"
    )
    db_pool_size: int = 10
    db_max_overflow: int = 20
    db_pool_timeout: int = 30
    db_echo_sql: bool = False
    db_create_tables: bool = True

    # --- Redis ---
    redis_url: str = "redis://localhost:6379/0"
    redis_idempotency_ttl_seconds: int = 86400  # 24 hours

    # --- Balance / identity service ---
    balance_service_url: str = "http://localhost:8001"
    balance_service_timeout_seconds: float = 10.0

    # --- Email ---
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    email_from: str = "noreply@pointtransfer.com"
    notifications_dry_run: bool = False

    # --- Frontend ---
    frontend_url: str = "http://localhost:3000"

    # --- CORS ---
    cors_allowed_origins: str = "http://localhost:3000"

    # --- Transfer protocol ---
    transfer_expiry_hours: int = 24
    completion_lease_seconds: int = 300
    notification_drain_timeout_seconds: float = 10.0

    @model_validator(mode="after")
    def _lease_outlasts_balance_calls(self) -> Settings:
        """A completion makes two balance calls while holding the lease."""
        if 2 * self.balance_service_timeout_seconds >= self.completion_lease_seconds:
            raise ValueError(
                "completion_lease_seconds must exceed twice "
                "balance_service_timeout_seconds"
            )
        return self

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def cors_origin_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if not self.cors_allowed_origins:
            return []
        return [o.strip() for o in self.cors_allowed_origins.split(",") if o.strip()]

    @property
    def smtp_auth_enabled(self) -> bool:
        return bool(self.smtp_username and self.smtp_password)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached application settings. Call only from the composition root."""
    return Settings()
