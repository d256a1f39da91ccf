"""
Application configuration.

Loads settings from environment variables with sensible defaults.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


MIN_HASH_ITERATIONS = 100_000


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # ==========================================================================
    # Environment
    # ==========================================================================

    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # ==========================================================================
    # API Server
    # ==========================================================================

    api_host: str = "0.0.0.0"
    api_port: int = 8000
    # First entry doubles as the fallback origin for unlisted callers
    cors_origins: str = "http://localhost:5173,http://localhost:3000"

    # ==========================================================================
    # Storage
    # ==========================================================================

    database_url: str = "sqlite:///./data/estate_crm.db"
    content_dir: str = "./data/content"

    # ==========================================================================
    # Authentication
    # ==========================================================================

    jwt_secret_key: str = "dev-jwt-secret-change-in-production-0123456789"
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_seconds: int = 60 * 60
    jwt_refresh_token_expire_days: int = 7

    password_min_length: int = 6
    password_hash_iterations: int = MIN_HASH_ITERATIONS

    # Optional: seed an approved superuser on startup
    bootstrap_superuser_email: str = ""
    bootstrap_superuser_password: str = ""
    bootstrap_superuser_name: str = "Administrator"

    # ==========================================================================
    # Optional Services
    # ==========================================================================

    sentry_dsn: str = ""

    @field_validator("password_hash_iterations")
    @classmethod
    def _enforce_min_iterations(cls, value: int) -> int:
        if value < MIN_HASH_ITERATIONS:
            raise ValueError(f"password_hash_iterations must be >= {MIN_HASH_ITERATIONS}")
        return value

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
