"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application
    app_name: str = "BizGov"
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    api_prefix: str = "/api"

    # Database
    database_url: str = "sqlite+aiosqlite:///./bizgov.db"

    # Security
    secret_key: str = "change-me-in-production"
    access_token_expire_minutes: int = 60
    algorithm: str = "HS256"

    # Initial admin account, created on startup when a password is set
    admin_username: str = "admin"
    admin_password: str | None = None

    # CORS
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:3000"]

    # Rate Limiting
    rate_limit_requests: int = 100
    rate_limit_period: int = 60  # seconds

    # Evidence storage
    upload_dir: str = "./uploads"
    max_upload_bytes: int = 100 * 1024 * 1024

    # CSV import
    csv_default_organization: str = "CCAH"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
