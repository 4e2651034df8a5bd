"""Mailtrack settings, read from the environment and an optional ``.env``."""

from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables.

    Attributes:
        DATABASE_URL: Database connection string.
        SECRET_KEY: Secret key used to sign session tokens.
        ALGORITHM: Algorithm used to encode session tokens.
        SESSION_EXPIRE_MINUTES: Session lifetime in minutes.
        SESSION_COOKIE_NAME: Name of the cookie carrying the session token.
        ALLOWED_ORIGINS: Allowed origins for CORS.
        REDIS_URL: Redis connection URL for rate limiting.
        LOG_LEVEL: Root log level.
        PRIORITY_AFTER_DAYS: Default staleness threshold for the dashboard.
        BULK_IMPORT_RATE_TIMES: Allowed CSV imports per rate window.
        BULK_IMPORT_RATE_SECONDS: Length of the CSV import rate window.
    """

    DATABASE_URL: str = "sqlite:///./mailtrack.db"
    SECRET_KEY: str = "dev-secret"
    ALGORITHM: str = "HS256"
    SESSION_EXPIRE_MINUTES: int = 60 * 24 * 30
    SESSION_COOKIE_NAME: str = "mailtrack_session"
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000"]
    REDIS_URL: str = "redis://redis:6379"
    LOG_LEVEL: str = "INFO"
    PRIORITY_AFTER_DAYS: int = 30
    BULK_IMPORT_RATE_TIMES: int = 20
    BULK_IMPORT_RATE_SECONDS: int = 60

    model_config = SettingsConfigDict(env_file=".env", extra="allow")


@lru_cache()
def get_settings() -> Settings:
    """Return cached application settings.

    The settings object is cached to prevent reloading environment
    variables multiple times during application lifetime.
    """

    return Settings()
