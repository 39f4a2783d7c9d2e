"""Application settings.

All values come from environment variables (or a local ``.env`` file) through
pydantic-settings. ``get_settings()`` builds the Settings once per process; it is
called only at the edges (``app.main``, ``app.database``, ``app.dependencies``)
and the resulting object is handed to the services explicitly.

Settings Groups
===============
::
    application   APP_NAME, APP_ENV, BASE_URL, API_PREFIX, LOG_LEVEL, CORS_ALLOW_ORIGINS
    storage       DATABASE_URL, DATABASE_ECHO
    short codes   SHORT_CODE_LENGTH (4-10), SHORT_CODE_MAX_ATTEMPTS
    scraping      PRODUCT_BASE_URL, SCRAPE_TIMEOUT_SECONDS, SCRAPE_MAX_REDIRECTS,
                  SCRAPE_USER_AGENT
    pagination    DEFAULT_PAGE_LIMIT, TOP_URLS_DEFAULT_LIMIT

SHORT_CODE_LENGTH is bounded so that every generated code satisfies
SHORT_CODE_PATTERN, the pattern used to validate codes in request paths.
"""

__all__ = ["Settings", "get_settings", "SHORT_CODE_PATTERN"]

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SHORT_CODE_PATTERN = r"^[a-zA-Z0-9_-]{4,10}$"
SHORT_CODE_MIN_LENGTH = 4
SHORT_CODE_MAX_LENGTH = 10
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    APP_NAME: str = "hypd-url-shortener"
    APP_ENV: str = "development"
    BASE_URL: str = "http://localhost:8000"
    API_PREFIX: str = "/api/v1"

    # PostgreSQL
    DATABASE_URL: str = "postgresql+asyncpg://urlshortener:urlshortener@db:5432/urlshortener"
    DATABASE_ECHO: bool = False

    LOG_LEVEL: str = "INFO"

    # Short URL config
    SHORT_CODE_LENGTH: int = 6
    SHORT_CODE_MAX_ATTEMPTS: int = 10

    # Product metadata scraping
    PRODUCT_BASE_URL: str = "https://www.hypd.store"
    SCRAPE_TIMEOUT_SECONDS: float = 10.0
    SCRAPE_MAX_REDIRECTS: int = 5
    SCRAPE_USER_AGENT: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    )

    # Pagination
    DEFAULT_PAGE_LIMIT: int = 50
    TOP_URLS_DEFAULT_LIMIT: int = 10

    CORS_ALLOW_ORIGINS: list[str] = ["*"]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    @field_validator("SHORT_CODE_LENGTH")
    @classmethod
    def validate_short_code_length(cls, v: int) -> int:
        if not SHORT_CODE_MIN_LENGTH <= v <= SHORT_CODE_MAX_LENGTH:
            raise ValueError(
                f"SHORT_CODE_LENGTH must be between {SHORT_CODE_MIN_LENGTH} and {SHORT_CODE_MAX_LENGTH}"
            )
        return v

    @field_validator("SHORT_CODE_MAX_ATTEMPTS", "SCRAPE_MAX_REDIRECTS")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("value must be at least 1")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        v = v.upper()
        if v not in LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}")
        return v

    @field_validator("PRODUCT_BASE_URL", "BASE_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


@lru_cache()
def get_settings() -> Settings:
    return Settings()
