"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="CineScope", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")

    tvmaze_api_url: HttpUrl = Field(
        default="https://api.tvmaze.com", alias="TVMAZE_API_URL"
    )
    tmdb_api_url: HttpUrl = Field(
        default="https://api.themoviedb.org/3", alias="TMDB_API_URL"
    )
    tmdb_api_key: str | None = Field(default=None, alias="TMDB_API_KEY")

    schedule_country: str = Field(default="US", alias="SCHEDULE_COUNTRY")

    debounce_delay_seconds: float = Field(
        default=0.3, alias="DEBOUNCE_DELAY", ge=0, le=10
    )
    search_min_length: int = Field(default=2, alias="SEARCH_MIN_LENGTH", ge=1, le=20)
    show_suggestion_limit: int = Field(
        default=4, alias="SHOW_SUGGESTION_LIMIT", ge=1, le=50
    )
    movie_suggestion_limit: int = Field(
        default=4, alias="MOVIE_SUGGESTION_LIMIT", ge=0, le=20
    )
    airing_today_limit: int = Field(
        default=20, alias="AIRING_TODAY_LIMIT", ge=1, le=200
    )
    airing_refresh_interval_seconds: int = Field(
        default=900, alias="AIRING_REFRESH_INTERVAL", ge=60
    )

    response_cache_seconds: int = Field(default=300, alias="CACHE_TTL", ge=0)
    response_cache_max_entries: int = Field(
        default=200, alias="CACHE_MAX_ENTRIES", ge=1, le=10_000
    )

    rate_limit_burst: int = Field(default=18, alias="RATE_LIMIT_BURST", ge=1)
    rate_limit_refill_per_second: float = Field(
        default=2.0, alias="RATE_LIMIT_REFILL", gt=0
    )
    rate_limit_retry_delay: float = Field(
        default=2.0, alias="RATE_LIMIT_RETRY_DELAY", ge=0
    )
    rate_limit_max_retries: int = Field(
        default=3, alias="RATE_LIMIT_MAX_RETRIES", ge=0, le=20
    )

    http_timeout_seconds: float = Field(default=20.0, alias="HTTP_TIMEOUT", gt=0)

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("schedule_country", mode="before")
    @classmethod
    def _normalise_country(cls, value: object) -> str:
        """Accept ISO 3166 alpha-2 codes in any case."""

        if value is None:
            return "US"
        code = str(value).strip().upper()
        if not code:
            return "US"
        if len(code) != 2 or not code.isalpha():
            raise ValueError("SCHEDULE_COUNTRY must be a two-letter country code")
        return code

    @property
    def tvmaze_base_url(self) -> str:
        """Return the TVmaze base URL without a trailing slash."""

        return str(self.tvmaze_api_url).rstrip("/")

    @property
    def tmdb_base_url(self) -> str:
        return str(self.tmdb_api_url).rstrip("/")

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
