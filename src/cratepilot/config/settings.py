"""Application settings loaded from environment variables and .env."""

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from cratepilot.domain.entities import ApiConfig, RateLimitConfig


class DatabaseSettings(BaseModel):
    """Persistent store settings."""

    url: str = "sqlite+aiosqlite:///./cratepilot.db"
    echo: bool = False
    pool_pre_ping: bool = True
    # Pool settings only apply to PostgreSQL, SQLite has no connection pool
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 3600


# Hey future me - the rate limit defaults are what the Spotify Web API tolerates without handing
# out 429s for a single client: ~10 req/sec sustained, 180 req/minute. If you lower
# requests_per_second, imports get slower linearly - there's exactly one request in flight at a time.
class SpotifySettings(BaseModel):
    """Spotify Web API settings (client credentials flow)."""

    client_id: str = ""
    client_secret: str = ""
    base_url: str = "https://api.spotify.com/v1"
    token_url: str = "https://accounts.spotify.com/api/token"  # nosec B105 - public endpoint URL
    requests_per_second: float = Field(default=10.0, gt=0)
    requests_per_minute: int = Field(default=180, gt=0)
    retry_attempts: int = Field(default=3, ge=0)
    retry_delay_ms: int = Field(default=1000, ge=0)
    # Guess bpm/key/energy from genre when audio features are unavailable.
    # Off by default: guessed values are NOT analysis data.
    infer_missing_features: bool = False

    @field_validator("client_id", "client_secret", "base_url")
    @classmethod
    def strip_whitespace(cls, value: str) -> str:
        return value.strip()

    def to_api_config(self) -> ApiConfig:
        """Build the immutable API configuration for an importer."""
        return ApiConfig(
            base_url=self.base_url,
            client_id=self.client_id or None,
            client_secret=self.client_secret or None,
            rate_limit=RateLimitConfig(
                requests_per_second=self.requests_per_second,
                requests_per_minute=self.requests_per_minute,
                retry_attempts=self.retry_attempts,
                retry_delay_ms=self.retry_delay_ms,
            ),
        )


class Settings(BaseSettings):
    """Root settings.

    Nested values come from double-underscore env vars, e.g.
    DATABASE__URL or SPOTIFY__CLIENT_ID.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    app_name: str = "cratepilot"
    app_env: Literal["development", "production", "test"] = "development"
    log_level: str = "INFO"
    log_json: bool = False

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    spotify: SpotifySettings = Field(default_factory=SpotifySettings)

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        return value.upper()


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
