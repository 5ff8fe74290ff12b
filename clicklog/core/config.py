"""Application configuration using Pydantic Settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "Clicklog"
    app_version: str = "0.1.0"
    debug: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 3000
    base_url: str = "http://localhost:3000"

    # Database (SQLite in WAL mode by default)
    database_url: str = "sqlite+aiosqlite:///./data/clicks.db"

    # Tracking
    redirect_default: str = "https://example.com"
    bait_sentinel: str = "view-transaction"
    images_dir: str = "public/images"
    max_report_bytes: int = 64 * 1024

    # Correlation cookie
    correlation_cookie_name: str = "cid"
    correlation_ttl_seconds: int = 300
    cookie_secure: bool = False

    # Security
    admin_key: str = "change-this-key"
    cors_origins: list[str] = ["http://localhost:3000"]

    # GeoIP
    geoip_database_path: str = ""
    ip_api_fallback: bool = False

    # Rate limiting
    rate_limit_enabled: bool = True
    rate_limit_storage_uri: str = "memory://"
    rate_limit_track: str = "120/minute"
    rate_limit_report: str = "60/minute"

    # Observability
    sentry_dsn: str = ""
    otlp_endpoint: str = ""


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
