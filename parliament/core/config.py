"""Application configuration settings."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "Oasis Digital Parliament"
    environment: str = "development"
    debug: bool = False

    # API (mirrors the edge function mount point)
    api_prefix: str = "/functions/v1"

    # Server
    host: str = "127.0.0.1"
    port: int = 8000

    # Database
    database_url: str = "sqlite+aiosqlite:///./parliament.db"

    # Storage
    storage_path: Path = Path("./storage")
    minute_book_bucket: str = "minute_book"

    # Public links
    verify_base_url: str = "https://sign.oasisintlholdings.com"
    signing_link_base_url: str = "https://sign.oasisintlholdings.com"

    # Sibling functions (ingest / certify)
    functions_base_url: str = "http://localhost:8000"
    service_role_key: str = "change-me-in-production-use-a-real-service-key"
    downstream_timeout_seconds: float = 30.0

    # Base document locator
    locator_entity_prefixes: list[str] = ["holdings", "real-estate", "lounge"]
    locator_scan_limit: int = 400

    # Wet-ink capture (length of the data URL, in characters)
    wet_signature_max_chars: int = 1_500_000

    # Logging
    log_level: str = "INFO"
    log_json: bool = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
