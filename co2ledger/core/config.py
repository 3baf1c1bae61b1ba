"""
Application configuration loaded from environment variables.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(
        env_file = ".env",
        env_file_encoding = "utf-8",
        populate_by_name = True
    )

    # Database
    database_url: str = Field(default="sqlite+aiosqlite:///./co2ledger.db", alias="DATABASE_URL")

    # Our World in Data CO2 dataset
    owid_data_url: str = Field(
        default="https://nyc3.digitaloceanspaces.com/owid-public/data/co2/owid-co2-data.json",
        alias="OWID_DATA_URL"
    )
    owid_timeout_seconds: float = Field(default=30.0, gt=0, alias="OWID_TIMEOUT_SECONDS")
    owid_min_payload_chars: int = Field(default=1000, ge=0, alias="OWID_MIN_PAYLOAD_CHARS")

    # Snapshot cache
    cache_ttl_seconds: float = Field(default=30 * 60, gt=0, alias="CACHE_TTL_SECONDS")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="json", alias="LOG_FORMAT")

    # Application
    app_name: str = Field(default="CO2 Ledger", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    port: int = Field(default=8000, alias="PORT")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
