"""
Intake engine settings.

Entity search limits, clinic local time and logging come from
`CLINICDESK_*` variables; the record store endpoint and its API token from
`CLINICDESK_INDEX_*`. A local .env file is read as well.
"""

from functools import lru_cache

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Intake engine settings."""

    model_config = SettingsConfigDict(
        env_prefix="CLINICDESK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # Entity search
    min_query_length: int = Field(default=2, ge=0)
    search_limit: int = Field(default=10, ge=1)

    # Clinic locale
    utc_offset_hours: int = 6  # Bangladesh Standard Time


class IndexSettings(BaseSettings):
    """Remote record store (entity index) settings."""

    model_config = SettingsConfigDict(
        env_prefix="CLINICDESK_INDEX_",
        env_file=".env",
        extra="ignore",
    )

    base_url: str = "http://localhost:3000/api"
    timeout_seconds: float = 10.0
    api_token: SecretStr | None = None


class Settings:
    """
    Aggregated settings container.

    Usage:
        from clinicdesk.config import get_settings
        settings = get_settings()
        print(settings.engine.min_query_length)
        print(settings.index.base_url)
    """

    def __init__(self):
        self.engine = EngineSettings()
        self.index = IndexSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: The application settings
    """
    return Settings()
