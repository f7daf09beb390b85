"""Application configuration."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "Session Messaging API"
    mongo_url: str = "mongodb://localhost:27017"
    mongo_db_name: str = "formations"
    redis_url: str | None = None
    fcm_service_account_file: str | None = None
    fcm_project_id: str | None = None
    mobile_breakpoint: int = 768
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()
