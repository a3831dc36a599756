from functools import lru_cache
from typing import Annotated

from pydantic import PositiveInt, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    subscription_bucket: str | None = None
    subscription_state_path: str = "subscriptions/state.json"
    storage_endpoint: str = "storage.googleapis.com"
    storage_access_key: str | None = None
    storage_secret_key: str | None = None
    storage_secure: bool = True
    storage_cache_ttl_seconds: int = 300

    function_url: str = "https://default-function-url"
    pubsub_hub_url: str = "https://pubsubhubbub.appspot.com/subscribe"
    subscription_lease_seconds: PositiveInt = 86400
    renewal_threshold_hours: PositiveInt = 12
    max_renewal_attempts: PositiveInt = 3

    github_token: str | None = None
    github_api_base_url: str = "https://api.github.com"
    repo_owner: str | None = None
    repo_name: str | None = None
    environment: str = "production"

    http_timeout_seconds: float = 30.0
    cors_origins: Annotated[list[str], NoDecode] = ["*"]
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: str | list[str]) -> list[str]:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

@lru_cache

def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()

