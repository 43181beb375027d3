from functools import lru_cache
from typing import Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration for the ImageStudio relay and client."""

    #----------------------------------------------------------
    # Upstream provider settings
    #----------------------------------------------------------
    openai_api_key: SecretStr = Field(
        default="",
        description="Default API key for the image provider. Requests may override it with their own key.",
    )

    openai_base_url: Optional[str] = Field(
        default=None,
        description="Optional base URL for an OpenAI-compatible image endpoint.",
    )

    image_model_id: str = Field(
        default="dall-e-3",
        description="Model id passed to the provider for every image request.",
    )

    request_timeout: float = Field(
        default=120.0,
        gt=0,
        description="Timeout in seconds for a single upstream or relay request.",
    )

    #----------------------------------------------------------
    # Client settings
    #----------------------------------------------------------
    relay_base_url: str = Field(
        default="http://localhost:8000",
        description="Base URL of the relay used by the client orchestrator.",
    )

    local_storage_path: str = Field(
        default="imagestudio.db",
        description="SQLite file backing the client-local credential and history.",
    )

    model_config = SettingsConfigDict(
        env_prefix="IMAGESTUDIO_",
        env_file=".env",
        env_file_encoding="utf-8",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]
