"""Configuration for the Dealroom FastAPI service."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Service settings loaded from environment variables."""

    # Postgres
    DATABASE_URL: str

    # OpenAI
    OPENAI_API_KEY: str
    OPENAI_BASE_URL: str | None = None
    OPENAI_CHAT_MODEL: str = "gpt-4.1-mini"

    # Object storage sidecar
    OBJECT_STORAGE_URL: str
    OBJECT_STORAGE_TOKEN: str | None = None

    # Logging
    LOG_JSON: bool = False

    # Seconds to wait for background document tasks at shutdown
    SHUTDOWN_DRAIN_SECONDS: float = 30.0


@lru_cache
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()
