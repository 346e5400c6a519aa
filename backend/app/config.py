from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App settings
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    PROJECT_NAME: str = "Marketplace Chat Moderation"
    VERSION: str = "0.1.0"
    API_PREFIX: str = "/api"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    # CORS
    CORS_ORIGINS: List[str] = [
        "http://localhost:5000",
        "http://127.0.0.1:5000",
    ]
    # Allow any localhost/127.0.0.1 port (useful for dev tools/proxies)
    CORS_ORIGIN_REGEX: str = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"

    # Database
    DATABASE_URL: str = "sqlite:///./marketplace.db"

    # OpenAI (semantic classifier)
    OPENAI_API_KEY: str = ""
    OPENAI_BASE_URL: str = ""
    MODERATION_MODEL: str = "gpt-4o-mini"
    MODERATION_MAX_TOKENS: int = 100
    # Hard ceiling on one classifier call; past it the message fails open
    CLASSIFIER_TIMEOUT_S: float = 8.0

    # Messaging limits
    MAX_MESSAGE_LENGTH: int = 2000
    AUDIT_LOG_MAX_LIMIT: int = 50

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    settings = Settings()

    # Only validate OpenAI API key in production
    if settings.ENVIRONMENT == "production" and not settings.OPENAI_API_KEY:
        raise ValueError("OPENAI_API_KEY is required in production environment")

    return settings
