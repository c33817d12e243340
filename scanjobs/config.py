"""Application configuration using Pydantic Settings."""

from typing import Dict, List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite:///./scanjobs.db"

    # Scan jobs
    DEFAULT_BATCH_SIZE: int = 50
    MIN_BATCH_SIZE: int = 10
    MAX_BATCH_SIZE: int = 200
    BATCH_DELAY_SECONDS: int = 5  # Delay before each deferred batch
    CRON_INTERVAL_SECONDS: int = 86400  # Daily

    # Selectors
    DEFAULT_RECORD_TYPES: List[str] = ["post", "page"]
    SUPPORTED_RECORD_TYPES: Dict[str, str] = {"post": "Post", "page": "Page"}

    # Ephemeral tokens
    EPHEMERAL_TOKEN_TTL_SECONDS: int = 600
    TOKEN_PURGE_INTERVAL_SECONDS: int = 3600

    # Worker
    WORKER_POLL_INTERVAL: int = 5

    # Gateway
    ADMIN_API_KEY: Optional[str] = None

    # Runtime
    LOG_LEVEL: str = "INFO"
    RUN_SCHEDULER: bool = True

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)


# Global settings instance
settings = Settings()
