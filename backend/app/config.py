"""
FastAPI Application Configuration
"""
import os
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment"""

    model_config = SettingsConfigDict(
        env_file=os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))), ".env"),
        case_sensitive=True,
        extra="ignore"
    )

    # App
    APP_NAME: str = "TrialByte API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Trial writes
    TRIAL_ATOMIC_WRITES: bool = False
    FANOUT_MAX_WORKERS: int = 16

    # Database bootstrap (connection details live in trialbyte.database.config)
    DB_CONNECT_ON_STARTUP: bool = True
    DB_CREATE_TABLES: bool = False
    DB_CONNECT_MAX_RETRIES: int = 5
    DB_CONNECT_INITIAL_DELAY: float = 2.0

    # System admin used when an activity entry's user does not exist
    SYSTEM_ADMIN_USERNAME: str = "admin"
    SYSTEM_ADMIN_EMAIL: str = "admin@system.local"
    SYSTEM_ADMIN_PASSWORD: str = "admin123"

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:5173"]
    CORS_ORIGIN_REGEX: Optional[str] = r"https://.*\.vercel\.app"


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
