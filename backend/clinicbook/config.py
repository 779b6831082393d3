from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database configuration
    DATABASE_URL: str = ""
    SQLITE_URL: str = "sqlite+aiosqlite:///./clinic.db"
    DATABASE_ECHO: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    # Startup
    SEED_ON_STARTUP: bool = False

    # HTTP
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Browser-less demo mirror
    DEMO_STATE_PATH: str = ""

    class Config:
        env_file = ".env"


@lru_cache
def get_settings() -> Settings:
    return Settings()
