"""Process configuration from environment variables.

These are deployment knobs. Runtime policy (quota, expiry, backend choice)
lives in the settings table, see filedrop.services.settings_service.
"""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All config comes from env vars or .env.backend file."""

    DATABASE_URL: str = "sqlite+aiosqlite:///./backend/data/filedrop.db"
    FILE_STORAGE_PATH: str = "./backend/uploadfiles"
    UPLOAD_STAGING_PATH: str = "./backend/data/staging"
    PUBLIC_FILE_PREFIX: str = "/uploadfiles"
    API_PORT: int = 3001
    CORS_ORIGINS: str = "http://localhost:5173"
    LOG_LEVEL: str = "INFO"

    # Upload transport
    MAX_REQUEST_BODY_MB: float = 1024
    UPLOAD_CHUNK_SIZE: int = 1024 * 1024

    # Object storage (S3-compatible). Credentials live in the settings table.
    OBJECT_KEY_PREFIX: str = "uploads"
    OBJECT_URL_EXPIRES_SECONDS: int = 3600

    # Expiry reaper
    REAPER_INTERVAL_SECONDS: float = 3600
    REAPER_INITIAL_DELAY_SECONDS: float = 5

    # Admin gate
    ADMIN_PASSWORD: str = "admin123"
    SESSION_TTL_HOURS: float = 24 * 7

    class Config:
        env_file = ".env.backend"
        env_file_encoding = "utf-8"


settings = Settings()
