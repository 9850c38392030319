"""Application settings, read from environment variables or .env"""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Front-desk service settings"""

    APP_NAME: str = "Hotel Front Desk API"
    LOG_LEVEL: str = "INFO"

    # RoomStore
    DATABASE_URL: str = "sqlite:///./hotel.db"
    SEED_DEMO_ROOMS: bool = True

    # Local durable cache (offline fallback and history backup)
    CACHE_DIR: str = "./.hotel-cache"

    # Sync scheduler
    SYNC_INTERVAL_SECONDS: float = 10.0

    # JWT
    SECRET_KEY: str = "your-secret-key-keep-it-secret"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")


settings = Settings()
