from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App
    app_name: str = "Car Tracker"
    debug: bool = False

    # API
    api_base_url: str = "http://localhost:8000"
    frontend_url: str = "http://localhost:3000"
    updates_url: str = "ws://localhost:8000/api/car-updates"

    # Database
    database_url: str = "sqlite+aiosqlite:///./car_tracker.db"

    # Redis relay for multi-process broadcast (empty = in-process fan-out only)
    redis_url: str = ""
    broadcast_channel: str = "car-updates"

    # Observer channel
    reconnect_delay_seconds: float = 3.0
    disconnect_grace_seconds: float = 10.0

    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]


@lru_cache
def get_settings() -> Settings:
    return Settings()
