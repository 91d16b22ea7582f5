# backend/appointments/config.py

from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[2]  # repo root


class Settings(BaseSettings):
    database_url: str = "sqlite:///./booking.db"
    redis_url: str = "redis://localhost:6379/0"

    default_timezone: str = "UTC"
    slot_granularity_minutes: int = 15
    min_advance_minutes: int = 60
    max_days_in_future: int = 90

    availability_cache_enabled: bool = True
    availability_cache_ttl_seconds: int = 86400

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        extra="ignore",
    )

    @property
    def resolved_database_url(self) -> str:
        url = self.database_url
        if url.startswith("sqlite:///./"):
            # relative sqlite path is anchored at the repo root
            relative_path = url.replace("sqlite:///./", "")
            absolute_path = BASE_DIR / relative_path
            return f"sqlite:///{absolute_path}"
        return url


settings = Settings()
