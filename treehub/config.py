"""Application configuration loaded from environment variables."""

from pydantic_settings import BaseSettings
from pydantic import field_validator
from functools import lru_cache


class Settings(BaseSettings):
    # App
    app_name: str = "TreeHub"
    app_env: str = "development"
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Database
    database_url: str = "sqlite+aiosqlite:///./treehub.db"
    database_echo: bool = False

    @field_validator("database_url", mode="before")
    @classmethod
    def fix_db_url(cls, v: str) -> str:
        if v.startswith("postgres://"):
            return v.replace("postgres://", "postgresql+asyncpg://", 1)
        if v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    # Feature flags
    enable_market_conquest: bool = True
    enable_ai_agents: bool = True
    enable_weather_monitoring: bool = True

    # OpenWeatherMap
    openweather_api_key: str = ""
    openweather_base_url: str = "https://api.openweathermap.org/data/2.5"
    weather_timeout_seconds: float = 10.0

    # Scheduler
    weather_sweep_minutes: int = 30
    tier_review_day: int = 1

    # Market conquest
    home_county: str = "Bucks"
    home_state: str = "PA"
    default_exclusivity_fee: float = 299.0

    model_config = {"env_file": None}


@lru_cache
def get_settings() -> Settings:
    return Settings()
