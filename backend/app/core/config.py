"""
StudySense Configuration
Central configuration loaded from environment variables.
"""

from pathlib import Path
from pydantic_settings import BaseSettings
from typing import List

from study_engine.config import EngineConfig


class Settings(BaseSettings):
    # App
    APP_NAME: str = "StudySense"
    STUDYSENSE_ENV: str = "development"
    DEBUG: bool = True

    # Database
    DATABASE_URL: str = "sqlite:///./studysense.db"

    # CORS
    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:3000,http://localhost:8000"

    # Engine cadences
    VALUE_SMOOTHING_SECONDS: float = 3.0
    CHART_SMOOTHING_SECONDS: float = 5.0
    CHART_MAX_POINTS: int = 60
    BREAK_REMINDER_MINUTES: int = 20
    LONG_SESSION_SECONDS: float = 5400.0
    TICK_SECONDS: float = 1.0

    # Raise on programmer errors (out-of-order samples, negative durations)
    STRICT_INGEST: bool = False

    # Analytics
    DEFAULT_PERIOD_DAYS: int = 30
    MAX_PERIOD_DAYS: int = 365

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",")]

    def engine_config(self) -> EngineConfig:
        return EngineConfig(
            VALUE_SMOOTHING_INTERVAL=self.VALUE_SMOOTHING_SECONDS,
            CHART_SMOOTHING_INTERVAL=self.CHART_SMOOTHING_SECONDS,
            CHART_MAX_POINTS=self.CHART_MAX_POINTS,
            BREAK_REMINDER_MINUTES=self.BREAK_REMINDER_MINUTES,
            LONG_SESSION_SECONDS=self.LONG_SESSION_SECONDS,
            strict=self.STRICT_INGEST,
        )

    class Config:
        env_file = Path(__file__).resolve().parent.parent.parent / ".env"
        extra = "allow"


settings = Settings()
