"""
Arrow Domain - Backend Configuration

Настройки приложения через environment variables.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from functools import lru_cache
from typing import Literal


DIFFICULTY_CHOICES = ("easy", "normal", "hard", "expert", "master")


class Settings(BaseSettings):
    """Настройки приложения."""

    # App
    APP_NAME: str = "Arrow Domain"
    DEBUG: bool = False
    API_PREFIX: str = "/api/v1"
    ENVIRONMENT: Literal["development", "production"] = "development"
    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Rate Limiting
    RATE_LIMIT_GAME: int = 60

    # Generator
    GENERATE_RETRIES: int = 220
    TARGET_MAX_WINNERS: int = 2
    DEFAULT_DIFFICULTY: str = "normal"

    # Playback (ms)
    PLAYBACK_ENABLED: bool = True
    STEP_ACTIVATE_MS: int = 180
    STEP_RAY_MS: int = 260
    STEP_HIT_MS: int = 150
    STEP_GAP_MS: int = 80
    FAIL_RESET_MS: int = 820

    # Sessions (in-memory only)
    MAX_SESSIONS: int = 1000
    SESSION_TTL_SECONDS: int = 60 * 60  # 1 hour

    @field_validator("DEFAULT_DIFFICULTY")
    @classmethod
    def validate_default_difficulty(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in DIFFICULTY_CHOICES:
            raise ValueError(f"DEFAULT_DIFFICULTY must be one of {', '.join(DIFFICULTY_CHOICES)}, got: {value}")
        return normalized

    @field_validator(
        "STEP_ACTIVATE_MS", "STEP_RAY_MS", "STEP_HIT_MS", "STEP_GAP_MS", "FAIL_RESET_MS",
    )
    @classmethod
    def validate_delay(cls, value: int) -> int:
        if value < 0:
            raise ValueError(f"Playback delays must be >= 0, got: {value}")
        return value

    @field_validator("GENERATE_RETRIES", "TARGET_MAX_WINNERS")
    @classmethod
    def validate_search_limits(cls, value: int) -> int:
        if value < 0:
            raise ValueError(f"Search limits must be >= 0, got: {value}")
        return value

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def cors_origins_list(self) -> list[str]:
        """Парсит CORS_ORIGINS в список."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def game_rate_limit(self) -> str:
        return f"{self.RATE_LIMIT_GAME}/minute"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )


@lru_cache()
def get_settings() -> Settings:
    """Получить настройки (кэшируется)."""
    return Settings()


settings = get_settings()
