"""Configuration management for the Glimpse matching service."""

from typing import Any

from pydantic import BaseModel, Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class MatchingConfig(BaseModel):
    """
    Business constants of the like/match core.

    Passed explicitly to every service at construction time so that no
    component reads ambient module state for its rules.
    """

    max_daily_likes: int = Field(default=1, ge=0)
    like_cooldown_days: int = Field(default=14, ge=0)
    match_expiry_days: int = Field(default=30, ge=1)
    day_timezone: str = "UTC"
    deleted_user_nickname: str = "deleted_user"
    recommendation_pool_factor: int = Field(default=5, ge=1)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database Configuration
    DATABASE_URL: str = "sqlite:///./glimpse.db"

    # Redis Configuration
    REDIS_URL: str | None = None

    # Sentry Configuration
    SENTRY_DSN: str | None = None

    # Application Configuration
    APP_NAME: str = "Glimpse Match"
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"
    DEBUG: bool = Field(default=False)

    # API Configuration
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000

    # Like / Match Policy Configuration
    MAX_DAILY_LIKES: int = 1
    LIKE_COOLDOWN_DAYS: int = 14
    MATCH_EXPIRY_DAYS: int = 30
    LIKE_DAY_TIMEZONE: str = "UTC"
    DELETED_USER_NICKNAME: str = "deleted_user"
    RECOMMENDATION_POOL_FACTOR: int = 5

    # Scheduled Jobs
    MATCH_CLEANUP_INTERVAL_HOURS: float = 24.0

    @field_validator("DEBUG", mode="before")
    @classmethod
    def set_debug(cls, v: Any, info: ValidationInfo) -> bool:
        """Enable debug mode if ENVIRONMENT is development."""
        if isinstance(v, bool):
            return v
        if isinstance(v, str) and v.strip():
            return v.strip().lower() in ("1", "true", "yes", "on")
        return bool(info.data.get("ENVIRONMENT", "").lower() == "development")

    def matching_config(self) -> MatchingConfig:
        """Build the policy struct handed to the like/match services."""
        return MatchingConfig(
            max_daily_likes=self.MAX_DAILY_LIKES,
            like_cooldown_days=self.LIKE_COOLDOWN_DAYS,
            match_expiry_days=self.MATCH_EXPIRY_DAYS,
            day_timezone=self.LIKE_DAY_TIMEZONE,
            deleted_user_nickname=self.DELETED_USER_NICKNAME,
            recommendation_pool_factor=self.RECOMMENDATION_POOL_FACTOR,
        )

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore")


# Create a global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Return the settings instance."""
    return settings
