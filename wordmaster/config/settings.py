from enum import Enum
from typing import Literal

from fastapi import Depends
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SchedulerType(str, Enum):
    SM2 = "sm2"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="WordMaster", description="Application name")
    version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment")
    debug: bool = Field(default=True, description="Debug mode")

    # Algorithms
    scheduler: SchedulerType = Field(
        default=SchedulerType.SM2, description="SRS scheduler algorithm"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )

    # Server
    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=8000, description="Server port")
    workers: int = Field(default=1, description="Number of workers")

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./wordmaster.db",
        description="Database connection URL"
    )
    db_pool_size: int = Field(default=10, description="Database connection pool size")
    db_max_overflow: int = Field(default=20, description="Database max overflow connections")
    db_pool_timeout: int = Field(default=30, description="Database pool timeout in seconds")
    db_pool_recycle: int = Field(default=3600, description="Database connection recycle time in seconds")

    # Study sessions
    new_items_per_session: int = Field(
        default=20, description="Default number of new words per learning session"
    )
    review_items_per_session: int = Field(
        default=50, description="Default number of due words per review session"
    )
    easy_threshold_s: int = Field(
        default=3, description="Answers faster than this (seconds) count as Easy"
    )
    good_threshold_s: int = Field(
        default=10, description="Answers faster than this (seconds) count as Good"
    )
    review_max_retries: int = Field(
        default=3, description="Read-transition-write attempts before giving up on a conflict"
    )

    def model_post_init(self, __context) -> None:
        """Validate settings after initialization."""
        if self.easy_threshold_s >= self.good_threshold_s:
            raise ValueError(
                f"EASY_THRESHOLD_S ({self.easy_threshold_s}) must be lower than "
                f"GOOD_THRESHOLD_S ({self.good_threshold_s})."
            )
        if self.new_items_per_session <= 0 or self.review_items_per_session <= 0:
            raise ValueError("Session sizes must be positive.")
        if self.review_max_retries < 1:
            raise ValueError("REVIEW_MAX_RETRIES must be at least 1.")

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Dependency injection function for settings."""
    return settings


# Convenience type alias for dependency injection
SettingsDep = Depends(get_settings)
