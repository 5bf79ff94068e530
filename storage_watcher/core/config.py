"""
Configuration module for the Storage Watcher.

This module defines the settings and configuration parameters for the watcher service.
It uses Pydantic's Settings management to load configuration from environment variables.
"""

from enum import Enum
from functools import lru_cache
from typing import Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LogLevel(str, Enum):
    """Log level enumeration."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class Environment(str, Enum):
    """Environment enumeration."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TEST = "test"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    This class defines all configuration parameters for the watcher service,
    with appropriate defaults and validation.
    """
    # General settings
    PROJECT_NAME: str = "Storage Watcher"
    VERSION: str = "0.1.0"
    ENVIRONMENT: Environment = Environment.DEVELOPMENT
    LOG_LEVEL: LogLevel = LogLevel.INFO

    # Watch settings
    WATCH_URI: str = "./data/document.txt"  # s3://bucket/key, gs://bucket/key or a local path
    WATCH_INTERVAL: float = 10.0  # seconds between checks
    MAX_RUNNING_TIME: Optional[float] = None  # seconds
    MAX_RUNNING_COUNT: Optional[int] = None
    SCHEDULER_WORKERS: int = 4

    # S3 settings
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[SecretStr] = None
    AWS_REGION: str = "us-east-1"
    S3_ENDPOINT_URL: Optional[str] = None

    # GCS settings
    GCS_PROJECT_ID: Optional[str] = None
    GCS_CREDENTIALS_PATH: Optional[str] = None

    # RabbitMQ settings
    PUBLISH_EVENTS: bool = False
    RABBITMQ_HOST: str = "localhost"
    RABBITMQ_PORT: int = 5672
    RABBITMQ_USER: str = "guest"
    RABBITMQ_PASSWORD: SecretStr = Field(default=SecretStr("guest"))
    RABBITMQ_QUEUE: str = "storage-events"
    RABBITMQ_EXCHANGE: str = ""

    # Metrics settings
    METRICS_PORT: Optional[int] = None

    @field_validator("WATCH_INTERVAL")
    def validate_interval(cls, v: float) -> float:
        """
        Reject intervals that would make the scheduler spin.

        Args:
            v: The value to validate

        Returns:
            The validated interval
        """
        if v <= 0:
            raise ValueError(f"WATCH_INTERVAL must be positive, got {v}")
        return v

    @field_validator("MAX_RUNNING_TIME", "MAX_RUNNING_COUNT")
    def validate_non_negative(cls, v: Optional[float]) -> Optional[float]:
        """Limits may be omitted but never negative."""
        if v is not None and v < 0:
            raise ValueError(f"Value must not be negative, got {v}")
        return v

    @field_validator("SCHEDULER_WORKERS")
    def validate_workers(cls, v: int) -> int:
        """The scheduler needs at least one thread to run the watch."""
        if v < 1:
            raise ValueError(f"SCHEDULER_WORKERS must be at least 1, got {v}")
        return v

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        use_enum_values=True,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Settings loaded from the environment, read once per process."""
    return Settings()
