"""Configuration management for the dispatch core."""

from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Literal["development", "staging", "production"] = Field(
        default="development"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["json", "text"] = Field(default="json", description="Log format")

    # API Configuration
    api_port: int = Field(default=8000, description="API server port")
    api_host: str = Field(default="0.0.0.0", description="API server host")

    # Storage
    store_backend: Literal["memory", "redis"] = Field(
        default="memory", description="Backend for delivery and driver records"
    )
    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis URL")

    # Matching Settings
    default_max_distance_km: float = Field(
        default=20.0, gt=0, description="Distance at which the distance factor reaches 0"
    )
    max_concurrent_jobs: int = Field(
        default=3, ge=1, description="Jobs at which the availability factor reaches 0"
    )
    average_speed_kmh: float = Field(default=40.0, gt=0, description="City driving speed")
    traffic_factor: float = Field(default=1.2, gt=0, description="Speed divisor for ETAs")
    match_limit: int = Field(default=5, ge=1, description="Default ranked list size")
    scoring_workers: int = Field(
        default=1, ge=1, description="Threads used to score a driver pool"
    )

    # Dispatch Settings
    dispatch_strategy: Literal["targeted", "broadcast"] = Field(
        default="targeted",
        description="Offer new requests to the top ranked drivers or to every available driver",
    )
    notify_top_n: int = Field(
        default=5, ge=1, description="Drivers offered a new request in targeted mode"
    )

    # Payment Settings
    driver_payout_share: Decimal = Field(
        default=Decimal("0.6"), gt=0, lt=1, description="Driver share of the delivery fee"
    )
    currency: str = Field(default="ZAR", description="Settlement currency")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v_upper


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
