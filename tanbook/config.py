"""
Configuration management for the tanning salon booking core.

This module provides centralized configuration using Pydantic settings
for type-safe environment variable management, plus the static sunbed
catalog and operating hours shared by every component.
"""

from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Ledger API Configuration
    ledger_api_url: str = Field(default="http://localhost:8080", alias="LEDGER_API_URL")
    ledger_api_timeout: int = Field(default=10, alias="LEDGER_API_TIMEOUT")
    ledger_poll_interval: float = Field(default=2.0, alias="LEDGER_POLL_INTERVAL")

    # Server Configuration
    ledger_server_host: str = Field(default="0.0.0.0", alias="LEDGER_SERVER_HOST")
    ledger_server_port: int = Field(default=8080, alias="LEDGER_SERVER_PORT")

    # Application Configuration
    salon_name: str = Field(default="Sunset Tanning Studio", alias="SALON_NAME")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Concurrency Settings
    connection_pool_size: int = Field(default=50, alias="CONNECTION_POOL_SIZE")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()


# Operating window: 09:00 inclusive to 21:00 exclusive, in 15-minute slots
OPENING_HOUR = 9
CLOSING_HOUR = 21
SLOT_MINUTES = 15

# One session consumes one slot worth of prepaid hours
SESSION_MINUTES = 15
SESSION_HOURS = 0.25

# Kiosk sessions snap to a grid point at most this many minutes away
NEAREST_SLOT_TOLERANCE_MINUTES = 5


# Sunbed catalog - centralized configuration
SUNBEDS: List[dict] = [
    {
        "id": "standard-1",
        "name": "Standard Bed #1",
        "type": "standard",
        "description": "Classic tanning experience with UV bulbs",
        "price_multiplier": 1.0,
        "max_session_time": 20,
        "features": ["UV Bulbs", "Fan Cooling", "Music System"],
    },
    {
        "id": "standard-2",
        "name": "Standard Bed #2",
        "type": "standard",
        "description": "Classic tanning experience with UV bulbs",
        "price_multiplier": 1.0,
        "max_session_time": 20,
        "features": ["UV Bulbs", "Fan Cooling", "Music System"],
    },
    {
        "id": "premium-1",
        "name": "Premium Bed",
        "type": "premium",
        "description": "Enhanced tanning with high-pressure bulbs",
        "price_multiplier": 1.5,
        "max_session_time": 15,
        "features": [
            "High-Pressure Bulbs",
            "Air Conditioning",
            "Premium Sound",
            "Aromatherapy",
        ],
    },
    {
        "id": "standing-1",
        "name": "Standing Booth",
        "type": "standing",
        "description": "Quick standing tan booth",
        "price_multiplier": 1.2,
        "max_session_time": 12,
        "features": ["360° Coverage", "Quick Session", "Hydrating Mist", "Music System"],
    },
]
