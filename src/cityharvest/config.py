"""
Configuration for cityharvest.

Uses Pydantic for validation and environment loading.
"""

import os
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings


class RetryConfig(BaseModel):
    """Retry policy for connection-level failures against the Graph API."""

    retry_max: int = Field(default=5, description="Max attempts per request")
    retry_base_delay: float = Field(
        default=1.0, description="Base delay for exponential backoff"
    )


class ScheduleConfig(BaseModel):
    """Intervals for the periodic harvest jobs."""

    location_interval: int = Field(
        default=7 * 24 * 3600, description="Seconds between location harvests"
    )
    photo_interval: int = Field(
        default=6 * 3600, description="Seconds between photo harvests"
    )


class HarvestConfig(BaseSettings):
    """Master configuration for cityharvest.

    Loads from environment variables (exact names, no prefix) and `.env`.
    """

    model_config = ConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )

    log_level: str = Field(default="INFO")

    # Database
    database_url: str = Field(default="", description="PostgreSQL URL")

    # Graph API
    graph_base_url: str = Field(default="https://graph.facebook.com")
    graph_api_version: str = Field(default="v2.7")
    graph_access_token: str = Field(default="", description="Graph API access token")
    request_timeout: float = Field(
        default=30.0, description="HTTP request timeout in seconds"
    )

    # Harvest tuning
    search_distance: int = Field(
        default=4000, description="Place search radius around each tile center (m)"
    )
    activity_window_days: int = Field(
        default=14, description="Only events started within this window get photos"
    )
    match_threshold: float = Field(
        default=70.0, description="Minimum album/event name similarity (percent)"
    )

    retry: RetryConfig = Field(default_factory=RetryConfig)
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)

    @classmethod
    def from_env(cls) -> "HarvestConfig":
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            database_url=os.getenv("DATABASE_URL", ""),
            graph_base_url=os.getenv("GRAPH_BASE_URL", "https://graph.facebook.com"),
            graph_api_version=os.getenv("GRAPH_API_VERSION", "v2.7"),
            graph_access_token=os.getenv("GRAPH_ACCESS_TOKEN", ""),
            request_timeout=float(os.getenv("GRAPH_REQUEST_TIMEOUT", "30.0")),
            search_distance=int(os.getenv("HARVEST_SEARCH_DISTANCE", "4000")),
            activity_window_days=int(os.getenv("HARVEST_ACTIVITY_WINDOW_DAYS", "14")),
            match_threshold=float(os.getenv("HARVEST_MATCH_THRESHOLD", "70.0")),
            retry=RetryConfig(
                retry_max=int(os.getenv("HARVEST_RETRY_MAX", "5")),
                retry_base_delay=float(os.getenv("HARVEST_RETRY_BASE_DELAY", "1.0")),
            ),
            schedule=ScheduleConfig(
                location_interval=int(
                    os.getenv("HARVEST_LOCATION_INTERVAL_SEC", str(7 * 24 * 3600))
                ),
                photo_interval=int(
                    os.getenv("HARVEST_PHOTO_INTERVAL_SEC", str(6 * 3600))
                ),
            ),
        )


_config: Optional[HarvestConfig] = None


def get_config() -> HarvestConfig:
    """Get the process-wide configuration, loading it on first use."""
    global _config
    if _config is None:
        _config = HarvestConfig.from_env()
    return _config
