"""
Shared configuration management for the storefront data services.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="STOREFRONT_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # External services
    redis_url: str = Field(default="redis://localhost:6379/0")
    mongo_url: str = Field(default="mongodb://localhost:27017")
    mongo_database: str = Field(default="storefront")

    # Timeouts (seconds); a cache timeout counts as a miss
    cache_timeout_seconds: float = Field(default=0.5, gt=0)
    data_source_timeout_seconds: float = Field(default=10.0, gt=0)

    # Cache behaviour
    cache_single_flight: bool = Field(default=False)
    ttl_short_listing: int = Field(default=60, gt=0)
    ttl_aggregate_stats: int = Field(default=3600, gt=0)
    ttl_static_mapping: int = Field(default=86400, gt=0)
    ttl_search: int = Field(default=60, gt=0)
    ttl_price_snapshot: int = Field(default=3600, gt=0)

    # Request handling
    default_country: str = Field(default="US")
    country_cookie_name: str = Field(default="EGDATA_COUNTRY")
    max_page_limit: int = Field(default=50, gt=0)

    # Administrative routes are disabled when no token is configured
    admin_token: Optional[str] = Field(default=None)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
