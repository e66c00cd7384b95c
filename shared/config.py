"""
Shared configuration management for SiteFlow services.
"""

from typing import Dict, Optional, Tuple

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="SITEFLOW_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")
    api_version: str = Field(default="v1")

    # Cache
    cache_default_ttl_ms: int = Field(default=2 * 60 * 1000, ge=1)
    cache_max_entries: Optional[int] = Field(default=5000, ge=1)
    stats_cache_ttl_ms: int = Field(default=5 * 60 * 1000, ge=1)

    # Expired cache entries and rate windows are swept on this interval
    sweep_interval_seconds: float = Field(default=300.0, gt=0)

    # Rate limiting: profile name -> [max_requests, window_ms]
    rate_limit_overrides: Dict[str, Tuple[int, int]] = Field(default_factory=dict)
    rate_limiting_enabled: bool = Field(default=True)


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
