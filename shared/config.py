"""
Shared configuration management for the storefront catalog services.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="STOREFRONT_",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Commerce backend (WooCommerce REST API)
    commerce_url: str = Field(default="http://localhost:8080/wp")
    commerce_consumer_key: str = Field(default="")
    commerce_consumer_secret: str = Field(default="")
    commerce_per_page: int = Field(default=100)
    commerce_timeout_seconds: float = Field(default=30.0)

    # Product cache
    # Zero or negative TTL means the snapshot only expires on invalidation.
    catalog_ttl_seconds: float = Field(default=3600.0)
    # Zero or negative grace means stale snapshots are served without limit.
    catalog_grace_seconds: float = Field(default=4 * 3600.0)

    # Snapshot persistence
    snapshot_backend: str = Field(default="file")
    snapshot_path: str = Field(default=".cache/products-cache.json")
    redis_url: str = Field(default="redis://localhost:6379/0")
    snapshot_redis_key: str = Field(default="storefront:catalog:snapshot")

    @property
    def catalog_ttl(self) -> Optional[float]:
        """TTL in seconds, ``None`` when the snapshot never expires on its own."""
        return self.catalog_ttl_seconds if self.catalog_ttl_seconds > 0 else None

    @property
    def catalog_grace(self) -> Optional[float]:
        """Stale-serving ceiling in seconds, ``None`` when unbounded."""
        return self.catalog_grace_seconds if self.catalog_grace_seconds > 0 else None


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
