"""
Shared configuration management for the Registry Gateway.
"""

from typing import List

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


ONE_MEGABYTE = 1024 * 1024


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="REGISTRY_GATEWAY_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    env: str = "local"
    log_level: str = "info"

    # Upstream registries
    public_registry_url: str = Field(
        default="https://registry.npmjs.org",
        validation_alias=AliasChoices("NPM_REGISTRY_URL", "REGISTRY_GATEWAY_PUBLIC_REGISTRY_URL"),
    )
    private_registry_url: str = "http://localhost:4873"
    private_scopes: List[str] = Field(default_factory=list)

    # Upstream transport
    upstream_timeout: float = 10.0
    upstream_max_connections: int = 100
    upstream_max_keepalive: int = 20

    # Metadata cache
    cache_max_bytes: int = 40 * ONE_MEGABYTE
    cache_ttl_seconds: float = 60.0


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
