"""
Shared configuration management for the protection limits service.
"""

from typing import List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="LIMITS_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # External services
    postgres_dsn: str = Field(default="postgres://localhost:5432/lwc")
    permissions_service_url: str = Field(default="http://localhost:8020")

    # Limits
    limits_file: str = Field(default="limits.yml")
    unknown_material_policy: Literal["skip", "abort"] = Field(default="skip")
    extra_materials: List[str] = Field(default_factory=list)
    count_timeout_seconds: float = Field(default=5.0, gt=0)
    groups_timeout_seconds: float = Field(default=5.0, gt=0)


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
