"""
Shared configuration management for the Concert Access Layer.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="ACCESS_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = Field(default="local", description="Deployment environment")
    log_level: str = Field(default="info", description="Log level")
    log_json: bool = Field(default=True, description="Render logs as JSON; console rendering otherwise")

    # Policy
    admin_role: str = Field(default="admin", description="Role granted administrative access")
    policy_file: Optional[str] = Field(default=None, description="YAML definition document replacing the built-in catalog")
    validate_policies: bool = Field(default=True, description="Check predicate references at startup")

    # Observability
    enable_metrics: bool = Field(default=True, description="Record access decision metrics")
    metrics_port: Optional[int] = Field(default=None, description="Expose Prometheus metrics on this port when set")


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str

    def __init__(self, service_name: str, **kwargs):
        super().__init__(service_name=service_name, **kwargs)


def get_config(service_name: str, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, **overrides)
