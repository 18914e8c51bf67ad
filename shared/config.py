"""
Shared configuration management for the storefront relay.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="STOREFRONT_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # CORS
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])


class RelayConfig(BaseConfig):
    """Configuration consumed by the relay service."""

    # Core service
    core_api_url: Optional[str] = Field(default=None)
    api_prefix: str = Field(default="/api")
    request_timeout: float = Field(default=30.0, gt=0)

    # Credentials
    session_cookie_name: str = Field(default="true_core_token")
    auth_scheme: str = Field(default="Bearer")
    token_max_age_seconds: int = Field(default=24 * 60 * 60)
    remember_me_max_age_seconds: int = Field(default=30 * 24 * 60 * 60)

    # Storefront
    web_address: str = Field(default="http://localhost:3000")

    # Service
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    @property
    def cookie_secure(self) -> bool:
        return self.env != "local"


@lru_cache(maxsize=1)
def get_config() -> RelayConfig:
    """Get the process-wide relay configuration."""
    return RelayConfig()
