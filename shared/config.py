"""
Shared configuration management for the storefront integrity layer.
"""

from typing import Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="STOREFRONT_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Storefront
    site_url: str = Field(default="http://localhost:3000")
    store_name: str = Field(default="TASSA")

    # PayFast merchant credentials
    payfast_merchant_id: str = Field(default="")
    payfast_merchant_key: str = Field(default="")
    payfast_passphrase: SecretStr = Field(default=SecretStr(""))
    payfast_sandbox: Optional[bool] = Field(default=None)

    # CSRF
    csrf_token_bytes: int = Field(default=32)
    csrf_cookie_secure: Optional[bool] = Field(default=None)

    # Rate limiting
    rate_limit_sweep_interval_seconds: float = Field(default=60.0)

    @field_validator("csrf_token_bytes")
    @classmethod
    def _check_token_bytes(cls, value: int) -> int:
        if value < 16:
            raise ValueError("csrf_token_bytes must be at least 16")
        return value

    @property
    def is_production(self) -> bool:
        return self.env.lower() == "production"

    @property
    def use_payfast_sandbox(self) -> bool:
        """Sandbox unless explicitly disabled with a merchant id configured."""
        if self.payfast_sandbox is True:
            return True
        return not self.payfast_merchant_id

    @property
    def secure_cookies(self) -> bool:
        if self.csrf_cookie_secure is not None:
            return self.csrf_cookie_secure
        return self.is_production


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
