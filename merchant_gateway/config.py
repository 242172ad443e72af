"""Configuration settings for the BNPL Merchant Gateway."""
from typing import Optional

from pydantic_settings import BaseSettings

CONNECTION_URL_TEST = "https://api-sandbox.afterpay.com/v1/"
CONNECTION_URL_LIVE = "https://api.afterpay.com/v1/"


class ConfigurationError(Exception):
    """Raised when the integration cannot work with the current configuration."""


class OrderSequenceError(ConfigurationError):
    """Raised when a payment is captured before any order token exists."""


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Merchant credentials
    merchant_id: str = ""
    secret_key: str = ""
    merchant_name: str = ""

    # Installment plan offered at checkout
    number_of_payments: int = 4

    # Canned provider responses used when no live server is configured
    fixtures_directory: str = "expectations"

    # Provider connection
    is_live: bool = False
    provider_api_base: Optional[str] = None
    provider_timeout_seconds: float = 30.0

    # Start in live mode (credentials are validated when enabled)
    server_available: bool = False

    # Read min price from maximumAmount and max price from minimumAmount,
    # as earlier releases did. Off unless the provider confirms it.
    legacy_swapped_bounds: bool = False

    # Service identification
    service_name: str = "merchant-gateway"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def connection_url(self) -> str:
        """Base URL of the provider API, always ending in a slash."""
        if self.provider_api_base:
            return self.provider_api_base.rstrip("/") + "/"
        return CONNECTION_URL_LIVE if self.is_live else CONNECTION_URL_TEST


settings = Settings()
