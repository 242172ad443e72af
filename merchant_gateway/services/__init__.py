"""Service layer for the BNPL merchant gateway."""
from merchant_gateway.services.eligibility import EligibilityEngine
from merchant_gateway.services.fixtures import FixtureStore
from merchant_gateway.services.order_flow import OrderFlow, ProviderFailure
from merchant_gateway.services.provider_client import ProviderApiError, ProviderClient

__all__ = [
    "EligibilityEngine",
    "FixtureStore",
    "OrderFlow",
    "ProviderApiError",
    "ProviderClient",
    "ProviderFailure",
]
