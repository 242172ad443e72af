"""HTTP routes for the BNPL merchant gateway."""
from merchant_gateway.api.routes import router

__all__ = ["router"]
