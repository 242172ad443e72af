"""API route handlers for the BNPL merchant gateway."""
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from merchant_gateway.config import settings
from merchant_gateway.logging import bind_request, get_logger
from merchant_gateway.schemas import (
    CaptureRequest,
    EligibilityResponse,
    OrderDetails,
    OrderToken,
    PaymentResult,
)
from merchant_gateway.services.eligibility import EligibilityEngine
from merchant_gateway.services.order_flow import OrderFlow, ProviderFailure
from merchant_gateway.services.provider_client import ProviderClient

logger = get_logger(__name__)

router = APIRouter(prefix="/v1", tags=["checkout"])


def get_provider():
    """Dependency that provides a provider client, closed when the request ends."""
    provider = ProviderClient(settings)
    try:
        yield provider
    finally:
        provider.close()


def get_engine(provider: ProviderClient = Depends(get_provider)) -> EligibilityEngine:
    """Dependency that provides an engine owned by the current request."""
    return EligibilityEngine(settings, provider=provider)


def get_order_flow(engine: EligibilityEngine = Depends(get_engine)) -> OrderFlow:
    """Dependency that provides a checkout flow owned by the current request."""
    return OrderFlow(engine)


def _raise_for_failure(failure: ProviderFailure) -> None:
    logger.error(
        "provider_step_failed",
        operation=failure.operation,
        status_code=failure.status_code,
        detail=failure.detail,
    )
    raise HTTPException(status_code=502, detail=failure.user_message)


@router.get("/eligibility", response_model=EligibilityResponse)
def check_eligibility(
    price: Decimal = Query(..., description="Price in major currency units"),
    engine: EligibilityEngine = Depends(get_engine),
):
    """
    Check whether the installment payment method can be offered.

    Returns the eligibility flag, the per-installment amount (0 when not
    eligible) and the window the decision was made against.
    """
    eligible = engine.can_process_payment(price)
    amount = engine.amount_per_payment(price) if eligible else Decimal("0")

    logger.info("eligibility_checked", price=str(price), eligible=eligible)

    return EligibilityResponse(
        price=price,
        eligible=eligible,
        number_of_payments=engine.number_of_payments(),
        amount_per_payment=amount,
        min_price=engine.min_price,
        max_price=engine.max_price,
    )


@router.post("/orders", response_model=OrderToken)
def create_order(
    order: OrderDetails,
    request: Request,
    flow: OrderFlow = Depends(get_order_flow),
):
    """
    Create an order with the provider and return its token.

    The storefront passes the token back to /v1/payments/capture once the
    shopper has confirmed the plan.
    """
    request_id = getattr(request.state, "request_id", "unknown")
    bind_request(request_id, merchant_reference=order.merchant_reference)

    result = flow.create_order(order)
    if isinstance(result, ProviderFailure):
        _raise_for_failure(result)
    return result


@router.post("/payments/capture", response_model=PaymentResult)
def capture_payment(
    body: CaptureRequest,
    request: Request,
    flow: OrderFlow = Depends(get_order_flow),
):
    """Capture payment for an order token."""
    request_id = getattr(request.state, "request_id", "unknown")
    bind_request(request_id, merchant_reference=body.merchant_reference)

    result = flow.capture_payment(body.token, body.merchant_reference)
    if isinstance(result, ProviderFailure):
        _raise_for_failure(result)
    return result
