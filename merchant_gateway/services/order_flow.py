"""Order creation and payment capture for a single checkout."""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from merchant_gateway.config import OrderSequenceError
from merchant_gateway.logging import get_logger, log_payment_event
from merchant_gateway.schemas import OrderDetails, OrderToken, PaymentResult
from merchant_gateway.services.eligibility import EligibilityEngine
from merchant_gateway.services.fixtures import (
    ORDER_CREATE_RESPONSE,
    PAYMENT_CAPTURE_RESPONSE,
    FixtureStore,
)
from merchant_gateway.services.provider_client import ProviderApiError, ProviderClient
from merchant_gateway import metrics

logger = get_logger(__name__)

USER_MESSAGE = "Payment step failed, please try again."


class CheckoutState(str, Enum):
    NO_ORDER = "no_order"
    ORDER_CREATED = "order_created"
    PAYMENT_CAPTURED = "payment_captured"


@dataclass(frozen=True)
class ProviderFailure:
    """A provider call that failed, handed back to the caller to branch on."""
    operation: str
    status_code: int
    detail: str

    @property
    def user_message(self) -> str:
        return USER_MESSAGE

    @classmethod
    def from_error(cls, operation: str, error: ProviderApiError) -> "ProviderFailure":
        return cls(operation=operation, status_code=error.status_code, detail=error.detail)


class OrderFlow:
    """
    Drives one checkout through the provider:

        NO_ORDER -> ORDER_CREATED -> PAYMENT_CAPTURED

    Calls go to the live provider when the engine is in live mode and to
    local fixtures otherwise. Provider failures are returned as
    ProviderFailure values and leave the state unchanged.
    """

    def __init__(
        self,
        engine: EligibilityEngine,
        provider: Optional[ProviderClient] = None,
        fixtures: Optional[FixtureStore] = None,
    ):
        """
        Initialize the order flow.

        Args:
            engine: Eligibility engine that owns the live/offline switch
            provider: Provider API client (defaults to the engine's)
            fixtures: Fixture store (defaults to the engine's)
        """
        self.engine = engine
        self.provider = provider or engine.provider
        self.fixtures = fixtures or engine.fixtures

        self._state = CheckoutState.NO_ORDER
        self._order_token: Optional[OrderToken] = None
        self._payment_result: Optional[PaymentResult] = None

    @property
    def state(self) -> CheckoutState:
        return self._state

    @property
    def order_token(self) -> Optional[OrderToken]:
        return self._order_token

    @property
    def payment_result(self) -> Optional[PaymentResult]:
        return self._payment_result

    @property
    def _source(self) -> str:
        return "provider" if self.engine.is_server_available() else "fixture"

    def create_order(self, order: OrderDetails) -> Union[OrderToken, ProviderFailure]:
        """
        Create an order and keep its token for the capture step.

        Returns:
            The order token, or a ProviderFailure if the provider rejected it

        Raises:
            ConfigurationError: If offline and the order fixture is missing
        """
        source = self._source

        if self.engine.is_server_available():
            try:
                token = self.provider.create_order(order)
            except ProviderApiError as e:
                log_payment_event(logger, "order_create_failed", source, "provider_error",
                                  status_code=e.status_code)
                metrics.record_order(source, "provider_error")
                return ProviderFailure.from_error("create_order", e)
        else:
            token = self.fixtures.load(ORDER_CREATE_RESPONSE, OrderToken)

        self._order_token = token
        if not token.token:
            # No token to capture against; state stays NO_ORDER
            log_payment_event(logger, "order_token_empty", source, "empty_token",
                              merchant_reference=order.merchant_reference)
            metrics.record_order(source, "empty_token")
            return token

        self._state = CheckoutState.ORDER_CREATED
        log_payment_event(logger, "order_created", source, "success",
                          merchant_reference=order.merchant_reference)
        metrics.record_order(source, "success")
        return token

    def capture_payment(
        self, token: str = "", merchant_reference: str = ""
    ) -> Union[PaymentResult, ProviderFailure]:
        """
        Capture payment for an order token.

        Args:
            token: Order token. Defaults to the token from create_order.
            merchant_reference: Optional merchant reference to attach

        Returns:
            The payment result, or a ProviderFailure if the capture failed

        Raises:
            OrderSequenceError: If no token was given and no order was created
            ConfigurationError: If offline and the payment fixture is missing
        """
        if not token and self._order_token is not None:
            token = self._order_token.token
        if not token:
            logger.error("payment_capture_without_order")
            raise OrderSequenceError(
                "No order token found, please create an order before processing a payment"
            )

        source = self._source

        if self.engine.is_server_available():
            try:
                result = self.provider.capture_payment(token, merchant_reference)
            except ProviderApiError as e:
                log_payment_event(logger, "payment_capture_failed", source, "provider_error",
                                  status_code=e.status_code)
                metrics.record_capture(source, "provider_error")
                return ProviderFailure.from_error("capture_payment", e)
        else:
            result = self.fixtures.load(PAYMENT_CAPTURE_RESPONSE, PaymentResult)

        self._payment_result = result
        self._state = CheckoutState.PAYMENT_CAPTURED

        log_payment_event(logger, "payment_captured", source, "success",
                          payment_status=result.status,
                          merchant_reference=merchant_reference or result.reference or None)
        metrics.record_capture(source, "success")
        return result
