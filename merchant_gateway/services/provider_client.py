"""Client for the BNPL provider's merchant API."""
from typing import Any, Optional

import httpx
from pydantic import TypeAdapter, ValidationError

from merchant_gateway.config import Settings, settings
from merchant_gateway.logging import ProviderCallTimer, get_logger
from merchant_gateway.schemas import OrderDetails, OrderToken, PaymentResult, ProviderConfig
from merchant_gateway import metrics

logger = get_logger(__name__)

USER_AGENT_VERSION = "MerchantGateway/ 1.0"


class ProviderApiError(Exception):
    """Raised when the provider API returns an error."""
    def __init__(self, status_code: int, detail: str):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Provider API error {status_code}: {detail}")


class ProviderClient:
    """Authenticated client for orders, payment capture and merchant configuration."""

    def __init__(
        self,
        config: Optional[Settings] = None,
        http_client: Optional[httpx.Client] = None,
    ):
        """
        Initialize the provider client.

        Args:
            config: Settings holding credentials and endpoint (defaults to global settings)
            http_client: Preconfigured httpx client. Defaults to one built
                from the settings with basic auth and the merchant user agent.
        """
        self.config = config or settings
        self.base_url = self.config.connection_url
        self.http_client = http_client or httpx.Client(
            base_url=self.base_url,
            auth=httpx.BasicAuth(self.config.merchant_id, self.config.secret_key),
            headers={"User-Agent": self.user_agent},
            timeout=self.config.provider_timeout_seconds,
        )

    @property
    def user_agent(self) -> str:
        return (
            f"{USER_AGENT_VERSION} ({self.config.merchant_name}/ "
            f"{self.config.merchant_id} )"
        )

    def close(self) -> None:
        self.http_client.close()

    def ping(self, url: Optional[str] = None) -> bool:
        """
        Check whether the provider answers at ``url``.

        Never raises; any transport or HTTP error counts as unavailable.
        """
        url = (url or self.base_url).rstrip("/") + "/ping"
        try:
            response = self.http_client.get(url)
        except httpx.RequestError as e:
            logger.warning("provider_ping_failed", url=url, error=str(e))
            return False

        available = response.is_success
        logger.info("provider_ping", url=url, status_code=response.status_code, available=available)
        return available

    def create_order(self, order: OrderDetails) -> OrderToken:
        """
        Create an order and return its token.

        Raises:
            ProviderApiError: If the API returns an error
        """
        payload = order.model_dump(by_alias=True, mode="json", exclude_none=True)
        data = self._request(
            "create_order", "POST", "orders",
            json=payload,
            merchant_reference=order.merchant_reference,
        )
        return self._parse("create_order", OrderToken, data)

    def capture_payment(self, token: str, merchant_reference: str = "") -> PaymentResult:
        """
        Capture payment for an approved order token.

        Raises:
            ProviderApiError: If the API returns an error
        """
        payload: dict[str, Any] = {"token": token}
        if merchant_reference:
            payload["merchantReference"] = merchant_reference

        data = self._request(
            "capture_payment", "POST", "payments/capture",
            json=payload,
            merchant_reference=merchant_reference or None,
        )
        return self._parse("capture_payment", PaymentResult, data)

    def get_configuration(self) -> list[ProviderConfig]:
        """
        Fetch the merchant's payment configuration.

        Raises:
            ProviderApiError: If the API returns an error
        """
        data = self._request("get_configuration", "GET", "configuration")
        return self._parse("get_configuration", list[ProviderConfig], data)

    def _request(self, operation: str, method: str, path: str, **fields: Any) -> Any:
        json_body = fields.pop("json", None)
        log_fields = {k: v for k, v in fields.items() if v is not None}

        timer = ProviderCallTimer(operation, logger, **log_fields)
        try:
            with timer:
                response = self.http_client.request(method, path, json=json_body)
                response.raise_for_status()
                data = response.json()

        except httpx.HTTPStatusError as e:
            metrics.record_provider_call(
                operation, success=False,
                latency_seconds=timer.duration_seconds, error_type="http_error",
            )
            raise ProviderApiError(e.response.status_code, e.response.text) from e

        except httpx.RequestError as e:
            # Record failed provider call (connection/timeout error)
            error_type = "timeout" if isinstance(e, httpx.TimeoutException) else "connection_error"
            metrics.record_provider_call(
                operation, success=False,
                latency_seconds=timer.duration_seconds, error_type=error_type,
            )
            raise ProviderApiError(503, f"Request failed: {e}") from e

        except ValueError as e:
            metrics.record_provider_call(
                operation, success=False,
                latency_seconds=timer.duration_seconds, error_type="invalid_body",
            )
            raise ProviderApiError(502, f"Response is not JSON: {e}") from e

        metrics.record_provider_call(operation, success=True, latency_seconds=timer.duration_seconds)
        return data

    def _parse(self, operation: str, shape, data: Any):
        try:
            return TypeAdapter(shape).validate_python(data)
        except ValidationError as e:
            logger.error("provider_response_invalid", operation=operation, error=str(e))
            raise ProviderApiError(502, f"Unexpected {operation} response: {e}") from e
