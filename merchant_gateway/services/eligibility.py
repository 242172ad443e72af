"""
Eligibility Engine for the installment payment method.

Decides whether the BNPL payment method can be offered for a price and
works out how much each installment will be.

ELIGIBILITY WINDOW:
-------------------
The provider publishes, per merchant, the minimum and maximum order value it
will finance under the PAY_BY_INSTALLMENT product. The engine caches that
window and only offers the payment method for prices inside it (bounds
inclusive). The window can be set explicitly with configure(), which skips
the provider lookup entirely.

A zero bound means the window has not been loaded. In that state the engine
refreshes from the local configuration fixture first (no network round-trip)
and only then from the live provider. A failed provider lookup leaves the
window as it was, so an engine that never loaded a window keeps answering
"cannot process".

INSTALLMENT ROUNDING:
---------------------
Installments are computed in minor units (cents) and rounded UP:

    per_payment = ceil(price * 100 / n) / 100

This is a hard invariant, not a presentation choice:
- n * per_payment >= price, so the merchant never under-collects
- n * per_payment - price < 0.01 * n, at most one cent over per installment

Example: $100 over 3 payments -> ceil(10000 / 3) = 3334 -> $33.34 each,
collecting $100.02.
"""
from decimal import ROUND_CEILING, Decimal, InvalidOperation
from typing import Any, Optional

from merchant_gateway.config import ConfigurationError, Settings, settings
from merchant_gateway.logging import get_logger
from merchant_gateway.schemas import PAY_BY_INSTALLMENT, ProviderConfig
from merchant_gateway.services.fixtures import CONFIGURATION_DETAILS, FixtureStore
from merchant_gateway.services.provider_client import ProviderApiError, ProviderClient
from merchant_gateway import metrics

logger = get_logger(__name__)

CENTS = Decimal("0.01")
ZERO = Decimal("0")

REQUIRED_CREDENTIALS = ("merchant_id", "secret_key")


def to_price(value: Any) -> Optional[Decimal]:
    """Coerce a price to Decimal, or None if it is not a finite number."""
    if isinstance(value, bool) or value is None:
        return None
    try:
        price = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        return None
    if not price.is_finite():
        return None
    return price


class EligibilityEngine:
    """
    Gates the installment payment method on price and computes installments.

    An instance holds mutable state (the cached window and the live/offline
    flag) and must not be shared between concurrent requests.
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        fixtures: Optional[FixtureStore] = None,
        provider: Optional[ProviderClient] = None,
    ):
        """
        Initialize the engine.

        Args:
            config: Merchant settings (defaults to global settings)
            fixtures: Fixture store for offline responses
            provider: Provider API client (defaults to a new instance)
        """
        self.config = config or settings
        self.fixtures = fixtures or FixtureStore(config=self.config)
        self.provider = provider or ProviderClient(self.config)

        self.min_price: Decimal = ZERO
        self.max_price: Decimal = ZERO
        self._server_available = False
        self._provider_configs: list[ProviderConfig] = []

        if self.config.server_available:
            self.set_server_available(True)

    # ------------------------------------------------------------------
    # settings
    # ------------------------------------------------------------------

    def configure(self, min_price: Any, max_price: Any) -> "EligibilityEngine":
        """Set the eligibility window directly, overriding the provider's."""
        self.min_price = to_price(min_price) or ZERO
        self.max_price = to_price(max_price) or ZERO
        logger.info("eligibility_window_configured",
                   min_price=str(self.min_price),
                   max_price=str(self.max_price))
        return self

    def set_server_available(self, available: bool) -> "EligibilityEngine":
        """
        Switch between the live provider and local fixtures.

        Raises:
            ConfigurationError: If enabling live mode without merchant credentials
        """
        if available:
            for name in REQUIRED_CREDENTIALS:
                if not getattr(self.config, name):
                    logger.error("provider_credentials_missing", setting=name)
                    raise ConfigurationError(
                        f"{name} not set for the payment provider, but it is required to offer installments"
                    )
        self._server_available = available
        logger.info("server_availability_set", available=available)
        return self

    def is_server_available(self) -> bool:
        return self._server_available

    def detect_server_availability(self, ping_again: bool = False) -> bool:
        """
        Ping the provider and switch live mode on or off to match.

        Only used when explicitly called. Without ``ping_again`` an engine
        that is already live is not pinged again.
        """
        if self._server_available and not ping_again:
            return True
        available = self.provider.ping(self.config.connection_url)
        self.set_server_available(available)
        return available

    def number_of_payments(self) -> int:
        return self.config.number_of_payments

    @property
    def window_loaded(self) -> bool:
        return bool(self.min_price) and bool(self.max_price)

    # ------------------------------------------------------------------
    # decisions
    # ------------------------------------------------------------------

    def can_process_payment(self, price: Any) -> bool:
        """
        Whether the installment method can be offered for ``price``.

        Args:
            price: Price in major currency units (number or numeric string)

        Returns:
            True if live mode is on and the price sits inside the window
        """
        eligible = self._check(price)
        metrics.record_eligibility(eligible)
        return eligible

    def _check(self, price: Any) -> bool:
        price = to_price(price)
        if price is None or price <= 0:
            return False
        if not self._server_available:
            return False

        if not self.window_loaded:
            self.refresh_window()
        if not self.window_loaded:
            logger.info("eligibility_window_unavailable")
            return False

        return self.min_price <= price <= self.max_price

    def amount_per_payment(self, price: Any, number_of_payments: Optional[int] = None) -> Decimal:
        """
        Amount of each installment, rounded up to the cent.

        Args:
            price: Total price in major units
            number_of_payments: Installment count (defaults to configured count)

        Returns:
            Installment amount, or 0 if the price is not eligible.
            Not counted as an eligibility check in metrics.
        """
        if number_of_payments is None:
            number_of_payments = self.number_of_payments()
        if not number_of_payments or not self._check(price):
            return ZERO

        minor_units = to_price(price) * 100 / number_of_payments
        minor_units = minor_units.to_integral_value(rounding=ROUND_CEILING)
        return (minor_units / 100).quantize(CENTS)

    def amount_per_payment_for_order(self, order_total: Any) -> Decimal:
        """Installment amount for an order total, 0 when there is no total."""
        if not to_price(order_total):
            return ZERO
        return self.amount_per_payment(order_total)

    # ------------------------------------------------------------------
    # provider configuration
    # ------------------------------------------------------------------

    def retrieve_config(self, force: bool = False) -> list[ProviderConfig]:
        """
        Load the merchant configuration, local fixture first.

        Falls back to the provider only when no fixture exists and live mode
        is on. A provider error is logged and the cached list is returned.
        """
        if self._provider_configs and not force:
            return self._provider_configs

        if self.fixtures.exists(CONFIGURATION_DETAILS):
            self._provider_configs = self.fixtures.load(
                CONFIGURATION_DETAILS, list[ProviderConfig]
            )
        elif self._server_available:
            try:
                self._provider_configs = self.provider.get_configuration()
            except ProviderApiError as e:
                logger.warning("provider_configuration_unavailable",
                              status_code=e.status_code,
                              error=str(e))

        return self._provider_configs

    def refresh_window(self, force: bool = False) -> None:
        """Set the window from the PAY_BY_INSTALLMENT configuration entry."""
        for entry in self.retrieve_config(force=force):
            if entry.type != PAY_BY_INSTALLMENT:
                continue

            minimum = entry.minimum_amount.amount
            maximum = entry.maximum_amount.amount
            if minimum > maximum:
                logger.warning("provider_configuration_bounds_inverted",
                              minimum_amount=str(minimum),
                              maximum_amount=str(maximum))

            if self.config.legacy_swapped_bounds:
                self.min_price, self.max_price = maximum, minimum
            else:
                self.min_price, self.max_price = minimum, maximum

        logger.info("eligibility_window_refreshed",
                   min_price=str(self.min_price),
                   max_price=str(self.max_price))
