"""Pydantic schemas for provider records and storefront request/response bodies."""
from decimal import Decimal
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

PAY_BY_INSTALLMENT = "PAY_BY_INSTALLMENT"


class ProviderModel(BaseModel):
    """Base for records exchanged with the provider (camelCase on the wire)."""
    model_config = ConfigDict(populate_by_name=True)


class Money(ProviderModel):
    """The provider's money object."""
    amount: Decimal = Decimal("0")
    currency: str = ""


class ProviderConfig(ProviderModel):
    """One entry of the merchant configuration returned by the provider."""
    type: str = ""
    minimum_amount: Money = Field(default_factory=Money, alias="minimumAmount")
    maximum_amount: Money = Field(default_factory=Money, alias="maximumAmount")


class OrderToken(ProviderModel):
    """Opaque handle issued by the provider for a pending order."""
    token: str = ""
    expires: str = ""


class PaymentResult(ProviderModel):
    """Outcome of a payment capture."""
    id: str = ""
    token: str = ""
    status: str = ""
    reference: str = Field(
        default="",
        validation_alias=AliasChoices("reference", "merchantReference"),
    )
    amount: Money = Field(
        default_factory=Money,
        validation_alias=AliasChoices("amount", "originalAmount"),
    )


class Consumer(ProviderModel):
    """Shopper placing the order."""
    given_names: str = Field(..., alias="givenNames")
    surname: str
    email: str
    phone_number: Optional[str] = Field(None, alias="phoneNumber")


class MerchantRedirects(ProviderModel):
    """Where the provider sends the shopper after checkout."""
    redirect_confirm_url: str = Field(..., alias="redirectConfirmUrl")
    redirect_cancel_url: str = Field(..., alias="redirectCancelUrl")


class OrderItem(ProviderModel):
    """A single line of the order."""
    name: str
    sku: Optional[str] = None
    quantity: int = Field(1, gt=0)
    price: Money


class OrderDetails(ProviderModel):
    """Request body for order creation, forwarded to the provider."""
    total_amount: Money = Field(..., alias="totalAmount")
    consumer: Consumer
    merchant: MerchantRedirects
    merchant_reference: Optional[str] = Field(None, alias="merchantReference")
    items: list[OrderItem] = Field(default_factory=list)


class EligibilityResponse(BaseModel):
    """Response body for GET /v1/eligibility."""
    price: Decimal
    eligible: bool
    number_of_payments: int
    amount_per_payment: Decimal
    min_price: Decimal
    max_price: Decimal


class CaptureRequest(BaseModel):
    """Request body for POST /v1/payments/capture."""
    token: str = ""
    merchant_reference: str = ""
