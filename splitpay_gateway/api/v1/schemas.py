"""Pydantic schemas for API request/response validation"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CamelModel(BaseModel):
    """Wire names are the front-end's camelCase keys"""

    model_config = ConfigDict(populate_by_name=True)


# Charges


class ChargeCartRequest(CamelModel):
    """Request body for POST /v1/chargeCart"""

    email: str = Field(..., min_length=1, description="Email of the Stripe customer to charge")
    amount: int = Field(..., gt=0, description="Total charge in cents")
    transfer_amounts: Optional[Any] = Field(None, alias="transferAmounts", description="Cents per configured destination")


class ChargeOneTimeRequest(CamelModel):
    """Request body for POST /v1/chargeOneTime"""

    amount: int = Field(..., gt=0)
    payment_method_id: str = Field(..., min_length=1, alias="paymentMethodId")
    transfer_amounts: Optional[Any] = Field(None, alias="transferAmounts")


class ChargeOneTimeWithCustomerRequest(CamelModel):
    amount: int = Field(..., gt=0)
    payment_method_id: str = Field(..., min_length=1, alias="paymentMethodId")
    customer_id: str = Field(..., min_length=1, alias="customerId")


class PaymentIntentRequest(CamelModel):
    amount_in_cents: int = Field(..., gt=0, alias="amountInCents")


class DonationRequest(CamelModel):
    """Request body for POST /v1/create-payment-intent-donate; amount is in dollars"""

    amount: Any = None
    cover_fee: bool = Field(False, alias="coverFee")
    recurring: bool = False
    interval: Optional[str] = None


class TransferCreated(CamelModel):
    id: str
    amount: int
    destination: str


class TransferError(CamelModel):
    destination: str
    amount: int
    error: str


class SplitLeg(CamelModel):
    destination_account: str
    amount: int


class ChargeCartResponse(CamelModel):
    """Response for POST /v1/chargeCart"""

    success: bool = True
    payment_intent_id: str = Field(..., alias="paymentIntentId")
    transfer_group: str = Field(..., alias="transferGroup")
    charge_id: Optional[str] = Field(None, alias="chargeId")
    transfers_created: List[TransferCreated] = Field(default_factory=list, alias="transfersCreated")
    transfer_errors: List[TransferError] = Field(default_factory=list, alias="transferErrors")
    platform_retained_amount: int = Field(..., alias="platformRetainedAmount")


class ChargeOneTimeResponse(CamelModel):
    """Response for POST /v1/chargeOneTime"""

    success: bool = True
    client_secret: str = Field(..., alias="clientSecret")
    transfer_group: str = Field(..., alias="transferGroup")
    splits: List[SplitLeg] = Field(default_factory=list)


class ClientSecretResponse(CamelModel):
    client_secret: str = Field(..., alias="clientSecret")


# Customers


class CreateCustomerRequest(CamelModel):
    email: str = Field(..., min_length=1)
    name: str = ""


class CreateCustomerResponse(CamelModel):
    message: str
    stripe_customer_id: str = Field(..., alias="stripeCustomerId")


class CreateStripeRequest(CamelModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)
    payment_method_id: str = Field(..., min_length=1, alias="paymentMethodId")


class AttachStripeRequest(CamelModel):
    customer_id: str = Field(..., min_length=1, alias="customerId")
    payment_method_id: str = Field(..., min_length=1, alias="paymentMethodId")


class SetDefaultPaymentMethodRequest(CamelModel):
    email: str = Field(..., min_length=1)
    payment_method_id: str = Field(..., min_length=1, alias="paymentMethodId")


class SetupIntentRequest(CamelModel):
    email: str = Field(..., min_length=1)


# Subscriptions


class SubscribeRequest(CamelModel):
    """Request body for POST /v1/subscribe"""

    email: str = Field(..., min_length=1)
    prepay_months: int = Field(..., ge=1, alias="prepayMonths", description="Periods paid up front")
    payment_method_id: str = Field(..., min_length=1, alias="paymentMethodId")


class RenewalCheckResponse(CamelModel):
    """Response for /v1/dailyRenewalCheck"""

    message: str
    processed_count: int = Field(..., alias="processedCount")
    errors_count: int = Field(..., alias="errorsCount")
    skipped_count: int = Field(..., alias="skippedCount")


# Push


class PushSubscriptionRequest(CamelModel):
    """Browser PushSubscription as produced by PushSubscription.toJSON()"""

    model_config = ConfigDict(extra="allow")

    endpoint: str = Field(..., min_length=1)
    keys: Dict[str, str] = Field(default_factory=dict)
    expiration_time: Optional[Any] = Field(None, alias="expirationTime")
