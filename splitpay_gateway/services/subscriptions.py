"""Subscription signup and donation checkout"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, DecimalException
from typing import Any, Dict

from splitpay_gateway.config import settings
from splitpay_gateway.domain.billing import compute_billing_anchor
from splitpay_gateway.domain.exceptions import ConfigurationError, InvalidDonationAmountError
from splitpay_gateway.infrastructure.clients.stripe_gateway import StripeGateway
from splitpay_gateway.infrastructure.database.repositories import SubscriptionLedgerRepository
from splitpay_gateway.utils.date_utils import utc_now

logger = logging.getLogger(__name__)

RECURRING_INTERVALS = ("day", "week", "month", "year")
MINIMUM_DONATION_CENTS = 100
MAXIMUM_DONATION_CENTS = 99_999_999
INVALID_DONATION_ERROR = "Invalid amount. Minimum $1."
DONATION_TOO_LARGE_ERROR = f"Invalid amount. Maximum ${Decimal(MAXIMUM_DONATION_CENTS) / 100}."


@dataclass
class DonationQuote:
    """Donation amounts in cents; final_cents is what the donor is charged"""

    base_cents: int
    fee_cents: int

    @property
    def final_cents(self) -> int:
        return self.base_cents + self.fee_cents


def _round_cents(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def quote_donation(amount: Any, cover_fee: bool = False, fee_percent: int = 3) -> DonationQuote:
    """
    Convert a dollar amount to integer cents with decimal arithmetic.

    Raises:
        InvalidDonationAmountError: Not a finite number, under $1, or above
            what one Stripe charge can carry
    """
    if isinstance(amount, bool):
        raise InvalidDonationAmountError(INVALID_DONATION_ERROR)
    try:
        dollars = Decimal(str(amount).strip())
        if not dollars.is_finite() or dollars < Decimal(MINIMUM_DONATION_CENTS) / 100:
            raise InvalidDonationAmountError(INVALID_DONATION_ERROR)
        # Bounded before any scaling so exponent input cannot overflow the context
        if dollars > Decimal(MAXIMUM_DONATION_CENTS) / 100:
            raise InvalidDonationAmountError(DONATION_TOO_LARGE_ERROR)

        base_cents = _round_cents(dollars * 100)
        fee_cents = _round_cents(Decimal(base_cents) * fee_percent / 100) if cover_fee else 0
    except DecimalException as e:
        raise InvalidDonationAmountError(INVALID_DONATION_ERROR) from e

    quote = DonationQuote(base_cents=base_cents, fee_cents=fee_cents)
    if quote.final_cents > MAXIMUM_DONATION_CENTS:
        raise InvalidDonationAmountError(DONATION_TOO_LARGE_ERROR)
    return quote


def donation_checkout_params(quote: DonationQuote, cover_fee: bool, recurring: bool, interval: str | None) -> Dict[str, Any]:
    """
    Checkout Session parameters for a one-time or recurring donation.

    Recurring needs a known interval; otherwise the donation is one-time.
    """
    metadata = {
        "coverFee": "true" if cover_fee else "false",
        "baseAmount": str(quote.base_cents),
        "finalAmount": str(quote.final_cents),
    }
    params: Dict[str, Any] = {
        "allow_promotion_codes": True,
        "billing_address_collection": "auto",
        "success_url": settings.donation_success_url,
        "cancel_url": settings.donation_cancel_url,
    }

    if recurring and interval in RECURRING_INTERVALS:
        params.update(
            mode="subscription",
            line_items=[
                {
                    "price_data": {
                        "currency": settings.currency,
                        "unit_amount": quote.final_cents,
                        "recurring": {"interval": interval},
                        "product_data": {"name": f"Donation ({interval})"},
                    },
                    "quantity": 1,
                }
            ],
            subscription_data={"metadata": {"donationType": f"recurring_{interval}", **metadata}},
        )
    else:
        params.update(
            mode="payment",
            customer_creation="always",
            line_items=[
                {
                    "price_data": {
                        "currency": settings.currency,
                        "unit_amount": quote.final_cents,
                        "product_data": {"name": "Donation"},
                    },
                    "quantity": 1,
                }
            ],
            payment_intent_data={"metadata": {"donationType": "one_time", **metadata}},
        )
    return params


async def create_donation_checkout(
    gateway: StripeGateway,
    amount: Any,
    cover_fee: bool = False,
    recurring: bool = False,
    interval: str | None = None,
) -> str:
    """Create a hosted Checkout Session for a donation and return its URL"""
    quote = quote_donation(amount, cover_fee, settings.donation_fee_percent)
    session = await gateway.create_checkout_session(
        **donation_checkout_params(quote, cover_fee, recurring, interval)
    )
    return session["url"]


async def subscribe(
    gateway: StripeGateway,
    ledger: SubscriptionLedgerRepository,
    email: str,
    prepay_months: int,
    payment_method_id: str,
    now: datetime | None = None,
) -> str:
    """
    Start a Stripe subscription whose first automatic bill lands on the season anchor.

    Flow:
    1. Compute the billing anchor from the purchase time and prepaid months
    2. Reuse the customer found by email, or create one with the card as default
    3. Create the subscription anchored there, without proration
    4. Append the subscription to the ledger

    Returns:
        Stripe subscription id
    """
    if not settings.stripe_price_id:
        raise ConfigurationError("STRIPE_PRICE_ID is not configured.")

    now = now or utc_now()
    anchor = compute_billing_anchor(
        now,
        prepay_months,
        season_open=settings.season_open_date,
        first_billing=settings.season_first_billing_date,
        period_days=settings.renewal_period_days,
    )

    customer = await gateway.find_customer_by_email(email)
    if not customer:
        customer = await gateway.create_customer(email=email, payment_method_id=payment_method_id)

    subscription = await gateway.create_subscription(
        customer_id=customer["id"],
        price_id=settings.stripe_price_id,
        billing_cycle_anchor=int(anchor.timestamp()),
    )
    await ledger.record(
        email=email,
        customer_id=customer["id"],
        subscription_id=subscription["id"],
        paid_through=anchor,
        created=now,
    )
    logger.info(
        "Subscription created",
        extra={"subscription_id": subscription["id"], "billing_cycle_anchor": anchor.isoformat()},
    )
    return subscription["id"]
