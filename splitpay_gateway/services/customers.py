"""Customer and payment-method provisioning"""

import logging
from typing import Optional

from splitpay_gateway.domain.exceptions import CustomerNotProvisionedError
from splitpay_gateway.domain.models import CustomerLookup, EnsuredCustomer
from splitpay_gateway.infrastructure.clients.stripe_gateway import StripeGateway
from splitpay_gateway.infrastructure.database.repositories import SubscriberRepository
from splitpay_gateway.utils.keys import encode_email_key

logger = logging.getLogger(__name__)


def customer_idempotency_key(email: str) -> str:
    return f"customer_{encode_email_key(email)}"


async def ensure_customer(
    gateway: StripeGateway,
    subscribers: SubscriberRepository,
    email: str,
    name: str = "",
) -> EnsuredCustomer:
    """
    Return the subscriber's Stripe customer id, creating customer and record if needed.

    Flow:
    1. Create a minimal Inactive subscriber record unless one exists
    2. If the record already holds a customer id, return it
    3. Create the Stripe customer with an idempotency key fixed by the email,
       so concurrent first calls within Stripe's replay window get one customer
    4. Store the id in a transaction that only writes into an empty slot

    When step 4 loses a race, the id already stored wins and is returned.
    """
    subscriber = await subscribers.create_if_absent(email, name)
    if subscriber.stripe_customer_id:
        return EnsuredCustomer(customer_id=subscriber.stripe_customer_id, created=False)

    customer = await gateway.create_customer(
        email=email,
        name=name or None,
        idempotency_key=customer_idempotency_key(email),
    )
    stored_id = await subscribers.claim_customer_id(email, customer["id"])
    if stored_id != customer["id"]:
        logger.warning(
            "Customer id already claimed by a concurrent call",
            extra={"subscriber": subscriber.key, "stored": stored_id, "created_customer_id": customer["id"]},
        )
    return EnsuredCustomer(customer_id=stored_id, created=stored_id == customer["id"])


async def attach_default_payment_method(
    gateway: StripeGateway,
    customer_id: str,
    payment_method_id: str,
) -> Optional[str]:
    """
    Attach a card to the customer and make it the default.

    Not transactional: attach can succeed while set-default fails. Either
    failure surfaces as one PaymentProviderError.

    Returns:
        Last four digits of the card, when it is a card
    """
    await gateway.attach_payment_method(payment_method_id, customer_id)
    await gateway.set_default_payment_method(customer_id, payment_method_id)
    payment_method = await gateway.retrieve_payment_method(payment_method_id)
    return gateway.card_last4(payment_method)


async def find_customer(gateway: StripeGateway, email: str, adopt_first_card: bool = False) -> Optional[CustomerLookup]:
    """
    Look up a customer by email and report the default card's last four digits.

    With adopt_first_card, a customer without a default payment method gets
    their first card on file set as default.
    """
    customer = await gateway.find_customer_by_email(email)
    if not customer:
        return None

    default_pm = gateway.default_payment_method_id(customer)
    card_last4 = None

    if not default_pm and adopt_first_card:
        cards = await gateway.list_card_payment_methods(customer["id"])
        if cards:
            first_card = cards[0]
            await gateway.set_default_payment_method(customer["id"], first_card["id"])
            default_pm = first_card["id"]
            card_last4 = gateway.card_last4(first_card)

    if default_pm and not card_last4:
        payment_method = await gateway.retrieve_payment_method(default_pm)
        card_last4 = gateway.card_last4(payment_method)

    return CustomerLookup(customer=customer, card_last4=card_last4)


async def _stored_customer_id(subscribers: SubscriberRepository, email: str, missing_message: str) -> str:
    subscriber = await subscribers.get_by_email(email)
    if subscriber is None or not subscriber.stripe_customer_id:
        raise CustomerNotProvisionedError(missing_message)
    return subscriber.stripe_customer_id


async def set_default_payment_method_by_email(
    gateway: StripeGateway,
    subscribers: SubscriberRepository,
    email: str,
    payment_method_id: str,
) -> str:
    """Make a card the default for the subscriber's customer and flag the record"""
    customer_id = await _stored_customer_id(subscribers, email, "User missing stripeCustomerId")
    customer = await gateway.set_default_payment_method(customer_id, payment_method_id)
    await subscribers.update(encode_email_key(email), {"hasDefaultPaymentMethod": True})
    return customer["id"]


async def create_setup_intent_by_email(
    gateway: StripeGateway,
    subscribers: SubscriberRepository,
    email: str,
) -> str:
    """Off-session SetupIntent for the subscriber's customer; returns its client secret"""
    customer_id = await _stored_customer_id(subscribers, email, "User does not have a stripeCustomerId")
    setup_intent = await gateway.create_setup_intent(customer_id)
    return setup_intent["client_secret"]
