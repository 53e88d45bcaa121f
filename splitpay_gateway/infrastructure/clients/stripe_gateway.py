"""Stripe API client for customers, payment intents, transfers and subscriptions"""

import asyncio
from typing import Any, Callable, Dict, List, Optional

import stripe

from splitpay_gateway.config import settings
from splitpay_gateway.domain.exceptions import ConfigurationError, PaymentProviderError
from splitpay_gateway.infrastructure.observability.metrics import stripe_failures_counter

StripeObject = Dict[str, Any]


class StripeGateway:
    """
    Thin async facade over the Stripe SDK.

    SDK calls are blocking, so each one runs in a worker thread. The secret key
    is passed per call rather than through the module-level ``stripe.api_key``
    so that gateways for different accounts can coexist.
    """

    def __init__(self, api_key: str | None = None, key_name: str = "STRIPE_SECRET_KEY"):
        self.api_key = settings.stripe_secret_key if api_key is None else api_key
        self.key_name = key_name
        self.currency = settings.currency

    def ensure_configured(self) -> None:
        if not self.api_key:
            raise ConfigurationError(f"{self.key_name} is not configured.")

    async def _call(self, operation: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        self.ensure_configured()
        try:
            return await asyncio.to_thread(func, *args, api_key=self.api_key, **kwargs)
        except stripe.StripeError as e:
            stripe_failures_counter.labels(operation=operation).inc()
            raise PaymentProviderError(
                e.user_message or str(e),
                code=e.code,
                http_status=e.http_status,
            ) from e

    # Customers

    async def find_customer_by_email(self, email: str) -> Optional[StripeObject]:
        result = await self._call("customer_list", stripe.Customer.list, email=email, limit=1)
        data = result.get("data") or []
        return data[0] if data else None

    async def retrieve_customer(self, customer_id: str) -> StripeObject:
        return await self._call("customer_retrieve", stripe.Customer.retrieve, customer_id)

    async def create_customer(
        self,
        email: str,
        name: str | None = None,
        payment_method_id: str | None = None,
        idempotency_key: str | None = None,
    ) -> StripeObject:
        params: Dict[str, Any] = {"email": email}
        if name:
            params["name"] = name
        if payment_method_id:
            params["payment_method"] = payment_method_id
            params["invoice_settings"] = {"default_payment_method": payment_method_id}
        if idempotency_key:
            params["idempotency_key"] = idempotency_key
        return await self._call("customer_create", stripe.Customer.create, **params)

    async def set_default_payment_method(self, customer_id: str, payment_method_id: str) -> StripeObject:
        return await self._call(
            "customer_update",
            stripe.Customer.modify,
            customer_id,
            invoice_settings={"default_payment_method": payment_method_id},
        )

    @staticmethod
    def default_payment_method_id(customer: StripeObject) -> Optional[str]:
        invoice_settings = customer.get("invoice_settings") or {}
        default_pm = invoice_settings.get("default_payment_method")
        if isinstance(default_pm, dict):
            return default_pm.get("id")
        return default_pm or None

    # Payment methods

    async def attach_payment_method(self, payment_method_id: str, customer_id: str) -> StripeObject:
        return await self._call(
            "payment_method_attach", stripe.PaymentMethod.attach, payment_method_id, customer=customer_id
        )

    async def retrieve_payment_method(self, payment_method_id: str) -> StripeObject:
        return await self._call("payment_method_retrieve", stripe.PaymentMethod.retrieve, payment_method_id)

    async def list_card_payment_methods(self, customer_id: str) -> List[StripeObject]:
        result = await self._call(
            "payment_method_list", stripe.PaymentMethod.list, customer=customer_id, type="card"
        )
        return list(result.get("data") or [])

    @staticmethod
    def card_last4(payment_method: StripeObject | None) -> Optional[str]:
        if not payment_method:
            return None
        card = payment_method.get("card") or {}
        return card.get("last4")

    # Payment intents

    async def create_payment_intent(self, idempotency_key: str | None = None, **params: Any) -> StripeObject:
        params.setdefault("currency", self.currency)
        if idempotency_key:
            params["idempotency_key"] = idempotency_key
        return await self._call("payment_intent_create", stripe.PaymentIntent.create, **params)

    async def retrieve_payment_intent(self, payment_intent_id: str, expand: List[str] | None = None) -> StripeObject:
        return await self._call(
            "payment_intent_retrieve", stripe.PaymentIntent.retrieve, payment_intent_id, expand=expand or []
        )

    async def create_setup_intent(self, customer_id: str) -> StripeObject:
        return await self._call(
            "setup_intent_create", stripe.SetupIntent.create, customer=customer_id, usage="off_session"
        )

    # Connect transfers

    async def create_transfer(
        self,
        amount: int,
        destination: str,
        transfer_group: str,
        source_transaction: str | None,
        idempotency_key: str,
        currency: str | None = None,
        description: str | None = None,
    ) -> StripeObject:
        params: Dict[str, Any] = {
            "amount": amount,
            "currency": currency or self.currency,
            "destination": destination,
            "transfer_group": transfer_group,
            "idempotency_key": idempotency_key,
        }
        if source_transaction:
            params["source_transaction"] = source_transaction
        if description:
            params["description"] = description
        return await self._call("transfer_create", stripe.Transfer.create, **params)

    # Subscriptions and checkout

    async def create_subscription(self, customer_id: str, price_id: str, billing_cycle_anchor: int) -> StripeObject:
        return await self._call(
            "subscription_create",
            stripe.Subscription.create,
            customer=customer_id,
            items=[{"price": price_id}],
            billing_cycle_anchor=billing_cycle_anchor,
            proration_behavior="none",
            expand=["latest_invoice.payment_intent"],
        )

    async def create_checkout_session(self, **params: Any) -> StripeObject:
        return await self._call("checkout_session_create", stripe.checkout.Session.create, **params)

    async def retrieve_checkout_session(self, session_id: str, expand: List[str] | None = None) -> StripeObject:
        return await self._call(
            "checkout_session_retrieve", stripe.checkout.Session.retrieve, session_id, expand=expand or []
        )

    async def retrieve_invoice(self, invoice_id: str, expand: List[str] | None = None) -> StripeObject:
        return await self._call("invoice_retrieve", stripe.Invoice.retrieve, invoice_id, expand=expand or [])


def construct_webhook_event(payload: bytes, signature: str | None, secret: str) -> StripeObject:
    """
    Verify a signed webhook delivery.

    Raises:
        PaymentProviderError: When the signature does not match
    """
    try:
        return stripe.Webhook.construct_event(payload, signature or "", secret)
    except (stripe.SignatureVerificationError, ValueError) as e:
        raise PaymentProviderError(f"Invalid webhook signature: {e}") from e
