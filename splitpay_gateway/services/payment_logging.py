"""Turn successful Stripe payment events into rows for the payments sheet"""

import logging
from typing import Any, Dict, Optional

from splitpay_gateway.infrastructure.clients.sheets import SheetLogger
from splitpay_gateway.infrastructure.clients.stripe_gateway import StripeGateway, StripeObject

logger = logging.getLogger(__name__)

PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
INVOICE_PAYMENT_SUCCEEDED = "invoice.payment_succeeded"

LOGGED_EVENT_TYPES = (PAYMENT_INTENT_SUCCEEDED, CHECKOUT_SESSION_COMPLETED, INVOICE_PAYMENT_SUCCEEDED)


def _expanded(value: Any) -> Optional[StripeObject]:
    return value if isinstance(value, dict) else None


def _object_id(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        return value.get("id")
    return value if isinstance(value, str) and value else None


def _first_charge(payment_intent: Optional[StripeObject]) -> Optional[StripeObject]:
    """The charge behind a payment intent, from latest_charge or the legacy charges list"""
    if not payment_intent:
        return None
    charge = _expanded(payment_intent.get("latest_charge"))
    if charge:
        return charge
    charges = (payment_intent.get("charges") or {}).get("data") or []
    return charges[0] if charges else None


def _non_empty(*values: Any) -> Any:
    for value in values:
        if value:
            return value
    return {}


def pick_name_email(
    charge: Optional[StripeObject],
    payment_method: Optional[StripeObject],
    customer: Optional[StripeObject],
    receipt_email: Optional[str],
) -> Dict[str, Optional[str]]:
    """Billing details win over the payment method, then the customer, then the receipt email"""
    charge_details = (charge or {}).get("billing_details") or {}
    method_details = (payment_method or {}).get("billing_details") or {}
    customer = customer or {}

    name = charge_details.get("name") or method_details.get("name") or customer.get("name") or None
    email = (
        charge_details.get("email")
        or method_details.get("email")
        or customer.get("email")
        or receipt_email
        or None
    )
    return {"name": name, "email": email}


def _identity(payment_intent: Optional[StripeObject], customer_field: Any, receipt_email: Optional[str]) -> Dict[str, Any]:
    charge = _first_charge(payment_intent)
    payment_method = _expanded((charge or {}).get("payment_method"))
    customer = _expanded(customer_field)
    return {
        "charge": charge,
        "customer_id": _object_id(customer_field),
        **pick_name_email(charge, payment_method, customer, receipt_email),
    }


class PaymentEventLogger:
    """
    Re-fetches the event object with expansions and posts one sheet row.

    Only the three success events are logged; other event types are ignored.
    """

    def __init__(self, gateway: StripeGateway, sheet: SheetLogger):
        self.gateway = gateway
        self.sheet = sheet

    async def handle(self, event_type: str, obj: StripeObject, event_id: str | None = None) -> bool:
        """
        Returns False when the event type is not one that gets logged.

        Rows carry the Stripe event id; a retried post or a redelivered event
        can write the same row twice, and the sheet de-duplicates on it.
        """
        if event_type == PAYMENT_INTENT_SUCCEEDED:
            row = await self._payment_intent_row(obj)
        elif event_type == CHECKOUT_SESSION_COMPLETED:
            row = await self._checkout_session_row(obj)
        elif event_type == INVOICE_PAYMENT_SUCCEEDED:
            row = await self._invoice_row(obj)
        else:
            return False

        row["eventId"] = event_id
        await self.sheet.append_row(row)
        logger.info(
            "Payment logged to sheet",
            extra={"source": event_type, "payment_intent_id": row.get("paymentIntentId")},
        )
        return True

    async def _payment_intent_row(self, raw: StripeObject) -> Dict[str, Any]:
        pi = await self.gateway.retrieve_payment_intent(
            raw["id"], expand=["customer", "latest_charge.payment_method"]
        )
        who = _identity(pi, pi.get("customer"), pi.get("receipt_email"))
        charge = who["charge"] or {}
        raw_invoice = raw.get("invoice")

        return {
            "source": PAYMENT_INTENT_SUCCEEDED,
            "isSubscription": bool(pi.get("invoice")),
            "paymentIntentId": pi.get("id"),
            "chargeId": charge.get("id"),
            "customerId": who["customer_id"],
            "subscriptionId": raw_invoice.get("subscription") if isinstance(raw_invoice, dict) else None,
            "amount": pi.get("amount_received") if pi.get("amount_received") is not None else pi.get("amount"),
            "currency": pi.get("currency"),
            "status": pi.get("status"),
            "name": who["name"],
            "email": who["email"],
            "created": charge.get("created") or pi.get("created"),
            "metadata": pi.get("metadata") or {},
        }

    async def _checkout_session_row(self, raw: StripeObject) -> Dict[str, Any]:
        session = await self.gateway.retrieve_checkout_session(
            raw["id"],
            expand=["payment_intent.latest_charge.payment_method", "customer", "subscription"],
        )
        pi = _expanded(session.get("payment_intent"))
        customer_details = session.get("customer_details") or {}
        who = _identity(pi, session.get("customer"), customer_details.get("email") or session.get("customer_email"))
        charge = who["charge"] or {}
        pi = pi or {}

        amount = session.get("amount_total")
        if amount is None:
            amount = pi.get("amount_received") if pi.get("amount_received") is not None else pi.get("amount")

        return {
            "source": CHECKOUT_SESSION_COMPLETED,
            "isSubscription": session.get("mode") == "subscription",
            "paymentIntentId": pi.get("id"),
            "chargeId": charge.get("id"),
            "customerId": who["customer_id"],
            "subscriptionId": _object_id(session.get("subscription")),
            "amount": amount,
            "currency": session.get("currency") or pi.get("currency"),
            "status": pi.get("status") or session.get("payment_status"),
            "name": who["name"],
            "email": who["email"],
            "created": charge.get("created") or pi.get("created") or session.get("created"),
            "metadata": _non_empty(pi.get("metadata"), session.get("metadata")),
        }

    async def _invoice_row(self, raw: StripeObject) -> Dict[str, Any]:
        invoice = await self.gateway.retrieve_invoice(
            raw["id"],
            expand=["customer", "payment_intent.latest_charge.payment_method", "subscription"],
        )
        pi = _expanded(invoice.get("payment_intent"))
        who = _identity(pi, invoice.get("customer"), invoice.get("customer_email"))
        charge = who["charge"] or {}
        pi = pi or {}
        transitions = invoice.get("status_transitions") or {}

        return {
            "source": INVOICE_PAYMENT_SUCCEEDED,
            "isSubscription": True,
            "paymentIntentId": pi.get("id"),
            "chargeId": charge.get("id"),
            "customerId": who["customer_id"],
            "subscriptionId": _object_id(invoice.get("subscription")),
            "amount": invoice.get("amount_paid"),
            "currency": invoice.get("currency"),
            "status": pi.get("status") or "succeeded",
            "name": who["name"],
            "email": who["email"],
            "created": transitions.get("paid_at") or invoice.get("created"),
            "metadata": _non_empty(pi.get("metadata"), invoice.get("metadata")),
        }
