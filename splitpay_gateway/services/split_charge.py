"""Charge-and-split orchestration: one charge, then per-destination transfers"""

import logging
import time
import uuid
from typing import Any, Optional, Union

from splitpay_gateway.domain.exceptions import PaymentProviderError
from splitpay_gateway.domain.models import (
    BusinessFailure,
    ChargeResult,
    CreatedTransfer,
    DeferredCharge,
    Payer,
    SplitPlan,
    TransferFailure,
)
from splitpay_gateway.domain.transfers import (
    platform_retained_cents,
    splits_metadata,
    transfer_idempotency_key,
)
from splitpay_gateway.infrastructure.clients.stripe_gateway import StripeGateway
from splitpay_gateway.infrastructure.observability.metrics import record_transfer_outcomes

logger = logging.getLogger(__name__)

NO_CUSTOMER_ERROR = "No customer found for that email."
NO_DEFAULT_PAYMENT_METHOD_ERROR = "No default payment method found for this customer."


def new_transfer_group() -> str:
    """Correlation id linking one charge to its transfers"""
    return f"order_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"


def _object_id(value: Any) -> Optional[str]:
    """Stripe fields are either an id string or an expanded object"""
    if isinstance(value, dict):
        return value.get("id")
    return value or None


async def resolve_payer_by_email(gateway: StripeGateway, email: str) -> Union[Payer, BusinessFailure]:
    """Find the customer and the card they saved as default"""
    customer = await gateway.find_customer_by_email(email)
    if not customer:
        return BusinessFailure(NO_CUSTOMER_ERROR)

    payment_method_id = gateway.default_payment_method_id(customer)
    if not payment_method_id:
        return BusinessFailure(NO_DEFAULT_PAYMENT_METHOD_ERROR)

    return Payer(customer_id=customer["id"], payment_method_id=payment_method_id)


async def charge_and_split(
    gateway: StripeGateway,
    payer: Payer,
    total_amount_cents: int,
    plan: SplitPlan,
) -> Union[ChargeResult, BusinessFailure]:
    """
    Charge the payer off-session, then fan the funds out to the split plan.

    Flow:
    1. Create and confirm one PaymentIntent for the full amount, tagged with a
       fresh transfer group and the split plan as metadata
    2. If it did not succeed, report the status as a business failure
    3. Create one transfer per non-zero leg, sequentially, each with an
       idempotency key fixed by (payment intent, position)

    A transfer failure is recorded and does not undo the charge or stop the
    remaining legs. Errors from step 1 propagate to the caller.
    """
    transfer_group = new_transfer_group()

    payment_intent = await gateway.create_payment_intent(
        amount=total_amount_cents,
        customer=payer.customer_id,
        payment_method=payer.payment_method_id,
        off_session=True,
        confirm=True,
        transfer_group=transfer_group,
        metadata=splits_metadata(plan),
    )

    status = payment_intent.get("status")
    if status != "succeeded":
        return BusinessFailure(f"Payment not succeeded. Status={status}")

    payment_intent_id = payment_intent["id"]
    charge_id = _object_id(payment_intent.get("latest_charge"))
    currency = payment_intent.get("currency") or gateway.currency

    created: list[CreatedTransfer] = []
    failures: list[TransferFailure] = []
    leg_count = len(plan.transfers)

    for index, leg in enumerate(plan.transfers):
        if leg.amount_cents <= 0:
            continue
        try:
            transfer = await gateway.create_transfer(
                amount=leg.amount_cents,
                currency=currency,
                destination=leg.destination_account,
                transfer_group=transfer_group,
                source_transaction=charge_id,
                idempotency_key=transfer_idempotency_key(payment_intent_id, index),
                description=f"Split {index + 1}/{leg_count} for {transfer_group}",
            )
            created.append(
                CreatedTransfer(
                    id=transfer["id"],
                    amount=transfer.get("amount", leg.amount_cents),
                    destination=_object_id(transfer.get("destination")) or leg.destination_account,
                )
            )
        except PaymentProviderError as e:
            logger.warning(
                f"Transfer failed: {e}",
                extra={
                    "payment_intent_id": payment_intent_id,
                    "destination": leg.destination_account,
                    "amount_cents": leg.amount_cents,
                },
            )
            failures.append(
                TransferFailure(destination=leg.destination_account, amount=leg.amount_cents, error=str(e))
            )

    record_transfer_outcomes(len(created), len(failures))

    return ChargeResult(
        payment_intent_id=payment_intent_id,
        transfer_group=transfer_group,
        charge_id=charge_id,
        transfers_created=created,
        transfer_errors=failures,
        platform_retained_amount_cents=platform_retained_cents(total_amount_cents, plan),
    )


async def create_deferred_charge(
    gateway: StripeGateway,
    total_amount_cents: int,
    payment_method_id: str,
    plan: SplitPlan,
    customer_id: str | None = None,
) -> DeferredCharge:
    """
    Create an unconfirmed PaymentIntent for client-side confirmation.

    Transfers are not created here; the split travels in metadata and the
    transfer group for whoever settles the payment later.
    """
    transfer_group = new_transfer_group()
    params: dict[str, Any] = {
        "amount": total_amount_cents,
        "payment_method": payment_method_id,
        "confirm": False,
        "transfer_group": transfer_group,
        "metadata": splits_metadata(plan),
    }
    if customer_id:
        params["customer"] = customer_id

    payment_intent = await gateway.create_payment_intent(**params)
    return DeferredCharge(
        client_secret=payment_intent["client_secret"],
        transfer_group=transfer_group,
        splits=list(plan.transfers),
    )
