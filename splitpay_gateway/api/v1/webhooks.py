"""POST /v1/stripe-webhook - log successful payments to the payments sheet"""

import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

from splitpay_gateway.api.dependencies import get_donate_gateway, get_request_id, get_sheet_logger
from splitpay_gateway.config import settings
from splitpay_gateway.domain.exceptions import DomainException, PaymentProviderError
from splitpay_gateway.infrastructure.clients.sheets import SheetLogger
from splitpay_gateway.infrastructure.clients.stripe_gateway import StripeGateway, construct_webhook_event
from splitpay_gateway.services.payment_logging import PaymentEventLogger

router = APIRouter()


@router.post("/stripe-webhook", response_class=PlainTextResponse)
async def stripe_webhook(
    request: Request,
    gateway: StripeGateway = Depends(get_donate_gateway),
    sheet: SheetLogger = Depends(get_sheet_logger),
):
    """
    Receive a Stripe event and log successful payments.

    Signatures are verified when STRIPE_WEBHOOK_SECRET is set. A logging
    failure returns 500 so that Stripe redelivers the event.
    """
    request_id = get_request_id(request)
    payload = await request.body()

    if settings.stripe_webhook_secret:
        try:
            event = construct_webhook_event(
                payload, request.headers.get("Stripe-Signature"), settings.stripe_webhook_secret
            )
        except PaymentProviderError as e:
            logging.warning(f"Rejected webhook: {e}", extra={"request_id": request_id})
            return PlainTextResponse("Invalid signature", status_code=400)
    else:
        try:
            event = json.loads(payload or b"{}")
        except ValueError:
            return PlainTextResponse("Invalid JSON", status_code=400)

    event_type = event.get("type") if isinstance(event, dict) else None
    obj = (event.get("data") or {}).get("object") if event_type else None
    if not event_type or not isinstance(obj, dict):
        return PlainTextResponse("Invalid event", status_code=400)

    try:
        await PaymentEventLogger(gateway, sheet).handle(event_type, obj, event_id=event.get("id"))
    except DomainException as e:
        logging.error(f"Handler error for {event_type}: {e}", extra={"request_id": request_id})
        return PlainTextResponse("Error processing event", status_code=500)

    return PlainTextResponse("ok")
