"""Charge endpoints - charge-and-split, deferred-confirm and plain payment intents"""

import time
import logging
from typing import List

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from splitpay_gateway.api.dependencies import (
    get_destination_accounts,
    get_donate_gateway,
    get_request_id,
    get_stripe_gateway,
)
from splitpay_gateway.api.v1.schemas import (
    ChargeCartRequest,
    ChargeCartResponse,
    ChargeOneTimeRequest,
    ChargeOneTimeResponse,
    ChargeOneTimeWithCustomerRequest,
    ClientSecretResponse,
    DonationRequest,
    PaymentIntentRequest,
    SplitLeg,
    TransferCreated,
    TransferError,
)
from splitpay_gateway.domain.exceptions import DomainException, InvalidDonationAmountError, TransferValidationError
from splitpay_gateway.domain.models import BusinessFailure, ChargeResult
from splitpay_gateway.domain.transfers import build_split_plan, ensure_within_total
from splitpay_gateway.infrastructure.clients.stripe_gateway import StripeGateway
from splitpay_gateway.infrastructure.observability.logging import log_charge
from splitpay_gateway.infrastructure.observability.metrics import record_charge
from splitpay_gateway.services.split_charge import charge_and_split, create_deferred_charge, resolve_payer_by_email
from splitpay_gateway.services.subscriptions import create_donation_checkout

router = APIRouter()


def _charge_response(result: ChargeResult) -> ChargeCartResponse:
    return ChargeCartResponse(
        payment_intent_id=result.payment_intent_id,
        transfer_group=result.transfer_group,
        charge_id=result.charge_id,
        transfers_created=[
            TransferCreated(id=t.id, amount=t.amount, destination=t.destination) for t in result.transfers_created
        ],
        transfer_errors=[
            TransferError(destination=f.destination, amount=f.amount, error=f.error) for f in result.transfer_errors
        ],
        platform_retained_amount=result.platform_retained_amount_cents,
    )


@router.post("/chargeCart", response_model=ChargeCartResponse)
async def charge_cart(
    request_body: ChargeCartRequest,
    request: Request,
    gateway: StripeGateway = Depends(get_stripe_gateway),
    destinations: List[str] = Depends(get_destination_accounts),
):
    """
    Charge a saved customer and split the funds across connected accounts.

    Flow:
    1. Validate transferAmounts against the configured destinations and the total
    2. Find the customer by email and their default card
    3. Charge off-session, then create one transfer per non-zero leg

    No customer, no default card, or an unconfirmed charge are reported as
    success=false with 200; transfer failures are listed in transferErrors.
    """
    start_time = time.time()
    request_id = get_request_id(request)

    try:
        plan = build_split_plan(request_body.transfer_amounts, destinations)
        ensure_within_total(plan, request_body.amount)
    except TransferValidationError as e:
        record_charge("invalid")
        return JSONResponse(status_code=400, content={"error": str(e)})

    try:
        payer = await resolve_payer_by_email(gateway, request_body.email)
        if isinstance(payer, BusinessFailure):
            record_charge("no_customer")
            return JSONResponse(status_code=200, content={"success": False, "error": payer.error})

        result = await charge_and_split(gateway, payer, request_body.amount, plan)
        if isinstance(result, BusinessFailure):
            record_charge("declined")
            return JSONResponse(status_code=200, content={"success": False, "error": result.error})

    except DomainException as e:
        record_charge("error")
        logging.error(f"Charge failed: {e}", extra={"request_id": request_id})
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})

    duration_ms = (time.time() - start_time) * 1000
    record_charge("succeeded")
    log_charge(request_id, result, request_body.amount, duration_ms)

    return _charge_response(result)


@router.post("/chargeOneTime", response_model=ChargeOneTimeResponse)
async def charge_one_time(
    request_body: ChargeOneTimeRequest,
    request: Request,
    gateway: StripeGateway = Depends(get_stripe_gateway),
    destinations: List[str] = Depends(get_destination_accounts),
):
    """Create an unconfirmed charge carrying the split; the client confirms it"""
    try:
        plan = build_split_plan(request_body.transfer_amounts, destinations)
        ensure_within_total(plan, request_body.amount)
    except TransferValidationError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})

    try:
        deferred = await create_deferred_charge(
            gateway,
            total_amount_cents=request_body.amount,
            payment_method_id=request_body.payment_method_id,
            plan=plan,
        )
    except DomainException as e:
        logging.error(f"Deferred charge failed: {e}", extra={"request_id": get_request_id(request)})
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})

    return ChargeOneTimeResponse(
        client_secret=deferred.client_secret,
        transfer_group=deferred.transfer_group,
        splits=[SplitLeg(destination_account=s.destination_account, amount=s.amount_cents) for s in deferred.splits],
    )


@router.post("/chargeOneTimeWithCustomer")
async def charge_one_time_with_customer(
    request_body: ChargeOneTimeWithCustomerRequest,
    request: Request,
    gateway: StripeGateway = Depends(get_stripe_gateway),
):
    """Unconfirmed charge against a card already attached to the customer"""
    try:
        payment_intent = await gateway.create_payment_intent(
            amount=request_body.amount,
            payment_method=request_body.payment_method_id,
            customer=request_body.customer_id,
            confirm=False,
        )
    except DomainException as e:
        logging.error(f"Payment intent failed: {e}", extra={"request_id": get_request_id(request)})
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})

    return {"success": True, "clientSecret": payment_intent["client_secret"]}


@router.post("/create-payment-intent", response_model=ClientSecretResponse)
async def create_payment_intent(
    request_body: PaymentIntentRequest,
    request: Request,
    gateway: StripeGateway = Depends(get_stripe_gateway),
):
    try:
        payment_intent = await gateway.create_payment_intent(
            amount=request_body.amount_in_cents,
            automatic_payment_methods={"enabled": True},
        )
    except DomainException as e:
        logging.error(f"Error creating payment intent: {e}", extra={"request_id": get_request_id(request)})
        return JSONResponse(status_code=500, content={"error": "Server error"})

    return ClientSecretResponse(client_secret=payment_intent["client_secret"])


@router.post("/create-payment-intent-donate")
async def create_donation(
    request_body: DonationRequest,
    request: Request,
    gateway: StripeGateway = Depends(get_donate_gateway),
):
    """Hosted Checkout for a one-time or recurring donation; amount is in dollars"""
    try:
        url = await create_donation_checkout(
            gateway,
            amount=request_body.amount,
            cover_fee=request_body.cover_fee,
            recurring=request_body.recurring,
            interval=request_body.interval,
        )
    except InvalidDonationAmountError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
    except DomainException as e:
        logging.error(f"Donation checkout failed: {e}", extra={"request_id": get_request_id(request)})
        return JSONResponse(status_code=500, content={"error": "Server error."})

    return {"url": url}
