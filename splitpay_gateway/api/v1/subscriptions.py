"""Subscription endpoints - signup and the daily renewal run"""

import time
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from splitpay_gateway.api.dependencies import (
    get_ledger_repository,
    get_renewal_engine,
    get_request_id,
    get_stripe_gateway,
)
from splitpay_gateway.api.v1.schemas import RenewalCheckResponse, SubscribeRequest
from splitpay_gateway.domain.exceptions import DomainException
from splitpay_gateway.infrastructure.clients.stripe_gateway import StripeGateway
from splitpay_gateway.infrastructure.database.repositories import SubscriptionLedgerRepository
from splitpay_gateway.infrastructure.observability.logging import log_renewal_batch
from splitpay_gateway.services.renewals import RenewalEngine
from splitpay_gateway.services.subscriptions import subscribe

router = APIRouter()


@router.post("/subscribe")
async def create_subscription(
    request_body: SubscribeRequest,
    request: Request,
    gateway: StripeGateway = Depends(get_stripe_gateway),
    ledger: SubscriptionLedgerRepository = Depends(get_ledger_repository),
):
    """Start a subscription billed from the season anchor and record it in the ledger"""
    try:
        subscription_id = await subscribe(
            gateway,
            ledger,
            email=request_body.email,
            prepay_months=request_body.prepay_months,
            payment_method_id=request_body.payment_method_id,
        )
    except DomainException as e:
        logging.error(f"Error creating subscription: {e}", extra={"request_id": get_request_id(request)})
        return JSONResponse(status_code=500, content={"error": str(e)})

    return {"subscriptionId": subscription_id}


@router.api_route("/dailyRenewalCheck", methods=["GET", "POST"], response_model=RenewalCheckResponse)
async def daily_renewal_check(
    request: Request,
    engine: RenewalEngine = Depends(get_renewal_engine),
):
    """
    Renew every Active subscriber whose paid period has run out.

    Individual charge failures are counted, not raised. Failing to read the
    user store aborts the run with 500 before anyone is charged.
    """
    start_time = time.time()

    try:
        result = await engine.run()
    except DomainException as e:
        logging.error(f"Error in dailyRenewalCheck: {e}", extra={"request_id": get_request_id(request)})
        return JSONResponse(status_code=500, content={"error": str(e)})

    log_renewal_batch(result, (time.time() - start_time) * 1000)

    return RenewalCheckResponse(
        message=result.message,
        processed_count=result.processed_count,
        errors_count=result.errors_count,
        skipped_count=result.skipped_count,
    )
