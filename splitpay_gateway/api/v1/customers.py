"""Customer endpoints - Stripe customer provisioning and saved cards"""

import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from splitpay_gateway.api.dependencies import get_request_id, get_stripe_gateway, get_subscriber_repository
from splitpay_gateway.api.v1.schemas import (
    AttachStripeRequest,
    ClientSecretResponse,
    CreateCustomerRequest,
    CreateCustomerResponse,
    CreateStripeRequest,
    SetDefaultPaymentMethodRequest,
    SetupIntentRequest,
)
from splitpay_gateway.domain.exceptions import CustomerNotProvisionedError, DomainException
from splitpay_gateway.infrastructure.clients.stripe_gateway import StripeGateway
from splitpay_gateway.infrastructure.database.repositories import SubscriberRepository
from splitpay_gateway.services.customers import (
    attach_default_payment_method,
    create_setup_intent_by_email,
    ensure_customer,
    find_customer,
    set_default_payment_method_by_email,
)

router = APIRouter()


@router.post("/createCustomer", response_model=CreateCustomerResponse)
async def create_customer(
    request_body: CreateCustomerRequest,
    request: Request,
    gateway: StripeGateway = Depends(get_stripe_gateway),
    subscribers: SubscriberRepository = Depends(get_subscriber_repository),
):
    """Ensure the subscriber has a Stripe customer, creating record and customer on first call"""
    try:
        ensured = await ensure_customer(gateway, subscribers, request_body.email, request_body.name)
    except DomainException as e:
        logging.error(f"Error creating Stripe customer: {e}", extra={"request_id": get_request_id(request)})
        return JSONResponse(status_code=500, content={"error": str(e)})

    message = "Stripe customer created successfully" if ensured.created else "User already has a Stripe customer ID"
    return CreateCustomerResponse(message=message, stripe_customer_id=ensured.customer_id)


@router.post("/createStripe")
async def create_stripe_customer(
    request_body: CreateStripeRequest,
    request: Request,
    gateway: StripeGateway = Depends(get_stripe_gateway),
):
    """Create a customer with the given card as default"""
    try:
        customer = await gateway.create_customer(
            email=request_body.email,
            name=request_body.name,
            payment_method_id=request_body.payment_method_id,
        )
    except DomainException as e:
        logging.error(f"Stripe customer creation failed: {e}", extra={"request_id": get_request_id(request)})
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})

    return {
        "success": True,
        "customer": {"id": customer["id"], "name": customer.get("name"), "email": customer.get("email")},
    }


@router.get("/findStripe")
async def find_stripe_customer(
    request: Request,
    email: str = Query(..., min_length=1),
    set_default: bool = Query(False, alias="setDefault"),
    gateway: StripeGateway = Depends(get_stripe_gateway),
):
    """
    Look up a customer by email and report the default card's last four digits.

    With setDefault=true, a customer without a default card gets their first
    card on file made default.
    """
    try:
        lookup = await find_customer(gateway, email, adopt_first_card=set_default)
    except DomainException as e:
        logging.error(f"Customer lookup failed: {e}", extra={"request_id": get_request_id(request)})
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})

    if lookup is None:
        return {"success": True, "exists": False}
    return {"success": True, "exists": True, "customer": lookup.customer, "cardLast4": lookup.card_last4}


@router.post("/attachStripe")
async def attach_stripe_payment_method(
    request_body: AttachStripeRequest,
    request: Request,
    gateway: StripeGateway = Depends(get_stripe_gateway),
):
    try:
        last4 = await attach_default_payment_method(gateway, request_body.customer_id, request_body.payment_method_id)
    except DomainException as e:
        logging.error(f"Attach payment method failed: {e}", extra={"request_id": get_request_id(request)})
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})

    return {"success": True, "last4": last4}


@router.post("/setDefaultPaymentMethod")
async def set_default_payment_method(
    request_body: SetDefaultPaymentMethodRequest,
    request: Request,
    gateway: StripeGateway = Depends(get_stripe_gateway),
    subscribers: SubscriberRepository = Depends(get_subscriber_repository),
):
    try:
        customer_id = await set_default_payment_method_by_email(
            gateway, subscribers, request_body.email, request_body.payment_method_id
        )
    except CustomerNotProvisionedError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
    except DomainException as e:
        logging.error(f"Error in setDefaultPaymentMethod: {e}", extra={"request_id": get_request_id(request)})
        return JSONResponse(status_code=500, content={"error": str(e)})

    return {"message": "Default payment method updated", "customerId": customer_id}


@router.post("/createSetupIntent", response_model=ClientSecretResponse)
async def create_setup_intent(
    request_body: SetupIntentRequest,
    request: Request,
    gateway: StripeGateway = Depends(get_stripe_gateway),
    subscribers: SubscriberRepository = Depends(get_subscriber_repository),
):
    try:
        client_secret = await create_setup_intent_by_email(gateway, subscribers, request_body.email)
    except CustomerNotProvisionedError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
    except DomainException as e:
        logging.error(f"Error in createSetupIntent: {e}", extra={"request_id": get_request_id(request)})
        return JSONResponse(status_code=500, content={"error": str(e)})

    return ClientSecretResponse(client_secret=client_secret)
