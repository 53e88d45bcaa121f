"""Web Push endpoints - subscription registration and broadcast"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse

from splitpay_gateway.api.dependencies import get_push_sender, get_push_store, get_request_id
from splitpay_gateway.api.v1.schemas import PushSubscriptionRequest
from splitpay_gateway.domain.exceptions import DomainException
from splitpay_gateway.domain.models import PushSubscriptionStore
from splitpay_gateway.infrastructure.clients.push import WebPushSender
from splitpay_gateway.services.notifications import broadcast, save_subscription

router = APIRouter()


@router.post("/saveSubscription")
async def register_subscription(
    request_body: PushSubscriptionRequest,
    request: Request,
    store: PushSubscriptionStore = Depends(get_push_store),
):
    try:
        await save_subscription(store, request_body.model_dump(by_alias=True, exclude_none=True))
    except DomainException as e:
        logging.error(f"Saving push subscription failed: {e}", extra={"request_id": get_request_id(request)})
        return JSONResponse(status_code=500, content={"error": str(e)})

    return {"saved": True}


@router.post("/sendPush")
async def send_push(
    request: Request,
    payload: Optional[Dict[str, Any]] = Body(None),
    store: PushSubscriptionStore = Depends(get_push_store),
    sender: WebPushSender = Depends(get_push_sender),
):
    """Broadcast a notification; the response lists one outcome per subscription"""
    try:
        results = await broadcast(store, sender, payload)
    except DomainException as e:
        logging.error(f"Push broadcast failed: {e}", extra={"request_id": get_request_id(request)})
        return JSONResponse(status_code=500, content={"error": str(e)})

    return [result.to_dict() for result in results]
