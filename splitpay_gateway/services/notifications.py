"""Web Push registration and broadcast"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from splitpay_gateway.domain.exceptions import PushDeliveryError, UserStoreError
from splitpay_gateway.domain.models import PushSubscriptionStore
from splitpay_gateway.infrastructure.clients.push import WebPushSender
from splitpay_gateway.infrastructure.observability.metrics import push_counter

logger = logging.getLogger(__name__)

DEFAULT_PAYLOAD = {"title": "Ping!", "body": "Hello from Montclair Pickleball"}


@dataclass
class DeliveryResult:
    endpoint: str
    status: str  # fulfilled | rejected
    status_code: Optional[int] = None
    error: Optional[str] = None
    pruned: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "endpoint": self.endpoint,
            "status": self.status,
            "statusCode": self.status_code,
            "error": self.error,
            "pruned": self.pruned,
        }


async def save_subscription(store: PushSubscriptionStore, subscription: Dict[str, Any]) -> None:
    """Upsert by endpoint"""
    await store.upsert(subscription["endpoint"], subscription)


async def broadcast(
    store: PushSubscriptionStore,
    sender: WebPushSender,
    payload: Dict[str, Any] | None = None,
) -> List[DeliveryResult]:
    """
    Send one payload to every stored subscription.

    Each delivery is independent. Subscriptions whose push service answers
    404 or 410 are removed from the store.
    """
    sender.ensure_configured()
    payload = payload or DEFAULT_PAYLOAD
    subscriptions = await store.all()

    async def _prune(endpoint: str) -> bool:
        try:
            await store.remove(endpoint)
        except UserStoreError as e:
            logger.error(f"Could not prune push subscription: {e}")
            return False
        return True

    async def _deliver(subscription: Dict[str, Any]) -> DeliveryResult:
        endpoint = subscription.get("endpoint", "")
        try:
            status_code = await sender.send(subscription, payload)
        except PushDeliveryError as e:
            result = DeliveryResult(endpoint=endpoint, status="rejected", status_code=e.status_code, error=str(e))
            logger.warning(f"Push delivery failed: {e}", extra={"status_code": e.status_code})
            if e.subscription_gone:
                result.pruned = await _prune(endpoint)
            push_counter.labels(outcome="pruned" if result.pruned else "failed").inc()
            return result

        push_counter.labels(outcome="sent").inc()
        return DeliveryResult(endpoint=endpoint, status="fulfilled", status_code=status_code)

    return list(await asyncio.gather(*(_deliver(s) for s in subscriptions)))
