"""Web Push sender signed with the service's VAPID keys"""

import asyncio
import json
from typing import Any, Dict

from pywebpush import WebPushException, webpush

from splitpay_gateway.config import settings
from splitpay_gateway.domain.exceptions import ConfigurationError, PushDeliveryError


class WebPushSender:
    """Client for delivering one notification to one browser subscription"""

    def __init__(
        self,
        vapid_private_key: str | None = None,
        vapid_subject: str | None = None,
        timeout: float | None = None,
    ):
        self.vapid_private_key = settings.vapid_private_key if vapid_private_key is None else vapid_private_key
        self.vapid_subject = settings.vapid_subject if vapid_subject is None else vapid_subject
        self.timeout = timeout or settings.http_timeout_seconds

    def ensure_configured(self) -> None:
        if not self.vapid_private_key or not self.vapid_subject:
            raise ConfigurationError("VAPID_SUBJECT / VAPID_PRIVATE_KEY are not configured.")

    async def send(self, subscription: Dict[str, Any], payload: Dict[str, Any]) -> int:
        """
        Deliver a JSON payload.

        Returns:
            HTTP status reported by the push service

        Raises:
            PushDeliveryError: Push service rejected the message; status 404/410
                means the subscription is gone
        """
        self.ensure_configured()
        try:
            response = await asyncio.to_thread(
                webpush,
                subscription_info=subscription,
                data=json.dumps(payload),
                vapid_private_key=self.vapid_private_key,
                vapid_claims={"sub": self.vapid_subject},
                timeout=self.timeout,
            )
        except WebPushException as e:
            status = e.response.status_code if e.response is not None else None
            raise PushDeliveryError(str(e), status_code=status) from e

        return getattr(response, "status_code", 201)
