"""Data access layer for subscriber, subscription and push records"""

import asyncio
import hashlib
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from firebase_admin import db
from firebase_admin.exceptions import FirebaseError

from splitpay_gateway.domain.exceptions import UserStoreError
from splitpay_gateway.domain.models import Subscriber, SubscriberStatus
from splitpay_gateway.infrastructure.database.session import get_reference
from splitpay_gateway.utils.date_utils import format_timestamp, parse_timestamp
from splitpay_gateway.utils.keys import decode_email_key, encode_email_key


ReferenceFactory = Callable[[str], db.Reference]


class _FirebaseRepository:
    """Shared plumbing: blocking SDK calls run in a worker thread, errors become UserStoreError"""

    root_path = ""

    def __init__(self, reference_factory: ReferenceFactory | None = None):
        self._reference_factory = reference_factory or get_reference

    def _ref(self, *children: str) -> db.Reference:
        ref = self._reference_factory(self.root_path)
        for child in children:
            ref = ref.child(child)
        return ref

    async def _run(self, description: str, func: Callable[..., Any], *args: Any) -> Any:
        try:
            return await asyncio.to_thread(func, *args)
        except (FirebaseError, ValueError) as e:
            raise UserStoreError(f"User store {description} failed: {e}") from e


def subscriber_from_record(key: str, record: Dict[str, Any]) -> Subscriber:
    status = SubscriberStatus.ACTIVE if record.get("status") == SubscriberStatus.ACTIVE.value else SubscriberStatus.INACTIVE
    return Subscriber(
        key=key,
        email=record.get("email") or decode_email_key(key),
        status=status,
        paid_until=parse_timestamp(record.get("paidUntil")),
        stripe_customer_id=record.get("stripeCustomerId") or "",
        name=record.get("name") or "",
    )


class SubscriberRepository(_FirebaseRepository):
    """Repository for subscriber records under /users/{encoded email}"""

    root_path = "users"

    async def list_all(self) -> List[Subscriber]:
        """Snapshot of every subscriber (one read)"""
        records = await self._run("snapshot read", self._ref().get)
        if not records:
            return []
        return [
            subscriber_from_record(key, record)
            for key, record in records.items()
            if isinstance(record, dict)
        ]

    async def get_by_email(self, email: str) -> Optional[Subscriber]:
        key = encode_email_key(email)
        record = await self._run("read", self._ref(key).get)
        if not isinstance(record, dict):
            return None
        return subscriber_from_record(key, record)

    async def create_if_absent(self, email: str, name: str = "") -> Subscriber:
        """Write a minimal inactive record unless one already exists"""
        key = encode_email_key(email)

        def _create(current: Optional[Dict[str, Any]]) -> Dict[str, Any]:
            if current:
                return current
            return {
                "email": email,
                "name": name or "",
                "status": SubscriberStatus.INACTIVE.value,
                "paidUntil": "",
                "stripeCustomerId": "",
            }

        record = await self._run("create", self._ref(key).transaction, _create)
        return subscriber_from_record(key, record)

    async def claim_customer_id(self, email: str, customer_id: str) -> str:
        """
        Store a Stripe customer id only if none is stored yet.

        Returns the id that ends up persisted, which is the earlier one when
        two first-time calls race.
        """
        key = encode_email_key(email)
        winner = await self._run(
            "customer id claim",
            self._ref(key, "stripeCustomerId").transaction,
            lambda current: current or customer_id,
        )
        return winner

    async def update(self, key: str, fields: Dict[str, Any]) -> None:
        await self._run("update", self._ref(key).update, fields)

    async def mark_renewed(self, key: str, paid_until: datetime) -> None:
        await self.update(key, {"paidUntil": format_timestamp(paid_until)})

    async def mark_inactive(self, key: str) -> None:
        await self.update(key, {"status": SubscriberStatus.INACTIVE.value})


class SubscriptionLedgerRepository(_FirebaseRepository):
    """Append-only log of Stripe subscriptions under /subscriptions"""

    root_path = "subscriptions"

    async def record(
        self,
        email: str,
        customer_id: str,
        subscription_id: str,
        paid_through: datetime,
        created: datetime,
    ) -> str:
        entry = {
            "email": email,
            "customerId": customer_id,
            "subscriptionId": subscription_id,
            "paidThrough": format_timestamp(paid_through),
            "created": format_timestamp(created),
        }
        ref = await self._run("subscription record", self._ref().push, entry)
        return ref.key


def endpoint_key(endpoint: str) -> str:
    """Push endpoints are URLs, which are not valid database keys"""
    return hashlib.sha256(endpoint.encode("utf-8")).hexdigest()


class FirebasePushSubscriptionStore(_FirebaseRepository):
    """Web Push subscriptions under /pushSubscriptions, one record per endpoint"""

    root_path = "pushSubscriptions"

    async def upsert(self, endpoint: str, subscription: Dict[str, Any]) -> None:
        await self._run("push subscription upsert", self._ref(endpoint_key(endpoint)).set, subscription)

    async def all(self) -> List[Dict[str, Any]]:
        records = await self._run("push subscription read", self._ref().get)
        if not records:
            return []
        return [record for record in records.values() if isinstance(record, dict)]

    async def remove(self, endpoint: str) -> None:
        await self._run("push subscription delete", self._ref(endpoint_key(endpoint)).delete)
