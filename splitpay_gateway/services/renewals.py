"""Batch renewal engine - charge every subscriber whose paid period has run out"""

import asyncio
import enum
import logging
from datetime import datetime

from splitpay_gateway.config import settings
from splitpay_gateway.domain.billing import next_paid_until, select_due_subscribers
from splitpay_gateway.domain.exceptions import PaymentProviderError
from splitpay_gateway.domain.models import RenewalBatchResult, Subscriber
from splitpay_gateway.infrastructure.clients.stripe_gateway import StripeGateway
from splitpay_gateway.infrastructure.database.repositories import SubscriberRepository
from splitpay_gateway.infrastructure.observability.metrics import record_renewal
from splitpay_gateway.utils.date_utils import calendar_date_in, utc_now

logger = logging.getLogger(__name__)


class RenewalOutcome(str, enum.Enum):
    RENEWED = "renewed"
    FAILED = "failed"
    SKIPPED = "skipped"


def renewal_idempotency_key(subscriber: Subscriber) -> str:
    """One charge per subscriber per paid period, even if two runs overlap"""
    return f"renewal_{subscriber.key}_{subscriber.paid_until.date().isoformat()}"


class RenewalEngine:
    """
    Renews due subscribers with per-subscriber isolation.

    Due subscribers are charged concurrently through a fixed number of
    workers; one subscriber's outcome never affects another's.
    """

    def __init__(
        self,
        gateway: StripeGateway,
        subscribers: SubscriberRepository,
        amount_cents: int,
        timezone_name: str = "UTC",
        period_days: int = 30,
        concurrency: int = 10,
    ):
        self.gateway = gateway
        self.subscribers = subscribers
        self.amount_cents = amount_cents
        self.timezone_name = timezone_name
        self.period_days = period_days
        self.concurrency = max(concurrency, 1)

    @classmethod
    def from_settings(cls, gateway: StripeGateway, subscribers: SubscriberRepository) -> "RenewalEngine":
        """Engine wired to the configured price, period, zone and worker count"""
        return cls(
            gateway=gateway,
            subscribers=subscribers,
            amount_cents=settings.monthly_price_in_cents,
            timezone_name=settings.renewal_timezone,
            period_days=settings.renewal_period_days,
            concurrency=settings.renewal_concurrency,
        )

    async def run(self, now: datetime | None = None) -> RenewalBatchResult:
        """
        Process one snapshot of the user store.

        Raises:
            ConfigurationError: No Stripe key; nothing was read or charged
            UserStoreError: The snapshot could not be read; nothing was charged
        """
        self.gateway.ensure_configured()
        snapshot = await self.subscribers.list_all()
        today = calendar_date_in(now or utc_now(), self.timezone_name)
        due = select_due_subscribers(snapshot, today, self.timezone_name)

        result = RenewalBatchResult()
        if not due:
            return result

        semaphore = asyncio.Semaphore(self.concurrency)

        async def _bounded(subscriber: Subscriber) -> RenewalOutcome:
            async with semaphore:
                return await self.renew(subscriber)

        outcomes = await asyncio.gather(*(_bounded(s) for s in due), return_exceptions=True)

        for subscriber, outcome in zip(due, outcomes):
            if isinstance(outcome, Exception):
                logger.error(
                    f"Renewal bookkeeping failed: {outcome}",
                    extra={"subscriber": subscriber.key},
                )
                result.errors_count += 1
            elif outcome is RenewalOutcome.RENEWED:
                result.processed_count += 1
            elif outcome is RenewalOutcome.FAILED:
                result.errors_count += 1
            else:
                result.skipped_count += 1

        return result

    async def renew(self, subscriber: Subscriber) -> RenewalOutcome:
        """Charge one subscriber and record the new paid-until date or the lapse"""
        if not subscriber.stripe_customer_id:
            logger.info(
                f"User {subscriber.email} missing stripeCustomerId, skipping",
                extra={"subscriber": subscriber.key},
            )
            record_renewal(RenewalOutcome.SKIPPED.value)
            return RenewalOutcome.SKIPPED

        try:
            await self._charge(subscriber)
        except PaymentProviderError as e:
            logger.warning(
                f"Failed to renew user {subscriber.email}: {e}",
                extra={"subscriber": subscriber.key},
            )
            await self.subscribers.mark_inactive(subscriber.key)
            record_renewal(RenewalOutcome.FAILED.value)
            return RenewalOutcome.FAILED

        new_paid_until = next_paid_until(subscriber.paid_until, self.period_days)
        await self.subscribers.mark_renewed(subscriber.key, new_paid_until)
        logger.info(
            f"Successfully renewed user {subscriber.email}",
            extra={"subscriber": subscriber.key, "paid_until": new_paid_until.isoformat()},
        )
        record_renewal(RenewalOutcome.RENEWED.value)
        return RenewalOutcome.RENEWED

    async def _charge(self, subscriber: Subscriber) -> None:
        customer_id = subscriber.stripe_customer_id
        params = {
            "amount": self.amount_cents,
            "customer": customer_id,
            "payment_method_types": ["card"],
            "off_session": True,
            "confirm": True,
            "description": f"Automatic renewal for {self.period_days} days",
            "metadata": {"email": subscriber.email, "autoRenew": "true"},
        }

        customer = await self.gateway.retrieve_customer(customer_id)
        payment_method_id = self.gateway.default_payment_method_id(customer)
        if payment_method_id:
            params["payment_method"] = payment_method_id

        payment_intent = await self.gateway.create_payment_intent(
            idempotency_key=renewal_idempotency_key(subscriber),
            **params,
        )
        status = payment_intent.get("status")
        if status != "succeeded":
            raise PaymentProviderError(f"Renewal payment not succeeded. Status={status}")
