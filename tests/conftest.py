"""Pytest fixtures for testing"""

import pytest
from datetime import datetime, timezone
from typing import Any, Dict, List
from unittest.mock import MagicMock
from fastapi.testclient import TestClient
from splitpay_gateway.api.main import create_app
from splitpay_gateway.api.dependencies import (
    get_destination_accounts,
    get_donate_gateway,
    get_forwarding_client,
    get_ledger_repository,
    get_newsletter_client,
    get_push_sender,
    get_push_store,
    get_sheet_logger,
    get_stripe_gateway,
    get_subscriber_repository,
)
from splitpay_gateway.domain.models import Subscriber, SubscriberStatus
from splitpay_gateway.infrastructure.clients.forwarding import ForwardingClient, NewsletterClient
from splitpay_gateway.infrastructure.clients.push import WebPushSender
from splitpay_gateway.infrastructure.clients.sheets import SheetLogger
from splitpay_gateway.infrastructure.clients.stripe_gateway import StripeGateway
from splitpay_gateway.infrastructure.database.repositories import SubscriberRepository, SubscriptionLedgerRepository


DESTINATIONS = ["acct_a", "acct_b"]


class InMemoryPushStore:
    """Push subscription store kept in a dict, keyed by endpoint"""

    def __init__(self):
        self.subscriptions: Dict[str, Dict[str, Any]] = {}

    async def upsert(self, endpoint: str, subscription: Dict[str, Any]) -> None:
        self.subscriptions[endpoint] = subscription

    async def all(self) -> List[Dict[str, Any]]:
        return list(self.subscriptions.values())

    async def remove(self, endpoint: str) -> None:
        self.subscriptions.pop(endpoint, None)


@pytest.fixture
def gateway() -> MagicMock:
    """Stripe gateway with async SDK calls mocked and pure helpers left real"""
    gateway = MagicMock(spec=StripeGateway)
    gateway.api_key = "sk_test_123"
    gateway.currency = "usd"
    gateway.default_payment_method_id = StripeGateway.default_payment_method_id
    gateway.card_last4 = StripeGateway.card_last4
    return gateway


@pytest.fixture
def subscribers() -> MagicMock:
    return MagicMock(spec=SubscriberRepository)


@pytest.fixture
def ledger() -> MagicMock:
    return MagicMock(spec=SubscriptionLedgerRepository)


@pytest.fixture
def push_store() -> InMemoryPushStore:
    return InMemoryPushStore()


@pytest.fixture
def push_sender() -> MagicMock:
    return MagicMock(spec=WebPushSender)


@pytest.fixture
def sheet() -> MagicMock:
    return MagicMock(spec=SheetLogger)


@pytest.fixture
def forwarding() -> MagicMock:
    return MagicMock(spec=ForwardingClient)


@pytest.fixture
def newsletter() -> MagicMock:
    return MagicMock(spec=NewsletterClient)


@pytest.fixture
def client(gateway, subscribers, ledger, push_store, push_sender, sheet, forwarding, newsletter) -> TestClient:
    """Create FastAPI test client with every external collaborator replaced"""
    app = create_app()

    app.dependency_overrides[get_stripe_gateway] = lambda: gateway
    app.dependency_overrides[get_donate_gateway] = lambda: gateway
    app.dependency_overrides[get_subscriber_repository] = lambda: subscribers
    app.dependency_overrides[get_ledger_repository] = lambda: ledger
    app.dependency_overrides[get_push_store] = lambda: push_store
    app.dependency_overrides[get_push_sender] = lambda: push_sender
    app.dependency_overrides[get_sheet_logger] = lambda: sheet
    app.dependency_overrides[get_forwarding_client] = lambda: forwarding
    app.dependency_overrides[get_newsletter_client] = lambda: newsletter
    app.dependency_overrides[get_destination_accounts] = lambda: DESTINATIONS
    return TestClient(app)


def _make_subscriber(
    key: str,
    paid_until: datetime | None,
    status: SubscriberStatus = SubscriberStatus.ACTIVE,
    customer_id: str = "",
) -> Subscriber:
    return Subscriber(
        key=key,
        email=key.replace(",", "."),
        status=status,
        paid_until=paid_until,
        stripe_customer_id=customer_id,
    )


@pytest.fixture
def make_subscriber():
    """Factory for subscriber records"""
    return _make_subscriber


@pytest.fixture
def june_first() -> datetime:
    """Fixed 'now' for calendar-sensitive tests"""
    return datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
