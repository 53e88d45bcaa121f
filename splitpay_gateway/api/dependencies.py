"""Dependency injection for FastAPI endpoints"""

from typing import List

from fastapi import Depends, Request

from splitpay_gateway.config import settings
from splitpay_gateway.domain.models import PushSubscriptionStore
from splitpay_gateway.infrastructure.clients.forwarding import ForwardingClient, NewsletterClient
from splitpay_gateway.infrastructure.clients.push import WebPushSender
from splitpay_gateway.infrastructure.clients.sheets import SheetLogger
from splitpay_gateway.infrastructure.clients.stripe_gateway import StripeGateway
from splitpay_gateway.infrastructure.database.repositories import (
    FirebasePushSubscriptionStore,
    SubscriberRepository,
    SubscriptionLedgerRepository,
)
from splitpay_gateway.services.renewals import RenewalEngine


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_destination_accounts() -> List[str]:
    """Connected accounts that transferAmounts pair with, by position"""
    return settings.destination_accounts


def get_stripe_gateway() -> StripeGateway:
    """Provide Stripe client for the platform account"""
    return StripeGateway()


def get_donate_gateway() -> StripeGateway:
    """Provide Stripe client for the donations account"""
    return StripeGateway(api_key=settings.donate_secret_key, key_name="STRIPE_DONATE_SECRET_KEY")


def get_subscriber_repository() -> SubscriberRepository:
    return SubscriberRepository()


def get_ledger_repository() -> SubscriptionLedgerRepository:
    return SubscriptionLedgerRepository()


def get_push_store() -> PushSubscriptionStore:
    return FirebasePushSubscriptionStore()


def get_push_sender() -> WebPushSender:
    return WebPushSender()


def get_sheet_logger() -> SheetLogger:
    """Provide Apps Script sheet logger instance"""
    return SheetLogger()


def get_forwarding_client() -> ForwardingClient:
    return ForwardingClient()


def get_newsletter_client() -> NewsletterClient:
    return NewsletterClient()


def get_renewal_engine(
    gateway: StripeGateway = Depends(get_stripe_gateway),
    subscribers: SubscriberRepository = Depends(get_subscriber_repository),
) -> RenewalEngine:
    """Provide renewal engine wired to configured price, period and zone"""
    return RenewalEngine.from_settings(gateway, subscribers)
