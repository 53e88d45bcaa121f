"""Configuration management using Pydantic Settings"""

from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Stripe
    stripe_secret_key: str = ""
    stripe_donate_secret_key: str = ""  # Falls back to stripe_secret_key
    stripe_webhook_secret: str = ""  # Signature verification is skipped when empty
    stripe_price_id: str = ""
    currency: str = "usd"

    # Split payments: order-significant, paired positionally with transferAmounts
    connected_account_ids: str = ""

    # Renewals
    monthly_price_in_cents: int = 1000
    renewal_period_days: int = 30
    renewal_timezone: str = "UTC"
    renewal_concurrency: int = 10

    # Subscribe billing anchor (MM-DD)
    season_open_date: str = "04-07"
    season_first_billing_date: str = "05-07"

    # Donations
    donation_success_url: str = "https://www.thepaddleproject.org/?checkout=success&session_id={CHECKOUT_SESSION_ID}"
    donation_cancel_url: str = "https://www.thepaddleproject.org/?checkout=cancel"
    donation_fee_percent: int = 3

    # Firebase Realtime Database
    firebase_service_account: str = ""  # JSON text or path to a JSON file
    firebase_database_url: str = ""

    # Google Apps Script sheet logger / proxy
    gas_webapp_url: str = ""
    gas_max_retries: int = 3
    gas_backoff_base: float = 0.5  # Exponential backoff base in seconds
    proxy_allowed_hosts: str = "script.google.com,script.googleusercontent.com"

    # Newsletter API
    beehiiv_api_key: str = ""
    beehiiv_base_url: str = "https://api.beehiiv.com/v2"

    # Web Push
    vapid_subject: str = ""
    vapid_public_key: str = ""
    vapid_private_key: str = ""

    # Service
    service_name: str = "splitpay-gateway"
    log_level: str = "INFO"
    cors_allow_origin: str = "*"

    # HTTP Client
    http_timeout_seconds: float = 10.0

    @property
    def destination_accounts(self) -> List[str]:
        """Connected account ids in configured order, blanks dropped"""
        return [acct.strip() for acct in self.connected_account_ids.split(",") if acct.strip()]

    @property
    def allowed_proxy_hosts(self) -> List[str]:
        return [host.strip().lower() for host in self.proxy_allowed_hosts.split(",") if host.strip()]

    @property
    def donate_secret_key(self) -> str:
        return self.stripe_donate_secret_key or self.stripe_secret_key


settings = Settings()
