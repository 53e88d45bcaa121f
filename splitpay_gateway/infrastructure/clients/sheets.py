"""Apps Script sheet logger client with exponential backoff retry logic"""

import asyncio
from typing import Any, Dict

import httpx

from splitpay_gateway.config import settings
from splitpay_gateway.domain.exceptions import ConfigurationError, SheetLoggingError
from splitpay_gateway.infrastructure.observability.metrics import sheet_failure_counter, sheet_latency_histogram


class SheetLogger:
    """Client for appending payment rows to the Google Sheet via its Apps Script web app"""

    def __init__(self, webapp_url: str | None = None):
        self.webapp_url = settings.gas_webapp_url if webapp_url is None else webapp_url
        self.max_retries = max(settings.gas_max_retries, 1)
        self.backoff_base = settings.gas_backoff_base
        self.timeout = settings.http_timeout_seconds

    async def append_row(self, payload: Dict[str, Any]) -> None:
        """
        Post one payment row to the sheet with retry logic.

        Retry strategy:
        - Exponential backoff: base, 2*base, 4*base ... (base^attempt)
        - Retries on non-2xx responses and network failures
        - Tracks latency histogram and failure counter

        Raises:
            ConfigurationError: GAS_WEBAPP_URL is not set
            SheetLoggingError: After the final failed attempt
        """
        if not self.webapp_url:
            raise ConfigurationError("GAS_WEBAPP_URL is not configured.")

        attempt = 0
        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            while attempt < self.max_retries:
                try:
                    with sheet_latency_histogram.time():
                        response = await client.post(self.webapp_url, json=payload)
                        response.raise_for_status()
                        return

                except httpx.HTTPStatusError as e:
                    error = SheetLoggingError(
                        f"GAS logging failed: {e.response.status_code} {e.response.text}"
                    )
                except httpx.RequestError as e:
                    error = SheetLoggingError(f"GAS logging failed: {e}")

                attempt += 1
                sheet_failure_counter.inc()

                if attempt >= self.max_retries:
                    raise error

                backoff = self.backoff_base * (2 ** (attempt - 1))
                await asyncio.sleep(backoff)
