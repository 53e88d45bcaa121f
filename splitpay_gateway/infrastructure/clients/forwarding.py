"""HTTP passthrough clients for the Apps Script web app and the newsletter API"""

from dataclasses import dataclass
from typing import Dict, Mapping
from urllib.parse import urlsplit

import httpx

from splitpay_gateway.config import settings
from splitpay_gateway.domain.exceptions import ConfigurationError, UpstreamProxyError


@dataclass
class UpstreamResponse:
    status_code: int
    body: bytes
    content_type: str


class ForwardingClient:
    """Forward a request body and query string to an upstream URL"""

    def __init__(self, timeout: float | None = None):
        self.timeout = timeout or settings.http_timeout_seconds

    async def forward(
        self,
        method: str,
        url: str,
        params: Mapping[str, str] | None = None,
        body: bytes | None = None,
        headers: Dict[str, str] | None = None,
    ) -> UpstreamResponse:
        """
        Relay one request upstream.

        Raises:
            UpstreamProxyError: On timeout or network failure
        """
        request_headers = dict(headers or {})
        if body is not None:
            request_headers.setdefault("Content-Type", "application/json")

        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            try:
                response = await client.request(
                    method,
                    url,
                    params=dict(params or {}),
                    content=body,
                    headers=request_headers,
                )
            except httpx.TimeoutException as e:
                raise UpstreamProxyError(f"Upstream timeout after {self.timeout}s") from e
            except httpx.RequestError as e:
                raise UpstreamProxyError(f"Proxy request failed: {e}") from e

        return UpstreamResponse(
            status_code=response.status_code,
            body=response.content,
            content_type=response.headers.get("Content-Type", "text/plain"),
        )


def is_allowed_upstream(url: str, allowed_hosts: list[str]) -> bool:
    """Only https URLs on an allow-listed host may be proxied"""
    parts = urlsplit(url)
    host = (parts.hostname or "").lower()
    return parts.scheme == "https" and host in allowed_hosts


class NewsletterClient(ForwardingClient):
    """Bearer-authenticated passthrough to the Beehiiv API"""

    def __init__(self, api_key: str | None = None, base_url: str | None = None):
        super().__init__()
        self.api_key = settings.beehiiv_api_key if api_key is None else api_key
        self.base_url = (base_url or settings.beehiiv_base_url).rstrip("/")

    async def call(self, method: str, resource: str, body: bytes | None = None) -> UpstreamResponse:
        if not self.api_key:
            raise ConfigurationError("Server configuration error: missing Beehiiv API key.")
        return await self.forward(
            method,
            f"{self.base_url}/{resource.lstrip('/')}",
            body=body,
            headers={"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"},
        )
