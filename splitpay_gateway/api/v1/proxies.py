"""Passthrough endpoints for the Apps Script web app and the newsletter API"""

import json
import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from starlette.responses import Response

from splitpay_gateway.api.dependencies import get_forwarding_client, get_newsletter_client, get_request_id
from splitpay_gateway.config import settings
from splitpay_gateway.domain.exceptions import ConfigurationError, UpstreamProxyError
from splitpay_gateway.infrastructure.clients.forwarding import (
    ForwardingClient,
    NewsletterClient,
    UpstreamResponse,
    is_allowed_upstream,
)

router = APIRouter()


def _relay(upstream: UpstreamResponse) -> Response:
    return Response(content=upstream.body, status_code=upstream.status_code, media_type=upstream.content_type)


@router.api_route("/proxy", methods=["GET", "POST"])
async def apps_script_proxy(
    request: Request,
    client: ForwardingClient = Depends(get_forwarding_client),
):
    """Forward query string and body to the configured Apps Script web app"""
    if not settings.gas_webapp_url:
        return JSONResponse(status_code=500, content={"error": "GAS_WEBAPP_URL is not configured."})

    body = await request.body() if request.method == "POST" else None
    try:
        upstream = await client.forward(
            request.method, settings.gas_webapp_url, params=request.query_params, body=body
        )
    except UpstreamProxyError as e:
        logging.error(f"Proxy failed: {e}", extra={"request_id": get_request_id(request)})
        return JSONResponse(status_code=500, content={"error": str(e)})

    return _relay(upstream)


@router.post("/gasProxy")
async def caller_named_apps_script_proxy(
    request: Request,
    url: str | None = Query(None),
    client: ForwardingClient = Depends(get_forwarding_client),
):
    """
    Forward a JSON body to the Apps Script URL named in ?url=.

    Other query parameters are appended to the target. Only allow-listed
    https hosts are reachable.
    """
    if not url:
        return JSONResponse(status_code=400, content={"error": "Missing 'url' query parameter."})
    if not is_allowed_upstream(url, settings.allowed_proxy_hosts):
        return JSONResponse(status_code=400, content={"error": "Target host is not allowed."})

    params = {key: value for key, value in request.query_params.items() if key != "url"}
    body = await request.body()
    try:
        upstream = await client.forward("POST", url, params=params, body=body or b"{}")
    except UpstreamProxyError as e:
        logging.error(f"Error proxying request to GAS: {e}", extra={"request_id": get_request_id(request)})
        return JSONResponse(status_code=500, content={"error": "Proxy request failed", "details": str(e)})

    return _relay(upstream)


@router.api_route("/beehiiv-proxy", methods=["GET", "POST"])
async def newsletter_proxy(
    request: Request,
    resource: str | None = Query(None),
    client: NewsletterClient = Depends(get_newsletter_client),
):
    """Bearer-authenticated passthrough to the newsletter API resource named in ?resource="""
    if not resource:
        return JSONResponse(status_code=400, content={"error": "Missing 'resource' query parameter."})

    body = None
    if request.method == "POST":
        body = await request.body()
        try:
            json.loads(body or b"null")
        except ValueError:
            return JSONResponse(status_code=400, content={"error": "Invalid JSON in request body."})

    try:
        upstream = await client.call(request.method, resource, body=body)
    except (ConfigurationError, UpstreamProxyError) as e:
        logging.error(f"Newsletter proxy failed: {e}", extra={"request_id": get_request_id(request)})
        return JSONResponse(status_code=500, content={"error": str(e)})

    return _relay(upstream)
