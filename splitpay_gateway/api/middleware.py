"""FastAPI middleware for request tracing, metrics and CORS"""

import time
import uuid
from typing import Iterable, List, Optional, Pattern, Tuple

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import compile_path

from splitpay_gateway.config import settings
from splitpay_gateway.infrastructure.observability.metrics import request_duration_histogram

UNMATCHED_ROUTE = "unmatched"


class RouteTable:
    """
    Path templates and the verbs each one serves, recorded when routers are included.

    Built from each router's own routes rather than read back from the app,
    whose route list holds included-router wrappers on some FastAPI releases.
    """

    def __init__(self):
        self._entries: List[Tuple[Pattern[str], str, List[str]]] = []

    def add_routes(self, routes: Iterable, prefix: str = "") -> None:
        for route in routes:
            path = getattr(route, "path", None)
            methods = getattr(route, "methods", None)
            if path is None or not methods:
                continue
            template = prefix + path
            regex, _, _ = compile_path(template)
            self._entries.append((regex, template, sorted(m for m in methods if m != "HEAD")))

    def match(self, path: str) -> Tuple[Optional[str], List[str]]:
        """Template of the first route matching the path and every verb served there"""
        template: Optional[str] = None
        methods: List[str] = []
        for regex, entry_template, entry_methods in self._entries:
            if not regex.match(path):
                continue
            template = template or entry_template
            methods.extend(m for m in entry_methods if m not in methods)
        return template, methods


def route_table(request: Request) -> RouteTable:
    return getattr(request.app.state, "route_table", None) or RouteTable()


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Add unique request ID to each request for distributed tracing"""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class MetricsMiddleware(BaseHTTPMiddleware):
    """Record HTTP request metrics, labelled by route template"""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        response = await call_next(request)

        duration = time.time() - start_time
        template, _ = route_table(request).match(request.url.path)
        request_duration_histogram.labels(
            method=request.method,
            endpoint=template or UNMATCHED_ROUTE,
            status=response.status_code,
        ).observe(duration)

        return response


class CORSMiddleware(BaseHTTPMiddleware):
    """
    Answer preflight requests and stamp CORS headers on every response.

    Allow-Methods names the verbs the matched route serves, plus OPTIONS.
    """

    async def dispatch(self, request: Request, call_next):
        _, methods = route_table(request).match(request.url.path)
        methods = methods or ["GET", "POST"]
        headers = {
            "Access-Control-Allow-Origin": settings.cors_allow_origin,
            "Access-Control-Allow-Methods": ", ".join(methods + ["OPTIONS"]),
            "Access-Control-Allow-Headers": "Content-Type",
        }

        if request.method == "OPTIONS":
            return Response(status_code=200, headers=headers)

        response = await call_next(request)
        response.headers.update(headers)
        return response
