"""FastAPI application factory"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from splitpay_gateway.api.middleware import CORSMiddleware, MetricsMiddleware, RequestIDMiddleware, RouteTable, route_table
from splitpay_gateway.api.v1 import charges, customers, proxies, push, subscriptions, webhooks
from splitpay_gateway.config import settings
from splitpay_gateway.domain.exceptions import DomainException
from splitpay_gateway.infrastructure.observability.logging import setup_logging

# Setup structured logging
setup_logging(settings.log_level)


def validation_error_message(exc: RequestValidationError) -> str:
    """One client-facing message naming the offending fields"""
    errors = exc.errors()
    if any(error.get("type") == "json_invalid" for error in errors):
        return "Invalid JSON in request body."

    missing = [str(error["loc"][-1]) for error in errors if error.get("type") == "missing"]
    if missing:
        return f"Missing required field(s): {', '.join(missing)}."

    first = errors[0] if errors else {}
    field = str(first.get("loc", ("request",))[-1])
    return f"Invalid value for {field}: {first.get('msg', 'invalid')}."


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": validation_error_message(exc)})


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 405:
        _, verbs = route_table(request).match(request.url.path)
        return JSONResponse(
            status_code=405,
            content={"error": f"Method Not Allowed. Use {' or '.join(verbs) or 'POST'}."},
            headers=exc.headers,
        )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    logging.error(
        f"Unhandled domain error: {exc}",
        extra={"request_id": getattr(request.state, "request_id", "unknown")},
    )
    return JSONResponse(status_code=500, content={"error": str(exc)})


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="SplitPay Gateway",
        description="Split-payment charges, subscriber renewals and payment integrations",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(CORSMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(DomainException, domain_exception_handler)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    routes = RouteTable()
    routes.add_routes(app.router.routes)
    app.state.route_table = routes

    # Register API routers
    for router, tag in (
        (charges.router, "charges"),
        (customers.router, "customers"),
        (subscriptions.router, "subscriptions"),
        (webhooks.router, "webhooks"),
        (push.router, "push"),
        (proxies.router, "proxies"),
    ):
        app.include_router(router, prefix="/v1", tags=[tag])
        routes.add_routes(router.routes, prefix="/v1")

    return app


app = create_app()
