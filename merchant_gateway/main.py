"""
BNPL Merchant Gateway

A FastAPI service that lets an e-commerce storefront offer a
"buy-now-pay-later" installment payment method.

The gateway answers three questions for the storefront:

1. Can this price be paid in installments? (eligibility window check)
2. How much is each installment? (always rounded up to the cent)
3. Create the order and capture the payment once the shopper confirms.

When no live provider is configured the gateway answers from local JSON
fixtures, so a storefront can be developed and tested offline.
"""
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from merchant_gateway.api import router
from merchant_gateway.config import ConfigurationError, OrderSequenceError, settings
from merchant_gateway.logging import (
    configure_logging,
    get_logger,
    bind_request,
    clear_request,
)
from merchant_gateway import metrics

# Configure structured logging
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info(
        "service_starting",
        service_name=settings.service_name,
        provider_url=settings.connection_url,
        server_available=settings.server_available,
        fixtures_directory=settings.fixtures_directory,
    )

    yield

    logger.info("service_stopping", service_name=settings.service_name)


app = FastAPI(
    title="BNPL Merchant Gateway",
    description="Installment eligibility, order creation and payment capture for storefronts",
    version="0.1.0",
    lifespan=lifespan,
)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    """
    Middleware for request tracing, logging, and metrics.

    Sets up request context with:
    - request_id: Unique identifier for tracing
    - Timing for duration_ms calculation
    - Prometheus metrics collection
    """
    method = request.method
    path = request.url.path

    # Skip logging/metrics for health and metrics endpoints
    if path in ("/health", "/metrics"):
        return await call_next(request)

    request_id = bind_request(request.headers.get("X-Request-ID"))
    request.state.request_id = request_id

    start_time = time.perf_counter()

    logger.info("request_received", method=method, path=path)

    try:
        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000

        logger.info(
            "request_completed",
            method=method,
            path=path,
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )

        metrics.record_http_request(method, path, response.status_code, duration_ms / 1000)

        # Add request_id to response headers for tracing
        response.headers["X-Request-ID"] = request_id

        return response

    except Exception as e:
        duration_ms = (time.perf_counter() - start_time) * 1000

        logger.error(
            "request_failed",
            method=method,
            path=path,
            duration_ms=round(duration_ms, 2),
            error=str(e),
        )

        metrics.record_http_request(method, path, 500, duration_ms / 1000)

        raise

    finally:
        clear_request()


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    """Halt the checkout step with a clear diagnostic."""
    request_id = getattr(request.state, "request_id", "unknown")

    logger.error("configuration_error", error=str(exc))

    status_code = 409 if isinstance(exc, OrderSequenceError) else 500
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc)},
        headers={"X-Request-ID": request_id},
    )


# Include API routes
app.include_router(router)


@app.get("/health")
async def health_check():
    """Health check endpoint for container orchestration."""
    return {"status": "ok", "service": settings.service_name}


@app.get("/metrics")
async def metrics_endpoint():
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
