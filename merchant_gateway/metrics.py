"""
Prometheus Metrics for the BNPL Merchant Gateway.

This module defines all metrics exposed at the /metrics endpoint.
Metrics are categorized into:

1. Checkout Metrics - For Product/Finance teams
   - Eligibility outcomes, orders created, payments captured

2. Technical Metrics - For Engineering/SRE teams
   - Provider latencies and failures, fixture loads, HTTP traffic
"""
from typing import Optional

from prometheus_client import Counter, Histogram, Info

# =============================================================================
# SERVICE INFO
# =============================================================================

SERVICE_INFO = Info(
    "merchant_gateway_service",
    "Service information"
)
SERVICE_INFO.info({
    "version": "0.1.0",
    "service": "merchant-gateway",
})

# =============================================================================
# CHECKOUT METRICS
# =============================================================================

# Counter: Eligibility checks by outcome
ELIGIBILITY_CHECKS = Counter(
    "merchant_gateway_eligibility_checks_total",
    "Price eligibility checks for the installment payment method",
    ["outcome"]  # eligible, ineligible
)

# Counter: Orders created by source and outcome
ORDERS_CREATED = Counter(
    "merchant_gateway_orders_created_total",
    "Orders created with the provider",
    ["source", "outcome"]  # source: provider, fixture. outcome: success, empty_token, provider_error
)

# Counter: Payment captures by source and outcome
PAYMENTS_CAPTURED = Counter(
    "merchant_gateway_payments_captured_total",
    "Payment capture attempts",
    ["source", "outcome"]
)

# =============================================================================
# TECHNICAL METRICS
# =============================================================================

# Histogram: Provider API latency per operation
PROVIDER_LATENCY = Histogram(
    "merchant_gateway_provider_latency_seconds",
    "Time spent in provider API calls",
    ["operation"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0]
)

# Counter: Provider API failures
PROVIDER_FAILURES = Counter(
    "merchant_gateway_provider_failures_total",
    "Provider API call failures",
    ["operation", "error_type"]  # error_type: http_error, timeout, connection_error
)

# Counter: Fixture file loads
FIXTURE_LOADS = Counter(
    "merchant_gateway_fixture_loads_total",
    "Local fixture files read in place of provider responses",
    ["file_name", "outcome"]  # outcome: loaded, invalid
)

# =============================================================================
# HTTP METRICS (Standard)
# =============================================================================

HTTP_REQUESTS = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"]
)

HTTP_REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0]
)

# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def record_eligibility(eligible: bool) -> None:
    """Record the outcome of a price eligibility check."""
    ELIGIBILITY_CHECKS.labels(outcome="eligible" if eligible else "ineligible").inc()


def record_order(source: str, outcome: str) -> None:
    """Record an order creation attempt (success, empty_token, provider_error)."""
    ORDERS_CREATED.labels(source=source, outcome=outcome).inc()


def record_capture(source: str, outcome: str) -> None:
    """Record a payment capture attempt (success, provider_error)."""
    PAYMENTS_CAPTURED.labels(source=source, outcome=outcome).inc()


def record_provider_call(
    operation: str,
    success: bool,
    latency_seconds: float,
    error_type: Optional[str] = None,
) -> None:
    """Record provider API call metrics."""
    PROVIDER_LATENCY.labels(operation=operation).observe(latency_seconds)

    if not success:
        PROVIDER_FAILURES.labels(operation=operation, error_type=error_type or "unknown").inc()


def record_fixture_load(file_name: str, valid: bool) -> None:
    """Record a fixture file read."""
    FIXTURE_LOADS.labels(file_name=file_name, outcome="loaded" if valid else "invalid").inc()


def record_http_request(method: str, endpoint: str, status: int, latency_seconds: float) -> None:
    """Record a storefront HTTP request."""
    HTTP_REQUESTS.labels(method=method, endpoint=endpoint, status=status).inc()
    HTTP_REQUEST_LATENCY.labels(method=method, endpoint=endpoint).observe(latency_seconds)
