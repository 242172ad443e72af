"""
Structured logging for the BNPL Merchant Gateway.

Logs are JSON lines. Storefront requests bind `request_id`, and checkout
steps also bind `merchant_reference`, through structlog's contextvars, so
every provider call made while serving a request carries both.

Provider calls are wrapped in ProviderCallTimer, which emits
`provider_call_completed` / `provider_call_failed` with the operation name and
`duration_ms`. Checkout outcomes go through log_payment_event with a `source`
(provider or fixture) and an `outcome`.
"""
import time
import uuid
from typing import Any, Optional

import structlog


def configure_logging() -> None:
    """Configure structlog with JSON output and bound request context."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", key="timestamp"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """Get a configured logger instance."""
    return structlog.get_logger(name)


def bind_request(request_id: Optional[str] = None, **fields: Any) -> str:
    """
    Bind request-scoped fields to every log line that follows.

    Args:
        request_id: Incoming X-Request-ID, a new UUID is used when missing
        fields: Extra fields such as merchant_reference. Empty values are skipped.

    Returns:
        The request id that was bound
    """
    request_id = request_id or str(uuid.uuid4())
    structlog.contextvars.bind_contextvars(
        request_id=request_id,
        **{k: v for k, v in fields.items() if v},
    )
    return request_id


def clear_request() -> None:
    structlog.contextvars.clear_contextvars()


class ProviderCallTimer:
    """Times one provider API call and logs how it ended."""

    def __init__(self, operation: str, logger: structlog.stdlib.BoundLogger, **fields: Any):
        self.operation = operation
        self.logger = logger
        self.fields = fields
        self.duration_seconds: float = 0

    def __enter__(self) -> "ProviderCallTimer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.duration_seconds = time.perf_counter() - self._start
        duration_ms = round(self.duration_seconds * 1000, 2)

        if exc_type is not None:
            self.logger.warning("provider_call_failed", operation=self.operation,
                                duration_ms=duration_ms, error=str(exc_val), **self.fields)
        else:
            self.logger.info("provider_call_completed", operation=self.operation,
                             duration_ms=duration_ms, **self.fields)


def log_payment_event(
    logger: structlog.stdlib.BoundLogger,
    event: str,
    source: str,
    outcome: str,
    **fields: Any,
) -> None:
    """Log an order or payment step; anything but success is a warning."""
    log = logger.info if outcome == "success" else logger.warning
    log(event, source=source, outcome=outcome, **fields)
