"""Tests for request-scoped log context and provider call timing."""
from unittest.mock import MagicMock

import pytest
import structlog

from merchant_gateway.logging import ProviderCallTimer, bind_request, clear_request, log_payment_event


class TestRequestContext:
    """Test binding and clearing of request fields."""

    def teardown_method(self):
        clear_request()

    def test_generates_request_id(self):
        request_id = bind_request()
        assert request_id
        assert structlog.contextvars.get_contextvars()["request_id"] == request_id

    def test_keeps_incoming_request_id(self):
        assert bind_request("req-42") == "req-42"

    def test_binds_fields_and_skips_empty(self):
        bind_request("req-1", merchant_reference="order-1001", token=None)

        context = structlog.contextvars.get_contextvars()
        assert context["merchant_reference"] == "order-1001"
        assert "token" not in context

    def test_clear_request(self):
        bind_request("req-1")
        clear_request()
        assert structlog.contextvars.get_contextvars() == {}


class TestProviderCallTimer:
    """Test provider call timing logs."""

    def test_completed_call(self):
        logger = MagicMock()
        with ProviderCallTimer("create_order", logger) as timer:
            pass

        assert timer.duration_seconds >= 0
        logger.info.assert_called_once()
        assert logger.info.call_args.args[0] == "provider_call_completed"
        assert logger.info.call_args.kwargs["operation"] == "create_order"

    def test_failed_call_is_logged_and_raised(self):
        logger = MagicMock()
        with pytest.raises(RuntimeError):
            with ProviderCallTimer("capture_payment", logger):
                raise RuntimeError("boom")

        logger.warning.assert_called_once()
        assert logger.warning.call_args.args[0] == "provider_call_failed"
        assert logger.warning.call_args.kwargs["error"] == "boom"


class TestPaymentEvents:
    def test_success_is_info(self):
        logger = MagicMock()
        log_payment_event(logger, "order_created", "fixture", "success")
        logger.info.assert_called_once_with("order_created", source="fixture", outcome="success")
        logger.warning.assert_not_called()

    def test_other_outcomes_are_warnings(self):
        logger = MagicMock()
        log_payment_event(logger, "order_token_empty", "fixture", "empty_token")
        logger.warning.assert_called_once_with("order_token_empty", source="fixture", outcome="empty_token")
