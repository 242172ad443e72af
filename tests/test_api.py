"""API endpoint tests for the BNPL merchant gateway."""
import json
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from merchant_gateway.api.routes import get_engine
from merchant_gateway.config import Settings
from merchant_gateway.main import app
from merchant_gateway.schemas import OrderToken
from merchant_gateway.services.eligibility import EligibilityEngine
from merchant_gateway.services.fixtures import (
    CONFIGURATION_DETAILS,
    ORDER_CREATE_RESPONSE,
    PAYMENT_CAPTURE_RESPONSE,
    FixtureStore,
)
from merchant_gateway.services.provider_client import ProviderApiError, ProviderClient

ORDER_BODY = {
    "totalAmount": {"amount": "100.00", "currency": "NZD"},
    "consumer": {"givenNames": "Joe", "surname": "Consumer", "email": "joe@example.com"},
    "merchant": {
        "redirectConfirmUrl": "https://shop.example.com/confirm",
        "redirectCancelUrl": "https://shop.example.com/cancel",
    },
    "merchantReference": "order-1001",
}


def write_fixtures(directory):
    (directory / CONFIGURATION_DETAILS).write_text(json.dumps([{
        "type": "PAY_BY_INSTALLMENT",
        "minimumAmount": {"amount": "50.00", "currency": "NZD"},
        "maximumAmount": {"amount": "500.00", "currency": "NZD"},
    }]))
    (directory / ORDER_CREATE_RESPONSE).write_text(json.dumps({"token": "abc123"}))
    (directory / PAYMENT_CAPTURE_RESPONSE).write_text(json.dumps(
        {"status": "APPROVED", "reference": "order-1001", "amount": {"amount": "100.00"}}
    ))


@pytest.fixture
def provider():
    return MagicMock(spec=ProviderClient)


@pytest.fixture
def make_client(tmp_path, provider):
    """Build a test client whose engine reads fixtures from tmp_path."""
    config = Settings(merchant_id="merchant-1", secret_key="secret", fixtures_directory=str(tmp_path))

    def _make(live: bool = False) -> TestClient:
        def engine_override():
            engine = EligibilityEngine(config, FixtureStore(config=config), provider)
            return engine.set_server_available(live)

        app.dependency_overrides[get_engine] = engine_override
        return TestClient(app)

    yield _make
    app.dependency_overrides.clear()


class TestHealthEndpoint:
    """Test the health check endpoint."""

    def setup_method(self):
        self.client = TestClient(app)

    def test_health_check(self):
        response = self.client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert "service" in data


class TestMetricsEndpoint:
    """Test the Prometheus metrics endpoint."""

    def test_metrics_endpoint(self, make_client):
        client = make_client()
        client.get("/v1/eligibility", params={"price": "100"})

        response = client.get("/metrics")
        assert response.status_code == 200
        assert "merchant_gateway_eligibility_checks_total" in response.text


class TestEligibilityEndpoint:
    """Test the /v1/eligibility endpoint."""

    def test_eligible_price(self, tmp_path, make_client):
        write_fixtures(tmp_path)
        response = make_client(live=True).get("/v1/eligibility", params={"price": "100"})

        assert response.status_code == 200
        data = response.json()
        assert data["eligible"] is True
        assert data["number_of_payments"] == 4
        assert Decimal(data["amount_per_payment"]) == Decimal("25.00")
        assert Decimal(data["min_price"]) == Decimal("50")
        assert Decimal(data["max_price"]) == Decimal("500")

    def test_price_out_of_range(self, tmp_path, make_client):
        write_fixtures(tmp_path)
        response = make_client(live=True).get("/v1/eligibility", params={"price": "501"})

        data = response.json()
        assert data["eligible"] is False
        assert Decimal(data["amount_per_payment"]) == 0

    def test_offline_is_never_eligible(self, tmp_path, make_client):
        write_fixtures(tmp_path)
        response = make_client(live=False).get("/v1/eligibility", params={"price": "100"})

        assert response.status_code == 200
        assert response.json()["eligible"] is False

    def test_invalid_price(self, make_client):
        response = make_client().get("/v1/eligibility", params={"price": "abc"})
        assert response.status_code == 422

    def test_missing_price(self, make_client):
        assert make_client().get("/v1/eligibility").status_code == 422


class TestOrderEndpoints:
    """Test /v1/orders and /v1/payments/capture."""

    def test_create_order_offline(self, tmp_path, make_client):
        write_fixtures(tmp_path)
        response = make_client().post("/v1/orders", json=ORDER_BODY)

        assert response.status_code == 200
        assert response.json()["token"] == "abc123"
        assert "X-Request-ID" in response.headers

    def test_create_order_invalid_body(self, make_client):
        response = make_client().post("/v1/orders", json={"merchantReference": "x"})
        assert response.status_code == 422

    def test_create_order_missing_fixture(self, make_client):
        response = make_client().post("/v1/orders", json=ORDER_BODY)

        assert response.status_code == 500
        assert "order_create_response.json" in response.json()["detail"]

    def test_create_order_provider_failure(self, make_client, provider):
        provider.create_order.side_effect = ProviderApiError(400, '{"errorCode": "invalid_object"}')

        response = make_client(live=True).post("/v1/orders", json=ORDER_BODY)

        assert response.status_code == 502
        assert response.json()["detail"] == "Payment step failed, please try again."

    def test_create_order_live(self, make_client, provider):
        provider.create_order.return_value = OrderToken(token="live-token")

        response = make_client(live=True).post("/v1/orders", json=ORDER_BODY)

        assert response.status_code == 200
        assert response.json()["token"] == "live-token"

    def test_capture_with_token(self, tmp_path, make_client):
        write_fixtures(tmp_path)
        response = make_client().post(
            "/v1/payments/capture", json={"token": "abc123", "merchant_reference": "order-1001"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "APPROVED"
        assert data["reference"] == "order-1001"

    def test_capture_without_token(self, tmp_path, make_client):
        """Each request owns its flow, so a token must be supplied."""
        write_fixtures(tmp_path)
        response = make_client().post("/v1/payments/capture", json={})

        assert response.status_code == 409
        assert "create an order" in response.json()["detail"]

    def test_capture_provider_failure(self, make_client, provider):
        provider.capture_payment.side_effect = ProviderApiError(402, "declined")

        response = make_client(live=True).post("/v1/payments/capture", json={"token": "tok-1"})

        assert response.status_code == 502
        assert "declined" not in response.json()["detail"]


def eligibility_count(outcome: str) -> float:
    return REGISTRY.get_sample_value(
        "merchant_gateway_eligibility_checks_total", {"outcome": outcome}
    ) or 0.0


class TestRequestScopedProvider:
    """Each request gets its own provider client and closes it."""

    @patch("merchant_gateway.api.routes.ProviderClient")
    def test_provider_closed_after_each_request(self, mock_provider_class):
        client = TestClient(app)

        for _ in range(3):
            response = client.get("/v1/eligibility", params={"price": "100"})
            assert response.status_code == 200

        assert mock_provider_class.call_count == 3
        assert mock_provider_class.return_value.close.call_count == 3

    @patch("merchant_gateway.api.routes.ProviderClient")
    def test_provider_closed_when_request_fails(self, mock_provider_class, tmp_path):
        with patch("merchant_gateway.api.routes.settings",
                   Settings(fixtures_directory=str(tmp_path))):
            response = TestClient(app).post("/v1/orders", json=ORDER_BODY)

        assert response.status_code == 500
        mock_provider_class.return_value.close.assert_called_once()


class TestEligibilityMetrics:
    """One storefront check is one counted eligibility check."""

    def test_eligible_request_counted_once(self, tmp_path, make_client):
        write_fixtures(tmp_path)
        client = make_client(live=True)
        before = eligibility_count("eligible")

        response = client.get("/v1/eligibility", params={"price": "100"})

        assert response.json()["eligible"] is True
        assert eligibility_count("eligible") - before == 1

    def test_ineligible_request_counted_once(self, tmp_path, make_client):
        write_fixtures(tmp_path)
        client = make_client(live=True)
        before = eligibility_count("ineligible")

        client.get("/v1/eligibility", params={"price": "1000"})

        assert eligibility_count("ineligible") - before == 1
