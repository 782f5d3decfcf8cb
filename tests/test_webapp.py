"""
Tests for the FastAPI application.
"""

from types import MappingProxyType
from unittest.mock import Mock

import pytest
from fastapi import Request
from fastapi.testclient import TestClient

import src.webapp.main as main_module
from src.currency.location import Location
from src.invoicing.models import InvoiceStatus, ZohoContact, ZohoEstimate, ZohoInvoice
from src.invoicing.zoho_client import (
    ZohoClient,
    ZohoClientError,
    ZohoConfigError,
    ZohoNotFoundError,
)
from src.notifications.mailer import Mailer
from src.pricing.service_catalog import get_catalog
from src.services.currency_service import CurrencyService
from src.services.quote_service import QuoteService
from src.storage.client_store import ClientProfile
from src.storage.order_store import PAID, OrderStore
from src.utils.config_loader import AppConfig
from src.webapp import routes
from src.webapp.helpers import get_user_id, public_client_ip
from src.webapp.middleware import (
    RateLimitConfig,
    RateLimitState,
    get_client_ip,
    get_endpoint_limit,
)
from tests.fixtures.currency_mocks import FakeClock

FIXED_RATES = {"USD": 1.0, "INR": 83.25, "EUR": 0.92, "GBP": 0.79, "JPY": 149.5}


@pytest.fixture
def currency(app_config: AppConfig) -> CurrencyService:
    """Currency service with cached rates and an Indian visitor."""
    service = CurrencyService(app_config)
    service.rates.cache.set(MappingProxyType(dict(FIXED_RATES)))
    service.rates.source = "live"
    service.detector.cache.set(Location("IN", "India", "INR"))
    service.detector.source = "geoip"
    return service


@pytest.fixture
def zoho() -> Mock:
    zoho = Mock(spec=ZohoClient)
    zoho.missing_credentials.return_value = []
    zoho.create_contact.return_value = ZohoContact(
        contact_id="4600000000001", contact_name="Tom Baker", email="tom@example.com"
    )
    zoho.create_estimate.return_value = ZohoEstimate(
        estimate_id="4600000000201", estimate_number="EST-1700000000000"
    )
    zoho.create_invoice.return_value = ZohoInvoice(
        invoice_id="4600000000101",
        invoice_number="INV-1700000000000",
        status=InvoiceStatus.SENT,
        currency_code="INR",
        payment_url="https://zohosecurepay.com/invoice/abc",
    )
    return zoho


@pytest.fixture
def mailer() -> Mock:
    return Mock(spec=Mailer)


@pytest.fixture
def make_client(monkeypatch, app_config: AppConfig, currency: CurrencyService, zoho: Mock, mailer: Mock):
    """Build a test client for a given rate-limit setting."""

    def _make(rate_limit_enabled: bool = False) -> TestClient:
        app_config.server.rate_limit_enabled = rate_limit_enabled
        monkeypatch.setattr(main_module, "get_app_config", lambda: app_config)

        app = main_module.create_app()
        app.dependency_overrides[routes.get_app_config] = lambda: app_config
        app.dependency_overrides[routes.get_currency_service] = lambda: currency
        app.dependency_overrides[routes.get_zoho_client] = lambda: zoho
        app.dependency_overrides[routes.get_quote_service] = lambda: QuoteService(
            zoho, mailer, get_catalog()
        )
        return TestClient(app)

    return _make


@pytest.fixture
def client(make_client) -> TestClient:
    return make_client()


class TestCurrencyEndpoints:
    """Tests for /api/currency/*."""

    def test_location(self, client: TestClient) -> None:
        """Test the detected location."""
        response = client.get("/api/currency/location")

        assert response.status_code == 200
        assert response.json() == {
            "country_code": "IN",
            "country_name": "India",
            "currency": "INR",
            "source": "geoip",
        }

    def test_rates(self, client: TestClient) -> None:
        """Test all rates are returned with their source."""
        data = client.get("/api/currency/rates").json()

        assert data["base"] == "USD"
        assert data["rates"]["INR"] == 83.25
        assert data["source"] == "live"
        assert data["is_fallback"] is False

    def test_single_rate(self, client: TestClient) -> None:
        """Test one rate, case-insensitive."""
        data = client.get("/api/currency/rate/inr").json()
        assert data == {"currency": "INR", "rate": 83.25, "source": "live"}

    def test_rate_from_fallback_table(self, client: TestClient) -> None:
        """Test codes missing from live rates use the fallback table."""
        assert client.get("/api/currency/rate/THB").json()["rate"] == 35.2

    def test_unsupported_rate(self, client: TestClient) -> None:
        """Test unknown codes return UNSUPPORTED_CURRENCY."""
        response = client.get("/api/currency/rate/XYZ")

        assert response.status_code == 400
        assert response.json()["error"] == "UNSUPPORTED_CURRENCY"

    def test_convert(self, client: TestClient) -> None:
        """Test conversion with formatting."""
        data = client.get("/api/currency/convert", params={"amount": 100, "from": "USD", "to": "INR"}).json()

        assert data["converted"] == 8325.0
        assert data["formatted"] == "₹8,325.00"
        assert data["rate_source"] == "live"

    def test_convert_huge_amount(self, client: TestClient) -> None:
        """Test amounts past the default decimal precision still convert."""
        response = client.get("/api/currency/convert", params={"amount": "1e30", "to": "EUR"})

        assert response.status_code == 200
        assert response.json()["converted"] == pytest.approx(9.2e29)

    @pytest.mark.parametrize("amount", ["inf", "-inf", "nan"])
    def test_convert_non_finite_amount(self, client: TestClient, amount: str) -> None:
        """Test non-finite amounts are rejected as invalid input."""
        response = client.get("/api/currency/convert", params={"amount": amount, "to": "EUR"})
        assert response.status_code == 422

    def test_malformed_rate_code(self, client: TestClient) -> None:
        """Test codes that are not three letters fail validation."""
        assert client.get("/api/currency/rate/us").status_code == 422
        assert client.get("/api/currency/rate/US1").status_code == 422

    def test_convert_invalid_code(self, client: TestClient) -> None:
        """Test malformed codes are rejected."""
        response = client.get("/api/currency/convert", params={"amount": 1, "to": "RUPEES"})
        assert response.status_code == 422

    def test_format(self, client: TestClient) -> None:
        """Test formatting."""
        data = client.get("/api/currency/format", params={"amount": 1234.5, "currency": "eur"}).json()
        assert data["formatted"] == "1.234,50 €"

    def test_preference_anonymous(self, client: TestClient) -> None:
        """Test anonymous visitors get the detected currency."""
        data = client.get("/api/currency/preference").json()

        assert data["currency"] == "INR"
        assert data["user_id"] is None
        assert data["saved"] is False

    def test_update_preference(self, client: TestClient) -> None:
        """Test saving and reading back a preference."""
        response = client.put(
            "/api/currency/preference",
            json={"currency": "gbp"},
            headers={"X-User-Id": "u1"},
        )

        assert response.status_code == 200
        assert response.json()["currency"] == "GBP"

        data = client.get("/api/currency/preference", headers={"X-User-Id": "u1"}).json()
        assert data["currency"] == "GBP"
        assert data["auto_detect"] is False
        assert data["saved"] is True

    def test_update_preference_requires_user(self, client: TestClient) -> None:
        """Test anonymous saves are rejected."""
        response = client.put("/api/currency/preference", json={"currency": "EUR"})

        assert response.status_code == 401
        assert response.json()["error"] == "AUTHENTICATION_REQUIRED"


class TestServiceEndpoints:
    """Tests for /api/services*."""

    def test_list_in_preferred_currency(self, client: TestClient) -> None:
        """Test the catalog is priced in the visitor's currency."""
        data = client.get("/api/services").json()

        assert data["currency"] == "INR"
        assert len(data["services"]) == 9

    def test_get_service_explicit_currency(self, client: TestClient) -> None:
        """Test an explicit currency overrides the preference."""
        data = client.get("/api/services/hosting-support", params={"currency": "USD"}).json()

        assert data["currency"] == "USD"
        assert data["tiers"]["standard"]["price"] == 25.0
        assert data["tiers"]["standard"]["popular"] is True
        assert data["tiers"]["standard"]["formatted"] == "$25.00"

    def test_unknown_service(self, client: TestClient) -> None:
        """Test 404 for unknown services."""
        response = client.get("/api/services/web-design")

        assert response.status_code == 404
        assert response.json()["error"] == "SERVICE_NOT_FOUND"

    def test_tier_price(self, client: TestClient) -> None:
        """Test a single tier price."""
        data = client.get("/api/services/hosting-support/standard/price", params={"currency": "INR"}).json()

        assert data["amount"] == 2081.25
        assert data["formatted"] == "₹2,081.25"

    def test_unknown_tier(self, client: TestClient) -> None:
        """Test 404 for missing tiers."""
        response = client.get("/api/services/acronis-setup/enterprise/price")
        assert response.status_code == 404


class TestSubmissionEndpoints:
    """Tests for contact and quote submissions."""

    QUOTE = {
        "customer_name": "Tom Baker",
        "customer_email": "tom@example.com",
        "service_type": "ssl-setup",
        "project_details": "Three domains need HTTPS",
        "budget_range": "$50-$100",
        "timeline": "This week",
    }

    def test_contact(self, client: TestClient, mailer: Mock) -> None:
        """Test contact messages are accepted and emailed."""
        response = client.post(
            "/api/contact",
            json={"name": "Priya", "email": "priya@example.com", "subject": "Hi", "message": "Hello"},
        )

        assert response.status_code == 200
        assert response.json()["success"] is True
        contact = mailer.send_contact_emails.call_args.args[0]
        assert contact.email == "priya@example.com"

    def test_contact_invalid_email(self, client: TestClient, mailer: Mock) -> None:
        """Test invalid addresses are rejected."""
        response = client.post(
            "/api/contact",
            json={"name": "Priya", "email": "not-an-email", "subject": "Hi", "message": "Hello"},
        )

        assert response.status_code == 422
        mailer.send_contact_emails.assert_not_called()

    def test_quote(self, client: TestClient, zoho: Mock, mailer: Mock) -> None:
        """Test quotes create an estimate and send confirmations."""
        response = client.post("/api/quotes", json=self.QUOTE)

        assert response.status_code == 200
        assert response.json()["estimate_number"] == "EST-1700000000000"
        zoho.create_estimate.assert_called_once()
        mailer.send_quote_emails.assert_called_once()
        assert mailer.send_quote_emails.call_args.args[1:] == ("EST-1700000000000", "SSL & HTTPS Setup")

    def test_quote_unconfigured(self, client: TestClient, zoho: Mock, mailer: Mock) -> None:
        """Test missing Zoho credentials return 503."""
        zoho.require_configured.side_effect = ZohoConfigError("Set: ZOHO_CLIENT_ID")

        response = client.post("/api/quotes", json=self.QUOTE)

        assert response.status_code == 503
        assert response.json()["error"] == "CONFIGURATION_ERROR"
        mailer.send_quote_emails.assert_not_called()

    def test_quote_zoho_failure(self, client: TestClient, zoho: Mock) -> None:
        """Test Zoho failures return 502."""
        zoho.create_estimate.side_effect = ZohoClientError("HTTP 500")

        response = client.post("/api/quotes", json=self.QUOTE)

        assert response.status_code == 502
        assert response.json()["details"] == {"api": "Zoho Invoice"}


class TestInvoiceEndpoints:
    """Tests for invoice status."""

    def test_status(self, client: TestClient, zoho: Mock) -> None:
        """Test status with payment link."""
        zoho.get_invoice_status.return_value = {
            "invoice_id": "1",
            "invoice_number": "INV-1",
            "status": "sent",
            "is_paid": False,
            "total": 50.0,
            "balance": 50.0,
            "currency_code": "USD",
            "payment_url": "https://zohosecurepay.com/invoice/abc",
        }

        data = client.get("/api/invoices/1/status").json()

        assert data["payment_url"] == "https://zohosecurepay.com/invoice/abc"

    def test_status_not_found(self, client: TestClient, zoho: Mock) -> None:
        """Test unknown invoices return 404."""
        zoho.get_invoice_status.side_effect = ZohoNotFoundError("Not found")

        response = client.get("/api/invoices/missing/status")

        assert response.status_code == 404
        assert response.json()["details"] == {"invoice_id": "missing"}


class TestPurchaseEndpoints:
    """Tests for purchases, invoice listing and payment webhooks."""

    BUYER = {
        "customer_name": "Priya Sharma",
        "customer_email": "priya@example.com",
        "company_name": "Sharma Traders",
    }
    URL = "/api/services/ssl-setup/standard/purchase"

    @pytest.fixture(autouse=True)
    def no_webhook_token(self, monkeypatch) -> None:
        monkeypatch.delenv("ZOHO_WEBHOOK_TOKEN", raising=False)

    def test_purchase_in_preferred_currency(self, client: TestClient, zoho: Mock) -> None:
        """Test the invoice is raised in the visitor's currency."""
        response = client.post(self.URL, json=self.BUYER, headers={"X-User-Id": "u1"})

        assert response.status_code == 200
        data = response.json()
        assert data["payment_url"] == "https://zohosecurepay.com/invoice/abc"
        assert data["currency"] == "INR"
        assert data["amount"] == 832.5
        assert data["formatted"] == "₹832.50"
        assert zoho.create_invoice.call_args.kwargs["currency_code"] == "INR"

    def test_purchase_explicit_currency(self, client: TestClient, zoho: Mock) -> None:
        response = client.post(self.URL, json={**self.BUYER, "currency": "eur"}, headers={"X-User-Id": "u1"})

        assert response.json()["amount"] == 9.2
        assert zoho.create_invoice.call_args.args[1][0].rate == 9.2

    def test_purchase_records_order(self, client: TestClient, app_config: AppConfig) -> None:
        """Test the order is stored against the invoice."""
        data = client.post(self.URL, json=self.BUYER, headers={"X-User-Id": "u1"}).json()

        order = OrderStore(app_config.paths.orders_path).get(data["order_id"])

        assert order.client_id == "u1"
        assert order.zoho_invoice_id == "4600000000101"

    def test_purchase_requires_user(self, client: TestClient, zoho: Mock) -> None:
        response = client.post(self.URL, json=self.BUYER)

        assert response.status_code == 401
        zoho.create_invoice.assert_not_called()

    def test_purchase_unknown_tier(self, client: TestClient) -> None:
        response = client.post(
            "/api/services/acronis-setup/enterprise/purchase", json=self.BUYER, headers={"X-User-Id": "u1"}
        )

        assert response.status_code == 404
        assert response.json()["error"] == "SERVICE_NOT_FOUND"

    def test_purchase_invalid_email(self, client: TestClient) -> None:
        response = client.post(
            self.URL, json={**self.BUYER, "customer_email": "nope"}, headers={"X-User-Id": "u1"}
        )
        assert response.status_code == 422

    def test_purchase_unconfigured(self, client: TestClient, zoho: Mock) -> None:
        zoho.require_configured.side_effect = ZohoConfigError("Set: ZOHO_CLIENT_ID")

        response = client.post(self.URL, json=self.BUYER, headers={"X-User-Id": "u1"})

        assert response.status_code == 503

    def test_purchase_zoho_failure(self, client: TestClient, zoho: Mock) -> None:
        zoho.create_invoice.side_effect = ZohoClientError("HTTP 500")

        response = client.post(self.URL, json=self.BUYER, headers={"X-User-Id": "u1"})

        assert response.status_code == 502
        assert response.json()["error"] == "EXTERNAL_API_ERROR"

    def test_detected_currency_saved_after_first_purchase(self, client: TestClient) -> None:
        """Test a buyer's profile lets their detected currency be remembered."""
        before = client.get("/api/currency/preference", headers={"X-User-Id": "u7"}).json()
        assert before["saved"] is False

        client.post(self.URL, json={**self.BUYER, "currency": "USD"}, headers={"X-User-Id": "u7"})
        after = client.get("/api/currency/preference", headers={"X-User-Id": "u7"}).json()

        assert after == {"currency": "INR", "user_id": "u7", "auto_detect": True, "saved": True}

    def test_list_invoices(self, client: TestClient, zoho: Mock, currency: CurrencyService) -> None:
        """Test a client's invoices are listed through their Zoho contact."""
        currency.resolver.clients.save(
            ClientProfile(id="u1", name="Priya", email="priya@example.com", zoho_contact_id="46000042")
        )
        zoho.list_customer_invoices.return_value = [
            ZohoInvoice(invoice_id="1", invoice_number="INV-1", status=InvoiceStatus.PAID, total=7.0)
        ]

        data = client.get("/api/invoices", headers={"X-User-Id": "u1"}).json()

        assert [i["invoice_number"] for i in data["invoices"]] == ["INV-1"]
        assert data["invoices"][0]["is_paid"] is True
        zoho.list_customer_invoices.assert_called_once_with("46000042")

    def test_list_invoices_without_purchases(self, client: TestClient) -> None:
        assert client.get("/api/invoices", headers={"X-User-Id": "u1"}).json() == {"invoices": []}

    def test_list_invoices_requires_user(self, client: TestClient) -> None:
        assert client.get("/api/invoices").status_code == 401

    def test_webhook_marks_order_paid(self, client: TestClient, app_config: AppConfig) -> None:
        """Test a payment event completes the purchase's order."""
        order_id = client.post(self.URL, json=self.BUYER, headers={"X-User-Id": "u1"}).json()["order_id"]

        response = client.post(
            "/api/webhooks/zoho",
            json={
                "event_type": "invoice_payment_received",
                "data": {"invoice_id": 4600000000101, "invoice_number": "INV-1700000000000", "total": 832.5},
            },
        )

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Webhook processed successfully",
            "order_id": order_id,
            "order_status": PAID,
        }
        assert OrderStore(app_config.paths.orders_path).get(order_id).status == PAID

    def test_webhook_unhandled_event(self, client: TestClient) -> None:
        response = client.post(
            "/api/webhooks/zoho", json={"event_type": "estimate_accepted", "data": {"invoice_id": "1"}}
        )

        assert response.status_code == 200
        assert response.json()["order_id"] is None

    def test_webhook_token(self, client: TestClient, monkeypatch) -> None:
        """Test a configured token must match the webhook header."""
        monkeypatch.setenv("ZOHO_WEBHOOK_TOKEN", "s3cret")
        body = {"event_type": "invoice_created", "data": {"invoice_id": "1"}}

        assert client.post("/api/webhooks/zoho", json=body).status_code == 401
        assert client.post(
            "/api/webhooks/zoho", json=body, headers={"X-Zoho-Webhook-Token": "wrong"}
        ).status_code == 401
        assert client.post(
            "/api/webhooks/zoho", json=body, headers={"X-Zoho-Webhook-Token": "s3cret"}
        ).status_code == 200

    def test_webhook_requires_invoice(self, client: TestClient) -> None:
        response = client.post("/api/webhooks/zoho", json={"event_type": "invoice_created", "data": {}})
        assert response.status_code == 422


class TestHealthEndpoints:
    """Tests for health checks."""

    def test_health(self, client: TestClient) -> None:
        data = client.get("/health").json()
        assert "exchange_rates" in data["components"]

    def test_simple_and_ready(self, client: TestClient) -> None:
        assert client.get("/health/simple").json()["status"] == "ok"
        assert client.get("/health/ready").json()["status"] == "ready"


class TestRateLimiting:
    """Tests for the rate-limit middleware."""

    def test_form_limit(self, make_client, app_config: AppConfig) -> None:
        """Test form posts are limited per client."""
        client = make_client(rate_limit_enabled=True)
        body = {"name": "Priya", "email": "priya@example.com", "subject": "Hi", "message": "Hello"}

        statuses = [client.post("/api/contact", json=body).status_code for _ in range(app_config.server.form_rpm + 1)]

        assert statuses[:-1] == [200] * app_config.server.form_rpm
        assert statuses[-1] == 429

    def test_limit_response_body(self, make_client, app_config: AppConfig) -> None:
        """Test the 429 body and headers."""
        client = make_client(rate_limit_enabled=True)
        body = {"name": "Priya", "email": "priya@example.com", "subject": "Hi", "message": "Hello"}
        for _ in range(app_config.server.form_rpm):
            client.post("/api/contact", json=body)

        response = client.post("/api/contact", json=body)

        assert response.json()["error"] == "RATE_LIMITED"
        assert response.headers["Retry-After"] == "60"

    def test_clients_tracked_separately(self, make_client, app_config: AppConfig) -> None:
        """Test limits apply per forwarded address."""
        client = make_client(rate_limit_enabled=True)
        body = {"name": "Priya", "email": "priya@example.com", "subject": "Hi", "message": "Hello"}
        for _ in range(app_config.server.form_rpm):
            client.post("/api/contact", json=body, headers={"X-Forwarded-For": "81.2.69.142"})

        response = client.post("/api/contact", json=body, headers={"X-Forwarded-For": "81.2.69.143"})

        assert response.status_code == 200

    def test_health_exempt(self, make_client) -> None:
        """Test health checks are never limited."""
        client = make_client(rate_limit_enabled=True)
        assert all(client.get("/health/simple").status_code == 200 for _ in range(150))


class TestRequestHelpers:
    """Tests for request parsing helpers."""

    @staticmethod
    def _request(headers: dict, client_host: str = "testclient") -> Request:
        scope = {
            "type": "http",
            "method": "GET",
            "path": "/api/services",
            "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
            "client": (client_host, 50000),
        }
        return Request(scope)

    def test_forwarded_for_first_hop(self) -> None:
        request = self._request({"X-Forwarded-For": "81.2.69.142, 10.0.0.1"})
        assert get_client_ip(request) == "81.2.69.142"
        assert public_client_ip(request) == "81.2.69.142"

    @pytest.mark.parametrize("address", ["127.0.0.1", "10.1.2.3", "192.168.0.8", "testclient"])
    def test_non_public_addresses_ignored(self, address: str) -> None:
        assert public_client_ip(self._request({}, client_host=address)) is None

    def test_user_id_header(self) -> None:
        assert get_user_id(self._request({"X-User-Id": " u1 "})) == "u1"
        assert get_user_id(self._request({})) is None

    def test_endpoint_limits(self) -> None:
        config = RateLimitConfig(form_rpm=5, api_rpm=60, default_rpm=120)
        post = Request({**self._request({}).scope, "method": "POST", "path": "/api/quotes"})
        assert get_endpoint_limit(post, config) == 5
        purchase = Request({**self._request({}).scope, "method": "POST", "path": "/api/services/ssl-setup/basic/purchase"})
        assert get_endpoint_limit(purchase, config) == 5
        assert get_endpoint_limit(self._request({}), config) == 60


class TestRateLimitState:
    """Tests for the sliding request window."""

    def test_window_expires(self, clock: FakeClock) -> None:
        state = RateLimitState(clock)
        state.record_request("81.2.69.142", "POST /api/contact")
        state.record_request("81.2.69.142", "POST /api/contact")

        assert state.get_request_count("81.2.69.142", "POST /api/contact", 60) == 2
        clock.advance(61)
        assert state.get_request_count("81.2.69.142", "POST /api/contact", 60) == 0

    def test_cleanup_drops_idle_clients(self, clock: FakeClock) -> None:
        state = RateLimitState(clock)
        state.record_request("81.2.69.142", "GET /api/services")
        clock.advance(301)

        state.cleanup()

        assert "81.2.69.142" not in state.requests
