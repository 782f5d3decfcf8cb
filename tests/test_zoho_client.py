"""
Tests for the Zoho Invoice client.
"""

import json
from datetime import date

import pytest
import responses

from src.invoicing.models import InvoiceLineItem, InvoiceStatus, ZohoContact
from src.invoicing.zoho_client import (
    ZohoAuthError,
    ZohoClient,
    ZohoClientError,
    ZohoConfigError,
    ZohoNotFoundError,
)
from tests.fixtures.currency_mocks import FakeClock
from tests.fixtures.zoho_mocks import (
    SAMPLE_CONTACT,
    SAMPLE_ESTIMATE,
    SAMPLE_INVOICE,
    ZOHO_API_URL,
    ZOHO_ENV,
    ZOHO_TOKEN_URL,
    add_api_mock,
    add_token_mock,
    set_zoho_env,
)


@pytest.fixture
def client(monkeypatch, clock: FakeClock) -> ZohoClient:
    """Fully configured client on a fake clock."""
    set_zoho_env(monkeypatch)
    return ZohoClient(clock=clock)


class TestZohoConfiguration:
    """Tests for credential handling."""

    def test_configured_from_env(self, client: ZohoClient) -> None:
        """Test credentials come from the environment."""
        assert client.is_configured() is True
        assert client.organization_id == ZOHO_ENV["ZOHO_ORGANIZATION_ID"]
        assert client.missing_credentials() == []

    def test_missing_credentials(self, monkeypatch) -> None:
        """Test unset credentials are reported by variable name."""
        for key in ZOHO_ENV:
            monkeypatch.delenv(key, raising=False)
        monkeypatch.setenv("ZOHO_CLIENT_ID", "only-this")

        client = ZohoClient()

        assert client.is_configured() is False
        assert client.missing_credentials() == [
            "ZOHO_CLIENT_SECRET",
            "ZOHO_REFRESH_TOKEN",
            "ZOHO_ORGANIZATION_ID",
        ]
        with pytest.raises(ZohoConfigError, match="ZOHO_REFRESH_TOKEN"):
            client.require_configured()

    def test_token_requires_credentials(self, monkeypatch) -> None:
        """Test no exchange is attempted without credentials."""
        for key in ZOHO_ENV:
            monkeypatch.delenv(key, raising=False)

        with pytest.raises(ZohoConfigError):
            ZohoClient().get_access_token()


class TestZohoAuthentication:
    """Tests for the refresh-token exchange."""

    @responses.activate
    def test_exchange_sends_refresh_grant(self, client: ZohoClient) -> None:
        """Test the exchange request parameters."""
        add_token_mock("access-1")

        assert client.get_access_token() == "access-1"

        request = responses.calls[0].request
        assert request.url.startswith(ZOHO_TOKEN_URL)
        assert "grant_type=refresh_token" in request.url
        assert "refresh_token=test-refresh-token" in request.url

    @responses.activate
    def test_token_cached_until_margin(self, client: ZohoClient, clock: FakeClock) -> None:
        """Test the token is reused until 60 seconds before expiry."""
        add_token_mock("access-1", expires_in=3600)
        add_token_mock("access-2", expires_in=3600)

        assert client.get_access_token() == "access-1"
        clock.advance(3539)
        assert client.get_access_token() == "access-1"
        assert len(responses.calls) == 1

        clock.advance(1)
        assert client.get_access_token() == "access-2"
        assert len(responses.calls) == 2

    @responses.activate
    def test_force_refresh(self, client: ZohoClient) -> None:
        """Test a forced refresh always exchanges."""
        add_token_mock("access-1")
        add_token_mock("access-2")

        client.get_access_token()
        assert client.get_access_token(force_refresh=True) == "access-2"

    @responses.activate
    def test_exchange_http_error(self, client: ZohoClient) -> None:
        """Test a failed exchange raises ZohoAuthError."""
        add_token_mock(status=400)

        with pytest.raises(ZohoAuthError):
            client.get_access_token()

    @responses.activate
    def test_exchange_without_token(self, client: ZohoClient) -> None:
        """Test a 200 without access_token is rejected."""
        responses.add(responses.POST, ZOHO_TOKEN_URL, json={"error": "invalid_code"}, status=200)

        with pytest.raises(ZohoAuthError, match="invalid_code"):
            client.get_access_token()

    @responses.activate
    def test_request_headers(self, client: ZohoClient) -> None:
        """Test API calls carry the token and organization."""
        add_token_mock("access-1")
        add_api_mock(responses.GET, "/invoices/4600000000101", {"invoice": SAMPLE_INVOICE})

        client.get_invoice("4600000000101")

        headers = responses.calls[1].request.headers
        assert headers["Authorization"] == "Zoho-oauthtoken access-1"
        assert headers["X-com-zoho-invoice-organizationid"] == "60012345"

    @responses.activate
    def test_unauthorized_clears_token(self, client: ZohoClient) -> None:
        """Test a 401 forces a new exchange on the next call."""
        add_token_mock("access-1")
        add_api_mock(responses.GET, "/invoices/1", status=401)
        add_token_mock("access-2")
        add_api_mock(responses.GET, "/invoices/1", {"invoice": SAMPLE_INVOICE})

        with pytest.raises(ZohoAuthError):
            client.get_invoice("1")
        client.get_invoice("1")

        assert responses.calls[3].request.headers["Authorization"] == "Zoho-oauthtoken access-2"


class TestZohoContacts:
    """Tests for contact creation and lookup."""

    @responses.activate
    def test_create_contact(self, client: ZohoClient) -> None:
        """Test a new contact is created."""
        add_token_mock()
        add_api_mock(responses.POST, "/contacts", {"contact": SAMPLE_CONTACT})

        contact = client.create_contact(
            ZohoContact(contact_name="Priya Sharma", email="priya@example.com", company_name="Sharma Traders")
        )

        assert contact.contact_id == "4600000000001"
        body = json.loads(responses.calls[1].request.body)
        assert body["contact_type"] == "customer"
        assert body["contact_persons"][0]["email"] == "priya@example.com"
        assert body["contact_persons"][0]["first_name"] == "Priya"

    @responses.activate
    def test_create_contact_falls_back_to_lookup(self, client: ZohoClient) -> None:
        """Test an existing contact is found by email when creation fails."""
        add_token_mock()
        responses.add(
            responses.POST,
            f"{ZOHO_API_URL}/contacts",
            json={"code": 3062, "message": "Contact already exists"},
            status=400,
        )
        add_api_mock(responses.GET, "/contacts", {"contacts": [SAMPLE_CONTACT]})

        contact = client.create_contact(ZohoContact(contact_name="Priya Sharma", email="priya@example.com"))

        assert contact.contact_id == "4600000000001"
        assert "email=priya%40example.com" in responses.calls[2].request.url

    @responses.activate
    def test_create_contact_not_found(self, client: ZohoClient) -> None:
        """Test failure when neither creation nor lookup works."""
        add_token_mock()
        responses.add(
            responses.POST,
            f"{ZOHO_API_URL}/contacts",
            json={"code": 3062, "message": "Contact already exists"},
            status=400,
        )
        add_api_mock(responses.GET, "/contacts", {"contacts": []})

        with pytest.raises(ZohoClientError, match="Customer not found"):
            client.create_contact(ZohoContact(contact_name="Priya Sharma", email="priya@example.com"))

    @responses.activate
    def test_application_error_code(self, client: ZohoClient) -> None:
        """Test a non-zero code on a 200 is an error."""
        add_token_mock()
        responses.add(
            responses.GET,
            f"{ZOHO_API_URL}/contacts",
            json={"code": 57, "message": "You are not authorized"},
            status=200,
        )

        with pytest.raises(ZohoClientError, match="57"):
            client.find_contact("priya@example.com")


class TestZohoInvoices:
    """Tests for invoices and estimates."""

    @responses.activate
    def test_create_invoice(self, client: ZohoClient) -> None:
        """Test invoice numbering and due date."""
        add_token_mock()
        add_api_mock(responses.POST, "/invoices", {"invoice": SAMPLE_INVOICE})

        invoice = client.create_invoice(
            "4600000000001",
            [InvoiceLineItem(name="Hosting Support", description="Standard", rate=25, quantity=2)],
            notes="Thanks",
            currency_code="USD",
        )

        assert invoice.invoice_number == "INV-1700000000000"
        body = json.loads(responses.calls[1].request.body)
        assert body["invoice_number"] == "INV-1700000000000"
        assert body["currency_code"] == "USD"
        assert body["line_items"][0] == {
            "name": "Hosting Support",
            "description": "Standard",
            "rate": 25,
            "quantity": 2,
        }
        issued = date.fromisoformat(body["date"])
        due = date.fromisoformat(body["due_date"])
        assert (due - issued).days == 30

    @responses.activate
    def test_create_estimate(self, client: ZohoClient) -> None:
        """Test estimates are zero-rate with terms and an expiry."""
        add_token_mock()
        add_api_mock(responses.POST, "/estimates", {"estimate": SAMPLE_ESTIMATE})

        estimate = client.create_estimate("4600000000001", "SSL & HTTPS Setup", "Need SSL", notes="Budget: 100")

        assert estimate.estimate_number == "EST-1700000000000"
        body = json.loads(responses.calls[1].request.body)
        assert body["estimate_number"] == "EST-1700000000000"
        assert body["line_items"][0]["rate"] == 0
        assert body["line_items"][0]["name"] == "SSL & HTTPS Setup"
        assert "valid for 30 days" in body["terms"]
        issued = date.fromisoformat(body["date"])
        assert (date.fromisoformat(body["expiry_date"]) - issued).days == 30

    @responses.activate
    def test_invoice_status(self, client: ZohoClient) -> None:
        """Test the status summary includes the payment link."""
        add_token_mock()
        add_api_mock(responses.GET, "/invoices/4600000000101", {"invoice": SAMPLE_INVOICE})

        status = client.get_invoice_status("4600000000101")

        assert status["status"] == "sent"
        assert status["is_paid"] is False
        assert status["payment_url"] == "https://zohosecurepay.com/invoice/abc"

    @responses.activate
    def test_paid_invoice_without_link(self, client: ZohoClient) -> None:
        """Test paid invoices without a link omit payment_url."""
        add_token_mock()
        paid = {**SAMPLE_INVOICE, "status": "paid", "balance": 0}
        del paid["invoice_url"]
        add_api_mock(responses.GET, "/invoices/4600000000101", {"invoice": paid})

        status = client.get_invoice_status("4600000000101")

        assert status["is_paid"] is True
        assert "payment_url" not in status

    @responses.activate
    def test_invoice_not_found(self, client: ZohoClient) -> None:
        """Test 404 raises ZohoNotFoundError."""
        add_token_mock()
        add_api_mock(responses.GET, "/invoices/missing", status=404)

        with pytest.raises(ZohoNotFoundError):
            client.get_invoice("missing")

    @responses.activate
    def test_server_error(self, client: ZohoClient) -> None:
        """Test HTTP errors raise ZohoClientError with the message."""
        add_token_mock()
        responses.add(
            responses.POST,
            f"{ZOHO_API_URL}/invoices",
            json={"code": 1001, "message": "Invalid customer"},
            status=400,
        )

        with pytest.raises(ZohoClientError, match="Invalid customer"):
            client.create_invoice("bad", [])

    @responses.activate
    def test_list_customer_invoices(self, client: ZohoClient) -> None:
        """Test listing a customer's invoices."""
        add_token_mock()
        add_api_mock(
            responses.GET,
            "/invoices",
            {"invoices": [SAMPLE_INVOICE, {**SAMPLE_INVOICE, "invoice_id": "2", "status": "overdue"}]},
        )

        invoices = client.list_customer_invoices("4600000000001")

        assert [i.status for i in invoices] == [InvoiceStatus.SENT, InvoiceStatus.OVERDUE]
        assert "customer_id=4600000000001" in responses.calls[1].request.url
