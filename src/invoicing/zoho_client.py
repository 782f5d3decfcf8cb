"""
Zoho Invoice API client implementation.

Wrapper for Zoho Invoice API calls including:
- OAuth2 refresh-token exchange with access-token caching
- Customer contacts (create, find by email)
- Invoices and estimates
- Invoice status polling
"""

import logging
import time
from datetime import datetime, timedelta
from typing import Any, Callable

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from src.invoicing.models import InvoiceLineItem, ZohoContact, ZohoEstimate, ZohoInvoice
from src.utils.config_loader import ZohoConfig, get_env_var

logger = logging.getLogger(__name__)

# Refresh this many seconds before Zoho says the token expires
TOKEN_EXPIRY_MARGIN = 60

ESTIMATE_TERMS = (
    "This estimate is valid for 30 days. "
    "Final pricing will be provided after project review."
)


class ZohoClientError(Exception):
    """Base exception for Zoho API errors."""

    pass


class ZohoAuthError(ZohoClientError):
    """Token exchange or authentication failed."""

    pass


class ZohoConfigError(ZohoClientError):
    """Zoho credentials are missing."""

    pass


class ZohoNotFoundError(ZohoClientError):
    """Requested Zoho resource does not exist."""

    pass


class ZohoClient:
    """
    Client for the Zoho Invoice REST API.

    Attributes:
        config: Zoho configuration section.
        session: Requests session with retry logic.
    """

    def __init__(
        self,
        config: ZohoConfig | None = None,
        session: requests.Session | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the client.

        Credentials are read from the environment variables named in config.

        Args:
            config: Zoho configuration.
            session: Optional pre-built session (tests inject fakes).
            clock: Time source in epoch seconds.
        """
        self.config = config or ZohoConfig()
        self.client_id = get_env_var(self.config.client_id_env, "") or ""
        self.client_secret = get_env_var(self.config.client_secret_env, "") or ""
        self.refresh_token = get_env_var(self.config.refresh_token_env, "") or ""
        self.organization_id = get_env_var(self.config.organization_id_env, "") or ""

        self.session = session or self._create_session()
        self._clock = clock

        self._access_token: str | None = None
        self._token_expires_at: float = 0

    def is_configured(self) -> bool:
        """Check that every credential is present."""
        return all([self.client_id, self.client_secret, self.refresh_token, self.organization_id])

    def missing_credentials(self) -> list[str]:
        """Names of unset credential environment variables."""
        pairs = [
            (self.config.client_id_env, self.client_id),
            (self.config.client_secret_env, self.client_secret),
            (self.config.refresh_token_env, self.refresh_token),
            (self.config.organization_id_env, self.organization_id),
        ]
        return [name for name, value in pairs if not value]

    def require_configured(self) -> None:
        """
        Raise if credentials are missing.

        Raises:
            ZohoConfigError: If any credential is not set.
        """
        missing = self.missing_credentials()
        if missing:
            raise ZohoConfigError(
                f"Zoho Invoice is not configured. Set: {', '.join(missing)}"
            )

    def _create_session(self) -> requests.Session:
        """
        Create a requests session with retry logic.

        Returns:
            requests.Session: Configured session object.
        """
        session = requests.Session()

        # POSTs are not retried: contact/estimate creation is not idempotent
        retry_strategy = Retry(
            total=3,
            backoff_factor=1.0,
            status_forcelist=[429, 502, 503, 504],
            allowed_methods=["GET"],
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("https://", adapter)

        return session

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def get_access_token(self, force_refresh: bool = False) -> str:
        """
        Get a valid access token, exchanging the refresh token when needed.

        Raises:
            ZohoConfigError: If credentials are missing.
            ZohoAuthError: If the exchange fails.
        """
        now = self._clock()
        if not force_refresh and self._access_token and now < self._token_expires_at:
            return self._access_token

        self.require_configured()

        params = {
            "refresh_token": self.refresh_token,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "grant_type": "refresh_token",
        }

        try:
            response = self.session.post(
                self.config.accounts_url, params=params, timeout=self.config.timeout
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            logger.error(f"Zoho token exchange failed: {e}")
            raise ZohoAuthError(f"Token exchange failed: {e}") from e
        except ValueError as e:
            raise ZohoAuthError(f"Invalid token response: {e}") from e

        token = data.get("access_token")
        if not token:
            raise ZohoAuthError(f"Token exchange rejected: {data.get('error', 'no access_token')}")

        expires_in = int(data.get("expires_in", 3600))
        self._access_token = token
        self._token_expires_at = now + max(expires_in - TOKEN_EXPIRY_MARGIN, 0)
        logger.info(f"Obtained Zoho access token (expires in {expires_in}s)")
        return token

    def _get_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Zoho-oauthtoken {self.get_access_token()}",
            "X-com-zoho-invoice-organizationid": self.organization_id,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def _make_request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Make an authenticated API request.

        Args:
            method: HTTP method (GET, POST, etc.).
            endpoint: API endpoint path.
            params: Query parameters.
            data: JSON request body.

        Returns:
            Dict[str, Any]: Parsed JSON response.

        Raises:
            ZohoAuthError: If authentication fails.
            ZohoNotFoundError: If the resource does not exist.
            ZohoClientError: For other API errors.
        """
        url = f"{self.config.base_url}{endpoint}"
        headers = self._get_headers()
        logger.debug(f"Zoho request: {method} {url}")

        try:
            response = self.session.request(
                method=method,
                url=url,
                headers=headers,
                params=params,
                json=data,
                timeout=self.config.timeout,
            )
        except requests.exceptions.Timeout as e:
            logger.error(f"Request timeout for {endpoint}: {e}")
            raise ZohoClientError(f"Request timeout for {endpoint}") from e
        except requests.exceptions.ConnectionError as e:
            logger.error(f"Connection error for {endpoint}: {e}")
            raise ZohoClientError(f"Network error for {endpoint}: {str(e)[:200]}") from e

        if response.status_code == 401:
            # Token revoked early; drop it so the next call re-exchanges
            self._access_token = None
            raise ZohoAuthError("Zoho rejected the access token")

        if response.status_code == 404:
            raise ZohoNotFoundError(f"Not found: {endpoint}")

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code >= 400:
            message = body.get("message") or response.text[:200] or f"HTTP {response.status_code}"
            logger.error(f"HTTP error for {endpoint}: {response.status_code} {message}")
            raise ZohoClientError(f"HTTP {response.status_code}: {message}")

        # Zoho signals application errors with a non-zero code
        if body.get("code", 0) != 0:
            raise ZohoClientError(f"Zoho error {body.get('code')}: {body.get('message', '')}")

        return body

    def _today(self) -> datetime:
        return datetime.fromtimestamp(self._clock())

    def _number(self, prefix: str) -> str:
        return f"{prefix}-{int(self._clock() * 1000)}"

    # ------------------------------------------------------------------
    # Contacts
    # ------------------------------------------------------------------

    def find_contact(self, email: str) -> ZohoContact | None:
        """Find a customer contact by email."""
        body = self._make_request("GET", "/contacts", params={"email": email})
        contacts = body.get("contacts") or []
        if not contacts:
            return None
        return ZohoContact.from_api_response(contacts[0])

    def create_contact(self, contact: ZohoContact) -> ZohoContact:
        """
        Create a customer contact, falling back to an existing one.

        If creation fails (typically because the contact already exists),
        the contact is looked up by email instead.

        Raises:
            ZohoClientError: If neither creation nor lookup succeeds.
        """
        try:
            body = self._make_request("POST", "/contacts", data=contact.to_payload())
            created = ZohoContact.from_api_response(body.get("contact", {}))
            logger.info(f"Created Zoho contact {created.contact_id} for {contact.email}")
            return created
        except ZohoAuthError:
            raise
        except ZohoClientError as e:
            logger.warning(f"Contact creation failed for {contact.email}, looking up instead: {e}")

        existing = self.find_contact(contact.email)
        if existing is None:
            raise ZohoClientError(f"Customer not found: {contact.email}")
        return existing

    # ------------------------------------------------------------------
    # Invoices and estimates
    # ------------------------------------------------------------------

    def create_invoice(
        self,
        customer_id: str,
        line_items: list[InvoiceLineItem],
        notes: str = "",
        currency_code: str | None = None,
    ) -> ZohoInvoice:
        """
        Create an invoice numbered INV-<epoch ms>, due after the payment terms.
        """
        today = self._today()
        payload: dict[str, Any] = {
            "customer_id": customer_id,
            "invoice_number": self._number("INV"),
            "date": today.strftime("%Y-%m-%d"),
            "due_date": (today + timedelta(days=self.config.payment_terms_days)).strftime("%Y-%m-%d"),
            "line_items": [item.to_payload() for item in line_items],
            "notes": notes,
        }
        if currency_code:
            payload["currency_code"] = currency_code

        body = self._make_request("POST", "/invoices", data=payload)
        invoice = ZohoInvoice.from_api_response(body.get("invoice", {}))
        logger.info(f"Created invoice {invoice.invoice_number} for customer {customer_id}")
        return invoice

    def create_estimate(
        self,
        customer_id: str,
        service_name: str,
        description: str,
        notes: str = "",
    ) -> ZohoEstimate:
        """
        Create a zero-rate estimate for manual pricing after review.
        """
        today = self._today()
        payload = {
            "customer_id": customer_id,
            "estimate_number": self._number("EST"),
            "date": today.strftime("%Y-%m-%d"),
            "expiry_date": (today + timedelta(days=self.config.payment_terms_days)).strftime("%Y-%m-%d"),
            "line_items": [
                InvoiceLineItem(name=service_name, description=description, rate=0, quantity=1).to_payload()
            ],
            "notes": notes,
            "terms": ESTIMATE_TERMS,
        }

        body = self._make_request("POST", "/estimates", data=payload)
        estimate = ZohoEstimate.from_api_response(body.get("estimate", {}))
        logger.info(f"Created estimate {estimate.estimate_number} for customer {customer_id}")
        return estimate

    def get_invoice(self, invoice_id: str) -> ZohoInvoice:
        """
        Fetch invoice details.

        Raises:
            ZohoNotFoundError: If the invoice does not exist.
        """
        body = self._make_request("GET", f"/invoices/{invoice_id}")
        return ZohoInvoice.from_api_response(body.get("invoice", {}))

    def get_invoice_status(self, invoice_id: str) -> dict[str, Any]:
        """Status summary for an invoice, with payment URL when present."""
        return self.get_invoice(invoice_id).to_status_dict()

    def list_customer_invoices(self, customer_id: str) -> list[ZohoInvoice]:
        """All invoices for a customer."""
        body = self._make_request("GET", "/invoices", params={"customer_id": customer_id})
        return [ZohoInvoice.from_api_response(i) for i in body.get("invoices") or []]
