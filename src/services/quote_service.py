"""
Quote Service.

Handles customer submissions:
- Quote requests become Zoho estimates, followed by confirmation emails
- Contact messages are forwarded by email only
"""

import logging
from dataclasses import dataclass

from src.invoicing.models import ZohoContact
from src.invoicing.zoho_client import ZohoClient
from src.notifications.mailer import Mailer
from src.notifications.models import ContactMessage, QuoteRequest
from src.pricing.service_catalog import ServiceCatalog

logger = logging.getLogger(__name__)


@dataclass
class QuoteResult:
    """Outcome of a quote request."""

    estimate_id: str
    estimate_number: str
    customer_id: str
    service_name: str


class QuoteService:
    """
    Service for turning quote requests into Zoho estimates.

    Emails are sent separately via ``notify_quote`` so the web layer can
    schedule them after the response.
    """

    def __init__(self, zoho: ZohoClient, mailer: Mailer, catalog: ServiceCatalog):
        self.zoho = zoho
        self.mailer = mailer
        self.catalog = catalog
        self.logger = logging.getLogger(f"{__name__}.QuoteService")

    def service_name(self, service_type: str) -> str:
        """Catalog name for a service id, or the submitted text as-is."""
        return self.catalog.service_name(service_type, default=service_type)

    def create_quote(self, quote: QuoteRequest) -> QuoteResult:
        """
        Create (or reuse) the customer contact and a zero-rate estimate.

        Raises:
            ZohoClientError: If Zoho is unconfigured or a call fails.
        """
        self.zoho.require_configured()
        self.logger.info(f"Processing quote request from {quote.customer_email}")

        contact = self.zoho.create_contact(
            ZohoContact(
                contact_name=quote.customer_name,
                email=quote.customer_email,
                company_name=quote.company_name,
                phone=quote.phone,
            )
        )

        service_name = self.service_name(quote.service_type)
        estimate = self.zoho.create_estimate(
            customer_id=contact.contact_id or "",
            service_name=service_name,
            description=quote.project_details,
            notes=quote.estimate_notes(),
        )

        return QuoteResult(
            estimate_id=estimate.estimate_id,
            estimate_number=estimate.estimate_number,
            customer_id=contact.contact_id or "",
            service_name=service_name,
        )

    def notify_quote(self, quote: QuoteRequest, result: QuoteResult) -> int:
        """Send the quote confirmation and business notification."""
        return self.mailer.send_quote_emails(quote, result.estimate_number, result.service_name)

    def notify_contact(self, contact: ContactMessage) -> int:
        """Send the contact confirmation and business notification."""
        self.logger.info(f"Forwarding contact message from {contact.email}")
        return self.mailer.send_contact_emails(contact)
