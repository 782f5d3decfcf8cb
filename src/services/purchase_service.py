"""
Purchase Service.

Turns a catalog purchase into an order plus a Zoho invoice priced in the
client's currency, and keeps orders in step with Zoho payment events.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Any, Optional

from src.invoicing.models import InvoiceLineItem, ZohoContact, ZohoInvoice
from src.invoicing.zoho_client import ZohoClient, ZohoClientError
from src.pricing.pricing_engine import PricingEngine
from src.storage.client_store import ClientProfile, ClientStore
from src.storage.order_store import CANCELLED, FAILED, PAID, PENDING, Order, OrderStore

logger = logging.getLogger(__name__)

PAYMENT_RECEIVED = "invoice_payment_received"
INVOICE_CREATED = "invoice_created"
STATUS_CHANGED = "invoice_status_changed"

# Zoho invoice status -> order status; anything else leaves the order pending
ORDER_STATUS_BY_INVOICE_STATUS = {
    "paid": PAID,
    "void": CANCELLED,
    "cancelled": CANCELLED,
}


@dataclass
class Customer:
    """Billing contact given with a purchase."""

    name: str
    email: str
    phone: str = ""
    company: str = ""


@dataclass
class PurchaseResult:
    """Outcome of a purchase: the order and where to pay for it."""

    order_id: str
    invoice_id: str
    invoice_number: str
    payment_url: Optional[str]
    service_id: str
    service_name: str
    tier: str
    amount: float
    currency: str
    formatted: str

    def to_dict(self) -> dict:
        return asdict(self)


class PurchaseService:
    """
    Service for buying catalog tiers through Zoho invoices.

    Buyers are identified by their portal user id. The first purchase
    creates the Zoho contact and the client profile, later purchases
    reuse the stored contact id.
    """

    def __init__(
        self,
        zoho: ZohoClient,
        engine: PricingEngine,
        clients: ClientStore,
        orders: OrderStore,
    ):
        self.zoho = zoho
        self.engine = engine
        self.clients = clients
        self.orders = orders

    def ensure_client(self, user_id: str, customer: Customer) -> ClientProfile:
        """
        Client profile with a Zoho contact id, creating either as needed.

        Raises:
            ZohoClientError: If the contact cannot be created or found.
        """
        profile = self.clients.get(user_id)
        if profile and profile.zoho_contact_id:
            return profile

        contact = self.zoho.create_contact(
            ZohoContact(
                contact_name=customer.name,
                email=customer.email,
                company_name=customer.company,
                phone=customer.phone,
            )
        )
        if not contact.contact_id:
            raise ZohoClientError(f"Zoho returned no contact id for {customer.email}")

        profile = ClientProfile(
            id=user_id,
            name=customer.name,
            email=customer.email,
            phone=customer.phone,
            company=customer.company,
            zoho_contact_id=contact.contact_id,
        )
        return self.clients.save(profile)

    def purchase(
        self,
        user_id: str,
        service_id: str,
        tier: str,
        currency: str,
        customer: Customer,
    ) -> PurchaseResult:
        """
        Create an order and its invoice for one service tier.

        The invoice line carries the localized price, so the hosted
        payment page charges the client in ``currency``.

        Raises:
            CatalogError: If the service or tier does not exist.
            ZohoClientError: If Zoho is unconfigured or a call fails.
        """
        price = self.engine.get_localized_price(service_id, tier, currency)
        service = self.engine.catalog.require_service(service_id)
        tier_name = service.get_tier(tier).name

        self.zoho.require_configured()
        profile = self.ensure_client(user_id, customer)

        order = self.orders.save(
            Order(
                client_id=user_id,
                service_id=service_id,
                tier=tier,
                currency=currency,
                amount=price["amount"],
                amount_usd=price["price_usd"],
            )
        )
        logger.info(f"Order {order.id}: {service_id}/{tier} for {price['formatted']} ({user_id})")

        item = InvoiceLineItem(
            name=f"{service.name} ({tier_name})",
            description=service.description,
            rate=price["amount"],
            quantity=1,
        )
        notes = f"Order ID: {order.id}\nCurrency: {currency}\nService delivery within 24-48 hours"

        try:
            invoice = self.zoho.create_invoice(
                profile.zoho_contact_id or "",
                [item],
                notes=notes,
                currency_code=currency,
            )
        except ZohoClientError:
            order.status = FAILED
            self.orders.save(order)
            raise

        order.zoho_invoice_id = invoice.invoice_id
        order.invoice_number = invoice.invoice_number
        order.payment_url = invoice.payment_url
        self.orders.save(order)

        return PurchaseResult(
            order_id=order.id,
            invoice_id=invoice.invoice_id,
            invoice_number=invoice.invoice_number,
            payment_url=invoice.payment_url,
            service_id=service_id,
            service_name=service.name,
            tier=tier,
            amount=price["amount"],
            currency=currency,
            formatted=price["formatted"],
        )

    def list_invoices(self, user_id: str) -> list[ZohoInvoice]:
        """A client's Zoho invoices; empty until their first purchase."""
        profile = self.clients.get(user_id)
        if profile is None or not profile.zoho_contact_id:
            return []
        return self.zoho.list_customer_invoices(profile.zoho_contact_id)

    def handle_webhook(self, event_type: str, data: dict[str, Any]) -> Optional[Order]:
        """
        Apply a Zoho invoice event to the matching order.

        Returns:
            The updated order, or None for events that change nothing.
        """
        invoice_id = str(data.get("invoice_id") or "")

        if event_type == PAYMENT_RECEIVED:
            logger.info(f"Payment received for invoice {data.get('invoice_number') or invoice_id}")
            return self.orders.update_status(invoice_id, PAID)

        if event_type == STATUS_CHANGED:
            status = str(data.get("status") or "").lower()
            return self.orders.update_status(invoice_id, ORDER_STATUS_BY_INVOICE_STATUS.get(status, PENDING))

        if event_type == INVOICE_CREATED:
            logger.info(f"Invoice created: {invoice_id}")
        else:
            logger.info(f"Unhandled webhook event: {event_type}")
        return None
