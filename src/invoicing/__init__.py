"""
Invoicing module.

Client for the Zoho Invoice API: customer contacts, invoices, estimates
and invoice status.
"""

from src.invoicing.models import (
    InvoiceLineItem,
    InvoiceStatus,
    ZohoContact,
    ZohoEstimate,
    ZohoInvoice,
)
from src.invoicing.zoho_client import (
    ZohoAuthError,
    ZohoClient,
    ZohoClientError,
    ZohoConfigError,
    ZohoNotFoundError,
)

__all__ = [
    "ZohoClient",
    "ZohoClientError",
    "ZohoAuthError",
    "ZohoConfigError",
    "ZohoNotFoundError",
    "InvoiceLineItem",
    "InvoiceStatus",
    "ZohoContact",
    "ZohoEstimate",
    "ZohoInvoice",
]
