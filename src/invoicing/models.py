"""
Data models for Zoho Invoice API requests and responses.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class InvoiceStatus(str, Enum):
    """Invoice status values reported by Zoho."""

    DRAFT = "draft"
    SENT = "sent"
    VIEWED = "viewed"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    OVERDUE = "overdue"
    VOID = "void"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str | None) -> "InvoiceStatus":
        try:
            return cls((value or "").lower())
        except ValueError:
            return cls.UNKNOWN


@dataclass
class ZohoContact:
    """
    Customer contact in Zoho.

    Attributes:
        contact_id: Zoho contact id (None before creation).
        contact_name: Display name.
        email: Primary contact email.
        company_name: Optional company.
        phone: Optional phone number.
    """

    contact_name: str
    email: str
    company_name: str = ""
    phone: str = ""
    contact_id: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """Request body for contact creation."""
        person: dict[str, Any] = {
            "first_name": self.contact_name.split(" ")[0],
            "email": self.email,
            "is_primary_contact": True,
        }
        if self.phone:
            person["phone"] = self.phone

        return {
            "contact_name": self.contact_name,
            "company_name": self.company_name or self.contact_name,
            "contact_type": "customer",
            "contact_persons": [person],
        }

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "ZohoContact":
        return cls(
            contact_id=str(data.get("contact_id", "")) or None,
            contact_name=data.get("contact_name", ""),
            email=data.get("email", ""),
            company_name=data.get("company_name", "") or "",
            phone=data.get("phone", "") or "",
        )


@dataclass
class InvoiceLineItem:
    """Line item on an invoice or estimate."""

    name: str
    description: str = ""
    rate: float = 0.0
    quantity: int = 1

    def to_payload(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "rate": self.rate,
            "quantity": self.quantity,
        }


@dataclass
class ZohoInvoice:
    """
    Invoice as returned by Zoho.

    Attributes:
        invoice_id: Zoho invoice id.
        invoice_number: Human-readable number (INV-...).
        status: Current status.
        total: Invoice total.
        balance: Outstanding balance.
        currency_code: Invoice currency.
        payment_url: Customer payment link, when Zoho provides one.
    """

    invoice_id: str
    invoice_number: str = ""
    customer_id: str = ""
    status: InvoiceStatus = InvoiceStatus.UNKNOWN
    date: str = ""
    due_date: str = ""
    total: float = 0.0
    balance: float = 0.0
    currency_code: str = "USD"
    payment_url: str | None = None

    @property
    def is_paid(self) -> bool:
        return self.status == InvoiceStatus.PAID

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "ZohoInvoice":
        payment_url = data.get("payment_url") or data.get("invoice_url") or None
        return cls(
            invoice_id=str(data.get("invoice_id", "")),
            invoice_number=data.get("invoice_number", ""),
            customer_id=str(data.get("customer_id", "")),
            status=InvoiceStatus.parse(data.get("status")),
            date=data.get("date", ""),
            due_date=data.get("due_date", ""),
            total=float(data.get("total", 0) or 0),
            balance=float(data.get("balance", 0) or 0),
            currency_code=data.get("currency_code", "USD") or "USD",
            payment_url=payment_url,
        )

    def to_status_dict(self) -> dict[str, Any]:
        """Status summary for API consumers."""
        result: dict[str, Any] = {
            "invoice_id": self.invoice_id,
            "invoice_number": self.invoice_number,
            "status": self.status.value,
            "is_paid": self.is_paid,
            "total": self.total,
            "balance": self.balance,
            "currency_code": self.currency_code,
        }
        if self.payment_url:
            result["payment_url"] = self.payment_url
        return result


@dataclass
class ZohoEstimate:
    """Estimate (quote) as returned by Zoho."""

    estimate_id: str
    estimate_number: str = ""
    customer_id: str = ""
    status: str = ""
    date: str = ""
    expiry_date: str = ""
    line_items: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "ZohoEstimate":
        return cls(
            estimate_id=str(data.get("estimate_id", "")),
            estimate_number=data.get("estimate_number", ""),
            customer_id=str(data.get("customer_id", "")),
            status=data.get("status", ""),
            date=data.get("date", ""),
            expiry_date=data.get("expiry_date", ""),
            line_items=list(data.get("line_items", [])),
        )
