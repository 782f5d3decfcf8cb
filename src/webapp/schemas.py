"""
Pydantic models for requests and responses in the web application.

Provides request validation with sensible defaults and constraints.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List, Dict, Any

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
CURRENCY_PATTERN = r"^[A-Za-z]{3}$"


# ============================================================================
# Request Models
# ============================================================================

class PreferenceUpdate(BaseModel):
    """Request model for saving a currency preference."""

    currency: str = Field(..., pattern=CURRENCY_PATTERN, description="ISO 4217 currency code")
    auto_detect: bool = Field(
        False,
        description="Keep following the detected location instead of the chosen currency"
    )

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v):
        return v.upper()


class ContactForm(BaseModel):
    """Contact form submission."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., pattern=EMAIL_PATTERN, max_length=320)
    subject: str = Field(..., min_length=1, max_length=300)
    message: str = Field(..., min_length=1, max_length=10000)

    @field_validator("name", "subject", "message")
    @classmethod
    def strip_text(cls, v):
        """Strip whitespace and reject blank values."""
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class QuoteForm(BaseModel):
    """Quote request submission."""

    model_config = ConfigDict(extra="ignore")

    customer_name: str = Field(..., min_length=1, max_length=200)
    customer_email: str = Field(..., pattern=EMAIL_PATTERN, max_length=320)
    company_name: str = Field("", max_length=200)
    phone: str = Field("", max_length=50)
    service_type: str = Field(..., min_length=1, description="Catalog service id or service name")
    project_details: str = Field(..., min_length=1, max_length=10000)
    budget_range: str = Field("", max_length=100)
    timeline: str = Field("", max_length=100)

    @field_validator("customer_name", "service_type", "project_details")
    @classmethod
    def strip_required(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class PurchaseForm(BaseModel):
    """Purchase of one service tier."""

    model_config = ConfigDict(extra="ignore")

    customer_name: str = Field(..., min_length=1, max_length=200)
    customer_email: str = Field(..., pattern=EMAIL_PATTERN, max_length=320)
    company_name: str = Field("", max_length=200)
    phone: str = Field("", max_length=50)
    currency: Optional[str] = Field(
        None,
        pattern=CURRENCY_PATTERN,
        description="Billing currency; the visitor's preferred currency when omitted"
    )

    @field_validator("customer_name")
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class ZohoWebhookData(BaseModel):
    """Invoice fields carried by a Zoho webhook."""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    invoice_id: str = Field(..., min_length=1)
    invoice_number: str = ""
    customer_id: str = ""
    total: float = 0.0
    status: str = ""
    payment_date: Optional[str] = None


class ZohoWebhookPayload(BaseModel):
    """Zoho invoice webhook body."""

    model_config = ConfigDict(extra="ignore")

    event_type: str
    data: ZohoWebhookData


# ============================================================================
# API Response Models
# ============================================================================

class LocationResponse(BaseModel):
    """Detected visitor location."""

    country_code: str
    country_name: str
    currency: str
    source: Optional[str] = None


class RatesResponse(BaseModel):
    """All exchange rates against USD."""

    base: str = "USD"
    rates: Dict[str, float]
    source: Optional[str] = None
    is_fallback: bool = False
    age_seconds: Optional[float] = None


class RateResponse(BaseModel):
    """Single exchange rate."""

    currency: str
    rate: float
    source: Optional[str] = None


class ConversionResponse(BaseModel):
    """Converted and formatted amount."""

    amount: float
    from_currency: str
    to_currency: str
    converted: float
    formatted: str
    rate_source: Optional[str] = None


class FormatResponse(BaseModel):
    """Formatted amount."""

    amount: float
    currency: str
    formatted: str


class PreferenceResponse(BaseModel):
    """Resolved or saved currency preference."""

    currency: str
    user_id: Optional[str] = None
    auto_detect: Optional[bool] = None
    saved: bool = False


class TierPrice(BaseModel):
    """Localized price of one tier."""

    name: str
    price: float
    price_usd: float
    formatted: str
    features: List[str] = Field(default_factory=list)
    popular: bool = False


class ServiceResponse(BaseModel):
    """Localized catalog service."""

    id: str
    name: str
    description: str
    currency: str
    tiers: Dict[str, TierPrice]


class ServicesResponse(BaseModel):
    """Localized catalog."""

    currency: str
    services: List[ServiceResponse]


class TierPriceResponse(BaseModel):
    """Localized price of one service tier."""

    service_id: str
    tier: str
    currency: str
    price_usd: float
    amount: float
    formatted: str


class SubmissionResponse(BaseModel):
    """Response for contact and quote submissions."""

    success: bool
    message: str
    estimate_number: Optional[str] = None


class InvoiceStatusResponse(BaseModel):
    """Zoho invoice status summary."""

    invoice_id: str
    invoice_number: str
    status: str
    is_paid: bool
    total: float
    balance: float
    currency_code: str
    payment_url: Optional[str] = None


class PurchaseResponse(BaseModel):
    """Created order and its hosted payment page."""

    order_id: str
    invoice_id: str
    invoice_number: str
    payment_url: Optional[str] = None
    service_id: str
    service_name: str
    tier: str
    amount: float
    currency: str
    formatted: str


class InvoiceListResponse(BaseModel):
    """A client's Zoho invoices."""

    invoices: List[InvoiceStatusResponse]


class WebhookResponse(BaseModel):
    """Acknowledgement of a Zoho webhook."""

    success: bool
    message: str
    order_id: Optional[str] = None
    order_status: Optional[str] = None


class ErrorResponse(BaseModel):
    """Error body returned for AppException subclasses."""

    error: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)
