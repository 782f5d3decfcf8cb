"""
FastAPI routes for the Mechinweb portal web application.

Handles:
- Visitor location and display-currency resolution
- Exchange rates, conversion and formatting
- Localized service catalog pricing
- Contact form and quote requests
- Service purchases billed through Zoho invoices
- Invoice status polling and listing
- Zoho payment webhooks
"""

import hmac
import logging
import pathlib
from functools import lru_cache
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Header, Path, Query, Request

from src.invoicing.zoho_client import (
    ZohoClient,
    ZohoClientError,
    ZohoConfigError,
    ZohoNotFoundError,
)
from src.notifications.mailer import Mailer
from src.notifications.models import ContactMessage, QuoteRequest
from src.pricing.pricing_engine import PricingEngine
from src.pricing.service_catalog import CatalogError, get_catalog
from src.services.currency_service import CurrencyService
from src.services.health_service import HealthService
from src.services.purchase_service import Customer, PurchaseService
from src.services.quote_service import QuoteService
from src.storage.order_store import OrderStore
from src.utils.config_loader import AppConfig, get_env_var, load_config, load_env
from src.webapp.exceptions import (
    AppException,
    AuthenticationRequiredError,
    ConfigurationError,
    ExternalAPIError,
    NotFoundError,
    ServiceNotFoundError,
    UnsupportedCurrencyError,
)
from src.webapp.helpers import get_user_id, public_client_ip
from src.webapp.schemas import (
    CURRENCY_PATTERN,
    ContactForm,
    ConversionResponse,
    FormatResponse,
    InvoiceListResponse,
    InvoiceStatusResponse,
    LocationResponse,
    PreferenceResponse,
    PreferenceUpdate,
    PurchaseForm,
    PurchaseResponse,
    QuoteForm,
    RateResponse,
    RatesResponse,
    ServiceResponse,
    ServicesResponse,
    SubmissionResponse,
    TierPriceResponse,
    WebhookResponse,
    ZohoWebhookPayload,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# Dependency Injection
# ============================================================================

@lru_cache()
def get_app_config() -> AppConfig:
    """
    Get application config (cached).

    Use as a FastAPI dependency to avoid repeated config loading.
    Clear cache with get_app_config.cache_clear() if config changes.
    """
    load_env()
    return load_config()


@lru_cache()
def get_currency_service() -> CurrencyService:
    """Shared currency service, so rate and location caches live per process."""
    return CurrencyService(get_app_config())


@lru_cache()
def get_zoho_client() -> ZohoClient:
    """Shared Zoho client, so the access token is reused."""
    return ZohoClient(get_app_config().zoho)


def get_pricing_engine(
    currency: CurrencyService = Depends(get_currency_service),
) -> PricingEngine:
    return PricingEngine(get_catalog(), currency.converter, currency.tables)


def get_quote_service(
    config: AppConfig = Depends(get_app_config),
    zoho: ZohoClient = Depends(get_zoho_client),
) -> QuoteService:
    return QuoteService(zoho, Mailer(config.notifications), get_catalog())


@lru_cache()
def _order_store(path: pathlib.Path) -> OrderStore:
    """One store per file, so concurrent requests share its lock."""
    return OrderStore(path)


def get_purchase_service(
    config: AppConfig = Depends(get_app_config),
    zoho: ZohoClient = Depends(get_zoho_client),
    currency: CurrencyService = Depends(get_currency_service),
    engine: PricingEngine = Depends(get_pricing_engine),
) -> PurchaseService:
    """Purchase service sharing the resolver's client store."""
    return PurchaseService(zoho, engine, currency.resolver.clients, _order_store(config.paths.orders_path))


def get_health_service(
    config: AppConfig = Depends(get_app_config),
    currency: CurrencyService = Depends(get_currency_service),
    zoho: ZohoClient = Depends(get_zoho_client),
) -> HealthService:
    return HealthService(config, currency, zoho)


def _currency_param(code: str) -> str:
    return code.strip().upper()


def _resolve_display_currency(
    request: Request,
    currency: Optional[str],
    service: CurrencyService,
) -> str:
    """Explicit currency, else the visitor's preferred one."""
    if currency:
        return _currency_param(currency)
    return service.preferred_currency(get_user_id(request), public_client_ip(request))


# ============================================================================
# Currency
# ============================================================================

@router.get("/api/currency/location", response_model=LocationResponse)
def get_location(
    request: Request,
    currency: CurrencyService = Depends(get_currency_service),
) -> LocationResponse:
    """Detect the visitor's country and its currency."""
    location = currency.detect_location(public_client_ip(request))
    return LocationResponse(**location.to_dict(), source=currency.detector.source)


@router.get("/api/currency/rates", response_model=RatesResponse)
def get_rates(
    refresh: bool = Query(False, description="Drop cached rates and fetch again"),
    currency: CurrencyService = Depends(get_currency_service),
) -> RatesResponse:
    """All exchange rates against USD."""
    if refresh:
        logger.info("Refreshing exchange rates on request")
        rates = currency.rates.refresh_rates()
    else:
        rates = currency.rates.fetch_all_rates()

    info = currency.rates.get_rate_info()
    return RatesResponse(
        rates=dict(rates),
        source=info["source"],
        is_fallback=info["is_fallback"],
        age_seconds=info["age_seconds"],
    )


@router.get("/api/currency/rate/{code}", response_model=RateResponse)
def get_rate(
    code: str = Path(..., pattern=CURRENCY_PATTERN),
    currency: CurrencyService = Depends(get_currency_service),
) -> RateResponse:
    """Rate for one currency."""
    code = _currency_param(code)
    if code not in currency.rates.fetch_all_rates() and not currency.rates.validate_currency(code):
        raise UnsupportedCurrencyError(code)

    return RateResponse(currency=code, rate=currency.get_rate(code), source=currency.rates.source)


@router.get("/api/currency/convert", response_model=ConversionResponse)
def convert_amount(
    amount: float = Query(..., description="Amount to convert", allow_inf_nan=False),
    from_currency: str = Query("USD", alias="from", pattern=CURRENCY_PATTERN),
    to_currency: str = Query(..., alias="to", pattern=CURRENCY_PATTERN),
    currency: CurrencyService = Depends(get_currency_service),
) -> ConversionResponse:
    """Convert an amount between currencies and format the result."""
    result = currency.quote(amount, _currency_param(from_currency), _currency_param(to_currency))
    return ConversionResponse(**result)


@router.get("/api/currency/format", response_model=FormatResponse)
def format_amount(
    amount: float = Query(..., allow_inf_nan=False),
    currency_code: str = Query("USD", alias="currency", pattern=CURRENCY_PATTERN),
    currency: CurrencyService = Depends(get_currency_service),
) -> FormatResponse:
    """Format an amount for display."""
    code = _currency_param(currency_code)
    return FormatResponse(amount=amount, currency=code, formatted=currency.format(amount, code))


@router.get("/api/currency/preference", response_model=PreferenceResponse)
def get_preference(
    request: Request,
    currency: CurrencyService = Depends(get_currency_service),
) -> PreferenceResponse:
    """Resolve the visitor's display currency."""
    user_id = get_user_id(request)
    resolved = currency.preferred_currency(user_id, public_client_ip(request))

    saved = currency.resolver.preferences.get(user_id) if user_id else None
    return PreferenceResponse(
        currency=resolved,
        user_id=user_id,
        auto_detect=saved.auto_detect_currency if saved else None,
        saved=saved is not None,
    )


@router.put("/api/currency/preference", response_model=PreferenceResponse)
def update_preference(
    request: Request,
    body: PreferenceUpdate,
    currency: CurrencyService = Depends(get_currency_service),
) -> PreferenceResponse:
    """Save a signed-in user's display currency."""
    user_id = get_user_id(request)
    if not user_id:
        raise AuthenticationRequiredError("Sign in to save a currency preference")

    saved = currency.resolver.update_preference(user_id, body.currency, body.auto_detect)
    if saved is None:
        raise AppException("Failed to save currency preference", details={"user_id": user_id})

    return PreferenceResponse(
        currency=saved.preferred_currency,
        user_id=user_id,
        auto_detect=saved.auto_detect_currency,
        saved=True,
    )


# ============================================================================
# Service catalog
# ============================================================================

@router.get("/api/services", response_model=ServicesResponse)
def list_services(
    request: Request,
    currency: Optional[str] = Query(None, pattern=CURRENCY_PATTERN),
    service: CurrencyService = Depends(get_currency_service),
    engine: PricingEngine = Depends(get_pricing_engine),
) -> ServicesResponse:
    """Whole catalog priced in the requested or preferred currency."""
    code = _resolve_display_currency(request, currency, service)
    return ServicesResponse(currency=code, services=engine.get_all_localized_services(code))


@router.get("/api/services/{service_id}", response_model=ServiceResponse)
def get_service(
    service_id: str,
    request: Request,
    currency: Optional[str] = Query(None, pattern=CURRENCY_PATTERN),
    service: CurrencyService = Depends(get_currency_service),
    engine: PricingEngine = Depends(get_pricing_engine),
) -> ServiceResponse:
    """One service priced in the requested or preferred currency."""
    code = _resolve_display_currency(request, currency, service)
    try:
        return ServiceResponse(**engine.get_localized_pricing(service_id, code))
    except CatalogError as e:
        raise ServiceNotFoundError(str(e), details={"service_id": service_id})


@router.get("/api/services/{service_id}/{tier}/price", response_model=TierPriceResponse)
def get_tier_price(
    service_id: str,
    tier: str,
    request: Request,
    currency: Optional[str] = Query(None, pattern=CURRENCY_PATTERN),
    service: CurrencyService = Depends(get_currency_service),
    engine: PricingEngine = Depends(get_pricing_engine),
) -> TierPriceResponse:
    """One tier priced in the requested or preferred currency."""
    code = _resolve_display_currency(request, currency, service)
    try:
        return TierPriceResponse(**engine.get_localized_price(service_id, tier, code))
    except CatalogError as e:
        raise ServiceNotFoundError(str(e), details={"service_id": service_id, "tier": tier})


@router.post("/api/services/{service_id}/{tier}/purchase", response_model=PurchaseResponse)
def purchase_service(
    service_id: str,
    tier: str,
    form: PurchaseForm,
    request: Request,
    service: CurrencyService = Depends(get_currency_service),
    purchases: PurchaseService = Depends(get_purchase_service),
) -> PurchaseResponse:
    """Order a service tier and get the Zoho payment page for it."""
    user_id = get_user_id(request)
    if not user_id:
        raise AuthenticationRequiredError("Sign in to purchase a service")

    code = _resolve_display_currency(request, form.currency, service)
    customer = Customer(
        name=form.customer_name,
        email=form.customer_email,
        phone=form.phone,
        company=form.company_name,
    )

    try:
        result = purchases.purchase(user_id, service_id, tier, code, customer)
    except CatalogError as e:
        raise ServiceNotFoundError(str(e), details={"service_id": service_id, "tier": tier})
    except ZohoConfigError as e:
        raise ConfigurationError(str(e))
    except ZohoClientError as e:
        logger.error(f"Purchase of {service_id}/{tier} failed for user {user_id}: {e}")
        raise ExternalAPIError(f"Error creating invoice: {e}")

    return PurchaseResponse(**result.to_dict())


# ============================================================================
# Submissions
# ============================================================================

@router.post("/api/contact", response_model=SubmissionResponse)
def submit_contact(
    form: ContactForm,
    background_tasks: BackgroundTasks,
    quotes: QuoteService = Depends(get_quote_service),
) -> SubmissionResponse:
    """Accept a contact message; emails go out after the response."""
    contact = ContactMessage(
        name=form.name,
        email=form.email,
        subject=form.subject,
        message=form.message,
    )
    background_tasks.add_task(quotes.notify_contact, contact)
    return SubmissionResponse(success=True, message="Contact message sent successfully")


@router.post("/api/quotes", response_model=SubmissionResponse)
def submit_quote(
    form: QuoteForm,
    background_tasks: BackgroundTasks,
    quotes: QuoteService = Depends(get_quote_service),
) -> SubmissionResponse:
    """Create a Zoho estimate for a quote request and confirm by email."""
    quote = QuoteRequest(**form.model_dump())

    try:
        result = quotes.create_quote(quote)
    except ZohoConfigError as e:
        raise ConfigurationError(str(e))
    except ZohoClientError as e:
        logger.error(f"Quote request failed for {quote.customer_email}: {e}")
        raise ExternalAPIError(f"Error processing quote request: {e}")

    background_tasks.add_task(quotes.notify_quote, quote, result)
    return SubmissionResponse(
        success=True,
        message="Quote request processed successfully",
        estimate_number=result.estimate_number,
    )


# ============================================================================
# Invoices
# ============================================================================

@router.get("/api/invoices/{invoice_id}/status", response_model=InvoiceStatusResponse)
def get_invoice_status(
    invoice_id: str,
    zoho: ZohoClient = Depends(get_zoho_client),
) -> InvoiceStatusResponse:
    """Current status of a Zoho invoice."""
    try:
        return InvoiceStatusResponse(**zoho.get_invoice_status(invoice_id))
    except ZohoConfigError as e:
        raise ConfigurationError(str(e))
    except ZohoNotFoundError:
        raise NotFoundError(f"Invoice not found: {invoice_id}", details={"invoice_id": invoice_id})
    except ZohoClientError as e:
        raise ExternalAPIError(f"Error fetching invoice status: {e}")


@router.get("/api/invoices", response_model=InvoiceListResponse)
def list_invoices(
    request: Request,
    purchases: PurchaseService = Depends(get_purchase_service),
) -> InvoiceListResponse:
    """The signed-in client's Zoho invoices."""
    user_id = get_user_id(request)
    if not user_id:
        raise AuthenticationRequiredError("Sign in to view invoices")

    try:
        invoices = purchases.list_invoices(user_id)
    except ZohoConfigError as e:
        raise ConfigurationError(str(e))
    except ZohoClientError as e:
        raise ExternalAPIError(f"Error fetching invoices: {e}")

    return InvoiceListResponse(
        invoices=[InvoiceStatusResponse(**invoice.to_status_dict()) for invoice in invoices]
    )


@router.post("/api/webhooks/zoho", response_model=WebhookResponse)
def zoho_webhook(
    payload: ZohoWebhookPayload,
    token: Optional[str] = Header(None, alias="X-Zoho-Webhook-Token"),
    config: AppConfig = Depends(get_app_config),
    purchases: PurchaseService = Depends(get_purchase_service),
) -> WebhookResponse:
    """Apply a Zoho invoice event to the matching order."""
    expected = get_env_var(config.zoho.webhook_token_env)
    if expected and not hmac.compare_digest(token or "", expected):
        logger.warning(f"Rejected Zoho webhook '{payload.event_type}' with a bad token")
        raise AuthenticationRequiredError("Invalid webhook token")

    order = purchases.handle_webhook(payload.event_type, payload.data.model_dump())
    return WebhookResponse(
        success=True,
        message="Webhook processed successfully",
        order_id=order.id if order else None,
        order_status=order.status if order else None,
    )


# ============================================================================
# Health
# ============================================================================

@router.get("/health")
def health_check(health: HealthService = Depends(get_health_service)) -> dict:
    """Detailed health check endpoint for monitoring."""
    return health.get_full_health().to_dict()


@router.get("/health/simple")
def simple_health_check(health: HealthService = Depends(get_health_service)) -> dict:
    """Simple health check for load balancers."""
    return health.get_simple_health()


@router.get("/health/ready")
def readiness_check(health: HealthService = Depends(get_health_service)) -> dict:
    """Readiness check - verifies app can serve requests."""
    return {"status": "ready", "timestamp": health.get_simple_health()["timestamp"]}
