"""
Services layer for the Mechinweb portal.

Contains business logic extracted from routes for better testability.
"""

from src.services.currency_service import CurrencyService
from src.services.health_service import HealthService
from src.services.purchase_service import PurchaseResult, PurchaseService
from src.services.quote_service import QuoteResult, QuoteService

__all__ = [
    "CurrencyService",
    "HealthService",
    "PurchaseResult",
    "PurchaseService",
    "QuoteResult",
    "QuoteService",
]
