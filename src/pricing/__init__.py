"""
Pricing module.

Service catalog with USD tier prices and localization of those prices
into the visitor's display currency.
"""

from src.pricing.pricing_engine import PricingEngine
from src.pricing.service_catalog import (
    CatalogError,
    PricingTier,
    ServiceCatalog,
    ServicePricing,
    get_catalog,
)

__all__ = [
    "PricingEngine",
    "CatalogError",
    "PricingTier",
    "ServiceCatalog",
    "ServicePricing",
    "get_catalog",
]
