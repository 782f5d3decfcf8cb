"""
Pricing engine module.

Localizes catalog prices (defined in USD) into a visitor's display currency.

Formula: P_local = round(P_usd × R_target, decimals(target))
Where:
- P_usd = catalog tier price in USD
- R_target = USD to target exchange rate
- decimals = 0 for zero-decimal currencies (JPY, KRW), else 2
"""

import logging
from typing import Any, Dict, List, Optional

from src.currency.converter import CurrencyConverter, round_amount
from src.currency.formatter import decimals_for, format_currency
from src.currency.tables import CurrencyTables
from src.pricing.service_catalog import CatalogError, ServiceCatalog, ServicePricing

logger = logging.getLogger(__name__)


class PricingEngine:
    """
    Engine for localizing catalog prices.

    Attributes:
        catalog: Service catalog with USD prices.
        converter: Currency converter.
        tables: Currency tables used for formatting.
    """

    def __init__(
        self,
        catalog: ServiceCatalog,
        converter: CurrencyConverter,
        tables: Optional[CurrencyTables] = None,
    ) -> None:
        self.catalog = catalog
        self.converter = converter
        self.tables = tables

    def localize_amount(self, price_usd: float, currency: str) -> float:
        """
        Convert a USD amount and round to the currency's precision.

        Args:
            price_usd: Price in USD.
            currency: Target currency code.

        Returns:
            float: Localized amount.
        """
        converted = self.converter.convert_from_usd(price_usd, currency)
        return round_amount(converted, decimals_for(currency, self.tables))

    def get_localized_price(self, service_id: str, tier: str, currency: str) -> Dict[str, Any]:
        """
        Price a single service tier in the given currency.

        Raises:
            CatalogError: If the service or tier does not exist.
        """
        service = self.catalog.require_service(service_id)
        pricing_tier = service.get_tier(tier)

        amount = self.localize_amount(pricing_tier.price, currency)
        return {
            "service_id": service_id,
            "tier": tier,
            "currency": currency,
            "price_usd": pricing_tier.price,
            "amount": amount,
            "formatted": format_currency(amount, currency, self.tables),
        }

    def _localize_service(self, service: ServicePricing, currency: str) -> Dict[str, Any]:
        tiers = {}
        for key, pricing_tier in service.tiers.items():
            amount = self.localize_amount(pricing_tier.price, currency)
            tiers[key] = {
                **pricing_tier.to_dict(),
                "price_usd": pricing_tier.price,
                "price": amount,
                "formatted": format_currency(amount, currency, self.tables),
            }

        return {
            "id": service.id,
            "name": service.name,
            "description": service.description,
            "currency": currency,
            "tiers": tiers,
        }

    def get_localized_pricing(self, service_id: str, currency: str) -> Dict[str, Any]:
        """
        Price every tier of a service in the given currency.

        Raises:
            CatalogError: If the service does not exist.
        """
        return self._localize_service(self.catalog.require_service(service_id), currency)

    def get_all_localized_services(self, currency: str) -> List[Dict[str, Any]]:
        """Price the whole catalog in the given currency."""
        services = [self._localize_service(s, currency) for s in self.catalog.all_services()]
        logger.debug(f"Localized {len(services)} services into {currency}")
        return services


__all__ = ["PricingEngine", "CatalogError"]
