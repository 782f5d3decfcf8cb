"""
Currency service.

Wires the currency components together from application config so the
web layer and the CLI share one set of caches.
"""

import logging
from typing import Any, Optional

from src.currency.converter import CurrencyConverter
from src.currency.formatter import format_currency
from src.currency.location import Location, LocationDetector
from src.currency.preferences import PreferenceResolver
from src.currency.rates import ExchangeRateProvider
from src.currency.tables import CurrencyTables, load_tables
from src.storage.client_store import ClientStore
from src.storage.preference_store import PreferenceStore
from src.utils.config_loader import AppConfig

logger = logging.getLogger(__name__)


class CurrencyService:
    """
    Facade over rates, location, conversion and preferences.

    Attributes:
        tables: Static currency tables.
        rates: Exchange rate provider.
        detector: Location detector.
        converter: Currency converter.
        resolver: Preference resolver.
    """

    def __init__(
        self,
        config: AppConfig,
        tables: Optional[CurrencyTables] = None,
        rates: Optional[ExchangeRateProvider] = None,
        detector: Optional[LocationDetector] = None,
        preferences: Optional[PreferenceStore] = None,
        clients: Optional[ClientStore] = None,
    ) -> None:
        self.config = config
        self.tables = tables or load_tables(config.currency.tables_dir)
        self.rates = rates or ExchangeRateProvider(config.rates, self.tables)
        self.detector = detector or LocationDetector(config.location, self.tables)
        self.converter = CurrencyConverter(self.rates)
        self.resolver = PreferenceResolver(
            self.detector,
            preferences or PreferenceStore(config.paths.preferences_path),
            clients or ClientStore(config.paths.clients_path),
        )

    def detect_location(self, client_ip: Optional[str] = None) -> Location:
        return self.detector.detect_location(client_ip)

    def get_rate(self, currency: str) -> float:
        return self.rates.get_rate(currency)

    def convert(self, amount: float, from_currency: str, to_currency: str) -> float:
        return self.converter.convert(amount, from_currency, to_currency)

    def format(self, amount: float, currency: str) -> str:
        return format_currency(amount, currency, self.tables)

    def preferred_currency(self, user_id: Optional[str] = None, client_ip: Optional[str] = None) -> str:
        return self.resolver.get_preferred_currency(user_id, client_ip)

    def quote(self, amount: float, from_currency: str, to_currency: str) -> dict[str, Any]:
        """Convert and format in one call."""
        converted = self.convert(amount, from_currency, to_currency)
        return {
            "amount": amount,
            "from_currency": from_currency,
            "to_currency": to_currency,
            "converted": converted,
            "formatted": self.format(converted, to_currency),
            "rate_source": self.rates.source,
        }
