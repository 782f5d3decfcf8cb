"""
Currency module.

Location-based currency detection, cached exchange rates with static
fallbacks, conversion through USD and locale-style display formatting.
"""

from src.currency.cache import Snapshot, SnapshotCache
from src.currency.converter import CurrencyConverter, round_amount
from src.currency.formatter import format_currency, get_currency_symbol, supported_currencies
from src.currency.location import DEFAULT_LOCATION, Location, LocationDetector
from src.currency.preferences import PreferenceResolver
from src.currency.rates import ExchangeRateProvider
from src.currency.tables import CurrencyTables, load_tables

__all__ = [
    "Snapshot",
    "SnapshotCache",
    "CurrencyConverter",
    "round_amount",
    "format_currency",
    "get_currency_symbol",
    "supported_currencies",
    "DEFAULT_LOCATION",
    "Location",
    "LocationDetector",
    "PreferenceResolver",
    "ExchangeRateProvider",
    "CurrencyTables",
    "load_tables",
]
