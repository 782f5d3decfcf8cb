"""
Exchange rate provider.

Retrieves USD-based exchange rates from the live rate service with a
15 minute cache, falling back to the static rate table when the service
is unreachable or returns something unusable.
"""

import logging
import time
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional

import requests

from src.currency.cache import SnapshotCache
from src.currency.tables import DEFAULT_CURRENCY, CurrencyTables, load_tables
from src.utils.config_loader import RatesConfig
from src.utils.logging_config import log_event

logger = logging.getLogger(__name__)


class RateFetchError(Exception):
    """Exception raised for exchange rate retrieval errors."""
    pass


class ExchangeRateProvider:
    """
    Provider for "units per 1 USD" exchange rates.

    Supports:
    - Live rates from the configured rate service
    - Fallback to the static rate table
    - Time-boxed caching of whichever of the two was used last

    Attributes:
        config: Rate service settings.
        tables: Static currency tables.
        cache: Snapshot cache holding the current rate mapping.
        source: Source of the cached rates ("live" or "fallback").
    """

    def __init__(
        self,
        config: Optional[RatesConfig] = None,
        tables: Optional[CurrencyTables] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or RatesConfig()
        self.tables = tables or load_tables()
        self.cache: SnapshotCache[Mapping[str, float]] = SnapshotCache(
            self.config.cache_ttl_seconds, clock
        )
        self.source: Optional[str] = None

    @property
    def fallback_rates(self) -> dict[str, float]:
        """Copy of the static fallback table."""
        return dict(self.tables.fallback_rates)

    def fetch_live_rates(self) -> dict[str, float]:
        """
        Fetch current rates from the rate service.

        Returns:
            dict: Currency code -> units per 1 USD.

        Raises:
            RateFetchError: If the request fails or the payload has no rates.
        """
        url = self.config.api_url
        timeout = self.config.timeout_seconds

        try:
            response = requests.get(url, headers={"Accept": "application/json"}, timeout=timeout)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.Timeout as e:
            raise RateFetchError(f"Rate request timed out after {timeout}s") from e
        except requests.exceptions.ConnectionError as e:
            raise RateFetchError(f"Connection error fetching rates: {e}") from e
        except requests.exceptions.HTTPError as e:
            raise RateFetchError(f"HTTP error from rate service: {e}") from e
        except ValueError as e:
            raise RateFetchError(f"Invalid JSON from rate service: {e}") from e

        rates = data.get("rates") if isinstance(data, dict) else None
        if not isinstance(rates, dict) or not rates:
            raise RateFetchError("Invalid response format from rate service: missing rates")

        return self._clean_rates(rates)

    def _clean_rates(self, raw: dict[str, Any]) -> dict[str, float]:
        rates: dict[str, float] = {}
        for code, value in raw.items():
            try:
                rates[str(code).upper()] = float(value)
            except (TypeError, ValueError):
                logger.debug(f"Dropping non-numeric rate for {code}: {value!r}")
        if not rates:
            raise RateFetchError("Rate service returned no numeric rates")
        return rates

    def fetch_all_rates(self) -> Mapping[str, float]:
        """
        Get all rates, from cache when fresh.

        A failed live fetch caches the fallback table for the full TTL,
        so the service is retried at the same cadence as on success.

        Returns:
            Mapping of currency code to units per 1 USD. Never raises.
        """
        cached = self.cache.get()
        if cached is not None:
            return cached

        try:
            rates = self.fetch_live_rates()
            self.source = "live"
            logger.info(f"Fetched {len(rates)} live exchange rates")
        except Exception as e:
            rates = self.fallback_rates
            self.source = "fallback"
            log_event(
                logger,
                "rates_fallback",
                f"Exchange rate fetch failed, using fallback rates: {e}",
                level=logging.WARNING,
                error=str(e),
                fallback_count=len(rates),
            )

        snapshot = MappingProxyType(rates)
        self.cache.set(snapshot)
        return snapshot

    def get_rate(self, currency: str) -> float:
        """
        Get the rate for one currency.

        Args:
            currency: ISO currency code.

        Returns:
            float: Units of ``currency`` per 1 USD. USD is always 1.
        """
        if currency == DEFAULT_CURRENCY:
            return 1.0

        try:
            rate = self.fetch_all_rates().get(currency)
        except Exception as e:
            logger.error(f"Error getting exchange rate for {currency}: {e}")
            rate = None

        if not rate or rate <= 0:
            log_event(
                logger,
                "rate_substituted",
                f"Invalid rate for {currency}, using fallback",
                level=logging.WARNING,
                currency=currency,
                live_rate=rate,
            )
            return self.tables.fallback_rate(currency) or 1.0

        return rate

    def refresh_rates(self) -> Mapping[str, float]:
        """Drop the cached rates and fetch again."""
        self.cache.clear()
        return self.fetch_all_rates()

    def rate_age(self) -> Optional[float]:
        """Seconds since the current rates were stored, or None."""
        return self.cache.age()

    def validate_currency(self, currency: str) -> bool:
        """Check whether a currency code is in the supported set."""
        return currency in self.tables.fallback_rates

    def get_rate_info(self) -> dict[str, Any]:
        """
        Get information about the current rates.

        Returns:
            dict: Source, age and cache state.
        """
        return {
            "source": self.source,
            "is_fallback": self.source == "fallback",
            **self.cache.info(),
        }
