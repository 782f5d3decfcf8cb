"""
Visitor location detection.

Looks up the caller's country through a geo-IP service and derives the
display currency from it. Lookups are cached for an hour and failures
degrade to a United States / USD default.
"""

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import asdict, dataclass
from typing import Any, Callable, Optional

import requests

from src.currency.cache import SnapshotCache
from src.currency.tables import DEFAULT_CURRENCY, CurrencyTables, load_tables
from src.utils.config_loader import LocationConfig
from src.utils.logging_config import log_event

logger = logging.getLogger(__name__)

DEFAULT_COUNTRY_CODE = "US"
DEFAULT_COUNTRY_NAME = "United States"

# Upper bound on per-address caches kept by one detector
MAX_TRACKED_ADDRESSES = 1024


class LocationLookupError(Exception):
    """Exception raised when the geo-IP lookup fails."""
    pass


@dataclass(frozen=True)
class Location:
    """Resolved visitor location."""

    country_code: str
    country_name: str
    currency: str

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


DEFAULT_LOCATION = Location(
    country_code=DEFAULT_COUNTRY_CODE,
    country_name=DEFAULT_COUNTRY_NAME,
    currency=DEFAULT_CURRENCY,
)


class LocationDetector:
    """
    Geo-IP backed location detector.

    Lookups for the server's own origin share ``cache``; lookups for an
    explicit client address get one snapshot cache per address.

    Attributes:
        config: Geo-IP lookup settings.
        tables: Static currency tables.
        cache: Snapshot cache for lookups without a client address.
        source: Where the last resolved location came from ("geoip" or "default").
    """

    def __init__(
        self,
        config: Optional[LocationConfig] = None,
        tables: Optional[CurrencyTables] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or LocationConfig()
        self.tables = tables or load_tables()
        self._clock = clock
        self.cache: SnapshotCache[Location] = SnapshotCache(self.config.cache_ttl_seconds, clock)
        self._address_caches: OrderedDict[str, SnapshotCache[Location]] = OrderedDict()
        self._lock = threading.Lock()
        self.source: Optional[str] = None

    def _cache_for(self, client_ip: Optional[str]) -> SnapshotCache[Location]:
        if not client_ip:
            return self.cache

        with self._lock:
            cache = self._address_caches.get(client_ip)
            if cache is None:
                cache = SnapshotCache(self.config.cache_ttl_seconds, self._clock)
                self._address_caches[client_ip] = cache
                while len(self._address_caches) > MAX_TRACKED_ADDRESSES:
                    self._address_caches.popitem(last=False)
            else:
                self._address_caches.move_to_end(client_ip)
            return cache

    def clear_cache(self) -> None:
        """Forget every cached location."""
        self.cache.clear()
        with self._lock:
            self._address_caches.clear()

    def fetch_location(self, client_ip: Optional[str] = None) -> dict[str, Any]:
        """
        Query the geo-IP service.

        Args:
            client_ip: Optional address to look up instead of the caller's own.

        Returns:
            dict: Raw JSON payload from the provider.

        Raises:
            LocationLookupError: If the request fails or the payload is unusable.
        """
        if client_ip:
            url = self.config.address_url.format(ip=client_ip)
        else:
            url = self.config.api_url

        headers = {
            "Accept": "application/json",
            "User-Agent": "Mechinweb-Location-Service/1.0",
        }
        timeout = self.config.timeout_seconds

        try:
            response = requests.get(url, headers=headers, timeout=timeout)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.Timeout as e:
            raise LocationLookupError(f"Location request timed out after {timeout}s") from e
        except requests.exceptions.ConnectionError as e:
            raise LocationLookupError(f"Connection error fetching location: {e}") from e
        except requests.exceptions.HTTPError as e:
            raise LocationLookupError(f"HTTP error from location service: {e}") from e
        except ValueError as e:
            raise LocationLookupError(f"Invalid JSON from location service: {e}") from e

        if not isinstance(data, dict):
            raise LocationLookupError("Location response is not a JSON object")
        if data.get("error"):
            raise LocationLookupError(f"Location service error: {data.get('reason', data['error'])}")

        return data

    def resolve_currency(self, country_code: Optional[str], reported: Optional[str] = None) -> str:
        """
        Pick the display currency for a country.

        The static country table wins over the provider's own answer.
        """
        return self.tables.currency_for_country(country_code) or reported or DEFAULT_CURRENCY

    def detect_location(self, client_ip: Optional[str] = None) -> Location:
        """
        Detect the visitor's location.

        Returns the cached location when it is still fresh. Any failure
        yields DEFAULT_LOCATION, which is cached like a real answer so a
        failing provider is not hit on every call.

        Args:
            client_ip: Optional address to look up.

        Returns:
            Location: Never raises.
        """
        cache = self._cache_for(client_ip)
        cached = cache.get()
        if cached is not None:
            logger.debug(f"Using cached location: {cached}")
            return cached

        try:
            data = self.fetch_location(client_ip)
            country_code = str(data.get("country_code") or DEFAULT_COUNTRY_CODE).upper()
            location = Location(
                country_code=country_code,
                country_name=data.get("country_name") or DEFAULT_COUNTRY_NAME,
                currency=self.resolve_currency(country_code, data.get("currency")),
            )
            self.source = "geoip"
            logger.info(f"Location detected: {location.country_code} ({location.currency})")
        except Exception as e:
            log_event(
                logger,
                "location_fallback",
                f"Location lookup failed, using default location: {e}",
                level=logging.WARNING,
                error=str(e),
                fallback_country=DEFAULT_COUNTRY_CODE,
            )
            location = DEFAULT_LOCATION
            self.source = "default"

        cache.set(location)
        return location
