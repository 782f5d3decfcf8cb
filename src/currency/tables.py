"""
Static currency tables.

Loads the country->currency map, the fallback rate table and the display
format table from the YAML files under ``src/currency/data``.
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

import yaml

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent / "data"

COUNTRY_CURRENCY_FILE = "country_currency.yaml"
FALLBACK_RATES_FILE = "fallback_rates.yaml"
CURRENCY_FORMATS_FILE = "currency_formats.yaml"

DEFAULT_CURRENCY = "USD"


class CurrencyTableError(Exception):
    """Raised when a currency data file is missing or malformed."""
    pass


@dataclass(frozen=True)
class CurrencyFormat:
    """Display rules for one currency."""

    locale: str
    symbol: str
    decimals: int = 2
    position: str = "prefix"
    space: bool = False
    group: str = ","
    decimal: str = "."
    grouping: str = "standard"

    @classmethod
    def from_dict(cls, data: dict) -> "CurrencyFormat":
        """Create from a YAML mapping."""
        return cls(
            locale=str(data["locale"]),
            symbol=str(data["symbol"]),
            decimals=int(data.get("decimals", 2)),
            position=data.get("position", "prefix"),
            space=bool(data.get("space", False)),
            group=str(data.get("group", ",")),
            decimal=str(data.get("decimal", ".")),
            grouping=data.get("grouping", "standard"),
        )


@dataclass(frozen=True)
class CurrencyTables:
    """Read-only bundle of the static currency tables."""

    country_currency: Mapping[str, str]
    fallback_rates: Mapping[str, float]
    formats: Mapping[str, CurrencyFormat]

    def currency_for_country(self, country_code: str | None) -> str | None:
        """Look up the display currency for an ISO country code."""
        if not country_code:
            return None
        return self.country_currency.get(country_code.upper())

    def fallback_rate(self, currency: str) -> float | None:
        """Get the static rate for a currency, or None if unknown."""
        return self.fallback_rates.get(currency)

    def format_for(self, currency: str) -> CurrencyFormat:
        """Get display rules for a currency, defaulting to USD's."""
        return self.formats.get(currency) or self.formats[DEFAULT_CURRENCY]


def _read_yaml(path: Path) -> dict:
    """Read a YAML mapping from disk."""
    if not path.exists():
        raise CurrencyTableError(f"Currency data file not found: {path}")

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if not isinstance(data, dict):
        raise CurrencyTableError(f"Currency data file must contain a mapping: {path}")
    return data


def _parse_rates(raw: dict, source: Path) -> dict[str, float]:
    rates: dict[str, float] = {}
    for code, value in raw.items():
        rate = float(value)
        if rate <= 0:
            raise CurrencyTableError(f"Non-positive fallback rate for {code} in {source}")
        rates[str(code).upper()] = rate
    return rates


@lru_cache(maxsize=None)
def load_tables(tables_dir: str | None = None) -> CurrencyTables:
    """
    Load all static currency tables.

    Args:
        tables_dir: Optional directory overriding the packaged data files.

    Returns:
        CurrencyTables: Immutable tables.

    Raises:
        CurrencyTableError: If a file is missing or malformed.
    """
    base = Path(tables_dir) if tables_dir else DATA_DIR

    country_path = base / COUNTRY_CURRENCY_FILE
    rates_path = base / FALLBACK_RATES_FILE
    formats_path = base / CURRENCY_FORMATS_FILE

    country_currency = {
        str(country).upper(): str(currency).upper()
        for country, currency in _read_yaml(country_path).items()
    }
    fallback_rates = _parse_rates(_read_yaml(rates_path), rates_path)
    formats = {
        str(code).upper(): CurrencyFormat.from_dict(entry)
        for code, entry in _read_yaml(formats_path).items()
    }

    if DEFAULT_CURRENCY not in formats:
        raise CurrencyTableError(f"{formats_path} must define {DEFAULT_CURRENCY}")

    logger.debug(
        f"Loaded currency tables from {base}: {len(country_currency)} countries, "
        f"{len(fallback_rates)} fallback rates, {len(formats)} formats"
    )
    return CurrencyTables(
        country_currency=MappingProxyType(country_currency),
        fallback_rates=MappingProxyType(fallback_rates),
        formats=MappingProxyType(formats),
    )
