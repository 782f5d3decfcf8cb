"""
Currency converter.

Converts amounts between currencies through USD:

    usd    = amount / rate(from)     (skipped when from is USD)
    result = usd * rate(to)          (skipped when to is USD)

where every rate is "units of currency per 1 USD". Results are rounded
to 2 decimal places. Presentation precision (the `decimals` column of the
format table) is handled by the formatter.
"""

import logging
import math
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Iterable, Mapping, Optional

from src.currency.rates import ExchangeRateProvider
from src.currency.tables import DEFAULT_CURRENCY
from src.utils.logging_config import log_event

logger = logging.getLogger(__name__)


class InvalidRateError(Exception):
    """Raised internally when a live rate is missing or not positive."""
    pass


def quantize_half_up(value: float, decimal_places: int = 2) -> Decimal:
    """
    Quantize a finite amount half-up, whatever its magnitude.

    The context precision grows with the amount's exponent so that
    very large values quantize instead of raising InvalidOperation.
    """
    amount = Decimal(str(value))
    quantum = Decimal(1).scaleb(-decimal_places)
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, amount.adjusted() + decimal_places + 2)
        return amount.quantize(quantum, rounding=ROUND_HALF_UP)


def round_amount(value: float, decimal_places: int = 2) -> float:
    """
    Round half-up to a fixed number of decimal places.

    Args:
        value: Amount to round.
        decimal_places: Number of decimal places.

    Returns:
        float: Rounded amount. Infinities and NaN are returned unchanged.
    """
    if not math.isfinite(value):
        return value
    return float(quantize_half_up(value, decimal_places))


class CurrencyConverter:
    """
    Converts amounts using an ExchangeRateProvider.

    Attributes:
        provider: Source of exchange rates.
    """

    def __init__(self, provider: ExchangeRateProvider) -> None:
        self.provider = provider

    @staticmethod
    def _live_rate(rates: Mapping[str, float], currency: str) -> float:
        rate = rates.get(currency)
        if not rate or rate <= 0:
            raise InvalidRateError(f"Invalid exchange rate for {currency}")
        return rate

    def _convert_with(self, amount: float, from_currency: str, to_currency: str, rates: Mapping[str, float]) -> float:
        usd_amount = amount
        if from_currency != DEFAULT_CURRENCY:
            usd_amount = amount / self._live_rate(rates, from_currency)

        if to_currency == DEFAULT_CURRENCY:
            return round_amount(usd_amount)

        return round_amount(usd_amount * self._live_rate(rates, to_currency))

    def _convert_with_fallback(self, amount: float, from_currency: str, to_currency: str) -> float:
        # Codes missing from the fallback table behave as rate 1
        tables = self.provider.tables
        from_rate = tables.fallback_rate(from_currency) or 1.0
        to_rate = tables.fallback_rate(to_currency) or 1.0

        usd_amount = amount if from_currency == DEFAULT_CURRENCY else amount / from_rate
        result = usd_amount if to_currency == DEFAULT_CURRENCY else usd_amount * to_rate
        return round_amount(result)

    def convert(
        self,
        amount: float,
        from_currency: str,
        to_currency: str,
        rates: Optional[Mapping[str, float]] = None,
    ) -> float:
        """
        Convert an amount from one currency to another.

        Equal currencies return ``amount`` untouched. If live rates are
        missing or invalid for either side, the conversion is recomputed
        from the static fallback table instead of raising.

        Args:
            amount: Amount in ``from_currency``.
            from_currency: Source ISO code.
            to_currency: Target ISO code.
            rates: Rate snapshot to use instead of asking the provider.

        Returns:
            float: Converted amount rounded to 2 decimals.
        """
        if from_currency == to_currency:
            return amount

        try:
            if rates is None:
                rates = self.provider.fetch_all_rates()
            result = self._convert_with(amount, from_currency, to_currency, rates)
            logger.debug(f"Converted {amount} {from_currency} to {result} {to_currency}")
            return result
        except Exception as e:
            result = self._convert_with_fallback(amount, from_currency, to_currency)
            log_event(
                logger,
                "conversion_fallback",
                f"Error converting {amount} {from_currency} to {to_currency}, used fallback rates: {e}",
                level=logging.WARNING,
                from_currency=from_currency,
                to_currency=to_currency,
                error=str(e),
            )
            return result

    def convert_prices(
        self,
        amounts: Iterable[float],
        from_currency: str,
        to_currency: str,
    ) -> list[float]:
        """Convert several amounts against a single rate snapshot."""
        try:
            rates: Optional[Mapping[str, float]] = self.provider.fetch_all_rates()
        except Exception as e:
            logger.error(f"Could not load rates for batch conversion: {e}")
            rates = {}
        return [self.convert(amount, from_currency, to_currency, rates) for amount in amounts]

    def convert_from_usd(self, amount: float, to_currency: Optional[str]) -> float:
        """Convert a USD amount, treating a missing target as USD."""
        return self.convert(amount, DEFAULT_CURRENCY, to_currency or DEFAULT_CURRENCY)
