"""
Currency display formatting.

Renders amounts the way each currency's home locale writes them (symbol
placement, digit grouping, decimal mark, precision) using the static
format table.
"""

import logging
from typing import Optional

from src.currency.converter import quantize_half_up
from src.currency.tables import CurrencyFormat, CurrencyTables, load_tables

logger = logging.getLogger(__name__)


def _group_digits(digits: str, separator: str, grouping: str) -> str:
    """Insert group separators into a string of integer digits."""
    if len(digits) <= 3:
        return digits

    head, tail = digits[:-3], digits[-3:]
    size = 2 if grouping == "indian" else 3

    groups = []
    while head:
        groups.insert(0, head[-size:])
        head = head[:-size]
    return separator.join(groups + [tail])


def _render(amount: float, fmt: CurrencyFormat, decimals: int) -> str:
    value = quantize_half_up(amount, decimals)

    negative = value < 0
    integer_part, _, fraction = f"{value.copy_abs():f}".partition(".")

    number = _group_digits(integer_part, fmt.group, fmt.grouping)
    if decimals > 0:
        number = f"{number}{fmt.decimal}{fraction}"

    gap = " " if fmt.space else ""
    if fmt.position == "suffix":
        text = f"{number}{gap}{fmt.symbol}"
    else:
        text = f"{fmt.symbol}{gap}{number}"

    return f"-{text}" if negative else text


def decimals_for(currency: str, tables: Optional[CurrencyTables] = None) -> int:
    """Number of displayed decimal places for a currency."""
    tables = tables or load_tables()
    return tables.format_for(currency).decimals


def get_currency_symbol(currency: str, tables: Optional[CurrencyTables] = None) -> str:
    """
    Get the display symbol for a currency.

    Args:
        currency: ISO currency code.
        tables: Optional currency tables.

    Returns:
        str: Symbol, or "$" for unknown codes.
    """
    tables = tables or load_tables()
    fmt = tables.formats.get(currency)
    return fmt.symbol if fmt else "$"


def format_currency(amount: float, currency: str, tables: Optional[CurrencyTables] = None) -> str:
    """
    Format an amount for display in a currency.

    Unknown currencies use the USD display rules. Formatting never
    raises: on any error the symbol is prefixed to a fixed-precision
    number instead.

    Args:
        amount: Amount to display.
        currency: ISO currency code.
        tables: Optional currency tables.

    Returns:
        str: e.g. "$1,234.50", "1.234,50 €", "¥1,235".
    """
    decimals = 2
    try:
        tables = tables or load_tables()
        fmt = tables.format_for(currency)
        decimals = fmt.decimals
        return _render(amount, fmt, decimals)
    except Exception as e:
        logger.error(f"Error formatting {amount!r} as {currency}: {e}")
        try:
            return f"{get_currency_symbol(currency, tables)}{float(amount):.{decimals}f}"
        except Exception:
            return f"${amount}"


def supported_currencies(tables: Optional[CurrencyTables] = None) -> list[str]:
    """Currency codes with dedicated display rules."""
    tables = tables or load_tables()
    return sorted(tables.formats)
