"""
Money Helpers Module

Decimal conversion, currency precision and display formatting for the loan
engine. NEVER uses float for monetary values: anything that arrives as a float
is converted through its string representation first.

Amounts are carried as bare Decimals rather than a currency-tagged value
type: a loan's schedule, fees, balances and payments always share one
currency, so there is nothing to mix up. Currency only decides rounding
precision and display.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation, getcontext
from enum import Enum
from typing import Optional, Union
import re

# Set global decimal context for financial precision
getcontext().prec = 28

ZERO = Decimal('0')
CENT = Decimal('0.01')

Numeric = Union[Decimal, int, float, str]


class Currency(Enum):
    """ISO 4217 Currency Codes with precision info"""
    KES = ("KES", 2)  # Kenyan Shilling, 2 decimal places
    UGX = ("UGX", 0)  # Ugandan Shilling, 0 decimal places
    TZS = ("TZS", 2)  # Tanzanian Shilling, 2 decimal places
    USD = ("USD", 2)  # US Dollar, 2 decimal places
    EUR = ("EUR", 2)  # Euro, 2 decimal places
    GBP = ("GBP", 2)  # British Pound, 2 decimal places

    def __init__(self, code: str, precision: int):
        self.code = code
        self.precision = precision


def to_decimal(value: Numeric) -> Decimal:
    """
    Convert a numeric input to Decimal

    Args:
        value: Decimal, int, float or numeric string

    Returns:
        Decimal value (floats go through str() so 0.1 stays 0.1)

    Raises:
        ValueError: If the value cannot be represented as a Decimal
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Cannot convert boolean {value!r} to Decimal")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Cannot convert {value!r} to Decimal")


def round_money(value: Numeric, currency: Optional[Currency] = None) -> Decimal:
    """Round half-up to the currency precision (2 places when no currency given)"""
    places = 2 if currency is None else currency.precision
    return to_decimal(value).quantize(
        Decimal('0.1') ** places,
        rounding=ROUND_HALF_UP
    )


def decimal_from_string(value: str) -> Decimal:
    """
    Safely convert string to Decimal, handling common formats

    Args:
        value: String representation of number, e.g. "KES 1,200.50"

    Returns:
        Decimal value

    Raises:
        ValueError: If string cannot be converted to valid Decimal
    """
    if not value or not isinstance(value, str):
        raise ValueError("Value must be a non-empty string")

    # Remove currency symbols and whitespace
    clean_value = re.sub(r'[^\d.,\-+]', '', value.strip())

    if ',' in clean_value and '.' in clean_value:
        # Both comma and dot - comma is the thousands separator
        clean_value = clean_value.replace(',', '')
    elif ',' in clean_value and clean_value.count(',') == 1:
        parts = clean_value.split(',')
        if len(parts[1]) < 3:
            clean_value = clean_value.replace(',', '.')
        else:
            clean_value = clean_value.replace(',', '')
    elif ',' in clean_value:
        clean_value = clean_value.replace(',', '')

    try:
        return Decimal(clean_value)
    except InvalidOperation:
        raise ValueError(f"Cannot convert '{value}' to Decimal")


def format_amount(amount: Numeric, currency: Optional[Currency] = None) -> str:
    """Format for display, e.g. 'KES 1,200.50'"""
    if currency is None:
        from .config import get_config
        currency = Currency[get_config().default_currency]
    rounded = round_money(amount, currency)
    if currency.precision == 0:
        return f"{currency.code} {rounded:,.0f}"
    return f"{currency.code} {rounded:,.{currency.precision}f}"
