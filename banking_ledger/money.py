"""
Monetary Amount Helpers

All balances and amounts are Decimal values rounded to cents. NEVER uses
float for monetary values; floats coming from callers are converted through
their string form.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, getcontext
from typing import Union
import re

from .errors import InvalidAmountError

# Set global decimal context for financial precision
getcontext().prec = 28

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")

AmountLike = Union[Decimal, int, float, str]


def quantize(value: Decimal) -> Decimal:
    """Round half-up to cents"""
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def to_amount(value: AmountLike) -> Decimal:
    """
    Convert a caller-supplied amount to a cent-precision Decimal

    Raises:
        InvalidAmountError: If the value is not a finite number
    """
    if isinstance(value, bool):
        raise InvalidAmountError(f"Invalid amount: {value!r}")

    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, str):
        amount = decimal_from_string(value)
    else:
        try:
            amount = Decimal(str(value))
        except InvalidOperation:
            raise InvalidAmountError(f"Invalid amount: {value!r}")

    if not amount.is_finite():
        raise InvalidAmountError(f"Invalid amount: {value!r}")

    try:
        return quantize(amount)
    except InvalidOperation:
        # Too many digits to hold at cent precision
        raise InvalidAmountError(f"Amount out of range: {value!r}")


CURRENCY_SYMBOLS = re.compile(r'[\s$€£]')
THOUSANDS = re.compile(r'^[+-]?\d{1,3}(,\d{3})+(\.\d+)?$')
DECIMAL_COMMA = re.compile(r'^[+-]?\d+,\d{1,2}$')


def decimal_from_string(value: str) -> Decimal:
    """
    Safely convert string to Decimal, handling currency symbols and
    thousands separators ("$1,250.50" -> Decimal("1250.50"))

    A single comma followed by one or two digits is a decimal comma
    ("12,5" -> Decimal("12.5")). Anything else that Decimal cannot parse,
    such as stray letters, is rejected rather than stripped.

    Raises:
        InvalidAmountError: If string cannot be converted to a Decimal
    """
    if not value or not value.strip():
        raise InvalidAmountError("Amount must be a non-empty string")

    clean_value = CURRENCY_SYMBOLS.sub('', value)

    if THOUSANDS.match(clean_value):
        clean_value = clean_value.replace(',', '')
    elif DECIMAL_COMMA.match(clean_value):
        clean_value = clean_value.replace(',', '.')

    try:
        return Decimal(clean_value)
    except InvalidOperation:
        raise InvalidAmountError(f"Cannot convert '{value}' to an amount")


def format_amount(value: Decimal) -> str:
    """Format for display, e.g. $1,250.50"""
    return f"${quantize(value):,.2f}"
