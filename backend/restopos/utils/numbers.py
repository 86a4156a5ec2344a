"""Decimal helpers for money and quantities."""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from restopos.errors import InvalidInput

ZERO = Decimal("0")
MONEY_STEP = Decimal("0.01")
QUANTITY_STEP = Decimal("0.001")

# Largest values the Numeric(12, 2) and Numeric(12, 3) columns hold
MAX_MONEY = Decimal("9999999999.99")
MAX_QUANTITY = Decimal("999999999.999")


def to_decimal(value: Any, default: Decimal = ZERO) -> Decimal:
    """Convert ints, floats, strings and Decimals to a finite Decimal; None gives ``default``."""
    if value is None:
        return default
    if isinstance(value, bool):
        raise InvalidInput(f"Invalid number: {value!r}", code="invalid_number")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError):
            raise InvalidInput(f"Invalid number: {value!r}", code="invalid_number")
    if not result.is_finite():
        raise InvalidInput(f"Invalid number: {value!r}", code="invalid_number")
    return result


def _quantize(value: Any, step: Decimal) -> Decimal:
    number = to_decimal(value)
    try:
        return number.quantize(step, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise InvalidInput(f"Number out of range: {value!r}", code="invalid_number")


def money(value: Any) -> Decimal:
    return _quantize(value, MONEY_STEP)


def quantity(value: Any) -> Decimal:
    return _quantize(value, QUANTITY_STEP)
