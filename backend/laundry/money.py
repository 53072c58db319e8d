# Overview: Fixed-point money helpers. Amounts are stored as integer cents
# and transported as decimal strings.

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from .errors import ValidationError

CENT = Decimal("0.01")

# Maximum amount: 9,999,999.99 (999,999,999 cents)
MAX_AMOUNT_CENTS = 999_999_999
MAX_AMOUNT = Decimal(MAX_AMOUNT_CENTS) / 100


def round_half_up(value: Decimal, places: int = 2) -> Decimal:
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def parse_decimal(value: Any, field: str) -> Decimal:
    """
    Parse a decimal string (or int) into a Decimal.

    Floats are rejected: financial fields travel as strings so that
    "0.1" never turns into 0.1000000000000000055.
    """
    if value is None:
        raise ValidationError(f"{field} is required")
    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationError(f"{field} must be a decimal string")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValidationError(f"{field} is required")
        try:
            result = Decimal(text)
        except InvalidOperation:
            raise ValidationError(f"{field} must be a decimal string")
    else:
        raise ValidationError(f"{field} must be a decimal string")

    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    # Bounded before any quantize; larger exponents overflow the context.
    if abs(result) > MAX_AMOUNT:
        raise ValidationError(f"{field} exceeds maximum amount")
    return result


def parse_money(value: Any, field: str) -> Decimal:
    """Parse a currency amount; at most two decimal places."""
    amount = parse_decimal(value, field)
    if amount != amount.quantize(CENT):
        raise ValidationError(f"{field} must have at most 2 decimal places")
    if abs(amount) * 100 > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{field} exceeds maximum amount")
    return amount.quantize(CENT)


def to_cents(amount: Decimal) -> int:
    return int(round_half_up(amount) * 100)


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(CENT)


def format_cents(cents: int | None) -> str | None:
    if cents is None:
        return None
    return str(from_cents(cents))
