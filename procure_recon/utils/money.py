"""
Exact decimal helpers for monetary amounts and quantities.
Floats never enter the arithmetic: every value goes through Decimal.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, Optional

from pydantic import field_validator

from procure_recon.errors import ParseError


ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")


def parse_decimal(value: Any, field: Optional[str] = None, *, allow_none: bool = False) -> Optional[Decimal]:
    """
    Convert a raw column value to a non-negative Decimal.

    Accepts Decimal, int, float (via its shortest repr) and numeric strings.
    Anything else, including NaN, infinities and negatives, raises ParseError.
    """
    if value is None:
        if allow_none:
            return None
        raise ParseError(field, value, "value is required")

    if isinstance(value, bool):
        raise ParseError(field, value, "booleans are not amounts")

    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            if allow_none:
                return None
            raise ParseError(field, value, "empty string")
        try:
            result = Decimal(text)
        except InvalidOperation:
            raise ParseError(field, value)
    else:
        raise ParseError(field, value, f"unsupported type {type(value).__name__}")

    if not result.is_finite():
        raise ParseError(field, value, "value is not finite")
    if result < 0:
        raise ParseError(field, value, "value is negative")
    return result


def sum_decimals(values: Iterable[Decimal]) -> Decimal:
    """Sum decimals exactly, starting from zero."""
    total = ZERO
    for value in values:
        total += value
    return total


def quantize_money(value: Decimal) -> Decimal:
    """Round to cents, half-up. Never applied to discrepancy details."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def round_score(value: Decimal) -> int:
    """Round a 0-100 score to the nearest integer, half-up."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percentage(numerator: Decimal, denominator: Decimal) -> Optional[Decimal]:
    """100 * numerator / denominator, or None when the denominator is zero."""
    if denominator == 0:
        return None
    return HUNDRED * Decimal(numerator) / Decimal(denominator)


def decimal_fields(*fields: str, allow_none: bool = False):
    """Pydantic before-validator that routes the given fields through parse_decimal."""
    def _validate(cls, value, info):
        return parse_decimal(value, info.field_name, allow_none=allow_none)

    return field_validator(*fields, mode="before")(_validate)
