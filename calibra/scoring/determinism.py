"""Determinism utilities for scoring and memo encoding.

Identical commitments must produce byte-identical memos and identical
scores on every machine:
1. Decimal arithmetic instead of floating point
2. Conversion from float through its shortest repr (str), never the binary expansion
3. Banker's rounding for every quantization step
"""

from __future__ import annotations

from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
from typing import Any

from calibra.shared.errors import InvalidCommitment

# Rounding precision for computed scores
DECIMAL_PLACES = 8


def to_decimal(value: Any, name: str = "value") -> Decimal:
    """Convert a value to Decimal with validation.

    Args:
        value: Value to convert (int, float, str, Decimal)
        name: Name for error messages

    Returns:
        Decimal representation

    Raises:
        InvalidCommitment: If value cannot be converted or is not finite
    """
    if value is None:
        raise InvalidCommitment(f"{name} is None")
    if isinstance(value, bool):
        raise InvalidCommitment(f"{name} must be numeric, got bool")

    try:
        if isinstance(value, Decimal):
            d = value
        else:
            d = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as e:
        raise InvalidCommitment(f"Cannot convert {name}={value!r} to Decimal: {e}")

    if d.is_nan():
        raise InvalidCommitment(f"{name} is NaN")
    if d.is_infinite():
        raise InvalidCommitment(f"{name} is infinite")
    return d


def round_decimal(value: Decimal, places: int = DECIMAL_PLACES) -> Decimal:
    """Round a Decimal to specified places using ROUND_HALF_EVEN."""
    quantize_str = "0." + "0" * places
    return value.quantize(Decimal(quantize_str), rounding=ROUND_HALF_EVEN)


__all__ = ["DECIMAL_PLACES", "to_decimal", "round_decimal"]
