"""
Token unit helpers.

Integer helpers used on the vesting path, plus Decimal conversions between
base units and whole tokens for display. Nothing here touches floats.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_DOWN
from typing import Any

from token_vesting.constants import (
    BASIS_POINTS_DIVISOR,
    DEFAULT_TOKEN_DECIMALS,
    MAX_BASIS_POINTS,
    MAX_TOKEN_DECIMALS,
)


def is_integer(value: Any) -> bool:
    """True for real ints; bools are rejected."""
    return isinstance(value, int) and not isinstance(value, bool)


def mul_div_floor(value: int, numerator: int, denominator: int) -> int:
    """
    Compute floor(value * numerator / denominator) exactly.

    Python ints are arbitrary precision, so the intermediate product cannot
    overflow. Only non-negative operands are meaningful for vesting.
    """
    if denominator <= 0:
        raise ValueError("denominator must be positive")
    if value < 0 or numerator < 0:
        raise ValueError("operands must be non-negative")
    return (value * numerator) // denominator


def basis_points_of(amount: int, basis_points: int) -> int:
    """Return floor(amount * basis_points / 10000)."""
    if not 0 <= basis_points <= MAX_BASIS_POINTS:
        raise ValueError(f"basis points out of range: {basis_points}")
    return mul_div_floor(amount, basis_points, BASIS_POINTS_DIVISOR)


def _quantizer(decimals: int) -> Decimal:
    if not 0 <= decimals <= MAX_TOKEN_DECIMALS:
        raise ValueError(f"decimals must be between 0 and {MAX_TOKEN_DECIMALS}")
    return Decimal(1).scaleb(-decimals)


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, str)):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(str(value))
    raise ValueError("Amount must be int, float, str, or Decimal")


def to_base_units(value: Any, decimals: int = DEFAULT_TOKEN_DECIMALS) -> int:
    """Convert a whole-token amount to integer base units, rounding down."""
    try:
        dec = _to_decimal(value)
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise ValueError(f"Invalid amount value: {value}") from exc
    if dec.is_nan() or dec.is_infinite():
        raise ValueError(f"Invalid amount value: {value}")
    if dec < 0:
        raise ValueError("Amount cannot be negative")
    scaled = dec.scaleb(decimals)
    return int(scaled.to_integral_value(rounding=ROUND_DOWN))


def from_base_units(value: int, decimals: int = DEFAULT_TOKEN_DECIMALS) -> Decimal:
    """Convert integer base units to a Decimal whole-token amount."""
    if not is_integer(value):
        raise ValueError("Base units must be an int")
    quantizer = _quantizer(decimals)
    return Decimal(value).scaleb(-decimals).quantize(quantizer, rounding=ROUND_DOWN)


def format_amount(value: int, decimals: int = DEFAULT_TOKEN_DECIMALS) -> str:
    """Format base units as a fixed-precision token string."""
    return f"{from_base_units(value, decimals):f}"
