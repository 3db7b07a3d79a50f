"""Numeric and boolean conversion helpers."""

from __future__ import annotations

from decimal import Decimal
from typing import Union


def format_decimal(value: Decimal) -> str:
    """Plain positional notation, never scientific."""
    return format(value, "f")


def format_float(value: float) -> str:
    """Shortest round-trip decimal for ``value`` without an exponent."""
    if value != value or value in (float("inf"), float("-inf")):
        raise ValueError(f"cannot format non-finite float: {value!r}")
    if value.is_integer():
        return str(int(value))
    # repr() gives the shortest string that round-trips
    return format_decimal(Decimal(repr(value)))


def format_bool(value: bool) -> str:
    return "true" if value else "false"


def str_to_bool(value: Union[str, bool, int, None], default: bool = False) -> bool:
    """Interpret strings such as ``"1"``/``"yes"``/``"off"`` as booleans."""
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    if isinstance(value, int):
        return value != 0
    normalized = str(value).strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


__all__ = [
    "format_bool",
    "format_decimal",
    "format_float",
    "str_to_bool",
]
