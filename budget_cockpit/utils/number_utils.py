"""Numeric coercion helpers shared by the finance engine"""

import math
import re
from typing import Any

# Plain decimal / exponent literals, the forms a form field or import file produces
_NUMERIC_TEXT = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")


def is_number(value: Any) -> bool:
    """True for int/float values, excluding bools"""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def as_number(value: Any, default: float = 0) -> float:
    """Return value when it is numeric, otherwise the default"""
    return value if is_number(value) else default


def coerce_number(value: Any) -> float:
    """
    Loosely coerce user-entered values to a number.

    None and blank strings become 0, booleans become 1/0, numeric strings are
    parsed. Anything else becomes NaN so that finite-number validation rejects it.
    """
    if value is None:
        return 0
    if isinstance(value, bool):
        return 1 if value else 0
    if is_number(value):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text == "":
            return 0
        if text in ("Infinity", "+Infinity"):
            return math.inf
        if text == "-Infinity":
            return -math.inf
        if _NUMERIC_TEXT.match(text):
            return float(text)
    return math.nan


def number_or_zero(value: Any) -> float:
    """Coerce like coerce_number but map NaN to 0 (falsy inputs already map to 0)"""
    number = coerce_number(value)
    return 0 if isinstance(number, float) and math.isnan(number) else number


def is_finite_number(value: Any) -> bool:
    return is_number(value) and math.isfinite(value)


def half_up_round(value: float) -> int:
    """Round half toward +infinity (2.5 -> 3, -2.5 -> -2)"""
    return math.floor(value + 0.5)


def format_number(value: Any) -> str:
    """Stringify a value for fingerprints and dedup signatures"""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
    return str(value)
