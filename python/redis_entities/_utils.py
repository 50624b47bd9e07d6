"""Small helpers shared by the codec, schema compiler and query builder."""

from __future__ import annotations

import math
from decimal import Decimal
from typing import Union

Number = Union[int, float]


def format_number(value: Number) -> str:
    """Render a number the way RediSearch and Redis expect to read it back.

    Integral floats lose their trailing ``.0`` so that ``42.0`` and ``42``
    produce the same wire text. Floats are always written positionally,
    never in exponent form.
    """
    if isinstance(value, float):
        if math.isinf(value):
            return "+inf" if value > 0 else "-inf"
        if value.is_integer():
            return str(int(value))
        return format(Decimal(repr(value)), "f")
    return str(value)


def parse_number(text: str) -> Number:
    """Parse wire text produced by ``format_number``.

    Raises:
        ValueError: If the text is not a finite or infinite number.
    """
    try:
        return int(text)
    except ValueError:
        pass
    value = float(text)
    if math.isnan(value):
        raise ValueError(f"NaN is not a valid number: {text!r}")
    return value


def is_number(value: object) -> bool:
    """Check if a value is an int or float, excluding bools."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def stringify(value: Union[str, int, float, bool]) -> str:
    """Render a scalar as text the way it is stored in string fields."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return format_number(value)
    return value
