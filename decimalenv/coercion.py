"""Runtime coercion of values into Decimal.

Two flavors share the same parsing rules:

- coerce(): lenient. Used for values whose shape is only known at run time
  (variables, delegated sub-expressions, bind sources). Non-numeric strings
  and unsupported values pass through unchanged.
- to_decimal(): strict. Used by the primitive library, which promises a
  Decimal result, so anything that is not a number raises.
"""

from __future__ import annotations

import re
from decimal import Decimal
from typing import Any

from decimalenv.errors import InvalidNumberError

# Full decimal literal: sign, digits with optional point, optional exponent,
# or one of the special values. No whitespace or digit separators.
DECIMAL_LITERAL_RE = re.compile(
    r"[+-]?(?:(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?|inf(?:inity)?|nan)",
    re.IGNORECASE,
)


def parse_decimal(text: str) -> Decimal | None:
    """Parse a decimal literal, requiring the whole string to match.

    Args:
        text: Candidate literal (e.g. "42", "-0.5", "4.2E-9", "+Inf", "NaN")

    Returns:
        The parsed Decimal, or None if the string is not a complete literal
    """
    if DECIMAL_LITERAL_RE.fullmatch(text) is None:
        return None
    return Decimal(text)


def from_float(value: float) -> Decimal:
    """Convert a float through its shortest round-trip representation.

    Decimal(0.1) would expose the binary expansion; Decimal(repr(0.1)) keeps
    the value the float was written as.
    """
    return Decimal(repr(value))


def coerce(value: Any) -> Any:
    """Coerce a runtime value to Decimal when it has a numeric shape.

    Dispatch order:
        str            -> parsed Decimal, or the string unchanged
        bool           -> unchanged (checked before int)
        int            -> Decimal
        float          -> Decimal via shortest representation
        Decimal        -> unchanged
        list / tuple   -> member-wise coercion, same container type
        anything else  -> unchanged

    The function is idempotent: coerce(coerce(x)) == coerce(x).
    """
    if isinstance(value, str):
        parsed = parse_decimal(value)
        return value if parsed is None else parsed
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return from_float(value)
    if isinstance(value, Decimal):
        return value
    if isinstance(value, list):
        return [coerce(item) for item in value]
    if isinstance(value, tuple):
        members = [coerce(item) for item in value]
        # Named tuples rebuild through _make to keep their type
        if hasattr(value, "_make"):
            return value._make(members)
        return tuple(members)
    return value


def to_decimal(value: Any) -> Decimal:
    """Convert a primitive input to Decimal, rejecting anything non-numeric.

    Args:
        value: int, float, numeric string or Decimal

    Returns:
        The value as a Decimal

    Raises:
        InvalidNumberError: If the value is not a number or numeric string
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise InvalidNumberError(value)
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return from_float(value)
    if isinstance(value, str):
        parsed = parse_decimal(value)
        if parsed is None:
            raise InvalidNumberError(value)
        return parsed
    raise InvalidNumberError(value)


__all__ = [
    "DECIMAL_LITERAL_RE",
    "parse_decimal",
    "from_float",
    "coerce",
    "to_decimal",
]
