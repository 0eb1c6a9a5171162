"""Rendering of block results into the caller's requested output type."""

from __future__ import annotations

import math
from decimal import Decimal
from enum import Enum
from typing import Any

from decimalenv.errors import OutputConversionError
from decimalenv.operators import reduce


class OutputType(str, Enum):
    """Output tags accepted by the `as` option."""

    DECIMAL = "decimal"
    FLOAT = "float"
    INTEGER = "integer"
    STRING = "string"
    SCIENTIFIC = "scientific"
    XSD = "xsd"
    RAW = "raw"


def output_type(tag: Any) -> OutputType | None:
    """Look up an output tag, returning None when it is not recognized."""
    if isinstance(tag, OutputType):
        return tag
    try:
        return OutputType(tag)
    except ValueError:
        return None


def to_float(value: Decimal) -> float:
    """Nearest float. A finite decimal beyond the float range raises."""
    result = float(value)
    if math.isinf(result) and value.is_finite():
        raise OutputConversionError(f"{value} is too large for a float")
    return result


def to_integer(value: Decimal) -> int:
    """Exact integer value.

    Raises:
        OutputConversionError: If the value has a fractional part or is not
            finite
    """
    if not value.is_finite():
        raise OutputConversionError(f"{value} cannot be converted to an integer")
    if value != value.to_integral_value():
        raise OutputConversionError(f"{value} is not an integral value")
    return int(value)


def to_xsd(value: Decimal) -> str:
    """Canonical xsd:decimal text.

    No exponent, no trailing zeros beyond a single ".0", no leading "+".
    """
    if not value.is_finite():
        return str(value)
    reduced = reduce(value)
    if reduced.is_zero():
        return "0.0"
    text = format(reduced, "f")
    if "." not in text:
        text += ".0"
    return text


def to_raw(value: Decimal) -> str:
    """Coefficient and exponent exactly as stored, e.g. "42E-10"."""
    if not value.is_finite():
        return str(value)
    sign, digits, exponent = value.as_tuple()
    text = ("-" if sign else "") + "".join(str(digit) for digit in digits)
    if exponent != 0:
        text += f"E{exponent}"
    return text


_CONVERTERS = {
    OutputType.FLOAT: to_float,
    OutputType.INTEGER: to_integer,
    OutputType.STRING: lambda value: format(value, "f"),
    OutputType.SCIENTIFIC: str,
    OutputType.XSD: to_xsd,
    OutputType.RAW: to_raw,
}


def convert(value: Any, tag: Any = None) -> Any:
    """Convert a block result to the representation named by `tag`.

    `decimal`, None and unknown tags return the value unchanged. Lists and
    tuples are converted member-wise; other non-decimal values (strings,
    booleans, atoms) are returned unchanged.

    Examples:
        convert(Decimal("4.2E-9"), "string")      -> "0.0000000042"
        convert(Decimal("0.0000000042"), "scientific") -> "4.2E-9"
        convert(Decimal("42.00"), "xsd")          -> "42.0"
        convert(Decimal("4.2E-9"), "raw")         -> "42E-10"
    """
    kind = output_type(tag)
    if kind is None or kind is OutputType.DECIMAL:
        return value
    if isinstance(value, list):
        return [convert(item, kind) for item in value]
    if isinstance(value, tuple):
        members = [convert(item, kind) for item in value]
        if hasattr(value, "_make"):
            return value._make(members)
        return tuple(members)
    if not isinstance(value, Decimal):
        return value
    return _CONVERTERS[kind](value)


__all__ = [
    "OutputType",
    "output_type",
    "to_float",
    "to_integer",
    "to_xsd",
    "to_raw",
    "convert",
]
