"""Decimal arithmetic primitives with automatic input coercion.

Every function accepts an int, float, numeric string or Decimal for each
numeric argument and returns a Decimal (or a bool for predicates and
comparisons). Arithmetic honours the active decimal context.

Unlike runtime coercion, a non-numeric string is rejected here:

    >>> add("21", 21.0)
    Decimal('42.0')
    >>> add("abc", 1)
    Traceback (most recent call last):
    ...
    decimalenv.errors.InvalidNumberError: 'abc' is not a valid numeric value

The names mirror the operators they replace, so abs/min/max/round shadow the
builtins inside this module.
"""

from __future__ import annotations

import builtins
import decimal
from decimal import Decimal
from typing import Union

from decimalenv.coercion import to_decimal
from decimalenv.constants import DEFAULT_ROUND_STRATEGY
from decimalenv.context import Rounding
from decimalenv.errors import InvalidNumberError, InvalidProgramError

Input = Union[int, float, str, Decimal]

__all__ = [
    "Input",
    "rounding_strategy",
    # Functions
    "abs",
    "min",
    "max",
    "div",
    "rem",
    "sqrt",
    "round",
    "ceil",
    "floor",
    "inf",
    "reduce",
    # Operators
    "pos",
    "neg",
    "add",
    "sub",
    "mul",
    "truediv",
    "eq",
    "ne",
    "gt",
    "ge",
    "lt",
    "le",
    # Predicates
    "is_inf",
    "is_nan",
    "is_number",
    "is_integer",
]


def rounding_strategy(strategy: Rounding | str) -> Rounding:
    """Resolve a rounding strategy name.

    Raises:
        InvalidProgramError: If the strategy is not one of down, half_up,
            half_even, ceiling, floor, half_down, up
    """
    if isinstance(strategy, Rounding):
        return strategy
    try:
        return Rounding(strategy)
    except ValueError as err:
        raise InvalidProgramError(f"Unknown rounding strategy: {strategy!r}") from err


# =============================================================================
# Mathematical functions
# =============================================================================


def abs(number: Input) -> Decimal:
    """Absolute value of a number."""
    return builtins.abs(to_decimal(number))


def min(a: Input, b: Input) -> Decimal:
    """Numeric minimum of two values. A quiet NaN loses to a number."""
    return to_decimal(a).min(to_decimal(b))


def max(a: Input, b: Input) -> Decimal:
    """Numeric maximum of two values. A quiet NaN loses to a number."""
    return to_decimal(a).max(to_decimal(b))


def div(a: Input, b: Input) -> Decimal:
    """Integer part of a / b, truncated toward zero."""
    return to_decimal(a) // to_decimal(b)


def rem(a: Input, b: Input) -> Decimal:
    """Remainder of the integer division a / b, with the sign of a."""
    return to_decimal(a) % to_decimal(b)


def sqrt(number: Input) -> Decimal:
    """Square root, rounded to the context precision."""
    return to_decimal(number).sqrt()


def round(
    number: Input,
    places: Input = 0,
    strategy: Rounding | str = DEFAULT_ROUND_STRATEGY,
) -> Decimal:
    """Round a number to `places` digits after the decimal point.

    A negative `places` zeroes at least that many digits left of the point.
    The result is not limited by the context precision. Infinity and NaN are
    returned unchanged.

    Args:
        number: Value to round
        places: Digits to keep after the point (must be integral)
        strategy: One of down, half_up, half_even, ceiling, floor,
            half_down, up

    Raises:
        InvalidProgramError: If the strategy is unknown
        InvalidNumberError: If places is not an integral number
    """
    rounding = rounding_strategy(strategy)
    number = to_decimal(number)
    places_value = to_decimal(places)
    if not is_integer(places_value):
        raise InvalidNumberError(places)
    digits = int(places_value)

    if not number.is_finite():
        return number

    quantum = Decimal((0, (1,), -digits))
    with decimal.localcontext() as ctx:
        # quantize() fails when the result needs more digits than prec
        ctx.prec = builtins.max(ctx.prec, number.adjusted() + digits + 2)
        return number.quantize(quantum, rounding=rounding.to_decimal())


def ceil(number: Input) -> Decimal:
    """Smallest integral value greater than or equal to number."""
    return round(number, 0, Rounding.CEILING)


def floor(number: Input) -> Decimal:
    """Largest integral value less than or equal to number."""
    return round(number, 0, Rounding.FLOOR)


def inf() -> Decimal:
    """Positive infinity."""
    return Decimal("Infinity")


def reduce(number: Input) -> Decimal:
    """Strip trailing zeros from the coefficient.

    Decimal.normalize() would also round to the context precision; this
    keeps every significant digit.
    """
    number = to_decimal(number)
    if not number.is_finite():
        return number
    sign, digits, exponent = number.as_tuple()
    coefficient = "".join(str(digit) for digit in digits).rstrip("0")
    if not coefficient:
        return Decimal((sign, (0,), 0))
    exponent += len(digits) - len(coefficient)
    return Decimal((sign, tuple(int(c) for c in coefficient), exponent))


# =============================================================================
# Arithmetic operators
# =============================================================================


def pos(number: Input) -> Decimal:
    """Unary plus: coerce without changing the value."""
    return to_decimal(number)


def neg(number: Input) -> Decimal:
    """Unary minus."""
    return -to_decimal(number)


def add(a: Input, b: Input) -> Decimal:
    return to_decimal(a) + to_decimal(b)


def sub(a: Input, b: Input) -> Decimal:
    return to_decimal(a) - to_decimal(b)


def mul(a: Input, b: Input) -> Decimal:
    return to_decimal(a) * to_decimal(b)


def truediv(a: Input, b: Input) -> Decimal:
    return to_decimal(a) / to_decimal(b)


# =============================================================================
# Comparison operators
# =============================================================================
#
# Decimal.compare() returns NaN when either side is NaN, so every comparison
# involving NaN is False instead of raising InvalidOperation.


def eq(a: Input, b: Input) -> bool:
    """Numeric equality: Decimal("42.0") equals 42."""
    return to_decimal(a).compare(to_decimal(b)) == 0


def ne(a: Input, b: Input) -> bool:
    return not eq(a, b)


def gt(a: Input, b: Input) -> bool:
    return to_decimal(a).compare(to_decimal(b)) == 1


def lt(a: Input, b: Input) -> bool:
    return to_decimal(a).compare(to_decimal(b)) == -1


def ge(a: Input, b: Input) -> bool:
    a = to_decimal(a)
    b = to_decimal(b)
    return gt(a, b) or eq(a, b)


def le(a: Input, b: Input) -> bool:
    a = to_decimal(a)
    b = to_decimal(b)
    return lt(a, b) or eq(a, b)


# =============================================================================
# Predicates
# =============================================================================


def is_inf(number: Input) -> bool:
    """True for positive or negative infinity."""
    return to_decimal(number).is_infinite()


def is_nan(number: Input) -> bool:
    return to_decimal(number).is_nan()


def is_number(number: Input) -> bool:
    """True unless the value is NaN. Infinities count as numbers."""
    return not to_decimal(number).is_nan()


def is_integer(number: Input) -> bool:
    """True for finite values without a fractional part (42.0 included)."""
    number = to_decimal(number)
    return number.is_finite() and number == number.to_integral_value()
