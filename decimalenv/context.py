"""Decimal context records, override resolution and scoped installation.

The ambient context is the `decimal` module's own current context, which is
local to the running thread and asyncio task. Overrides are installed with
decimal.localcontext(), so the previous context comes back on every exit path
and concurrent evaluations never observe each other's settings.
"""

from __future__ import annotations

import contextlib
import decimal
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from decimalenv.errors import InvalidContextError

logger = structlog.get_logger()


class Rounding(str, Enum):
    """Rounding strategies shared by contexts and round()."""

    DOWN = "down"
    HALF_UP = "half_up"
    HALF_EVEN = "half_even"
    CEILING = "ceiling"
    FLOOR = "floor"
    HALF_DOWN = "half_down"
    UP = "up"

    @classmethod
    def _missing_(cls, value: object) -> Rounding | None:
        # Accept decimal.ROUND_* constants and any casing of the names
        if isinstance(value, str):
            if value in _DECIMAL_ROUNDING_NAMES:
                return _DECIMAL_ROUNDING_NAMES[value]
            lowered = value.lower()
            for member in cls:
                if member.value == lowered:
                    return member
        return None

    def to_decimal(self) -> str:
        """The matching decimal.ROUND_* constant."""
        return _ROUNDING_TO_DECIMAL[self]


_ROUNDING_TO_DECIMAL = {
    Rounding.DOWN: decimal.ROUND_DOWN,
    Rounding.HALF_UP: decimal.ROUND_HALF_UP,
    Rounding.HALF_EVEN: decimal.ROUND_HALF_EVEN,
    Rounding.CEILING: decimal.ROUND_CEILING,
    Rounding.FLOOR: decimal.ROUND_FLOOR,
    Rounding.HALF_DOWN: decimal.ROUND_HALF_DOWN,
    Rounding.UP: decimal.ROUND_UP,
}
_DECIMAL_ROUNDING_NAMES = {constant: member for member, constant in _ROUNDING_TO_DECIMAL.items()}


class Signal(str, Enum):
    """Names of the decimal signals that can be trapped or flagged."""

    CLAMPED = "clamped"
    DIVISION_BY_ZERO = "division_by_zero"
    INEXACT = "inexact"
    INVALID_OPERATION = "invalid_operation"
    OVERFLOW = "overflow"
    ROUNDED = "rounded"
    SUBNORMAL = "subnormal"
    UNDERFLOW = "underflow"
    FLOAT_OPERATION = "float_operation"

    @property
    def exception(self) -> type[decimal.DecimalException]:
        """The decimal signal class this name stands for."""
        return _SIGNAL_CLASSES[self]


_SIGNAL_CLASSES: dict[Signal, type[decimal.DecimalException]] = {
    Signal.CLAMPED: decimal.Clamped,
    Signal.DIVISION_BY_ZERO: decimal.DivisionByZero,
    Signal.INEXACT: decimal.Inexact,
    Signal.INVALID_OPERATION: decimal.InvalidOperation,
    Signal.OVERFLOW: decimal.Overflow,
    Signal.ROUNDED: decimal.Rounded,
    Signal.SUBNORMAL: decimal.Subnormal,
    Signal.UNDERFLOW: decimal.Underflow,
    Signal.FLOAT_OPERATION: decimal.FloatOperation,
}


def _active_signals(table: Mapping[Any, bool]) -> frozenset[Signal]:
    return frozenset(signal for signal, cls in _SIGNAL_CLASSES.items() if table.get(cls, False))


@dataclass(frozen=True)
class ContextRecord:
    """Precision, rounding and trap configuration for one evaluation.

    Attributes:
        precision: Number of significant digits (positive)
        rounding: Rounding strategy applied by arithmetic
        traps: Signals that raise instead of only setting a flag
        flags: Signals already raised when the context is installed
    """

    precision: int = 28
    rounding: Rounding = Rounding.HALF_EVEN
    traps: frozenset[Signal] = frozenset(
        {Signal.INVALID_OPERATION, Signal.DIVISION_BY_ZERO, Signal.OVERFLOW}
    )
    flags: frozenset[Signal] = frozenset()

    def __post_init__(self) -> None:
        if isinstance(self.precision, bool) or not isinstance(self.precision, int):
            raise InvalidContextError(f"Precision must be an integer, got {self.precision!r}")
        if self.precision <= 0:
            raise InvalidContextError(f"Precision must be positive, got {self.precision}")
        # Frozen dataclass: normalize plain names into enum members in place
        try:
            object.__setattr__(self, "rounding", Rounding(self.rounding))
            object.__setattr__(self, "traps", frozenset(Signal(s) for s in self.traps))
            object.__setattr__(self, "flags", frozenset(Signal(s) for s in self.flags))
        except (TypeError, ValueError) as err:
            raise InvalidContextError(f"Invalid context record: {err}") from err

    @classmethod
    def from_decimal(cls, context: decimal.Context) -> ContextRecord:
        """Snapshot a decimal.Context.

        Raises:
            InvalidContextError: If the context uses a rounding mode outside
                the supported set (e.g. ROUND_05UP)
        """
        if context.rounding not in _DECIMAL_ROUNDING_NAMES:
            raise InvalidContextError(f"Unsupported rounding: {context.rounding}")
        return cls(
            precision=context.prec,
            rounding=_DECIMAL_ROUNDING_NAMES[context.rounding],
            traps=_active_signals(context.traps),
            flags=_active_signals(context.flags),
        )

    def to_decimal(self) -> decimal.Context:
        """Build a fresh decimal.Context with this record's settings."""
        return decimal.Context(
            prec=self.precision,
            rounding=self.rounding.to_decimal(),
            traps=[signal.exception for signal in self.traps],
            flags=[signal.exception for signal in self.flags],
        )


class ContextOverrides(BaseModel):
    """Partial context fields to merge onto the ambient context.

    Unset fields are taken from the ambient context.
    """

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    precision: int | None = Field(default=None, gt=0, alias="prec")
    rounding: Rounding | None = None
    traps: frozenset[Signal] | None = None
    flags: frozenset[Signal] | None = None


def get_context() -> ContextRecord:
    """Return the ambient context of the current thread/task as a record.

    Raises:
        InvalidContextError: If the ambient context uses a rounding mode
            outside the supported set (e.g. ROUND_05UP)
    """
    return ContextRecord.from_decimal(decimal.getcontext())


def parse_overrides(overrides: Any) -> ContextOverrides:
    """Validate partial overrides given as a mapping or (field, value) pairs.

    Raises:
        InvalidContextError: If a field is unknown or has an invalid value
    """
    if isinstance(overrides, ContextOverrides):
        return overrides
    if not isinstance(overrides, Mapping):
        try:
            overrides = dict(overrides)
        except (TypeError, ValueError) as err:
            raise InvalidContextError(f"Invalid context overrides: {overrides!r}") from err
    try:
        return ContextOverrides.model_validate(overrides)
    except ValidationError as err:
        raise InvalidContextError(f"Invalid context overrides: {err}") from err


def _apply(
    context: decimal.Context,
    precision: int | None = None,
    rounding: Rounding | None = None,
    traps: frozenset[Signal] | None = None,
    flags: frozenset[Signal] | None = None,
) -> decimal.Context:
    # Only the given fields change; Emin, Emax, clamp and capitals stay
    if precision is not None:
        context.prec = precision
    if rounding is not None:
        context.rounding = rounding.to_decimal()
    if traps is not None:
        context.clear_traps()
        for signal in traps:
            context.traps[signal.exception] = True
    if flags is not None:
        context.clear_flags()
        for signal in flags:
            context.flags[signal.exception] = True
    return context


def _base_context(ambient: decimal.Context | ContextRecord | None) -> decimal.Context:
    if ambient is None:
        return decimal.getcontext().copy()
    if isinstance(ambient, ContextRecord):
        return ambient.to_decimal()
    return ambient.copy()


def resolve_context(
    overrides: Any = None,
    ambient: decimal.Context | ContextRecord | None = None,
) -> decimal.Context:
    """Compute the effective context for one evaluation.

    Args:
        overrides: None (the ambient context as it is), a decimal.Context
            (used verbatim), a ContextRecord (all four of its fields replace
            the ambient ones), or partial fields as a mapping, (field, value)
            pairs or ContextOverrides
        ambient: Context to start from. Defaults to the current decimal
            context of this thread/task.

    Returns:
        A new decimal.Context. Neither the ambient context nor a passed-in
        decimal.Context is modified.

    Raises:
        InvalidContextError: If the overrides are invalid
    """
    if isinstance(overrides, decimal.Context):
        return overrides.copy()

    base = _base_context(ambient)
    if overrides is None:
        return base

    if isinstance(overrides, ContextRecord):
        fields = {
            "precision": overrides.precision,
            "rounding": overrides.rounding,
            "traps": overrides.traps,
            "flags": overrides.flags,
        }
    else:
        fields = parse_overrides(overrides).model_dump(exclude_none=True)
    resolved = _apply(base, **fields)
    logger.debug(
        "decimal_context_resolved",
        overridden=sorted(fields),
        precision=resolved.prec,
        rounding=resolved.rounding,
    )
    return resolved


@contextlib.contextmanager
def scoped_context(context: decimal.Context | ContextRecord) -> Iterator[decimal.Context]:
    """Install a context for the duration of a with-block.

    The previous context is restored when the block exits, including when it
    raises.
    """
    if isinstance(context, ContextRecord):
        context = context.to_decimal()
    with decimal.localcontext(context) as active:
        yield active


__all__ = [
    "Rounding",
    "Signal",
    "ContextRecord",
    "ContextOverrides",
    "get_context",
    "parse_overrides",
    "resolve_context",
    "scoped_context",
]
