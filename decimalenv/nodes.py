"""Expression tree node types.

Source nodes describe a block as written by the caller (or produced by
decimalenv.parser). The rewriter turns them into a tree that additionally
uses PrimitiveCall, Coerce and Not; source nodes it does not recognize are
kept verbatim under a Coerce node and evaluated with plain Python semantics.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any


class Node:
    """Base class for all expression nodes."""

    __slots__ = ()


def _as_tuple(node: Node, name: str) -> None:
    # Frozen dataclasses: accept lists from callers, store tuples
    value = getattr(node, name)
    if not isinstance(value, tuple):
        object.__setattr__(node, name, tuple(value))


# =============================================================================
# Source nodes
# =============================================================================


@dataclass(frozen=True)
class Literal(Node):
    """A constant: number, string or atom (True, False, None, enum members)."""

    value: Any


@dataclass(frozen=True)
class Block(Node):
    """Statements evaluated in order; the last one gives the block's value."""

    statements: tuple[Any, ...]

    def __post_init__(self) -> None:
        _as_tuple(self, "statements")


@dataclass(frozen=True)
class UnaryOp(Node):
    """Prefix operator: "+" and "-" are rewritten, "not" and "~" run natively."""

    op: str
    operand: Any


@dataclass(frozen=True)
class BinaryOp(Node):
    """Infix operator.

    "+ - * /" and the comparisons are rewritten to decimal primitives;
    "//", "%" and "**" run natively.
    """

    op: str
    left: Any
    right: Any


@dataclass(frozen=True)
class Call(Node):
    """Call to one of the recognized functions (see constants.KNOWN_FUNCTIONS)."""

    name: str
    args: tuple[Any, ...] = ()

    def __post_init__(self) -> None:
        _as_tuple(self, "args")


@dataclass(frozen=True)
class TupleLit(Node):
    members: tuple[Any, ...]

    def __post_init__(self) -> None:
        _as_tuple(self, "members")


@dataclass(frozen=True)
class ListLit(Node):
    members: tuple[Any, ...]

    def __post_init__(self) -> None:
        _as_tuple(self, "members")


@dataclass(frozen=True)
class Assignment(Node):
    """Bind the value of an expression to a name for the rest of the block.

    The target must be a Variable; anything else is rejected when the block
    is rewritten.
    """

    target: Any
    value: Any


@dataclass(frozen=True)
class If(Node):
    condition: Any
    then: Any
    otherwise: Any = Literal(None)


@dataclass(frozen=True)
class LogicalAnd(Node):
    left: Any
    right: Any


@dataclass(frozen=True)
class LogicalOr(Node):
    left: Any
    right: Any


@dataclass(frozen=True)
class Variable(Node):
    """A name whose value is only known at run time."""

    name: str


@dataclass(frozen=True)
class Opaque(Node):
    """A sub-expression the rewriter does not look into.

    Attributes:
        thunk: Called at run time with the current variable scope; its
            return value is runtime-coerced
        source: Description used in error messages and logs
    """

    thunk: Callable[[Mapping[str, Any]], Any] = field(compare=False)
    source: str = "<opaque>"


# =============================================================================
# Rewritten nodes
# =============================================================================


@dataclass(frozen=True)
class PrimitiveCall(Node):
    """Call into decimalenv.operators.

    Arguments are nodes, except pass-through tags such as round()'s strategy.
    """

    name: str
    func: Callable[..., Any] = field(compare=False, repr=False)
    args: tuple[Any, ...] = ()

    def __post_init__(self) -> None:
        _as_tuple(self, "args")


@dataclass(frozen=True)
class Coerce(Node):
    """Evaluate a node with plain Python semantics, then runtime-coerce it."""

    node: Any


@dataclass(frozen=True)
class Not(Node):
    operand: Any


__all__ = [
    "Node",
    "Literal",
    "Block",
    "UnaryOp",
    "BinaryOp",
    "Call",
    "TupleLit",
    "ListLit",
    "Assignment",
    "If",
    "LogicalAnd",
    "LogicalOr",
    "Variable",
    "Opaque",
    "PrimitiveCall",
    "Coerce",
    "Not",
]
