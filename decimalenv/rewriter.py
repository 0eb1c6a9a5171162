"""Static rewriting of expression trees into decimal primitive calls.

rewrite() is a pure transform: it never evaluates anything. Children are
rewritten first and the node is then rebuilt around its decimal equivalent:

    BinaryOp("+", Literal(21.0), Literal("21.0"))
        -> PrimitiveCall("add", (Literal(Decimal("21.0")), Literal(Decimal("21.0"))))

    BinaryOp("<", a, b)
        -> PrimitiveCall("gt", (b', a'))

    BinaryOp(">=", a, b)
        -> LogicalOr(PrimitiveCall("gt", (a', b')), PrimitiveCall("eq", (a'', b'')))

Numeric literals are folded once, here. Variables, opaque nodes and any
shape the rewriter does not recognize are wrapped whole in a Coerce node and
coerced at run time. Invalid programs are rejected before anything runs.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import structlog

from decimalenv import operators
from decimalenv.coercion import coerce
from decimalenv.constants import KNOWN_FUNCTIONS, ROUND_STRATEGY_POSITION
from decimalenv.errors import InvalidProgramError
from decimalenv.interpreter import NATIVE_BINARY, NATIVE_UNARY
from decimalenv.nodes import (
    Assignment,
    BinaryOp,
    Block,
    Call,
    Coerce,
    If,
    ListLit,
    Literal,
    LogicalAnd,
    LogicalOr,
    Node,
    Not,
    Opaque,
    PrimitiveCall,
    TupleLit,
    UnaryOp,
    Variable,
)

logger = structlog.get_logger()

_UNARY_PRIMITIVES = {"+": "pos", "-": "neg"}
_ARITHMETIC_PRIMITIVES = {"+": "add", "-": "sub", "*": "mul", "/": "truediv"}


def _primitive(name: str, *args: Any) -> PrimitiveCall:
    return PrimitiveCall(name, getattr(operators, name), args)


# =============================================================================
# Comparisons
# =============================================================================
#
# Each builder receives the original operands. ">=" and "<=" rewrite both
# operands twice, once per check, so an operand runs once per check.


def _greater(left: Any, right: Any) -> Node:
    return _primitive("gt", rewrite(left), rewrite(right))


def _less(left: Any, right: Any) -> Node:
    return _primitive("gt", rewrite(right), rewrite(left))


def _equal(left: Any, right: Any) -> Node:
    return _primitive("eq", rewrite(left), rewrite(right))


def _not_equal(left: Any, right: Any) -> Node:
    return Not(_equal(left, right))


def _greater_or_equal(left: Any, right: Any) -> Node:
    return LogicalOr(_greater(left, right), _equal(left, right))


def _less_or_equal(left: Any, right: Any) -> Node:
    return LogicalOr(_less(left, right), _equal(left, right))


_COMPARISONS = {
    ">": _greater,
    "<": _less,
    "==": _equal,
    "!=": _not_equal,
    ">=": _greater_or_equal,
    "<=": _less_or_equal,
}


# =============================================================================
# Validation
# =============================================================================


def _check_arity(name: str, args: tuple[Any, ...]) -> None:
    if name not in KNOWN_FUNCTIONS:
        logger.warning("decimal_rewrite_rejected", reason="unknown_function", function=name)
        raise InvalidProgramError(f"Unknown function: {name}()")
    low, high = KNOWN_FUNCTIONS[name]
    if not low <= len(args) <= high:
        expected = str(low) if low == high else f"{low} to {high}"
        raise InvalidProgramError(f"{name}() takes {expected} arguments, got {len(args)}")


def _check_delegated(node: Any) -> None:
    """Reject delegated sub-trees that could not run at all."""
    if not isinstance(node, Node) or isinstance(node, (Literal, Variable, Opaque)):
        return
    if isinstance(node, UnaryOp):
        if node.op not in NATIVE_UNARY:
            raise InvalidProgramError(f"Unsupported unary operator: {node.op!r}")
        _check_delegated(node.operand)
    elif isinstance(node, BinaryOp):
        if node.op not in NATIVE_BINARY:
            raise InvalidProgramError(f"Unsupported binary operator: {node.op!r}")
        _check_delegated(node.left)
        _check_delegated(node.right)
    elif isinstance(node, Call):
        _check_arity(node.name, node.args)
        if node.name == "round" and len(node.args) > ROUND_STRATEGY_POSITION:
            _strategy_tag(node.args[ROUND_STRATEGY_POSITION])
        for arg in node.args:
            _check_delegated(arg)
    elif isinstance(node, (TupleLit, ListLit)):
        for member in node.members:
            _check_delegated(member)
    elif isinstance(node, If):
        for child in (node.condition, node.then, node.otherwise):
            _check_delegated(child)
    elif isinstance(node, (LogicalAnd, LogicalOr)):
        _check_delegated(node.left)
        _check_delegated(node.right)
    elif isinstance(node, Block):
        for statement in node.statements:
            _check_delegated(statement)
    elif isinstance(node, Assignment):
        if not isinstance(node.target, Variable):
            raise InvalidProgramError(
                f"Assignment target must be a plain name, got {type(node.target).__name__}"
            )
        _check_delegated(node.value)
    else:
        raise InvalidProgramError(f"Unsupported expression: {type(node).__name__}")


def _strategy_tag(tag: Any) -> Any:
    """Validate round()'s strategy argument, which is passed through as-is."""
    if isinstance(tag, Literal):
        tag = tag.value
    elif isinstance(tag, Node):
        raise InvalidProgramError("round() strategy must be a literal rounding name")
    operators.rounding_strategy(tag)
    return tag


# =============================================================================
# Rewriting
# =============================================================================


def _delegate(node: Any) -> Coerce:
    _check_delegated(node)
    if isinstance(node, (UnaryOp, BinaryOp, Opaque)):
        logger.debug("decimal_rewrite_delegated", node=type(node).__name__, source=_describe(node))
    return Coerce(node)


def _describe(node: Node) -> str:
    if isinstance(node, Opaque):
        return node.source
    return getattr(node, "op", "")


def _rewrite_call(node: Call) -> Node:
    _check_arity(node.name, node.args)
    args = list(node.args)
    if node.name == "round" and len(args) > ROUND_STRATEGY_POSITION:
        strategy = _strategy_tag(args[ROUND_STRATEGY_POSITION])
        return _primitive(
            node.name,
            *(rewrite(arg) for arg in args[:ROUND_STRATEGY_POSITION]),
            strategy,
        )
    return _primitive(node.name, *(rewrite(arg) for arg in args))


def _rewrite_assignment(node: Assignment) -> Assignment:
    if not isinstance(node.target, Variable):
        logger.warning(
            "decimal_rewrite_rejected",
            reason="invalid_assignment_target",
            target=type(node.target).__name__,
        )
        raise InvalidProgramError(
            f"Assignment target must be a plain name, got {type(node.target).__name__}"
        )
    return Assignment(node.target, rewrite(node.value))


def rewrite(node: Any) -> Node:
    """Rewrite an expression tree into decimal primitive calls.

    Args:
        node: A source node, or a plain Python value (treated as a literal)

    Returns:
        The rewritten tree, ready for decimalenv.interpreter.run()

    Raises:
        InvalidProgramError: If the tree assigns to something other than a
            name, calls an unknown function, passes the wrong number of
            arguments, uses an unknown rounding strategy or contains a node
            that cannot be evaluated
    """
    if not isinstance(node, Node):
        node = Literal(node)

    if isinstance(node, Literal):
        return Literal(coerce(node.value))
    if isinstance(node, Block):
        return Block(tuple(rewrite(statement) for statement in node.statements))
    if isinstance(node, UnaryOp) and node.op in _UNARY_PRIMITIVES:
        return _primitive(_UNARY_PRIMITIVES[node.op], rewrite(node.operand))
    if isinstance(node, BinaryOp) and node.op in _ARITHMETIC_PRIMITIVES:
        return _primitive(_ARITHMETIC_PRIMITIVES[node.op], rewrite(node.left), rewrite(node.right))
    if isinstance(node, BinaryOp) and node.op in _COMPARISONS:
        return _COMPARISONS[node.op](node.left, node.right)
    if isinstance(node, Call):
        return _rewrite_call(node)
    if isinstance(node, TupleLit):
        return TupleLit(tuple(rewrite(member) for member in node.members))
    if isinstance(node, ListLit):
        return ListLit(tuple(rewrite(member) for member in node.members))
    if isinstance(node, Assignment):
        return _rewrite_assignment(node)
    if isinstance(node, If):
        return If(rewrite(node.condition), rewrite(node.then), rewrite(node.otherwise))
    if isinstance(node, LogicalAnd):
        return LogicalAnd(rewrite(node.left), rewrite(node.right))
    if isinstance(node, LogicalOr):
        return LogicalOr(rewrite(node.left), rewrite(node.right))
    if isinstance(node, Not):
        return Not(rewrite(node.operand))
    if isinstance(node, (PrimitiveCall, Coerce)):
        # Already rewritten
        return node
    return _delegate(node)


def rewrite_block(node: Any, bind: Iterable[tuple[str, Any]] = ()) -> Node:
    """Rewrite a block, prefixed with one coercion-assignment per bind entry.

    Each bind source is evaluated and coerced once, before the body runs; the
    bound name then shadows any caller variable of the same name.

    Args:
        node: Block body
        bind: (name, source) pairs; sources are nodes or plain values

    Returns:
        The rewritten block
    """
    bind = list(bind)
    prelude = [
        Assignment(Variable(name), _delegate(source if isinstance(source, Node) else Literal(source)))
        for name, source in bind
    ]
    body = rewrite(node)
    if not prelude:
        return body
    statements = body.statements if isinstance(body, Block) else (body,)
    logger.debug("decimal_block_bound", names=[name for name, _ in bind])
    return Block((*prelude, *statements))


__all__ = ["rewrite", "rewrite_block"]
