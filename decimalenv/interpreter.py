"""Evaluation of rewritten expression trees.

Rewritten nodes (PrimitiveCall, Coerce, Not and the structural nodes) run
with decimal semantics. Sub-trees kept under a Coerce node run with plain
Python semantics: operators come from the `operator` module and their
operands are not coerced first. Recognized function calls always resolve to
the decimal primitives.
"""

from __future__ import annotations

import operator
from collections import ChainMap
from collections.abc import Mapping
from typing import Any

from decimalenv import operators
from decimalenv.coercion import coerce
from decimalenv.errors import InvalidProgramError, UnboundVariableError
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

# Operators evaluated natively inside delegated sub-trees
NATIVE_UNARY = {
    "+": operator.pos,
    "-": operator.neg,
    "not": operator.not_,
    "~": operator.invert,
}

NATIVE_BINARY = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": operator.truediv,
    "//": operator.floordiv,
    "%": operator.mod,
    "**": operator.pow,
    ">": operator.gt,
    "<": operator.lt,
    "==": operator.eq,
    "!=": operator.ne,
    ">=": operator.ge,
    "<=": operator.le,
}


class Scope(ChainMap):
    """Variables visible to a running block.

    Assignments go to the block's own layer and shadow the caller's
    variables for the rest of the block.
    """

    @classmethod
    def of(cls, variables: Mapping[str, Any] | None = None) -> Scope:
        """A fresh scope on top of the caller's variables (not modified)."""
        return cls({}, dict(variables or {}))

    def lookup(self, name: str) -> Any:
        try:
            return self[name]
        except KeyError:
            raise UnboundVariableError(name) from None


def run(node: Any, scope: Scope) -> Any:
    """Evaluate a rewritten tree.

    Args:
        node: Output of decimalenv.rewriter.rewrite()
        scope: Variables of the running block (updated by assignments)

    Returns:
        The value of the last evaluated statement
    """
    if not isinstance(node, Node):
        # Pass-through argument (e.g. a rounding strategy tag)
        return node
    if isinstance(node, Literal):
        return node.value
    if isinstance(node, PrimitiveCall):
        return node.func(*(run(arg, scope) for arg in node.args))
    if isinstance(node, Coerce):
        return coerce(run(node.node, scope))
    if isinstance(node, Block):
        result = None
        for statement in node.statements:
            result = run(statement, scope)
        return result
    if isinstance(node, Assignment):
        value = run(node.value, scope)
        scope[node.target.name] = value
        return value
    if isinstance(node, If):
        if run(node.condition, scope):
            return run(node.then, scope)
        return run(node.otherwise, scope)
    if isinstance(node, LogicalAnd):
        left = run(node.left, scope)
        return run(node.right, scope) if left else left
    if isinstance(node, LogicalOr):
        left = run(node.left, scope)
        return left if left else run(node.right, scope)
    if isinstance(node, Not):
        return not run(node.operand, scope)
    if isinstance(node, TupleLit):
        return tuple(run(member, scope) for member in node.members)
    if isinstance(node, ListLit):
        return [run(member, scope) for member in node.members]

    # Delegated sub-trees
    if isinstance(node, Variable):
        return scope.lookup(node.name)
    if isinstance(node, Opaque):
        return node.thunk(scope)
    if isinstance(node, UnaryOp):
        return NATIVE_UNARY[node.op](run(node.operand, scope))
    if isinstance(node, BinaryOp):
        return NATIVE_BINARY[node.op](run(node.left, scope), run(node.right, scope))
    if isinstance(node, Call):
        return getattr(operators, node.name)(*(run(arg, scope) for arg in node.args))

    raise InvalidProgramError(f"Cannot evaluate {type(node).__name__} node")


__all__ = ["NATIVE_UNARY", "NATIVE_BINARY", "Scope", "run"]
