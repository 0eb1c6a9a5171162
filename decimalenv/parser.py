"""Python source front end.

Turns Python source text into decimalenv nodes with the stdlib `ast` module,
so blocks can be written as ordinary Python:

    >>> parse("a * (4 + 1 + a*a)")
    Block(statements=(BinaryOp(op='*', left=Variable(name='a'), ...),))

Numeric literals keep their source spelling ("21.0" stays 21.0, "0.1" stays
0.1). Expressions outside the recognized subset (attribute access,
subscripts, calls to other functions, comprehensions, ...) become Opaque
nodes: they are compiled here and evaluated by Python at run time against
the block's variables, with the same trust as any other Python code.
Statements other than expressions, assignments, `if` and `pass` are rejected.
"""

from __future__ import annotations

import ast
import textwrap
from collections.abc import Mapping
from typing import Any

from decimalenv.coercion import parse_decimal
from decimalenv.constants import KNOWN_FUNCTIONS, ROUND_STRATEGY_POSITION
from decimalenv.errors import InvalidProgramError
from decimalenv.nodes import (
    Assignment,
    BinaryOp,
    Block,
    Call,
    If,
    ListLit,
    Literal,
    LogicalAnd,
    LogicalOr,
    Node,
    Opaque,
    TupleLit,
    UnaryOp,
    Variable,
)

_UNARY_OPS = {ast.UAdd: "+", ast.USub: "-", ast.Not: "not", ast.Invert: "~"}

_BINARY_OPS = {
    ast.Add: "+",
    ast.Sub: "-",
    ast.Mult: "*",
    ast.Div: "/",
    ast.FloorDiv: "//",
    ast.Mod: "%",
    ast.Pow: "**",
}

_COMPARE_OPS = {
    ast.Gt: ">",
    ast.Lt: "<",
    ast.Eq: "==",
    ast.NotEq: "!=",
    ast.GtE: ">=",
    ast.LtE: "<=",
}

_ROUND_KEYWORDS = ("number", "places", "strategy")


class _Converter:
    """Converts one parsed module into nodes."""

    def __init__(self, source: str, namespace: Mapping[str, Any] | None) -> None:
        self.source = source
        self.namespace = dict(namespace or {})
        self.temporaries = 0

    # --- Statements ---

    def block(self, statements: list[ast.stmt]) -> Block:
        return Block(tuple(self.statement(statement) for statement in statements))

    def statement(self, node: ast.stmt) -> Node:
        if isinstance(node, ast.Expr):
            return self.expression(node.value)
        if isinstance(node, ast.Assign):
            if len(node.targets) != 1:
                raise InvalidProgramError(f"Chained assignment is not supported (line {node.lineno})")
            return Assignment(self.target(node.targets[0]), self.expression(node.value))
        if isinstance(node, ast.AugAssign):
            op = _BINARY_OPS.get(type(node.op))
            if op is None or not isinstance(node.target, ast.Name):
                raise InvalidProgramError(f"Unsupported augmented assignment (line {node.lineno})")
            target = Variable(node.target.id)
            return Assignment(target, BinaryOp(op, target, self.expression(node.value)))
        if isinstance(node, ast.If):
            otherwise = self.block(node.orelse) if node.orelse else Literal(None)
            return If(self.expression(node.test), self.block(node.body), otherwise)
        if isinstance(node, ast.Pass):
            return Literal(None)
        raise InvalidProgramError(
            f"Unsupported statement: {type(node).__name__} (line {node.lineno})"
        )

    def target(self, node: ast.expr) -> Node:
        # Tuple/list targets are kept so the rewriter can reject them
        if isinstance(node, ast.Name):
            return Variable(node.id)
        if isinstance(node, ast.Tuple):
            return TupleLit(tuple(self.target(element) for element in node.elts))
        if isinstance(node, ast.List):
            return ListLit(tuple(self.target(element) for element in node.elts))
        raise InvalidProgramError(
            f"Assignment target must be a plain name: {ast.unparse(node)} (line {node.lineno})"
        )

    # --- Expressions ---

    def expression(self, node: ast.expr) -> Node:
        if isinstance(node, ast.Constant):
            return self.constant(node)
        if isinstance(node, ast.Name):
            return Variable(node.id)
        if isinstance(node, ast.UnaryOp):
            return UnaryOp(_UNARY_OPS[type(node.op)], self.expression(node.operand))
        if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
            return BinaryOp(
                _BINARY_OPS[type(node.op)], self.expression(node.left), self.expression(node.right)
            )
        if isinstance(node, ast.Compare) and all(type(op) in _COMPARE_OPS for op in node.ops):
            return self.compare(node)
        if isinstance(node, ast.BoolOp):
            combine = LogicalAnd if isinstance(node.op, ast.And) else LogicalOr
            values = [self.expression(value) for value in node.values]
            result = values[-1]
            for value in reversed(values[:-1]):
                result = combine(value, result)
            return result
        if isinstance(node, ast.IfExp):
            return If(
                self.expression(node.test), self.expression(node.body), self.expression(node.orelse)
            )
        if isinstance(node, (ast.Tuple, ast.List)) and not any(
            isinstance(element, ast.Starred) for element in node.elts
        ):
            members = tuple(self.expression(element) for element in node.elts)
            return TupleLit(members) if isinstance(node, ast.Tuple) else ListLit(members)
        if self.is_known_call(node):
            return self.call(node)
        return self.opaque(node)

    def constant(self, node: ast.Constant) -> Literal:
        value = node.value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            # Keep the spelling: ast turns "21.0" and "21.00" into the same float
            segment = ast.get_source_segment(self.source, node)
            parsed = parse_decimal(segment) if segment else None
            if parsed is not None:
                return Literal(parsed)
        return Literal(value)

    def compare(self, node: ast.Compare) -> Node:
        operands = [self.expression(operand) for operand in (node.left, *node.comparators)]
        ops = [_COMPARE_OPS[type(op)] for op in node.ops]
        if len(ops) == 1:
            return BinaryOp(ops[0], operands[0], operands[1])

        # a < b < c becomes (a < b) and (b < c), with every operand but the
        # last bound to a temporary when first needed so it runs at most once
        names = [Variable(self.temporary()) for _ in operands[:-1]]
        pairs: list[Node] = [
            Block(
                (
                    Assignment(names[0], operands[0]),
                    Assignment(names[1], operands[1]),
                    BinaryOp(ops[0], names[0], names[1]),
                )
            )
        ]
        for index in range(1, len(ops)):
            if index + 1 < len(names):
                right = names[index + 1]
                pairs.append(
                    Block(
                        (
                            Assignment(right, operands[index + 1]),
                            BinaryOp(ops[index], names[index], right),
                        )
                    )
                )
            else:
                pairs.append(BinaryOp(ops[index], names[index], operands[index + 1]))
        result = pairs[-1]
        for pair in reversed(pairs[:-1]):
            result = LogicalAnd(pair, result)
        return result

    def temporary(self) -> str:
        # Not an identifier, so it cannot clash with a block variable
        self.temporaries += 1
        return f"<chain {self.temporaries}>"

    @staticmethod
    def is_known_call(node: ast.expr) -> bool:
        return (
            isinstance(node, ast.Call)
            and isinstance(node.func, ast.Name)
            and node.func.id in KNOWN_FUNCTIONS
            and not any(isinstance(arg, ast.Starred) for arg in node.args)
            and all(keyword.arg is not None for keyword in node.keywords)
        )

    def call(self, node: ast.Call) -> Call:
        name = node.func.id
        args: list[ast.expr | None] = list(node.args)
        for keyword in node.keywords:
            if name != "round" or keyword.arg not in _ROUND_KEYWORDS:
                raise InvalidProgramError(
                    f"{name}() got an unexpected keyword argument {keyword.arg!r} (line {node.lineno})"
                )
            position = _ROUND_KEYWORDS.index(keyword.arg)
            while len(args) <= position:
                args.append(None)
            if args[position] is not None:
                raise InvalidProgramError(
                    f"round() got multiple values for {keyword.arg!r} (line {node.lineno})"
                )
            args[position] = keyword.value

        converted: list[Node] = []
        for position, arg in enumerate(args):
            if arg is None:
                # Omitted positional before a keyword: use round()'s defaults
                converted.append(Literal(0))
            elif name == "round" and position == ROUND_STRATEGY_POSITION:
                converted.append(self.strategy(arg))
            else:
                converted.append(self.expression(arg))
        return Call(name, tuple(converted))

    def strategy(self, node: ast.expr) -> Node:
        # round(x, 2, half_even) names the strategy with a bare word
        if isinstance(node, ast.Name):
            return Literal(node.id)
        return self.expression(node)

    def opaque(self, node: ast.expr) -> Opaque:
        source = ast.get_source_segment(self.source, node) or ast.unparse(node)
        code = compile(ast.Expression(body=node), "<decimalenv>", "eval")
        namespace = self.namespace

        def thunk(scope: Mapping[str, Any]) -> Any:
            return eval(code, namespace, scope)  # noqa: S307

        return Opaque(thunk, source)


def parse(source: str, namespace: Mapping[str, Any] | None = None) -> Block:
    """Parse Python source text into a block of decimalenv nodes.

    Args:
        source: One or more statements; the last one gives the block's value
        namespace: Extra globals visible to opaque sub-expressions (for
            example helper functions the block calls)

    Returns:
        A Block node

    Raises:
        InvalidProgramError: On syntax errors and unsupported statements
    """
    text = textwrap.dedent(source).strip()
    try:
        tree = ast.parse(text, mode="exec")
    except SyntaxError as err:
        raise InvalidProgramError(f"Invalid syntax: {err.msg} (line {err.lineno})") from err
    return _Converter(text, namespace).block(tree.body)


__all__ = ["parse"]
