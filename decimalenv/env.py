"""Entry points: compile a block once, run it under a scoped decimal context.

    >>> evaluate('21.0 + "21.0"')
    Decimal('42.0')
    >>> evaluate("1 / 3", context={"precision": 2})
    Decimal('0.33')
    >>> evaluate("a * (4 + 1 + a*a)", bind={"a": 3})
    Decimal('42')
"""

from __future__ import annotations

import decimal
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import structlog

from decimalenv.coercion import coerce
from decimalenv.context import ContextRecord, Signal, resolve_context, scoped_context
from decimalenv.conversion import convert
from decimalenv.interpreter import Scope, run
from decimalenv.nodes import Block, Node
from decimalenv.options import EvaluateOptions, build_options
from decimalenv.parser import parse
from decimalenv.rewriter import rewrite_block

logger = structlog.get_logger()


@dataclass(frozen=True)
class CompiledBlock:
    """A rewritten block plus the options it was compiled with.

    Rewriting happens once; run() may be called any number of times.

    Attributes:
        tree: The rewritten expression tree
        options: Validated evaluation options
    """

    tree: Node
    options: EvaluateOptions

    def run(
        self,
        variables: Mapping[str, Any] | None = None,
        *,
        ambient: decimal.Context | ContextRecord | None = None,
    ) -> Any:
        """Evaluate the block.

        The effective context is resolved once per call and installed only
        for the duration of the call; the caller's context is restored
        afterwards, also when the block raises.

        Args:
            variables: Caller variables visible to the block
            ambient: Context to start from; everything the options do not
                override (including Emin, Emax, clamp and capitals) is kept.
                Defaults to the current decimal context of this thread/task.

        Returns:
            The block's value, coerced and converted to the output tag
        """
        context = resolve_context(self.options.context, ambient)
        scope = Scope.of(variables)
        with scoped_context(context) as active:
            result = convert(coerce(run(self.tree, scope)), self.options.as_)
            logger.debug(
                "decimal_block_evaluated",
                precision=active.prec,
                rounding=active.rounding,
                flags=sorted(signal.value for signal in Signal if active.flags[signal.exception]),
            )
        return result


def compile_block(
    expression: Node | str,
    options: EvaluateOptions | Mapping[str, Any] | None = None,
    *,
    namespace: Mapping[str, Any] | None = None,
    **fields: Any,
) -> CompiledBlock:
    """Rewrite a block for repeated evaluation.

    Args:
        expression: A node tree, or Python source text (see decimalenv.parser)
        options: Evaluation options ({"context": ..., "as": ..., "bind": ...})
        namespace: Extra globals for opaque sub-expressions of source text
        **fields: Option fields given directly (context=, as_=, bind=)

    Raises:
        InvalidProgramError: If the block cannot be rewritten
        InvalidOptionsError: If the options are invalid
    """
    resolved = build_options(options, **fields)
    tree = parse(expression, namespace) if isinstance(expression, str) else expression
    rewritten = rewrite_block(tree, resolved.bind)
    logger.debug(
        "decimal_block_compiled",
        statements=len(rewritten.statements) if isinstance(rewritten, Block) else 1,
        bound=len(resolved.bind),
        output=str(getattr(resolved.as_, "value", resolved.as_)),
    )
    return CompiledBlock(rewritten, resolved)


def evaluate(
    expression: Node | str,
    options: EvaluateOptions | Mapping[str, Any] | None = None,
    *,
    variables: Mapping[str, Any] | None = None,
    namespace: Mapping[str, Any] | None = None,
    **fields: Any,
) -> Any:
    """Evaluate a block with decimal arithmetic.

    Without options the result is a Decimal computed under the ambient
    context. Non-numeric strings and other non-numeric values pass through
    unchanged.

    Source text runs as Python: parts outside the recognized subset (calls to
    other functions, attribute access, ...) are evaluated with eval() against
    `variables` and `namespace`. Only evaluate source you would also run.

    Args:
        expression: A node tree, or Python source text
        options: Evaluation options ({"context": ..., "as": ..., "bind": ...})
        variables: Caller variables visible to the block
        namespace: Extra globals for opaque sub-expressions of source text
        **fields: Option fields given directly (context=, as_=, bind=)

    Returns:
        The block's value converted to the requested output type
    """
    return compile_block(expression, options, namespace=namespace, **fields).run(variables)


__all__ = ["CompiledBlock", "compile_block", "evaluate"]
