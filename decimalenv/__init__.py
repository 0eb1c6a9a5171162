"""decimalenv - infix decimal arithmetic without manual conversions."""

from decimalenv.coercion import coerce, parse_decimal, to_decimal
from decimalenv.context import (
    ContextOverrides,
    ContextRecord,
    Rounding,
    Signal,
    get_context,
    resolve_context,
    scoped_context,
)
from decimalenv.conversion import OutputType, convert
from decimalenv.env import CompiledBlock, compile_block, evaluate
from decimalenv.errors import (
    DecimalEnvError,
    InvalidContextError,
    InvalidNumberError,
    InvalidOptionsError,
    InvalidProgramError,
    OutputConversionError,
    UnboundVariableError,
)
from decimalenv.options import EvaluateOptions
from decimalenv.parser import parse
from decimalenv.rewriter import rewrite, rewrite_block

__version__ = "0.1.0"
__all__ = [
    "CompiledBlock",
    "ContextOverrides",
    "ContextRecord",
    "DecimalEnvError",
    "EvaluateOptions",
    "InvalidContextError",
    "InvalidNumberError",
    "InvalidOptionsError",
    "InvalidProgramError",
    "OutputConversionError",
    "OutputType",
    "Rounding",
    "Signal",
    "UnboundVariableError",
    "__version__",
    "coerce",
    "compile_block",
    "convert",
    "evaluate",
    "get_context",
    "parse",
    "parse_decimal",
    "resolve_context",
    "rewrite",
    "rewrite_block",
    "scoped_context",
    "to_decimal",
]
