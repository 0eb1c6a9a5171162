"""Command line interface for decimalenv.

Usage:
    decimalenv EXPRESSION [--as TAG] [--precision N] [--rounding NAME]
                          [--bind NAME=VALUE ...] [--verbose]

EXPRESSION is Python source. Anything outside the recognized arithmetic
subset is evaluated as ordinary Python, so only pass trusted input.

Exit codes:
    0 - Result printed
    1 - The expression could not be evaluated (message on stderr)
    2 - Invalid command line
"""

from __future__ import annotations

import argparse
import decimal
import logging
import sys

import structlog

from decimalenv.constants import DEFAULT_OUTPUT, ROUNDING_NAMES
from decimalenv.conversion import OutputType
from decimalenv.env import evaluate
from decimalenv.errors import DecimalEnvError

logger = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="decimalenv",
        description="Evaluate a Python expression with decimal arithmetic",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  decimalenv '21.0 + "21.0"'
  decimalenv '1 / 3' --precision 2
  decimalenv '21.1 + 20' --precision 2 --rounding ceiling --as integer
  decimalenv 'a * (4 + 1 + a*a)' --bind a=3
        """,
    )
    parser.add_argument("expression", help="Python source to evaluate")
    parser.add_argument(
        "--as",
        dest="output",
        choices=[tag.value for tag in OutputType],
        default=DEFAULT_OUTPUT,
        help=f"Output type (default: {DEFAULT_OUTPUT})",
    )
    parser.add_argument(
        "--precision",
        type=int,
        default=None,
        help="Significant digits for this evaluation",
    )
    parser.add_argument(
        "--rounding",
        choices=ROUNDING_NAMES,
        default=None,
        help="Rounding strategy for this evaluation",
    )
    parser.add_argument(
        "--bind",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Bind a name to a value before evaluating (repeatable)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the command line."""
    parser = build_parser()
    args = parser.parse_args(argv)

    log_level = logging.DEBUG if args.verbose else logging.WARNING
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )

    bind = []
    for entry in args.bind:
        name, separator, value = entry.partition("=")
        if not separator or not name:
            parser.error(f"--bind expects NAME=VALUE, got {entry!r}")
        bind.append((name.strip(), value))

    context = {}
    if args.precision is not None:
        context["precision"] = args.precision
    if args.rounding is not None:
        context["rounding"] = args.rounding

    try:
        result = evaluate(args.expression, context=context or None, as_=args.output, bind=bind)
    except (DecimalEnvError, decimal.DecimalException) as err:
        logger.debug("decimal_cli_failed", error=type(err).__name__)
        print(f"Error: {err}", file=sys.stderr)
        return 1

    print(result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
