"""Shared constants for decimalenv.

Centralizes the recognized function table and default option values.
"""

# Output tag used when no `as` option is given
DEFAULT_OUTPUT = "decimal"

# Rounding strategy used by round() when none is given
DEFAULT_ROUND_STRATEGY = "half_up"

# Rounding strategy names accepted by round() and context overrides
ROUNDING_NAMES = (
    "down",
    "half_up",
    "half_even",
    "ceiling",
    "floor",
    "half_down",
    "up",
)

# Functions the rewriter turns into primitive calls.
# Format: {name: (min_args, max_args)}
KNOWN_FUNCTIONS: dict[str, tuple[int, int]] = {
    "abs": (1, 1),
    "ceil": (1, 1),
    "div": (2, 2),
    "floor": (1, 1),
    "inf": (0, 0),
    "is_inf": (1, 1),
    "is_integer": (1, 1),
    "is_nan": (1, 1),
    "is_number": (1, 1),
    "max": (2, 2),
    "min": (2, 2),
    "reduce": (1, 1),
    "rem": (2, 2),
    "round": (1, 3),
    "sqrt": (1, 1),
}

# Argument position of round()'s strategy tag (passed through, not rewritten)
ROUND_STRATEGY_POSITION = 2
