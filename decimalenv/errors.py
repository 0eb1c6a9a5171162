"""Error classes for decimalenv.

Static errors (InvalidProgramError) are raised while a block is rewritten,
before anything runs. The remaining errors surface during a run.
"""


class DecimalEnvError(Exception):
    """Base error for decimalenv operations."""

    pass


class InvalidProgramError(DecimalEnvError, ValueError):
    """The expression uses a form that cannot be rewritten.

    Raised for non-name assignment targets, unknown rounding strategies,
    unknown functions, wrong argument counts and unsupported statements.
    """

    pass


class InvalidNumberError(DecimalEnvError, ValueError):
    """A value passed to a decimal primitive is not a valid number."""

    def __init__(self, value: object) -> None:
        self.value = value
        if isinstance(value, str):
            message = f"{value!r} is not a valid numeric value"
        else:
            message = f"{value!r} ({type(value).__name__}) is not a valid numeric value"
        super().__init__(message)


class InvalidContextError(DecimalEnvError, ValueError):
    """Context overrides could not be applied."""

    pass


class InvalidOptionsError(DecimalEnvError, ValueError):
    """Evaluation options failed validation."""

    pass


class OutputConversionError(DecimalEnvError, ValueError):
    """A decimal result cannot be represented in the requested output type."""

    pass


class UnboundVariableError(DecimalEnvError, NameError):
    """A variable was referenced but never bound."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Variable {name!r} is not bound")
        self.name = name


__all__ = [
    "DecimalEnvError",
    "InvalidProgramError",
    "InvalidNumberError",
    "InvalidContextError",
    "InvalidOptionsError",
    "OutputConversionError",
    "UnboundVariableError",
]
