"""Pydantic model for evaluation options."""

from __future__ import annotations

import decimal
import keyword
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from decimalenv.constants import DEFAULT_OUTPUT
from decimalenv.context import ContextOverrides, ContextRecord, parse_overrides
from decimalenv.conversion import output_type
from decimalenv.errors import InvalidContextError, InvalidOptionsError


class EvaluateOptions(BaseModel):
    """Options for one evaluation.

    Attributes:
        context: None (ambient context), a full ContextRecord or
            decimal.Context, or partial overrides such as {"precision": 2}
        as_: Output tag (alias "as"). Unknown tags leave the result unchanged.
        bind: (name, source) pairs coerced once before the block runs.
            A mapping is accepted and keeps its order.
    """

    model_config = ConfigDict(
        extra="forbid", frozen=True, populate_by_name=True, arbitrary_types_allowed=True
    )

    context: Any = None
    as_: Any = Field(default=DEFAULT_OUTPUT, alias="as")
    bind: tuple[tuple[str, Any], ...] = ()

    @field_validator("context", mode="before")
    @classmethod
    def validate_context(cls, value: Any) -> Any:
        if value is None or isinstance(value, (ContextRecord, decimal.Context, ContextOverrides)):
            return value
        return parse_overrides(value)

    @field_validator("as_", mode="before")
    @classmethod
    def validate_output(cls, value: Any) -> Any:
        if value is None:
            return DEFAULT_OUTPUT
        return output_type(value) or value

    @field_validator("bind", mode="before")
    @classmethod
    def validate_bind(cls, value: Any) -> Any:
        if value is None:
            return ()
        pairs = list(value.items()) if isinstance(value, Mapping) else list(value)
        for pair in pairs:
            if not isinstance(pair, (tuple, list)) or len(pair) != 2:
                raise ValueError(f"bind entries must be (name, source) pairs, got {pair!r}")
            name = pair[0]
            if not isinstance(name, str) or not name.isidentifier() or keyword.iskeyword(name):
                raise ValueError(f"bind target must be a plain name, got {name!r}")
        return tuple((name, source) for name, source in pairs)


def build_options(options: Any = None, **fields: Any) -> EvaluateOptions:
    """Normalize caller options into an EvaluateOptions.

    Args:
        options: An EvaluateOptions, a mapping with "context"/"as"/"bind"
            keys, or None
        **fields: Individual fields (context=, as_=, bind=) overriding
            `options`

    Raises:
        InvalidContextError: If the context overrides are invalid
        InvalidOptionsError: If any other field fails validation
    """
    if isinstance(options, EvaluateOptions) and not fields:
        return options
    if isinstance(options, EvaluateOptions):
        # Not model_dump(): it would serialize nodes inside bind
        data = {"context": options.context, "as": options.as_, "bind": options.bind}
    elif options is None:
        data = {}
    elif isinstance(options, Mapping):
        data = dict(options)
    else:
        raise InvalidOptionsError(f"Options must be a mapping, got {type(options).__name__}")
    for name, value in fields.items():
        data["as" if name == "as_" else name] = value
    try:
        return EvaluateOptions.model_validate(data)
    except ValidationError as err:
        # Context problems keep their own error type
        for detail in err.errors():
            cause = detail.get("ctx", {}).get("error")
            if isinstance(cause, InvalidContextError):
                raise cause from err
        raise InvalidOptionsError(str(err)) from err


__all__ = ["EvaluateOptions", "build_options"]
