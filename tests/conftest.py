"""Pytest configuration and fixtures."""

import decimal
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

import pytest
import structlog

from decimalenv.nodes import Opaque


@dataclass
class CallCounter:
    """Opaque thunk that counts how often it runs.

    Usage:
        counter = CallCounter(value=3)
        node = counter.node()       # Opaque node returning 3
        ...
        assert counter.calls == 1
    """

    value: Any = 3
    calls: int = 0
    scopes: list = field(default_factory=list)  # Scopes seen, for assertions

    def __call__(self, scope: Mapping[str, Any]) -> Any:
        self.calls += 1
        self.scopes.append(dict(scope))
        return self.value

    def node(self) -> Opaque:
        return Opaque(self, source="counter()")


@pytest.fixture
def counter() -> CallCounter:
    """A side-effecting opaque thunk returning 3."""
    return CallCounter(value=3)


@pytest.fixture
def default_context() -> Iterator[decimal.Context]:
    """Run the test under a fresh default decimal context (prec 28, half_even)."""
    with decimal.localcontext(decimal.Context()) as ctx:
        yield ctx


@pytest.fixture(autouse=True)
def reset_structlog() -> Iterator[None]:
    """Undo logging configuration done by CLI tests."""
    yield
    structlog.reset_defaults()
