"""Explicit success/failure values returned by degradable data sources."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome carrying the produced value."""

    value: T


@dataclass(frozen=True)
class Err:
    """Failed outcome carrying the operation name and a readable reason."""

    operation: str
    reason: str


Result = Ok[T] | Err


def unwrap_or(result: Ok[T] | Err, default: T) -> T:
    """Return the carried value, or `default` when the outcome failed."""

    if isinstance(result, Ok):
        return result.value
    return default
