"""Explicit success/failure values for operations that may fail softly.

Store writes return a Result instead of raising so that each call site
decides whether to log and continue or to propagate the error.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of an operation: either a value or an error."""
    value: T | None = None
    error: Exception | None = None

    @classmethod
    def ok(cls, value: T | None = None) -> Result[T]:
        return cls(value=value)

    @classmethod
    def err(cls, error: Exception) -> Result[T]:
        return cls(error=error)

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def failed(self) -> bool:
        return self.error is not None

    def unwrap(self) -> T | None:
        """Return the value, raising the stored error on failure."""
        if self.error is not None:
            raise self.error
        return self.value
