"""
Error taxonomy for the record store.

Codec code raises the exceptions below. The public record store and similarity
operations catch them at the boundary and hand back a Result instead, so callers
always get an explicit outcome to check.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(Enum):
    NOT_FOUND = "not_found"
    CORRUPT = "corrupt"
    INVALID_ARGUMENT = "invalid_argument"
    IO_FAILURE = "io_failure"


class StoreError(Exception):
    kind = ErrorKind.IO_FAILURE


class NotFoundError(StoreError): # artifact missing or unreadable
    kind = ErrorKind.NOT_FOUND


class CorruptError(StoreError, ValueError): # malformed tree, bad bit stream, torn pair
    kind = ErrorKind.CORRUPT


class InvalidArgumentError(StoreError, ValueError): # bad line number, unsupported text
    kind = ErrorKind.INVALID_ARGUMENT


class IOFailureError(StoreError): # storage unavailable while writing
    kind = ErrorKind.IO_FAILURE


_ERRORS_BY_KIND = {
    ErrorKind.NOT_FOUND: NotFoundError,
    ErrorKind.CORRUPT: CorruptError,
    ErrorKind.INVALID_ARGUMENT: InvalidArgumentError,
    ErrorKind.IO_FAILURE: IOFailureError,
}


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of a store operation: either a value or an error kind with a message."""
    value: Optional[T] = None
    error: Optional[ErrorKind] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, exc: StoreError) -> "Result[T]":
        return cls(error=exc.kind, message=str(exc))

    def unwrap(self) -> Optional[T]:
        """Return the value, or raise the exception matching the error kind."""
        if self.error is not None:
            raise _ERRORS_BY_KIND[self.error](self.message)
        return self.value


def as_result(log: Callable[[str, str, StoreError], None]) -> Callable[[Callable[..., Any]], Callable[..., Result]]:
    """
    Decorator: run the wrapped operation, wrap its return value in Result.success and
    turn any StoreError into Result.failure after reporting it through `log`.
    Other exceptions are programming errors and propagate untouched.
    """
    def decorate(fn: Callable[..., Any]) -> Callable[..., Result]:
        @functools.wraps(fn)
        def wrapper(*args, **kwargs) -> Result:
            try:
                return Result.success(fn(*args, **kwargs))
            except StoreError as exc:
                log(fn.__name__, exc.kind.value, exc)
                return Result.failure(exc)
        return wrapper
    return decorate
