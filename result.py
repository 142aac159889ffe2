"""
Result type for the compile round trip.

Request-lifecycle failures are returned as Err values tagged with an
ErrorKind instead of being raised to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Generic, Optional, TypeVar, Union

T = TypeVar("T")
U = TypeVar("U")
V = TypeVar("V")


class ErrorKind(str, Enum):
    """Where in the round trip a compile request failed."""
    IO = "IOError"
    TRANSPORT = "TransportError"
    SERVICE = "ServiceError"
    PROTOCOL = "ProtocolError"
    NO_OUTPUT = "NoOutputError"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Success variant of Result."""
    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def map(self, fn: Callable[[T], U]) -> "Result[U]":
        return Ok(fn(self.value))

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, default: U) -> T:
        return self.value

    def match(self, ok_fn: Callable[[T], V], err_fn: Callable[[Err], V]) -> V:
        return ok_fn(self.value)

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err:
    """
    Error variant of Result.

    Service errors also carry the HTTP status, headers and raw body the
    remote endpoint answered with.
    """
    kind: ErrorKind
    error: str
    status_code: Optional[int] = None
    headers: Optional[Dict[str, str]] = None
    body: Optional[str] = None

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def map(self, fn: Callable[[T], U]) -> "Result[U]":
        return self

    def unwrap(self) -> T:
        raise RuntimeError(f"Called unwrap() on Err: {self}")

    def unwrap_or(self, default: T) -> T:
        return default

    def match(self, ok_fn: Callable[[T], V], err_fn: Callable[["Err"], V]) -> V:
        return err_fn(self)

    def __str__(self) -> str:
        return f"{self.kind}: {self.error}"

    def __repr__(self) -> str:
        return f"Err({self.kind.name}, {self.error!r}, status_code={self.status_code!r})"


Result = Union[Ok[T], Err]
