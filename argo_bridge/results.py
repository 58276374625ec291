"""Result type returned by the GitHub and Slack gateways.

Gateways never raise for upstream conditions. They log and hand back a
``Result`` whose ``value`` is ``None`` on failure, so the resolvers can apply
their fallback chains on a plain optional value.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class FailureKind(str, Enum):
    NOT_FOUND = "not_found"  # upstream says the resource does not exist
    UPSTREAM = "upstream"  # any other non-success response
    TRANSPORT = "transport"  # network error, timeout, undecodable body
    SKIPPED = "skipped"  # call not attempted


class InvalidArgument(ValueError):
    """A required identifier is missing; raised to the immediate caller."""


@dataclass(frozen=True)
class Result(Generic[T]):
    value: Optional[T] = None
    error: Optional[FailureKind] = None
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def of(cls, value: Optional[T]) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def fail(cls, kind: FailureKind, reason: str = "") -> "Result[T]":
        return cls(value=None, error=kind, reason=reason)
