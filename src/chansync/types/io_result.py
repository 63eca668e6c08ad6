"""Explicit success/failure values for I/O-touching steps.

Steps that read or write the file system return either ``Ok(value)`` or
``Err(kind, error)``. The ``kind`` decides whether the caller must abort the
channel (``FATAL``) or log and continue (``NON_FATAL``); the wrapped ``error``
is a ``ChansyncError`` carrying the context used in structured logs.
"""

from dataclasses import dataclass
from enum import Enum

from ..exceptions import ChansyncError


class ErrorKind(str, Enum):
    """Severity of a failed I/O step."""

    FATAL = "FATAL"
    NON_FATAL = "NON_FATAL"


@dataclass(frozen=True, slots=True)
class Ok[T]:
    """Successful result wrapping a value."""

    value: T


@dataclass(frozen=True, slots=True)
class Err:
    """Failed result.

    Attributes:
        kind: Whether the failure aborts the current channel.
        error: The underlying application error.
    """

    kind: ErrorKind
    error: ChansyncError

    @property
    def is_fatal(self) -> bool:
        """Return True if the failure must abort the current channel."""
        return self.kind is ErrorKind.FATAL


type IOResult[T] = Ok[T] | Err
