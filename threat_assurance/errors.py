"""Typed error values returned by core operations.

Core operations never raise these; they hand them back inside a ``Result`` so
callers can present them without a catch-all handler.
"""

from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar


T = TypeVar('T')


@dataclass(frozen=True)
class AssuranceError:
    """Base error value carrying a human-readable message."""
    message: str

    kind = 'error'

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class ValidationError(AssuranceError):
    """Evidence gating or record invariant violation. Nothing was mutated."""
    kind = 'validation'


@dataclass(frozen=True)
class WritePermissionError(AssuranceError):
    """A mutating call was made without write access."""
    kind = 'permission'


@dataclass(frozen=True)
class NotFoundError(AssuranceError):
    """A referenced record id is absent from the store or catalog."""
    kind = 'not_found'


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of a core operation: a value on success, an error otherwise."""
    value: Optional[T] = None
    error: Optional[AssuranceError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Any = None) -> 'Result':
        return cls(value=value)

    @classmethod
    def failure(cls, error: AssuranceError) -> 'Result':
        return cls(error=error)


def permission_denied(action: str) -> Result:
    return Result.failure(WritePermissionError(f'Write access is required to {action}'))
