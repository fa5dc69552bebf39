"""Single result channel for service operations.

Service methods never raise for business outcomes (missing auth, missing rows,
duplicates, failed external calls). They return ``Result.success(value)`` or
``Result.failure(ActionError(...))`` and the HTTP layer maps the error kind to a
status code in one place.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Generic, TypeVar


T = TypeVar("T")


class ErrorKind(StrEnum):
    """Error taxonomy shared by every domain service."""

    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    VALIDATION = "VALIDATION"
    EXTERNAL_SERVICE = "EXTERNAL_SERVICE"
    INTERNAL = "INTERNAL"


@dataclass(frozen=True)
class ActionError:
    """Typed failure returned by a service operation."""

    kind: ErrorKind
    message: str
    code: str | None = None

    @classmethod
    def unauthorized(cls, message: str = "Unauthorized") -> ActionError:
        return cls(ErrorKind.UNAUTHORIZED, message)

    @classmethod
    def forbidden(cls, message: str = "Forbidden") -> ActionError:
        return cls(ErrorKind.FORBIDDEN, message)

    @classmethod
    def not_found(cls, resource: str) -> ActionError:
        return cls(ErrorKind.NOT_FOUND, f"{resource} not found")

    @classmethod
    def conflict(cls, message: str, code: str | None = None) -> ActionError:
        return cls(ErrorKind.CONFLICT, message, code)

    @classmethod
    def validation(cls, message: str) -> ActionError:
        return cls(ErrorKind.VALIDATION, message)

    @classmethod
    def external(cls, message: str) -> ActionError:
        return cls(ErrorKind.EXTERNAL_SERVICE, message)

    @classmethod
    def internal(cls, message: str, code: str | None = None) -> ActionError:
        return cls(ErrorKind.INTERNAL, message, code)


@dataclass(frozen=True)
class Result(Generic[T]):
    """Either a value or an ``ActionError``; never both."""

    value: T | None = None
    error: ActionError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T | None = None) -> Result[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: ActionError) -> Result[T]:
        return cls(error=error)

    def unwrap(self) -> T:
        """Return the value, raising ``ValueError`` when called on a failure."""
        if self.error is not None:
            msg = f"Called unwrap on failed result: {self.error.message}"
            raise ValueError(msg)
        return self.value  # type: ignore[return-value]
