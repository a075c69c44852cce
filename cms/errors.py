"""
Result type shared by every service operation.

Services never raise for an expected failure (duplicate title, missing
row, failed flush).  They return a ``Result`` carrying either the value
or a ``ServiceError`` tagged with an ``ErrorKind``.  Callers that prefer
exceptions use ``Result.unwrap()``, which raises ``ServiceFailure``; the
HTTP layer registers one handler for it in ``cms.main``.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


class ErrorKind(str, enum.Enum):
    EXISTING = "existing"
    # Returned by the detail view for a missing article.
    AUTH_FAILED = "auth_failed"
    NOT_FOUND = "not_found"
    DATABASE = "database"


# HTTP status used by the exception handler for each kind.
HTTP_STATUS: dict[ErrorKind, int] = {
    ErrorKind.EXISTING: 409,
    ErrorKind.AUTH_FAILED: 401,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.DATABASE: 500,
}


@dataclass(frozen=True)
class ServiceError:
    kind: ErrorKind
    message: str
    original_exception: Exception | None = None

    def __str__(self) -> str:
        if self.original_exception:
            return f"{self.message} (Original error: {self.original_exception})"
        return self.message


class ServiceFailure(Exception):
    """Raised by ``Result.unwrap()`` when the result holds an error."""

    def __init__(self, error: ServiceError) -> None:
        super().__init__(str(error))
        self.error = error

    @property
    def kind(self) -> ErrorKind:
        return self.error.kind

    @property
    def status_code(self) -> int:
        return HTTP_STATUS[self.error.kind]


@dataclass(frozen=True)
class Result(Generic[T]):
    value: T | None = None
    error: ServiceError | None = None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(
        cls,
        kind: ErrorKind,
        message: str,
        original_exception: Exception | None = None,
    ) -> "Result[T]":
        return cls(error=ServiceError(kind, message, original_exception))

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        if self.error is not None:
            raise ServiceFailure(self.error)
        return self.value
