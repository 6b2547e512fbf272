"""
Result envelope for service operations.

Business-rule outcomes (duplicate submission, quota, not found, permission,
path errors) are returned as data rather than raised, so every caller has to
look at `error` before using `data`. Unexpected failures are logged where they
happen and reach the caller only as a generic message.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    DUPLICATE_SUBMISSION = "duplicate_submission"
    QUOTA_EXCEEDED = "quota_exceeded"
    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    PATH_MISMATCH = "path_mismatch"
    CANNOT_DELETE_ROOT = "cannot_delete_root"
    GENERATION_FAILED = "generation_failed"
    PERSISTENCE_FAILED = "persistence_failed"


GENERIC_FAILURE_MESSAGE = "Failed to generate idea. Please try again."


@dataclass(frozen=True)
class ServiceError:
    """A typed failure. `detail` narrows the kind (e.g. "daily" / "total" for quota)."""

    kind: ErrorKind
    message: str
    detail: str | None = None


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """`{data, error}` pair; exactly one side is meaningful."""

    data: T | None = None
    error: ServiceError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, data: T | None = None) -> OperationResult[T]:
        return cls(data=data)

    @classmethod
    def failure(
        cls,
        kind: ErrorKind,
        message: str,
        detail: str | None = None,
    ) -> OperationResult[T]:
        return cls(error=ServiceError(kind=kind, message=message, detail=detail))
