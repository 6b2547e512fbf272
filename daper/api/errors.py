"""Translate service results into HTTP responses."""

from __future__ import annotations

from typing import TypeVar

from fastapi import HTTPException, status

from daper.contracts.results import ErrorKind, OperationResult, ServiceError
from daper.infrastructure.settings import FRONTEND_URL, UPGRADE_PATH
from daper.observability.telemetry import counter
from daper.utils.error_sanitizer import sanitize_error_message

T = TypeVar("T")

STATUS_BY_KIND = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.DUPLICATE_SUBMISSION: status.HTTP_409_CONFLICT,
    ErrorKind.QUOTA_EXCEEDED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.PERMISSION_DENIED: status.HTTP_403_FORBIDDEN,
    ErrorKind.PATH_MISMATCH: status.HTTP_400_BAD_REQUEST,
    ErrorKind.CANNOT_DELETE_ROOT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.GENERATION_FAILED: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.PERSISTENCE_FAILED: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

# Authored by the services, safe to show as-is
_CLIENT_FACING = {
    ErrorKind.GENERATION_FAILED,
    ErrorKind.PERSISTENCE_FAILED,
}


def to_http_exception(error: ServiceError) -> HTTPException:
    code = STATUS_BY_KIND.get(error.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    counter(f"api.errors.{error.kind.value}")

    if error.kind in _CLIENT_FACING:
        message = error.message
    elif code < 500:
        message = error.message
    else:
        message = sanitize_error_message(error.message, code)

    detail: dict[str, str | None] = {"error": error.kind.value, "message": message}
    if error.detail:
        detail["reason"] = error.detail
    if error.kind == ErrorKind.QUOTA_EXCEEDED or error.detail == "upgrade_required":
        detail["upgrade_url"] = f"{FRONTEND_URL}{UPGRADE_PATH}"

    return HTTPException(status_code=code, detail=detail)


def unwrap(result: OperationResult[T]) -> T:
    """Return result.data or raise the matching HTTPException."""
    if result.error is not None:
        raise to_http_exception(result.error)
    return result.data  # type: ignore[return-value]
