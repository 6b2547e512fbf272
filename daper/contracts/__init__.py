"""Shared result contracts returned by services"""

from daper.contracts.results import (
    GENERIC_FAILURE_MESSAGE,
    ErrorKind,
    OperationResult,
    ServiceError,
)

__all__ = ["GENERIC_FAILURE_MESSAGE", "ErrorKind", "OperationResult", "ServiceError"]
