"""Unit tests for result envelopes, HTTP error mapping and message sanitization"""

from __future__ import annotations

import pytest
from fastapi import HTTPException

from daper.api.errors import STATUS_BY_KIND, to_http_exception, unwrap
from daper.contracts.results import GENERIC_FAILURE_MESSAGE, ErrorKind, OperationResult, ServiceError
from daper.utils.error_sanitizer import GENERIC_MESSAGES, get_safe_error_detail, sanitize_error_message


def test_success_result():
    result = OperationResult.success({"id": "1"})
    assert result.ok
    assert result.data == {"id": "1"}
    assert result.error is None


def test_failure_result():
    result = OperationResult.failure(ErrorKind.QUOTA_EXCEEDED, "limit", detail="daily")
    assert not result.ok
    assert result.data is None
    assert result.error == ServiceError(ErrorKind.QUOTA_EXCEEDED, "limit", "daily")


def test_every_error_kind_has_a_status():
    assert set(STATUS_BY_KIND) == set(ErrorKind)


@pytest.mark.parametrize(
    ("kind", "status_code"),
    [
        (ErrorKind.VALIDATION, 400),
        (ErrorKind.DUPLICATE_SUBMISSION, 409),
        (ErrorKind.QUOTA_EXCEEDED, 429),
        (ErrorKind.NOT_FOUND, 404),
        (ErrorKind.PERMISSION_DENIED, 403),
        (ErrorKind.PATH_MISMATCH, 400),
        (ErrorKind.CANNOT_DELETE_ROOT, 400),
        (ErrorKind.GENERATION_FAILED, 502),
        (ErrorKind.PERSISTENCE_FAILED, 500),
    ],
)
def test_status_mapping(kind, status_code):
    exc = to_http_exception(ServiceError(kind, "message"))
    assert exc.status_code == status_code
    assert exc.detail["error"] == kind.value


def test_quota_error_carries_upgrade_url():
    exc = to_http_exception(ServiceError(ErrorKind.QUOTA_EXCEEDED, "limit", "total"))
    assert exc.detail["reason"] == "total"
    assert exc.detail["upgrade_url"].endswith("/upgrade")


def test_generation_failure_keeps_generic_message():
    exc = to_http_exception(ServiceError(ErrorKind.GENERATION_FAILED, GENERIC_FAILURE_MESSAGE))
    assert exc.detail["message"] == GENERIC_FAILURE_MESSAGE


def test_unwrap():
    assert unwrap(OperationResult.success(3)) == 3
    with pytest.raises(HTTPException) as exc_info:
        unwrap(OperationResult.failure(ErrorKind.NOT_FOUND, "Idea not found."))
    assert exc_info.value.status_code == 404


@pytest.mark.parametrize(
    "message",
    [
        "sqlite3.OperationalError: database is locked",
        'File "/srv/daper/ideas/service.py", line 42',
        "failed in daper.ideas.repository",
        "Bearer abc.def.ghi",
    ],
)
def test_sensitive_messages_are_replaced(message):
    assert sanitize_error_message(message, 500) == GENERIC_MESSAGES[500]


def test_short_400_messages_pass_through():
    assert sanitize_error_message("Title cannot be empty.", 400) == "Title cannot be empty."


def test_5xx_messages_never_pass_through():
    assert sanitize_error_message("harmless words", 500) == GENERIC_MESSAGES[500]


def test_safe_error_detail_prefers_context():
    detail = get_safe_error_detail(RuntimeError("disk I/O error"), 500, context="Failed to save idea.")
    assert detail == "Failed to save idea."
