"""Integration tests for submission deduplication locks"""

from __future__ import annotations

import threading
from datetime import UTC, datetime, timedelta

import pytest

from daper.infrastructure import submission_lock
from daper.infrastructure.submission_lock import LockStatus

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def test_first_claim_wins():
    assert submission_lock.try_acquire("req-1", "user-1", now=NOW) is True
    assert submission_lock.get_status("req-1") == LockStatus.PROCESSING


def test_second_claim_is_duplicate():
    submission_lock.try_acquire("req-1", "user-1", now=NOW)
    assert submission_lock.try_acquire("req-1", "user-1", now=NOW + timedelta(seconds=5)) is False


def test_lock_persists_after_completion():
    """A finished request id still blocks resubmission until it expires"""
    submission_lock.try_acquire("req-1", "user-1", now=NOW)
    submission_lock.mark_status("req-1", LockStatus.COMPLETED)

    assert submission_lock.get_status("req-1") == LockStatus.COMPLETED
    assert submission_lock.try_acquire("req-1", "user-1", now=NOW + timedelta(minutes=1)) is False


def test_stale_lock_is_reclaimed():
    submission_lock.try_acquire("req-1", "user-1", now=NOW)

    later = NOW + timedelta(seconds=601)
    assert submission_lock.try_acquire("req-1", "user-1", now=later) is True
    assert submission_lock.get_status("req-1") == LockStatus.PROCESSING


def test_empty_ids_rejected():
    with pytest.raises(ValueError):
        submission_lock.try_acquire("", "user-1")
    with pytest.raises(ValueError):
        submission_lock.try_acquire("req-1", "")


def test_unknown_lock_status():
    assert submission_lock.get_status("never-seen") is None
    assert submission_lock.mark_status("never-seen", LockStatus.FAILED) is False


def test_purge_expired_removes_only_stale_locks():
    submission_lock.try_acquire("old", "user-1", now=NOW - timedelta(hours=1))
    submission_lock.try_acquire("fresh", "user-1", now=NOW)

    removed = submission_lock.purge_expired(now=NOW)

    assert removed == 1
    assert submission_lock.get_status("old") is None
    assert submission_lock.get_status("fresh") == LockStatus.PROCESSING


def test_concurrent_claims_have_exactly_one_winner():
    """Racing threads with the same request id: one True, the rest False"""
    results: list[bool] = []
    barrier = threading.Barrier(4)

    def claim():
        barrier.wait()
        results.append(submission_lock.try_acquire("race", "user-1", now=NOW))

    threads = [threading.Thread(target=claim) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(results) == [False, False, False, True]
