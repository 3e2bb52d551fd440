import random
from types import SimpleNamespace

import pytest

from school_portal.db.models import BookIssueStatus, CounselingStatus
from school_portal.services.counseling_service import compute_counseling_stats
from school_portal.services.library_service import compute_library_stats


def _book(total, available):
    return SimpleNamespace(total_copies=total, available_copies=available)


def test_library_stats_counts_and_sums():
    books = [_book(2, 1), _book(5, 5), _book(1, 0)]
    statuses = ["issued", "issued", "issued", "requested", "overdue"]

    stats = compute_library_stats(books, statuses)

    assert stats.total_books == 8
    assert stats.available_books == 6
    assert stats.issued_books == 3
    assert stats.pending_requests == 1
    assert stats.overdue_books == 1


def test_library_stats_ignore_row_order():
    books = [_book(3, 2), _book(4, 1), _book(2, 2)]
    statuses = [
        BookIssueStatus.ISSUED,
        BookIssueStatus.REQUESTED,
        BookIssueStatus.ISSUED,
        BookIssueStatus.OVERDUE,
        BookIssueStatus.RETURNED,
        BookIssueStatus.ISSUED,
    ]
    expected = compute_library_stats(books, statuses)

    rng = random.Random(42)
    for _ in range(5):
        shuffled_books = books[:]
        shuffled_statuses = statuses[:]
        rng.shuffle(shuffled_books)
        rng.shuffle(shuffled_statuses)
        assert compute_library_stats(shuffled_books, shuffled_statuses) == expected


def test_library_stats_empty_snapshot():
    stats = compute_library_stats([], [])
    assert stats.model_dump() == {
        "total_books": 0,
        "available_books": 0,
        "issued_books": 0,
        "overdue_books": 0,
        "pending_requests": 0,
    }


def test_library_stats_reject_unknown_status():
    with pytest.raises(ValueError):
        compute_library_stats([], ["issued", "lost"])


def test_counseling_stats():
    statuses = [
        CounselingStatus.PENDING,
        CounselingStatus.ACCEPTED,
        CounselingStatus.ACCEPTED,
        CounselingStatus.COMPLETED,
        CounselingStatus.CANCELLED,
    ]
    stats = compute_counseling_stats(statuses)

    assert stats.total_requests == 5
    assert stats.pending_requests == 1
    assert stats.active_requests == 2
    assert stats.completed_requests == 1


def test_counseling_stats_reject_unknown_status():
    with pytest.raises(ValueError):
        compute_counseling_stats(["pending", "archived"])
