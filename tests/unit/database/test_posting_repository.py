"""
Repository tests against a throwaway SQLite database.

Covers merge semantics of PostingRepository.upsert_posting and the stale
sweep.
"""
from datetime import timedelta

import pytest

from database.repositories import UPSERT_INSERTED, UPSERT_UPDATED
from etl.canonicalizer import canonicalize
from etl.classifier.rules import JOB_BOARD_AS_COMPANY
from tests import FIXED_NOW, raw_posting

pytestmark = pytest.mark.db


def _record(**overrides):
    return canonicalize(raw_posting(**overrides)).record


def test_insert_then_update_same_hash(uow_factory):
    with uow_factory() as repo:
        outcome, _ = repo.postings.upsert_posting(_record(), FIXED_NOW)
        assert outcome == UPSERT_INSERTED

    later = FIXED_NOW + timedelta(days=2)
    with uow_factory() as repo:
        outcome, posting = repo.postings.upsert_posting(
            _record(description="Updated description. Graduate role."), later
        )
        assert outcome == UPSERT_UPDATED
        assert posting.description == "Updated description. Graduate role."

    with uow_factory() as repo:
        assert repo.postings.count_postings() == 1


def test_merge_unions_categories(uow_factory):
    first = _record()
    first.categories = ["early-career", "data-analytics"]
    second = _record()
    second.categories = ["early-career", "finance-investment"]

    with uow_factory() as repo:
        repo.postings.upsert_posting(first, FIXED_NOW)
    with uow_factory() as repo:
        _, posting = repo.postings.upsert_posting(second, FIXED_NOW)
        assert posting.categories == ["early-career", "data-analytics", "finance-investment"]


def test_unknown_visa_never_clears_known(uow_factory):
    known = _record()
    known.visa_friendly = True
    with uow_factory() as repo:
        repo.postings.upsert_posting(known, FIXED_NOW)
    with uow_factory() as repo:
        _, posting = repo.postings.upsert_posting(_record(), FIXED_NOW)
        assert posting.visa_friendly is True

    local_only = _record()
    local_only.visa_friendly = False
    with uow_factory() as repo:
        _, posting = repo.postings.upsert_posting(local_only, FIXED_NOW)
        assert posting.visa_friendly is False


def test_hard_rule_deactivation_is_sticky(uow_factory):
    flagged = _record()
    flagged.active = False
    flagged.status = "inactive"
    flagged.filtered_reason = JOB_BOARD_AS_COMPANY
    flagged.employer_display = None
    with uow_factory() as repo:
        repo.postings.upsert_posting(flagged, FIXED_NOW)

    with uow_factory() as repo:
        _, posting = repo.postings.upsert_posting(_record(), FIXED_NOW + timedelta(days=1))
        assert posting.active is False
        assert posting.filtered_reason == JOB_BOARD_AS_COMPANY
        assert posting.employer_display is None


def test_stale_posting_is_reactivated_when_seen_again(uow_factory):
    with uow_factory() as repo:
        repo.postings.upsert_posting(_record(), FIXED_NOW - timedelta(days=40))

    with uow_factory() as repo:
        assert repo.postings.deactivate_stale(30, now=FIXED_NOW) == 1
    with uow_factory() as repo:
        posting = repo.postings.get_by_hash(_record().hash)
        assert posting.active is False
        assert posting.filtered_reason is None
        assert repo.postings.count_postings(active_only=True) == 0

    with uow_factory() as repo:
        _, posting = repo.postings.upsert_posting(_record(), FIXED_NOW)
        assert posting.active is True
        assert posting.status == "active"


def test_deactivate_stale_keeps_recent_postings(uow_factory):
    with uow_factory() as repo:
        repo.postings.upsert_posting(_record(), FIXED_NOW - timedelta(days=3))
        repo.postings.upsert_posting(_record(title="Graduate Engineer"), FIXED_NOW - timedelta(days=45))

    with uow_factory() as repo:
        assert repo.postings.deactivate_stale(30, now=FIXED_NOW) == 1
    with uow_factory() as repo:
        pool = repo.postings.get_active_pool()
        assert [p.title for p in pool] == ["Graduate Analyst"]
