"""
Tests for PostingUpsertStore.

SQLite-backed tests use a single worker; the pool-level behaviour (chunking,
race retry, per-row failure isolation) is tested with mocked units of work.
"""
import contextlib
import threading
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from core.utils import ensure_utc
from database.repositories import UPSERT_INSERTED, UPSERT_UPDATED
from etl.canonicalizer import canonicalize
from etl.classifier import EligibilityClassifier
from etl.upsert_store import (
    UPSERT_FAILED,
    PostingUpsertStore,
    merge_duplicate_records,
)
from tests import FIXED_NOW, raw_posting


def _record(**overrides):
    return canonicalize(raw_posting(**overrides)).record


def _mock_uow_factory(repo):
    @contextlib.contextmanager
    def factory():
        yield repo
    return factory


@pytest.mark.db
class TestUpsertAgainstSQLite:

    def test_second_run_updates_instead_of_inserting(self, uow_factory):
        store = PostingUpsertStore(uow_factory, chunk_size=10, max_workers=1)
        records = [_record(), _record(title="Graduate Engineer")]

        first = store.upsert_batch(records, run_id="r1", now=FIXED_NOW)
        second = store.upsert_batch(
            [_record(), _record(title="Graduate Engineer")], run_id="r2", now=FIXED_NOW
        )

        assert (first.inserted, first.updated) == (2, 0)
        assert (second.inserted, second.updated) == (0, 2)
        with uow_factory() as repo:
            assert repo.postings.count_postings() == 2

    def test_same_posting_from_two_sources_is_one_row(self, uow_factory):
        store = PostingUpsertStore(uow_factory, max_workers=1)
        common = dict(company="Acme", location="London, GB")
        linkedin = _record(site="linkedin", **common)
        indeed = _record(site="indeed", job_url="https://indeed.example/jobs/9", **common)
        assert linkedin.hash == indeed.hash

        store.upsert_batch([linkedin], now=FIXED_NOW)
        result = store.upsert_batch([indeed], now=FIXED_NOW + timedelta(hours=6))

        assert result.updated == 1
        with uow_factory() as repo:
            assert repo.postings.count_postings() == 1
            stored = repo.postings.get_by_hash(linkedin.hash)
            assert stored.origin_source == "indeed"
            assert ensure_utc(stored.last_seen_at) == FIXED_NOW + timedelta(hours=6)

    def test_in_batch_duplicates_are_written_once(self, uow_factory):
        store = PostingUpsertStore(uow_factory, max_workers=1)
        result = store.upsert_batch([_record(), _record()], now=FIXED_NOW)

        assert result.inserted == 1
        assert result.written == 1

    def test_classified_job_board_posting_is_stored_inactive(self, uow_factory):
        record = _record(company="Indeed")
        EligibilityClassifier().classify([record])
        store = PostingUpsertStore(uow_factory, max_workers=1)

        store.upsert_batch([record], now=FIXED_NOW)

        with uow_factory() as repo:
            assert repo.postings.count_postings() == 1
            assert repo.postings.count_postings(active_only=True) == 0

    def test_deactivate_stale_via_store(self, uow_factory):
        store = PostingUpsertStore(uow_factory, max_workers=1)
        store.upsert_batch([_record()], now=FIXED_NOW)

        assert store.deactivate_stale(100000, run_id="r1") == 0


class TestChunking:

    def test_sleeps_between_chunks_only(self):
        repo = MagicMock()
        repo.postings.upsert_posting.return_value = (UPSERT_INSERTED, MagicMock())
        sleeps = []
        store = PostingUpsertStore(
            _mock_uow_factory(repo),
            chunk_size=2,
            max_workers=2,
            inter_chunk_delay_seconds=0.5,
            sleep=sleeps.append,
        )
        records = [_record(title=f"Graduate Analyst {i}") for i in range(5)]

        result = store.upsert_batch(records, now=FIXED_NOW)

        assert result.inserted == 5
        assert sleeps == [0.5, 0.5]
        assert repo.postings.upsert_posting.call_count == 5

    def test_stop_event_interrupts_between_chunks(self):
        repo = MagicMock()
        stop = threading.Event()

        def upsert(record, now):
            stop.set()
            return UPSERT_INSERTED, MagicMock()

        repo.postings.upsert_posting.side_effect = upsert
        store = PostingUpsertStore(_mock_uow_factory(repo), chunk_size=1, max_workers=1)
        records = [_record(title=f"Graduate Analyst {i}") for i in range(3)]

        result = store.upsert_batch(records, stop_event=stop, now=FIXED_NOW)

        assert result.interrupted is True
        assert result.inserted == 1

    def test_rejects_non_positive_sizes(self):
        with pytest.raises(ValueError):
            PostingUpsertStore(MagicMock(), chunk_size=0)
        with pytest.raises(ValueError):
            PostingUpsertStore(MagicMock(), max_workers=0)


class TestFailureIsolation:

    def test_integrity_error_is_retried_as_update(self):
        repo = MagicMock()
        repo.postings.upsert_posting.side_effect = [
            IntegrityError("INSERT", {}, Exception("duplicate key")),
            (UPSERT_UPDATED, MagicMock()),
        ]
        store = PostingUpsertStore(_mock_uow_factory(repo), max_workers=1)

        result = store.upsert_batch([_record()], now=FIXED_NOW)

        assert result.updated == 1
        assert result.errors == []
        assert repo.postings.upsert_posting.call_count == 2

    def test_failing_row_does_not_stop_the_others(self):
        repo = MagicMock()
        bad = _record(title="Graduate Broken")

        def upsert(record, now):
            if record.hash == bad.hash:
                raise OperationalError("UPDATE", {}, Exception("deadlock detected"))
            return UPSERT_INSERTED, MagicMock()

        repo.postings.upsert_posting.side_effect = upsert
        store = PostingUpsertStore(_mock_uow_factory(repo), max_workers=2)

        result = store.upsert_batch([_record(), bad, _record(title="Graduate Engineer")], now=FIXED_NOW)

        assert result.inserted == 2
        assert len(result.errors) == 1
        assert result.errors[0].hash == bad.hash
        assert result.errors[0].title == "Graduate Broken"
        failed = [item for item in result.items if item.outcome == UPSERT_FAILED]
        assert [item.hash for item in failed] == [bad.hash]


class TestMergeDuplicateRecords:

    def test_categories_union_and_known_visa_kept(self):
        first = _record()
        first.categories = ["early-career", "data-analytics"]
        first.visa_friendly = True
        second = _record()
        second.categories = ["early-career", "finance-investment"]

        merged = merge_duplicate_records([first, second])

        assert len(merged) == 1
        assert merged[0].categories == ["early-career", "data-analytics", "finance-investment"]
        assert merged[0].visa_friendly is True

    def test_hard_rule_flag_survives_merge(self):
        flagged = _record()
        flagged.active = False
        flagged.status = "inactive"
        flagged.filtered_reason = "job_board_as_company"
        clean = _record()

        merged = merge_duplicate_records([flagged, clean])

        assert merged[0].active is False
        assert merged[0].filtered_reason == "job_board_as_company"
