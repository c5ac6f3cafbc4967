import unittest
from unittest.mock import MagicMock

import pytest

from etl.canonicalizer import canonicalize
from etl.classifier.rules import JOB_BOARD_AS_COMPANY
from etl.orchestrator import PostingETLService
from etl.upsert_store import PostingUpsertStore, UpsertBatchResult
from tests import FIXED_NOW, raw_posting


class TestIngestBatchFlow(unittest.TestCase):
    def setUp(self):
        self.mock_store = MagicMock(spec=PostingUpsertStore)
        self.mock_store.upsert_batch.return_value = UpsertBatchResult(inserted=2)
        self.service = PostingETLService(upsert_store=self.mock_store, uow_factory=MagicMock())

    def test_rejected_records_are_reported_not_stored(self):
        raw = [
            raw_posting(),
            {"title": "Graduate Engineer", "site": "indeed"},
            raw_posting(title="Graduate Engineer"),
        ]

        summary = self.service.ingest_batch(raw, run_id="run-1")

        self.assertEqual(summary.received, 3)
        self.assertEqual(summary.accepted, 2)
        self.assertEqual(len(summary.rejected), 1)
        rejected = summary.rejected[0]
        self.assertEqual(rejected.index, 1)
        self.assertEqual(rejected.source, "indeed")
        self.assertIn("employer", rejected.missing_fields)
        self.assertIn("description", rejected.missing_fields)

        stored = self.mock_store.upsert_batch.call_args[0][0]
        self.assertEqual([r.title for r in stored], ["Graduate Analyst", "Graduate Engineer"])
        self.assertEqual(self.mock_store.upsert_batch.call_args[1]["run_id"], "run-1")

    def test_records_are_classified_before_upsert(self):
        raw = [raw_posting(company="Indeed"), raw_posting(title="Graduate Engineer")]

        summary = self.service.ingest_batch(raw)

        self.assertEqual(summary.filtered, {JOB_BOARD_AS_COMPANY: 1})
        stored = self.mock_store.upsert_batch.call_args[0][0]
        flagged = [r for r in stored if r.filtered_reason == JOB_BOARD_AS_COMPANY]
        self.assertEqual(len(flagged), 1)
        self.assertFalse(flagged[0].active)
        self.assertIsNone(flagged[0].employer_display)

    def test_non_object_records_are_rejected(self):
        summary = self.service.ingest_batch([raw_posting(), "not-a-posting", None, ["a", "b"]])

        self.assertEqual(summary.accepted, 1)
        self.assertEqual([r.index for r in summary.rejected], [1, 2, 3])
        for rejected in summary.rejected:
            self.assertIsNone(rejected.source)
            self.assertIn("title", rejected.missing_fields)

    def test_empty_batch(self):
        summary = self.service.ingest_batch([])

        self.assertEqual(summary.received, 0)
        self.assertEqual(summary.accepted, 0)
        self.mock_store.upsert_batch.assert_called_once()


@pytest.mark.db
class TestIngestAgainstSQLite:

    def test_ingest_twice_is_idempotent(self, uow_factory):
        store = PostingUpsertStore(uow_factory, max_workers=1)
        service = PostingETLService(store, uow_factory=uow_factory)
        raw = [raw_posting(), raw_posting(title="Electrician")]

        first = service.ingest_batch(raw, run_id="r1")
        second = service.ingest_batch(raw, run_id="r2")

        assert first.upsert.inserted == 2
        assert second.upsert.inserted == 0
        assert second.upsert.updated == 2
        with uow_factory() as repo:
            assert repo.postings.count_postings() == 2
            assert repo.postings.count_postings(active_only=True) == 1

    def test_malformed_records_do_not_abort_the_batch(self, uow_factory):
        store = PostingUpsertStore(uow_factory, max_workers=1)
        service = PostingETLService(store, uow_factory=uow_factory)

        summary = service.ingest_batch([raw_posting(), "x", None], run_id="r1")

        assert len(summary.rejected) == 2
        assert summary.upsert.inserted == 1
        with uow_factory() as repo:
            assert repo.postings.count_postings() == 1

    def test_reclassify_pool_applies_rules_to_stored_rows(self, uow_factory):
        # Written straight through the store, so the classifier never saw it
        store = PostingUpsertStore(uow_factory, max_workers=1)
        store.upsert_batch([canonicalize(raw_posting(company="Indeed")).record], now=FIXED_NOW)
        service = PostingETLService(store, uow_factory=uow_factory)

        report = service.reclassify_pool(run_id="r1")

        assert report.evaluated == 1
        assert report.filtered[JOB_BOARD_AS_COMPANY] == 1
        with uow_factory() as repo:
            assert repo.postings.count_postings(active_only=True) == 0

    def test_reclassify_twice_changes_nothing_the_second_time(self, uow_factory):
        store = PostingUpsertStore(uow_factory, max_workers=1)
        service = PostingETLService(store, uow_factory=uow_factory)
        service.ingest_batch([raw_posting(), raw_posting(title="Graduate Engineer")])

        service.reclassify_pool()
        second = service.reclassify_pool()

        assert second.changes == []


if __name__ == '__main__':
    unittest.main()
