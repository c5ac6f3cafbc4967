import logging
import threading
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Callable, ContextManager, Dict, Iterable, List, Mapping, Optional, Tuple

from database.repository import PipelineRepository
from database.uow import pipeline_uow
from etl.canonicalizer import canonicalize
from etl.classifier import ClassificationReport, EligibilityClassifier
from etl.schemas import PostingRecord
from etl.upsert_store import PostingUpsertStore, UpsertBatchResult

logger = logging.getLogger(__name__)


@dataclass
class RejectedPosting:
    """A raw posting the canonicalizer refused, with the fields it lacked."""
    index: int
    source: Optional[str]
    missing_fields: List[str]


@dataclass
class IngestSummary:
    received: int = 0
    rejected: List[RejectedPosting] = field(default_factory=list)
    filtered: Dict[str, int] = field(default_factory=dict)
    upsert: UpsertBatchResult = field(default_factory=UpsertBatchResult)

    @property
    def accepted(self) -> int:
        return self.received - len(self.rejected)


class PostingETLService:
    """Canonicalize -> classify -> upsert for one batch of raw postings.

    Usage:
        service = PostingETLService(upsert_store)
        summary = service.ingest_batch(raw_postings, run_id=run_id)
    """

    def __init__(
        self,
        upsert_store: PostingUpsertStore,
        classifier: Optional[EligibilityClassifier] = None,
        uow_factory: Callable[[], ContextManager[PipelineRepository]] = pipeline_uow,
    ):
        self.upsert_store = upsert_store
        self.classifier = classifier or EligibilityClassifier()
        self.uow_factory = uow_factory

    def canonicalize_batch(
        self, raw_postings: Iterable[Mapping[str, Any]], run_id: str = "-"
    ) -> Tuple[List[PostingRecord], List[RejectedPosting]]:
        records: List[PostingRecord] = []
        rejected: List[RejectedPosting] = []
        for index, raw in enumerate(raw_postings):
            result = canonicalize(raw)
            if result.ok:
                records.append(result.record)
            else:
                rejected.append(RejectedPosting(index, result.source, result.missing_fields))
                logger.warning(
                    f"[run={run_id}] Rejected raw posting #{index} from {result.source or 'unknown source'}: "
                    f"missing {', '.join(result.missing_fields)}"
                )
        return records, rejected

    def ingest_batch(
        self,
        raw_postings: Iterable[Mapping[str, Any]],
        run_id: str = "-",
        stop_event: Optional[threading.Event] = None,
    ) -> IngestSummary:
        raw_list = list(raw_postings)
        summary = IngestSummary(received=len(raw_list))

        records, summary.rejected = self.canonicalize_batch(raw_list, run_id)
        logger.info(f"[run={run_id}] Canonicalized {len(records)}/{len(raw_list)} raw postings")

        report = self.classifier.classify(records)
        summary.filtered = dict(report.filtered)

        summary.upsert = self.upsert_store.upsert_batch(records, run_id=run_id, stop_event=stop_event)
        return summary

    def reclassify_pool(self, run_id: str = "-") -> ClassificationReport:
        """Re-run the classifier over every active stored posting in one transaction."""
        with self.uow_factory() as repo:
            pool = repo.postings.get_active_pool()
            logger.info(f"[run={run_id}] Reclassifying {len(pool)} active postings")
            report = self.classifier.classify(pool)
        counts = Counter(change.field for change in report.changes)
        logger.info(f"[run={run_id}] Reclassification changed fields: {dict(counts) or 'none'}")
        return report
