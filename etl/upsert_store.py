"""
Upsert Store - chunked, bounded-parallel persistence of postings.

Each record is written in its own unit of work so one failing row never
rolls back its neighbours. Within a chunk, records are written by a bounded
thread pool; between chunks the store sleeps for the configured delay.
"""
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, ContextManager, Dict, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from database.repositories import UPSERT_INSERTED, UPSERT_UPDATED
from database.repository import PipelineRepository
from database.uow import pipeline_uow
from etl.schemas import PostingRecord

logger = logging.getLogger(__name__)

UPSERT_FAILED = 'failed'


@dataclass
class UpsertItemResult:
    hash: str
    outcome: str  # inserted|updated|failed
    error: Optional[str] = None


@dataclass
class UpsertError:
    hash: str
    title: str
    error: str


@dataclass
class UpsertBatchResult:
    inserted: int = 0
    updated: int = 0
    errors: List[UpsertError] = field(default_factory=list)
    items: List[UpsertItemResult] = field(default_factory=list)
    interrupted: bool = False

    @property
    def written(self) -> int:
        return self.inserted + self.updated


def merge_duplicate_records(records: Iterable[PostingRecord]) -> List[PostingRecord]:
    """Collapse records sharing a hash; the later record wins, categories are unioned.

    Keeps two workers from racing to insert the same hash within a chunk.
    """
    merged: Dict[str, PostingRecord] = {}
    for record in records:
        previous = merged.get(record.hash)
        if previous is not None:
            categories = list(previous.categories)
            categories.extend(c for c in record.categories if c not in categories)
            record.categories = categories
            if record.visa_friendly is None:
                record.visa_friendly = previous.visa_friendly
            if previous.filtered_reason and not record.filtered_reason:
                record.active = False
                record.status = 'inactive'
                record.filtered_reason = previous.filtered_reason
                record.employer_display = previous.employer_display
        merged[record.hash] = record
    return list(merged.values())


class PostingUpsertStore:
    """Writes canonicalized, classified postings keyed by content hash."""

    def __init__(
        self,
        uow_factory: Callable[[], ContextManager[PipelineRepository]] = pipeline_uow,
        chunk_size: int = 100,
        max_workers: int = 4,
        inter_chunk_delay_seconds: float = 0.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if chunk_size < 1 or max_workers < 1:
            raise ValueError("chunk_size and max_workers must be positive")
        self.uow_factory = uow_factory
        self.chunk_size = chunk_size
        self.max_workers = max_workers
        self.inter_chunk_delay_seconds = inter_chunk_delay_seconds
        self._sleep = sleep

    def upsert_batch(
        self,
        records: Iterable[PostingRecord],
        run_id: str = "-",
        stop_event: Optional[threading.Event] = None,
        now: Optional[datetime] = None,
    ) -> UpsertBatchResult:
        unique = merge_duplicate_records(records)
        chunks = [unique[i:i + self.chunk_size] for i in range(0, len(unique), self.chunk_size)]
        result = UpsertBatchResult()
        now = now or datetime.now(timezone.utc)

        logger.info(
            f"[run={run_id}] Upserting {len(unique)} postings in {len(chunks)} chunks "
            f"(chunk_size={self.chunk_size}, workers={self.max_workers})"
        )

        for index, chunk in enumerate(chunks):
            if stop_event is not None and stop_event.is_set():
                logger.warning(f"[run={run_id}] Upsert interrupted before chunk {index + 1}/{len(chunks)}")
                result.interrupted = True
                break

            workers = min(self.max_workers, len(chunk))
            with ThreadPoolExecutor(max_workers=workers) as pool:
                items = list(pool.map(lambda record: self._write_one(record, now, run_id), chunk))

            for record, item in zip(chunk, items):
                result.items.append(item)
                if item.outcome == UPSERT_INSERTED:
                    result.inserted += 1
                elif item.outcome == UPSERT_UPDATED:
                    result.updated += 1
                else:
                    result.errors.append(UpsertError(record.hash, record.title, item.error or ""))

            logger.info(
                f"[run={run_id}] Chunk {index + 1}/{len(chunks)} done: "
                f"{result.inserted} inserted, {result.updated} updated, {len(result.errors)} failed so far"
            )

            if index < len(chunks) - 1 and self.inter_chunk_delay_seconds > 0:
                self._sleep(self.inter_chunk_delay_seconds)

        return result

    def _write_one(self, record: PostingRecord, now: datetime, run_id: str) -> UpsertItemResult:
        try:
            try:
                with self.uow_factory() as repo:
                    outcome, _ = repo.postings.upsert_posting(record, now)
            except IntegrityError:
                # Another writer inserted this hash between our read and insert
                logger.info(f"[run={run_id}] Insert race on {record.hash[:12]}, retrying as update")
                with self.uow_factory() as repo:
                    outcome, _ = repo.postings.upsert_posting(record, now)
            return UpsertItemResult(record.hash, outcome)
        except SQLAlchemyError as e:
            logger.exception(f"[run={run_id}] Failed to upsert posting {record.hash[:12]} ({record.title!r})")
            return UpsertItemResult(record.hash, UPSERT_FAILED, str(e))

    def deactivate_stale(self, max_age_days: int, run_id: str = "-") -> int:
        with self.uow_factory() as repo:
            count = repo.postings.deactivate_stale(max_age_days)
        logger.info(f"[run={run_id}] Stale sweep deactivated {count} postings (max_age_days={max_age_days})")
        return count
