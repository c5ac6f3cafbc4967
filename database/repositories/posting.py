import logging
from datetime import datetime, timezone, timedelta
from typing import List, Optional, Tuple

from sqlalchemy import select, func, update

from database.models import Posting
from database.repositories.base import BaseRepository
from etl.schemas import PostingRecord

logger = logging.getLogger(__name__)

UPSERT_INSERTED = 'inserted'
UPSERT_UPDATED = 'updated'

# Fields refreshed from the latest scrape of an existing hash
_REFRESHED_FIELDS = (
    'description', 'source_url', 'origin_source', 'is_internship',
    'is_graduate_program', 'work_environment', 'is_remote',
)


class PostingRepository(BaseRepository):
    def get_by_hash(self, posting_hash: str) -> Optional[Posting]:
        stmt = select(Posting).where(Posting.hash == posting_hash)
        return self.db.execute(stmt).scalar_one_or_none()

    def count_postings(self, active_only: bool = False) -> int:
        stmt = select(func.count()).select_from(Posting)
        if active_only:
            stmt = stmt.where(Posting.active.is_(True))
        return self.db.execute(stmt).scalar_one()

    def get_active_pool(self, limit: Optional[int] = None) -> List[Posting]:
        stmt = select(Posting).where(Posting.active.is_(True)).order_by(Posting.last_seen_at.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.db.execute(stmt).scalars().all())

    def create_posting(self, record: PostingRecord, now: Optional[datetime] = None) -> Posting:
        now = now or datetime.now(timezone.utc)
        posting = Posting(
            hash=record.hash,
            title=record.title,
            employer_raw=record.employer_raw,
            employer_display=record.employer_display,
            location=record.location,
            city=record.city,
            country_code=record.country_code,
            is_remote=record.is_remote,
            work_environment=record.work_environment,
            description=record.description,
            source_url=record.source_url,
            origin_source=record.origin_source,
            extras=dict(record.extras or {}),
            language_requirements=list(record.language_requirements or []),
            categories=list(record.categories or []),
            is_internship=record.is_internship,
            is_graduate_program=record.is_graduate_program,
            visa_friendly=record.visa_friendly,
            active=record.active,
            status=record.status,
            filtered_reason=record.filtered_reason,
            posted_at=record.posted_at,
            last_seen_at=now,
            created_at=now,
        )
        self.db.add(posting)
        self.db.flush()
        return posting

    def merge_posting(self, posting: Posting, record: PostingRecord, now: Optional[datetime] = None) -> Posting:
        """Merge a fresh scrape of an existing hash into the stored row.

        - ``last_seen_at`` always advances
        - categories are unioned, never shrunk
        - a known ``visa_friendly`` is never reset to unknown
        - a hard-rule deactivation on the incoming record is applied;
          a stale (reason-less) row is reactivated; a hard-rule-deactivated
          row stays inactive
        """
        posting.last_seen_at = now or datetime.now(timezone.utc)

        for field_name in _REFRESHED_FIELDS:
            value = getattr(record, field_name)
            if value is not None:
                setattr(posting, field_name, value)
        if record.posted_at is not None:
            posting.posted_at = record.posted_at
        if record.extras:
            posting.extras = {**(posting.extras or {}), **record.extras}
        if record.language_requirements:
            posting.language_requirements = sorted(
                set(posting.language_requirements or []) | set(record.language_requirements)
            )

        existing_categories = list(posting.categories or [])
        additions = [c for c in record.categories or [] if c not in existing_categories]
        if additions:
            posting.categories = existing_categories + additions

        if record.visa_friendly is not None:
            posting.visa_friendly = record.visa_friendly
        if posting.city is None and record.city is not None:
            posting.city = record.city
            posting.country_code = record.country_code

        if not record.active and record.filtered_reason:
            if posting.filtered_reason is None or posting.active:
                posting.filtered_reason = record.filtered_reason
            posting.active = False
            posting.status = 'inactive'
            if record.employer_display is None:
                posting.employer_display = None
        elif not posting.active and posting.filtered_reason is None:
            logger.info(f"Reactivating stale posting {posting.hash[:12]}")
            posting.active = True
            posting.status = 'active'

        self.db.flush()
        return posting

    def upsert_posting(self, record: PostingRecord, now: Optional[datetime] = None) -> Tuple[str, Posting]:
        """Insert a new hash or merge into the existing row.

        Returns:
            Tuple of (UPSERT_INSERTED | UPSERT_UPDATED, Posting)
        """
        existing = self.get_by_hash(record.hash)
        if existing is not None:
            logger.debug(f"Duplicate found for {record.title!r}, hash {record.hash[:12]}")
            return UPSERT_UPDATED, self.merge_posting(existing, record, now)
        logger.debug(f"New posting: {record.title!r} at {record.employer_raw!r}")
        return UPSERT_INSERTED, self.create_posting(record, now)

    def deactivate_stale(self, max_age_days: int, now: Optional[datetime] = None) -> int:
        """Deactivate active postings not seen for ``max_age_days``.

        Staleness carries no ``filtered_reason``, so a later re-scrape
        reactivates the posting.
        """
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=max_age_days)
        stmt = (
            update(Posting)
            .where(Posting.active.is_(True), Posting.last_seen_at < cutoff)
            .values(active=False, status='inactive', filtered_reason=None)
        )
        count = self.db.execute(stmt).rowcount or 0
        if count > 0:
            logger.info(f"Deactivated {count} postings unseen since {cutoff.isoformat()}")
        return count
