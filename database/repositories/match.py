import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import select, func

from database.models import PostingMatch
from database.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class MatchRepository(BaseRepository):
    def get_match(self, user_key: str, posting_hash: str) -> Optional[PostingMatch]:
        stmt = select(PostingMatch).where(
            PostingMatch.user_key == user_key,
            PostingMatch.posting_hash == posting_hash
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def get_matches_for_user(
        self,
        user_key: str,
        min_score: Optional[float] = None,
        run_id: Optional[str] = None
    ) -> List[PostingMatch]:
        stmt = select(PostingMatch).where(PostingMatch.user_key == user_key)

        if min_score is not None:
            stmt = stmt.where(PostingMatch.score >= min_score)
        if run_id is not None:
            stmt = stmt.where(PostingMatch.run_id == run_id)

        stmt = stmt.order_by(PostingMatch.score.desc(), PostingMatch.posting_hash)
        return list(self.db.execute(stmt).scalars().all())

    def count_matches(self, user_key: Optional[str] = None) -> int:
        stmt = select(func.count()).select_from(PostingMatch)
        if user_key is not None:
            stmt = stmt.where(PostingMatch.user_key == user_key)
        return self.db.execute(stmt).scalar_one()

    def upsert_match(
        self,
        user_key: str,
        posting_hash: str,
        score: float,
        rationale: str,
        quality_tier: str,
        tags: Sequence[str],
        scoring_method: str,
        run_id: Optional[str] = None,
        rank: Optional[int] = None,
        matched_at: Optional[datetime] = None
    ) -> Tuple[bool, PostingMatch]:
        """Create or refresh the match row for (user_key, posting_hash).

        Returns:
            Tuple of (created, PostingMatch)
        """
        matched_at = matched_at or datetime.now(timezone.utc)
        match = self.get_match(user_key, posting_hash)
        created = match is None
        if created:
            match = PostingMatch(user_key=user_key, posting_hash=posting_hash)
            self.db.add(match)

        match.score = score
        match.rationale = rationale
        match.quality_tier = quality_tier
        match.tags = list(tags)
        match.scoring_method = scoring_method
        match.run_id = run_id
        match.rank = rank
        match.matched_at = matched_at

        self.db.flush()
        return created, match
