#!/usr/bin/env python3
"""
Persistence Operations - Database operations for distributed matches.

Each match is written in its own unit of work so one failing row does not
discard the rest of the user's matches. Re-running a user upserts the same
(user_key, posting_hash) rows in place.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, ContextManager, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from core.scorer.models import ScoredCandidate
from database.repository import PipelineRepository
from database.uow import pipeline_uow

logger = logging.getLogger(__name__)

SCORE_DECIMALS = 3


@dataclass
class MatchWriteError:
    posting_hash: str
    error: str


@dataclass
class MatchWriteResult:
    created: int = 0
    updated: int = 0
    errors: List[MatchWriteError] = field(default_factory=list)

    @property
    def written(self) -> int:
        return self.created + self.updated


def _to_float(value) -> float:
    """Convert value to native Python float rounded for the score column."""
    return round(float(value), SCORE_DECIMALS)


class MatchWriter:
    def __init__(
        self,
        uow_factory: Callable[[], ContextManager[PipelineRepository]] = pipeline_uow,
        now_fn: Callable[[], datetime] = lambda: datetime.now(timezone.utc)
    ):
        self.uow_factory = uow_factory
        self.now_fn = now_fn

    def write(
        self,
        user_key: str,
        matches: Sequence[ScoredCandidate],
        run_id: Optional[str] = None
    ) -> MatchWriteResult:
        result = MatchWriteResult()
        matched_at = self.now_fn()

        for rank, candidate in enumerate(matches, start=1):
            posting_hash = candidate.posting.hash
            try:
                with self.uow_factory() as repo:
                    created, _ = repo.matches.upsert_match(
                        user_key=user_key,
                        posting_hash=posting_hash,
                        score=_to_float(candidate.score),
                        rationale=candidate.rationale,
                        quality_tier=candidate.quality_tier,
                        tags=candidate.tags,
                        scoring_method=candidate.method,
                        run_id=run_id,
                        rank=rank,
                        matched_at=matched_at,
                    )
            except SQLAlchemyError as e:
                logger.exception(
                    "[run=%s] Failed saving match user=%s posting=%s", run_id, user_key, posting_hash
                )
                result.errors.append(MatchWriteError(posting_hash=posting_hash, error=str(e)))
                continue

            if created:
                result.created += 1
            else:
                result.updated += 1

        logger.info(
            f"[run={run_id}] [user={user_key}] Saved matches: {result.created} created, "
            f"{result.updated} updated, {len(result.errors)} failed"
        )
        return result
