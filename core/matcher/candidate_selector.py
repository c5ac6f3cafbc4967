"""
Candidate Selector - narrows the active pool to plausible candidates for one user.

Constraints, in priority order:
1. City (with country-level and then any-posting relaxation)
2. Career-path category intersection (dropped when too narrow)
3. Visa eligibility (never relaxed; unknown passes)

The result is ordered newest first and capped to bound scoring cost.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Set

from core.matcher.dto import PostingDTO, RelaxationEvent, UserProfile
from core.utils import fold_text
from etl.classifier.categories import categories_for_career_paths
from etl.location import canonical_city, country_for_city

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass
class CandidateSelection:
    candidates: List[PostingDTO] = field(default_factory=list)
    relaxations: List[RelaxationEvent] = field(default_factory=list)
    pool_size: int = 0


def _city_key(name: Optional[str]) -> Optional[str]:
    if not name:
        return None
    return canonical_city(name) or fold_text(name)


class CandidateSelector:
    def __init__(self, min_pool_size: int = 5, max_candidates: int = 50):
        self.min_pool_size = min_pool_size
        self.max_candidates = max_candidates

    def select(
        self,
        profile: UserProfile,
        pool: Sequence[PostingDTO],
        run_id: str = "-"
    ) -> CandidateSelection:
        selection = CandidateSelection(pool_size=len(pool))
        prefix = f"[run={run_id}] [user={profile.user_key}]"

        candidates = self._filter_by_city(profile, list(pool), selection, prefix)
        candidates = self._filter_by_career_path(profile, candidates, selection, prefix)
        candidates = self._filter_by_visa(profile, candidates, prefix)

        candidates.sort(key=lambda p: p.recency or _EPOCH, reverse=True)
        selection.candidates = candidates[:self.max_candidates]

        logger.info(
            f"{prefix} Selected {len(selection.candidates)} candidates from pool of {len(pool)} "
            f"({len(selection.relaxations)} relaxations)"
        )
        return selection

    def _relax(self, selection: CandidateSelection, prefix: str, constraint: str, detail: str) -> None:
        selection.relaxations.append(RelaxationEvent("selector", constraint, detail))
        logger.info(f"{prefix} Relaxation: {constraint} - {detail}")

    def _filter_by_city(
        self,
        profile: UserProfile,
        pool: List[PostingDTO],
        selection: CandidateSelection,
        prefix: str
    ) -> List[PostingDTO]:
        targets = {_city_key(c) for c in profile.target_cities} - {None}
        if not targets:
            return pool

        accepts_remote = "remote" in profile.work_environments
        matched = [
            p for p in pool
            if _city_key(p.city) in targets or (accepts_remote and p.is_remote)
        ]
        if len(matched) >= self.min_pool_size:
            return matched

        countries = {country_for_city(c) for c in profile.target_cities} - {None}
        if countries:
            matched_hashes = {p.hash for p in matched}
            widened = [p for p in pool if p.hash in matched_hashes or p.country_code in countries]
            if len(widened) >= self.min_pool_size:
                self._relax(
                    selection, prefix, "city",
                    f"{len(matched)} postings in target cities, widened to countries "
                    f"{sorted(countries)} ({len(widened)} postings)"
                )
                return widened

        if len(pool) > len(matched):
            self._relax(
                selection, prefix, "city",
                f"{len(matched)} postings in target cities, widened to any active posting ({len(pool)})"
            )
            return pool
        return matched

    def _filter_by_career_path(
        self,
        profile: UserProfile,
        candidates: List[PostingDTO],
        selection: CandidateSelection,
        prefix: str
    ) -> List[PostingDTO]:
        wanted: Optional[Set[str]] = categories_for_career_paths(profile.career_paths)
        if wanted is None:
            return candidates

        matched = [p for p in candidates if wanted.intersection(p.categories)]
        if len(matched) >= self.min_pool_size or len(matched) == len(candidates):
            return matched

        self._relax(
            selection, prefix, "career_path",
            f"only {len(matched)} postings carry {sorted(wanted)}, constraint dropped"
        )
        return candidates

    def _filter_by_visa(self, profile: UserProfile, candidates: List[PostingDTO], prefix: str) -> List[PostingDTO]:
        if not profile.needs_visa_sponsorship:
            return candidates
        kept = [p for p in candidates if p.visa_friendly is not False]
        if len(kept) < len(candidates):
            logger.debug(f"{prefix} Visa filter removed {len(candidates) - len(kept)} local-only postings")
        return kept
