#!/usr/bin/env python3
"""
Rule-based fallback scorer.

Used when the AI scoring path fails. Scores by simple signal overlap
(career-path categories, city, recency, work environment, language fit) and
maps the weighted signal into a fixed lower band, 0.40-0.70 by default.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence, Tuple

from core.matcher.dto import PostingDTO, UserProfile
from core.scorer.models import METHOD_AI, METHOD_RULE_BASED, ScoredCandidate
from core.utils import ensure_utc, fold_text
from etl.classifier.categories import categories_for_career_paths
from etl.location import canonical_city

logger = logging.getLogger(__name__)

SIGNAL_WEIGHTS = {
    "career_path": 0.35,
    "city": 0.25,
    "recency": 0.20,
    "work_environment": 0.10,
    "language": 0.10,
}

RECENCY_WINDOW_DAYS = 30


def _city_key(name: Optional[str]) -> Optional[str]:
    if not name:
        return None
    return canonical_city(name) or fold_text(name)


def match_tags(posting: PostingDTO, profile: UserProfile, method: str) -> List[str]:
    """Tags stored on a match: city, matched categories, visa, work mode, method."""
    tags: List[str] = []
    if posting.city:
        tags.append(f"city:{fold_text(posting.city)}")
    wanted = categories_for_career_paths(profile.career_paths)
    for category in posting.categories:
        if wanted is None or category in wanted:
            tags.append(f"category:{category}")
    if posting.visa_friendly:
        tags.append("visa-friendly")
    if posting.work_environment:
        tags.append(posting.work_environment)
    tags.append("ai" if method == METHOD_AI else "fallback")
    return tags


class RuleBasedScorer:
    def __init__(
        self,
        min_score: float = 0.40,
        max_score: float = 0.70,
        now_fn: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        if not 0.0 <= min_score <= max_score <= 1.0:
            raise ValueError("Fallback band must satisfy 0 <= min <= max <= 1")
        self.min_score = min_score
        self.max_score = max_score
        self.now_fn = now_fn

    def score_one(self, profile: UserProfile, posting: PostingDTO) -> ScoredCandidate:
        signal, reasons = self._signals(profile, posting)
        score = round(self.min_score + (self.max_score - self.min_score) * signal, 4)
        rationale = "; ".join(reasons) if reasons else "General fit for your profile"
        return ScoredCandidate(
            posting=posting,
            score=score,
            rationale=rationale,
            method=METHOD_RULE_BASED,
            tags=match_tags(posting, profile, METHOD_RULE_BASED),
        )

    def score(self, profile: UserProfile, candidates: Sequence[PostingDTO]) -> List[ScoredCandidate]:
        scored = [self.score_one(profile, posting) for posting in candidates]
        scored.sort(key=lambda s: (-s.score, s.posting.hash))
        return scored

    def _signals(self, profile: UserProfile, posting: PostingDTO) -> Tuple[float, List[str]]:
        total = 0.0
        reasons: List[str] = []

        wanted = categories_for_career_paths(profile.career_paths)
        if wanted is None:
            total += SIGNAL_WEIGHTS["career_path"] * 0.5
        else:
            overlap = sorted(wanted.intersection(posting.categories))
            if overlap:
                total += SIGNAL_WEIGHTS["career_path"]
                reasons.append(f"Matches your {', '.join(overlap)} path")

        targets = {_city_key(c) for c in profile.target_cities} - {None}
        if posting.city and _city_key(posting.city) in targets:
            total += SIGNAL_WEIGHTS["city"]
            reasons.append(f"Based in {posting.city}")
        elif posting.is_remote and "remote" in profile.work_environments:
            total += SIGNAL_WEIGHTS["city"]
            reasons.append("Remote role")

        recency = ensure_utc(posting.recency)
        if recency is not None:
            age_days = max(0, (self.now_fn() - recency).days)
            freshness = max(0.0, 1.0 - age_days / RECENCY_WINDOW_DAYS)
            total += SIGNAL_WEIGHTS["recency"] * freshness
            if age_days <= 7:
                reasons.append("Posted this week" if age_days else "Posted today")

        if not profile.work_environments:
            total += SIGNAL_WEIGHTS["work_environment"] * 0.5
        elif posting.work_environment in profile.work_environments:
            total += SIGNAL_WEIGHTS["work_environment"]
            reasons.append(f"{posting.work_environment.capitalize()} work")

        required = set(posting.language_requirements)
        if not required or required <= set(profile.languages):
            total += SIGNAL_WEIGHTS["language"]

        if profile.needs_visa_sponsorship and posting.visa_friendly:
            reasons.append("Offers visa sponsorship")

        return min(1.0, total), reasons
