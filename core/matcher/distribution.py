"""
Diversity Distributor - picks each user's final matches from the scored list.

Walks candidates in score order and admits each one unless it would break a
diversity constraint:
- at most ``max_per_source`` postings per source
- per-city quotas that share ``target_count`` across the user's target cities
- optionally, per-work-environment quotas across the user's work environments

When the walk cannot fill ``target_count``, constraints are relaxed in order:
balance quotas first, then the source cap. A non-empty scored list always
yields a non-empty selection.
"""
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from core.config_loader import DistributionConfig
from core.matcher.dto import PostingDTO, RelaxationEvent, UserProfile
from core.scorer.models import ScoredCandidate
from core.utils import fold_text
from etl.location import canonical_city

logger = logging.getLogger(__name__)


@dataclass
class DistributionResult:
    selected: List[ScoredCandidate] = field(default_factory=list)
    gate_dropped: bool = False
    relaxations: List[RelaxationEvent] = field(default_factory=list)


def _city_key(name: Optional[str]) -> Optional[str]:
    if not name:
        return None
    return canonical_city(name) or fold_text(name)


def split_quota(total: int, keys: Sequence[str]) -> Dict[str, int]:
    """Share ``total`` across ``keys``: total // n each, plus one for the first total % n."""
    if not keys:
        return {}
    base, extra = divmod(total, len(keys))
    return {key: base + (1 if i < extra else 0) for i, key in enumerate(keys)}


def _unique(values) -> List[str]:
    seen = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen


class DiversityDistributor:
    def __init__(self, config: Optional[DistributionConfig] = None):
        self.config = config or DistributionConfig()

    def source_of(self, posting: PostingDTO) -> str:
        if self.config.source_key == "employer":
            return fold_text(posting.employer)
        return fold_text(posting.origin_source or posting.employer)

    def distribute(
        self,
        scored: Sequence[ScoredCandidate],
        profile: UserProfile,
        run_id: str = "-"
    ) -> DistributionResult:
        prefix = f"[run={run_id}] [user={profile.user_key}]"
        result = DistributionResult()
        ordered = sorted(scored, key=lambda s: (-s.score, s.posting.hash))
        target = min(self.config.target_count, len(ordered))
        if target == 0:
            return result

        pool = [s for s in ordered if s.score >= self.config.quality_threshold]
        if len(pool) < target:
            result.gate_dropped = True
            self._relax(
                result, prefix, "quality_gate",
                f"{len(pool)} of {len(ordered)} above {self.config.quality_threshold:.2f}, gate dropped"
            )
            pool = ordered

        city_quota = {}
        if self.config.city_balance:
            city_quota = split_quota(target, _unique(_city_key(c) for c in profile.target_cities))
        env_quota = {}
        if self.config.work_environment_balance and len(profile.work_environments) > 1:
            env_quota = split_quota(target, _unique(profile.work_environments))

        selected: List[ScoredCandidate] = []
        self._walk(pool, selected, target, city_quota, env_quota, enforce_source_cap=True)

        if len(selected) < target and (city_quota or env_quota):
            before = len(selected)
            self._walk(pool, selected, target, {}, {}, enforce_source_cap=True)
            self._relax(
                result, prefix, "balance",
                f"city/work-environment quotas ignored, {before} -> {len(selected)} selected"
            )

        if len(selected) < target:
            before = len(selected)
            self._walk(pool, selected, target, {}, {}, enforce_source_cap=False)
            self._relax(
                result, prefix, "source_cap",
                f"max {self.config.max_per_source} per source ignored, {before} -> {len(selected)} selected"
            )

        selected.sort(key=lambda s: (-s.score, s.posting.hash))
        result.selected = selected
        logger.info(
            f"{prefix} Distributed {len(selected)} of {len(ordered)} scored candidates "
            f"(gate_dropped={result.gate_dropped}, relaxations={len(result.relaxations)})"
        )
        return result

    def _relax(self, result: DistributionResult, prefix: str, constraint: str, detail: str) -> None:
        result.relaxations.append(RelaxationEvent("distributor", constraint, detail))
        logger.info(f"{prefix} Relaxation: {constraint} - {detail}")

    def _walk(
        self,
        pool: Sequence[ScoredCandidate],
        selected: List[ScoredCandidate],
        target: int,
        city_quota: Dict[str, int],
        env_quota: Dict[str, int],
        enforce_source_cap: bool
    ) -> None:
        chosen = {s.posting.hash for s in selected}
        sources = Counter(self.source_of(s.posting) for s in selected)
        cities = Counter(_city_key(s.posting.city) for s in selected)
        envs = Counter(s.posting.work_environment for s in selected)

        for candidate in pool:
            if len(selected) >= target:
                return
            posting = candidate.posting
            if posting.hash in chosen:
                continue

            source = self.source_of(posting)
            if enforce_source_cap and sources[source] >= self.config.max_per_source:
                continue

            city = _city_key(posting.city)
            if city in city_quota and cities[city] >= city_quota[city]:
                continue

            env = posting.work_environment
            if env in env_quota and envs[env] >= env_quota[env]:
                continue

            selected.append(candidate)
            chosen.add(posting.hash)
            sources[source] += 1
            cities[city] += 1
            envs[env] += 1
