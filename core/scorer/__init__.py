#!/usr/bin/env python3
"""
Scoring Module - relevance scoring and match persistence.

Public API:
- ScoringService: AI scoring with rule-based fallback, returns a tagged ScoringOutcome
- RuleBasedScorer: deterministic fallback scorer
- MatchWriter: idempotent per-match persistence

Modules:
- models.py: Data structures (ScoredCandidate, ScoringOutcome, quality tiers)
- normalization.py: AI score normalization to [0, 1]
- fallback.py: Signal-overlap scorer and match tags
- persistence.py: Database operations (MatchWriter)
- service.py: ScoringService orchestrator
"""

from core.scorer.models import ScoredCandidate, ScoringOutcome, ScoringStatus, ScoringErrorType
from core.scorer.fallback import RuleBasedScorer
from core.scorer.persistence import MatchWriter, MatchWriteResult
from core.scorer.service import ScoringService

__all__ = [
    'ScoringService', 'RuleBasedScorer', 'MatchWriter', 'MatchWriteResult',
    'ScoredCandidate', 'ScoringOutcome', 'ScoringStatus', 'ScoringErrorType',
]
