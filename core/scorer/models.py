#!/usr/bin/env python3
"""
Scoring Models - Data structures for scoring results.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from core.matcher.dto import PostingDTO

METHOD_AI = "ai"
METHOD_RULE_BASED = "rule_based"


class ScoringStatus(str, Enum):
    SUCCESS = "success"
    FALLBACK = "fallback"
    FATAL = "fatal"


class ScoringErrorType(str, Enum):
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    CAPABILITY_UNAVAILABLE = "capability_unavailable"
    MALFORMED_RESPONSE = "malformed_response"
    UNKNOWN = "unknown"


QUALITY_TIERS = (
    (0.85, "excellent"),
    (0.75, "good"),
    (0.65, "fair"),
)


def quality_tier(score: float) -> str:
    for threshold, label in QUALITY_TIERS:
        if score >= threshold:
            return label
    return "poor"


@dataclass
class ScoredCandidate:
    """One candidate with its normalized score and rationale."""
    posting: PostingDTO
    score: float
    rationale: str
    method: str = METHOD_AI
    tags: List[str] = field(default_factory=list)

    @property
    def quality_tier(self) -> str:
        return quality_tier(self.score)


@dataclass
class ScoringOutcome:
    """Tagged result of scoring one user's candidates.

    ``fallback_used`` is True whenever any candidate was scored by the
    rule-based scorer; ``status`` is FALLBACK only when the AI path failed
    as a whole.
    """
    status: ScoringStatus
    scored: List[ScoredCandidate] = field(default_factory=list)
    error_type: Optional[ScoringErrorType] = None
    error_message: Optional[str] = None
    fallback_used: bool = False
    partial: bool = False

    @property
    def ok(self) -> bool:
        return self.status != ScoringStatus.FATAL
