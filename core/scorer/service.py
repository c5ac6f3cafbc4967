#!/usr/bin/env python3
"""
Scoring Service - AI relevance scoring with a rule-based fallback.

Every candidate leaves this service with a score in [0, 1] and a rationale.
The AI path is tried first; any failure is classified into a
``ScoringErrorType``, logged, and the whole candidate list is rescored by the
``RuleBasedScorer``. Candidates the AI response omits are filled in by the
fallback and the outcome is marked partial. Only a failure of the fallback
itself yields a FATAL outcome.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import openai
from pydantic import ValidationError

from core.llm.interfaces import LLMProvider
from core.llm.schema_models import CandidateScore
from core.matcher.dto import PostingDTO, UserProfile
from core.scorer.fallback import RuleBasedScorer, match_tags
from core.scorer.models import (
    METHOD_AI,
    ScoredCandidate,
    ScoringErrorType,
    ScoringOutcome,
    ScoringStatus,
)
from core.scorer.normalization import MalformedScoreError, normalize_score

logger = logging.getLogger(__name__)

DESCRIPTION_EXCERPT_CHARS = 1200


class ScoringUnavailableError(RuntimeError):
    """Raised when no AI provider is configured."""


def classify_scoring_error(exc: BaseException) -> ScoringErrorType:
    """Map an exception from the AI path onto a ScoringErrorType."""
    # APITimeoutError subclasses APIConnectionError, so it is checked first.
    if isinstance(exc, (openai.APITimeoutError, TimeoutError)):
        return ScoringErrorType.TIMEOUT
    if isinstance(exc, openai.RateLimitError):
        return ScoringErrorType.RATE_LIMITED
    if isinstance(exc, (
        ScoringUnavailableError,
        openai.APIConnectionError,
        openai.InternalServerError,
        openai.AuthenticationError,
        openai.PermissionDeniedError,
        openai.NotFoundError,
    )):
        return ScoringErrorType.CAPABILITY_UNAVAILABLE
    if isinstance(exc, (
        MalformedScoreError,
        ValidationError,
        json.JSONDecodeError,
        ValueError,
        KeyError,
        TypeError,
    )):
        return ScoringErrorType.MALFORMED_RESPONSE
    return ScoringErrorType.UNKNOWN


def _profile_payload(profile: UserProfile) -> Dict[str, Any]:
    return {
        "target_cities": list(profile.target_cities),
        "languages": list(profile.languages),
        "career_paths": list(profile.career_paths),
        "entry_level_preferences": list(profile.entry_level_preferences),
        "work_environments": list(profile.work_environments),
        "needs_visa_sponsorship": profile.needs_visa_sponsorship,
        "target_employer_types": list(profile.target_employer_types),
        "role_tags": list(profile.role_tags),
    }


def _candidate_payload(index: int, posting: PostingDTO) -> Dict[str, Any]:
    return {
        "index": index,
        "title": posting.title,
        "employer": posting.employer,
        "location": posting.location,
        "work_environment": posting.work_environment,
        "categories": list(posting.categories),
        "visa_friendly": posting.visa_friendly,
        "language_requirements": list(posting.language_requirements),
        "is_internship": posting.is_internship,
        "is_graduate_program": posting.is_graduate_program,
        "description": posting.description[:DESCRIPTION_EXCERPT_CHARS],
    }


class ScoringService:
    def __init__(
        self,
        provider: Optional[LLMProvider],
        fallback: Optional[RuleBasedScorer] = None,
        timeout_seconds: float = 30.0
    ):
        self.provider = provider
        self.fallback = fallback or RuleBasedScorer()
        self.timeout_seconds = timeout_seconds

    def score(
        self,
        profile: UserProfile,
        candidates: Sequence[PostingDTO],
        run_id: str = "-"
    ) -> ScoringOutcome:
        prefix = f"[run={run_id}] [user={profile.user_key}]"
        if not candidates:
            return ScoringOutcome(status=ScoringStatus.SUCCESS)

        try:
            scored, partial = self._score_with_ai(profile, candidates, prefix)
        except Exception as e:
            error_type = classify_scoring_error(e)
            logger.warning(
                f"{prefix} AI scoring failed errorType={error_type.value} fallbackUsed=true: "
                f"{type(e).__name__}: {e}"
            )
            return self._fallback_outcome(profile, candidates, prefix, error_type, str(e))

        if partial:
            logger.warning(
                f"{prefix} AI response omitted {sum(1 for s in scored if s.method != METHOD_AI)} "
                f"of {len(candidates)} candidates errorType={ScoringErrorType.MALFORMED_RESPONSE.value} "
                f"fallbackUsed=true"
            )
        scored.sort(key=lambda s: (-s.score, s.posting.hash))
        logger.info(f"{prefix} Scored {len(scored)} candidates with AI (partial={partial})")
        return ScoringOutcome(
            status=ScoringStatus.SUCCESS,
            scored=scored,
            error_type=ScoringErrorType.MALFORMED_RESPONSE if partial else None,
            fallback_used=partial,
            partial=partial,
        )

    def _score_with_ai(
        self,
        profile: UserProfile,
        candidates: Sequence[PostingDTO],
        prefix: str
    ) -> Tuple[List[ScoredCandidate], bool]:
        if self.provider is None:
            raise ScoringUnavailableError("No AI provider configured")

        data = self.provider.score_candidates(
            _profile_payload(profile),
            [_candidate_payload(i, p) for i, p in enumerate(candidates)],
            timeout=self.timeout_seconds,
        )
        entries = data.get("matches") if isinstance(data, dict) else None
        if not isinstance(entries, list):
            raise MalformedScoreError("Scoring response has no 'matches' list")

        by_index: Dict[int, ScoredCandidate] = {}
        for entry in entries:
            try:
                item = CandidateScore.model_validate(entry)
                score = normalize_score(item.score)
            except (ValidationError, MalformedScoreError) as e:
                logger.debug(f"{prefix} Skipping invalid scoring entry {entry!r}: {e}")
                continue
            if not 0 <= item.index < len(candidates) or item.index in by_index:
                logger.debug(f"{prefix} Skipping out-of-range or repeated index {item.index}")
                continue
            rationale = item.rationale.strip()
            if not rationale:
                logger.debug(f"{prefix} Skipping entry {item.index} with empty rationale")
                continue
            posting = candidates[item.index]
            by_index[item.index] = ScoredCandidate(
                posting=posting,
                score=round(score, 4),
                rationale=rationale,
                method=METHOD_AI,
                tags=match_tags(posting, profile, METHOD_AI),
            )

        if not by_index:
            raise MalformedScoreError(f"No valid entries among {len(entries)} returned")

        missing = [p for i, p in enumerate(candidates) if i not in by_index]
        scored = list(by_index.values())
        if missing:
            scored.extend(self.fallback.score(profile, missing))
        return scored, bool(missing)

    def _fallback_outcome(
        self,
        profile: UserProfile,
        candidates: Sequence[PostingDTO],
        prefix: str,
        error_type: ScoringErrorType,
        message: str
    ) -> ScoringOutcome:
        try:
            scored = self.fallback.score(profile, candidates)
        except Exception as e:
            logger.exception(f"{prefix} Fallback scoring failed; user cannot be scored")
            return ScoringOutcome(
                status=ScoringStatus.FATAL,
                error_type=error_type,
                error_message=f"{message}; fallback failed: {e}",
                fallback_used=True,
            )

        logger.info(f"{prefix} Scored {len(scored)} candidates with rule-based fallback")
        return ScoringOutcome(
            status=ScoringStatus.FALLBACK,
            scored=scored,
            error_type=error_type,
            error_message=message,
            fallback_used=True,
        )
