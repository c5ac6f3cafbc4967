from typing import List, Literal, Optional, Sequence

from pydantic import BaseModel

from core.matcher.dto import UserProfile
from core.scorer.models import ScoredCandidate

DIGEST_STATUS_MATCHES = "matches"
DIGEST_STATUS_NO_ELIGIBLE = "no_eligible_postings"


class DigestItem(BaseModel):
    title: str
    employer: str
    location: str
    url: str
    rationale: str
    score: float
    quality_tier: str


class MatchDigest(BaseModel):
    user_key: str
    email: Optional[str] = None
    run_id: str
    status: Literal["matches", "no_eligible_postings"]
    items: List[DigestItem] = []

    @property
    def is_empty(self) -> bool:
        return self.status == DIGEST_STATUS_NO_ELIGIBLE


class DigestMessageBuilder:
    @staticmethod
    def build_item(candidate: ScoredCandidate) -> DigestItem:
        posting = candidate.posting
        return DigestItem(
            title=posting.title,
            employer=posting.employer,
            location=DigestMessageBuilder.format_location(posting.location, posting.is_remote),
            url=posting.source_url,
            rationale=candidate.rationale,
            score=round(candidate.score, 3),
            quality_tier=candidate.quality_tier,
        )

    @staticmethod
    def format_location(location: str, is_remote: bool) -> str:
        """Format location with remote indicator."""
        if is_remote and location.lower() != "remote":
            return f"{location} (Remote)"
        if is_remote:
            return "Remote"
        return location

    @staticmethod
    def build_subject(digest: MatchDigest) -> str:
        if digest.is_empty:
            return "No new matches this time"
        count = len(digest.items)
        return f"{count} new job match{'es' if count != 1 else ''} for you"

    @staticmethod
    def build_body(digest: MatchDigest) -> str:
        """Plain-text body, one block per match."""
        if digest.is_empty:
            return (
                "We couldn't find postings that fit your preferences in this run. "
                "Widening your target cities or career paths will surface more roles."
            )
        lines = []
        for position, item in enumerate(digest.items, start=1):
            lines.append(f"{position}. {item.title} at {item.employer} ({item.location})")
            lines.append(f"   Match: {item.score * 100:.0f}% ({item.quality_tier})")
            lines.append(f"   {item.rationale}")
            if item.url:
                lines.append(f"   Apply: {item.url}")
        return "\n".join(lines)


def build_digest(profile: UserProfile, selected: Sequence[ScoredCandidate], run_id: str) -> MatchDigest:
    """Digest for one user; an empty selection yields the no-eligible-postings signal."""
    items = [DigestMessageBuilder.build_item(c) for c in selected]
    return MatchDigest(
        user_key=profile.user_key,
        email=profile.email,
        run_id=run_id,
        status=DIGEST_STATUS_MATCHES if items else DIGEST_STATUS_NO_ELIGIBLE,
        items=items,
    )
