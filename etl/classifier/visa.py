"""
Visa sponsorship heuristics over posting text.

Confidence levels:
- verified: explicit sponsorship wording ("visa sponsorship", "tier 2", "blue card")
- likely: international-hiring wording or a known sponsoring employer
- local-only: explicit right-to-work / citizens-only wording (highest priority)
- unknown: nothing found

Only ``verified`` and ``local-only`` are definite enough to be stored.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from core.utils import fold_text

VERIFIED = "verified"
LIKELY = "likely"
LOCAL_ONLY = "local-only"
UNKNOWN = "unknown"

VERIFIED_KEYWORDS = (
    "visa sponsorship", "sponsor visa", "work permit sponsorship", "visa support",
    "immigration support", "will sponsor", "can sponsor", "visa assistance",
    "tier 2 sponsorship", "tier 2 visa", "tier 2", "blue card", "skilled worker visa",
    "work authorization support", "sponsorship available",
)

LIKELY_KEYWORDS = (
    "international candidates", "global talent", "international applicants welcome",
    "open to international", "relocation assistance", "relocation support",
    "relocation package", "relocation provided", "international relocation",
    "global candidates", "worldwide applicants",
)

LOCAL_ONLY_KEYWORDS = (
    "eu citizen only", "eu citizens only", "uk citizen only", "uk citizens only",
    "right to work required", "must have right to work", "must have the right to work",
    "no visa sponsorship", "unable to sponsor", "cannot sponsor", "will not sponsor",
    "local candidates only", "eu nationals only", "uk nationals only", "eea citizen only",
    "eu/eea citizens only", "must be legally authorized to work",
    "sponsorship is not available", "sponsorship is not offered", "sponsorship not available",
    "not able to sponsor", "does not offer visa sponsorship", "do not offer visa sponsorship",
    "does not provide visa sponsorship", "do not provide visa sponsorship",
    "not eligible for visa sponsorship", "without visa sponsorship",
)

KNOWN_SPONSOR_EMPLOYERS = (
    "google", "microsoft", "amazon", "meta", "apple", "netflix", "spotify", "stripe",
    "salesforce", "oracle", "ibm", "accenture", "deloitte", "pwc", "ey", "kpmg",
    "mckinsey", "boston consulting", "bain", "goldman sachs", "morgan stanley",
    "jpmorgan", "barclays", "hsbc", "deutsche bank", "uber", "airbnb", "shopify",
)


@dataclass
class VisaAssessment:
    confidence: str = UNKNOWN
    keywords_found: List[str] = field(default_factory=list)

    @property
    def visa_friendly(self) -> Optional[bool]:
        """Definite tri-state value, or None when the signal is not conclusive."""
        if self.confidence == VERIFIED:
            return True
        if self.confidence == LOCAL_ONLY:
            return False
        return None


def _hits(keywords, text: str) -> List[str]:
    return [k for k in keywords if k in text]


def assess_visa(title: str, description: str, employer: str = "") -> VisaAssessment:
    text = fold_text(f"{title} {description}")

    local_only = _hits(LOCAL_ONLY_KEYWORDS, text)
    if local_only:
        return VisaAssessment(LOCAL_ONLY, local_only)

    verified = _hits(VERIFIED_KEYWORDS, text)
    if verified:
        return VisaAssessment(VERIFIED, verified)

    likely = _hits(LIKELY_KEYWORDS, text)
    employer_text = fold_text(employer)
    likely.extend(
        e for e in KNOWN_SPONSOR_EMPLOYERS
        if employer_text == e or employer_text.startswith(e + " ")
    )
    if likely:
        return VisaAssessment(LIKELY, likely)

    return VisaAssessment()
