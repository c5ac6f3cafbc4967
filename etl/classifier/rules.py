"""
Hard eligibility rules.

Each rule is a declarative struct evaluated by ``rule_matches``; the order of
``HARD_RULES`` is the order in which rules are applied. Terms are matched
case-insensitively on word boundaries, and multi-word terms tolerate any run
of whitespace between words.
"""
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Optional, Tuple

from core.utils import collapse_whitespace

JOB_BOARD_AS_COMPANY = "job_board_as_company"
CEO_EXECUTIVE_ROLE = "ceo_executive_role"
CONSTRUCTION_ROLE = "construction_role"
MEDICAL_HEALTHCARE_ROLE = "medical_healthcare_role"
LEGAL_ROLE = "legal_role"
TEACHING_EDUCATION_ROLE = "teaching_education_role"


@dataclass(frozen=True)
class EligibilityRule:
    """A hard eligibility rule.

    A rule hits when the field text equals one of ``exact_names`` or matches
    any ``positive_terms`` while matching none of the ``negative_terms``
    (and none of ``description_negative_terms`` in the description).
    Negative terms only exempt pattern hits, never exact-name hits.
    """
    reason: str
    positive_terms: Tuple[str, ...] = ()
    negative_terms: Tuple[str, ...] = ()
    exact_names: Tuple[str, ...] = ()
    description_negative_terms: Tuple[str, ...] = ()
    field: str = "title"
    clears_employer: bool = False


@lru_cache(maxsize=None)
def _compile(terms: Tuple[str, ...]) -> Optional[re.Pattern]:
    if not terms:
        return None
    alternatives = [r"\s+".join(re.escape(word) for word in term.split()) for term in terms]
    return re.compile(r"\b(?:" + "|".join(alternatives) + r")\b", re.IGNORECASE)


def _search(terms: Tuple[str, ...], text: str) -> bool:
    pattern = _compile(terms)
    return bool(pattern and pattern.search(text))


def _field_text(posting: Any, rule: EligibilityRule) -> str:
    if rule.field == "employer":
        return collapse_whitespace(getattr(posting, "employer_raw", ""))
    return collapse_whitespace(getattr(posting, rule.field, ""))


def rule_matches(rule: EligibilityRule, posting: Any) -> bool:
    """Evaluate one rule against a posting-like object."""
    text = _field_text(rule=rule, posting=posting)
    if not text:
        return False

    lowered = text.lower()
    if any(lowered == name.lower() for name in rule.exact_names):
        return True

    if not _search(rule.positive_terms, text):
        return False
    if _search(rule.negative_terms, text):
        return False
    if rule.description_negative_terms and _search(
        rule.description_negative_terms, getattr(posting, "description", "") or ""
    ):
        return False
    return True


HARD_RULES: Tuple[EligibilityRule, ...] = (
    EligibilityRule(
        reason=JOB_BOARD_AS_COMPANY,
        field="employer",
        exact_names=(
            "Reed", "Reed Recruitment", "Indeed", "Google", "StepStone", "StepStone Group",
            "eFinancialCareers", "efinancial",
        ),
        positive_terms=(
            "indeed", "reed", "adzuna", "jobspy", "linkedin", "totaljobs", "monster",
            "ziprecruiter", "efinancial", "efinancialcareers", "stepstone", "glassdoor",
        ),
        negative_terms=("recruitment", "staffing", "placement", "placements"),
        clears_employer=True,
    ),
    EligibilityRule(
        reason=CEO_EXECUTIVE_ROLE,
        positive_terms=(
            "ceo", "chief executive", "managing director", "md", "cfo", "cto", "coo", "cmo",
            "chief financial officer", "chief technology officer", "chief operating officer",
            "chief marketing officer", "chief officer", "president",
        ),
        negative_terms=(
            "assistant", "coordinator", "analyst", "office of", "graduate", "intern",
            "trainee", "vice president", "to the",
        ),
    ),
    EligibilityRule(
        reason=CONSTRUCTION_ROLE,
        positive_terms=(
            "construction", "builder", "carpenter", "plumber", "electrician", "welder",
            "roofer", "mason", "painter", "tiler", "glazier", "bricklayer", "plasterer",
        ),
        negative_terms=("project manager", "consultant", "analyst"),
    ),
    EligibilityRule(
        reason=MEDICAL_HEALTHCARE_ROLE,
        positive_terms=(
            "nurse", "doctor", "physician", "dentist", "therapist", "counselor", "counsellor",
            "psychologist", "pharmacist", "surgeon", "veterinarian", "vet",
            "medical doctor", "medical practitioner", "medical officer",
        ),
        negative_terms=(
            "healthcare manager", "healthcare analyst", "healthcare consultant",
            "healthcare business", "hospital administrator", "analyst", "consultant",
        ),
    ),
    EligibilityRule(
        reason=LEGAL_ROLE,
        positive_terms=("lawyer", "attorney", "solicitor", "barrister", "general counsel"),
        negative_terms=("compliance", "regulatory", "legal analyst"),
    ),
    EligibilityRule(
        reason=LEGAL_ROLE,
        positive_terms=("legal counsel", "legal advisor", "legal adviser", "legal officer"),
        negative_terms=("compliance", "analyst", "junior", "graduate", "intern", "business"),
    ),
    EligibilityRule(
        reason=TEACHING_EDUCATION_ROLE,
        positive_terms=(
            "teacher", "teaching", "lecturer", "educator", "tutor", "instructor", "professor",
        ),
        negative_terms=(
            "business teacher", "business lecturer", "business professor",
            "corporate trainer", "corporate training",
        ),
        description_negative_terms=("business school",),
    ),
)
