"""
Canonicalizer - turns one raw posting into a ``PostingRecord``.

Pure functions only: no I/O, no database access. The result either carries a
normalized record with its content hash or the list of missing core fields.
"""
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from core.utils import PostingFingerprinter, collapse_whitespace
from etl.location import normalize_location
from etl.schemas import (
    ALIASED_KEYS,
    FIELD_ALIASES,
    REQUIRED_FIELDS,
    CanonicalizationResult,
    PostingRecord,
)

logger = logging.getLogger(__name__)

_EXCLUDED_ASSISTANT_RE = re.compile(
    r"virtual\s+assistant|executive\s+assistant|personal\s+assistant|administrative\s+assistant",
    re.IGNORECASE,
)
_MANAGER_RE = re.compile(r"\bmanager\b", re.IGNORECASE)
_TRAINEE_MANAGER_RE = re.compile(
    r"(graduate|trainee|junior|entry.?level|associate)\s+manager", re.IGNORECASE
)
_SENIOR_TITLE_RE = re.compile(
    r"\b(director|vp|vice.?president|head\s+of|chief|executive|president)\b", re.IGNORECASE
)
_GRADUATE_RE = re.compile(
    r"(graduate|new.?grad|campus.?hire|rotational.?program|university.?hire|college.?hire|"
    r"entry.?level|junior|trainee|intern|internship|placement|analyst|fellowship|apprentice|"
    r"stagiaire|alternan(t|ce)|d[ée]butant|jeune.?dipl[ôo]m[ée]|praktik(um|ant)|traineeprogramm|"
    r"berufseinstieg|absolvent|werkstudent|einsteiger|becario|pr[áa]cticas|reci[ée]n.?titulado|"
    r"tirocinio|stagista|neolaureato|stage|stagiair|starterfunctie|traineeship|afgestudeerde|"
    r"fresher|nyuddannet|nyutdannet)",
    re.IGNORECASE,
)
_SENIOR_RE = re.compile(
    r"(senior|\blead\b|principal|director|head.?of|\bvp\b|chief|executive\s+director|"
    r"experienced\s+professional|architect\b|team.?lead|tech.?lead|\bstaff\b|distinguished)",
    re.IGNORECASE,
)
_EXPERIENCE_RE = re.compile(
    r"(proven.?track.?record|extensive.?experience|minimum.?[3-9].?years|"
    r"\b([3-9]|1[0-9])\+.?years)",
    re.IGNORECASE,
)
_INTERNSHIP_RE = re.compile(
    r"\b(intern|internship|praktikum|praktikant|stage|stagiaire|tirocinio|becario|werkstudent|"
    r"stagiair)\b",
    re.IGNORECASE,
)
_GRADUATE_PROGRAM_RE = re.compile(
    r"(graduate\s+(scheme|programme|program)|trainee\s*(programme|program)|traineeprogramm|"
    r"rotational\s+(programme|program)|absolventenprogramm|programa\s+de\s+graduados)",
    re.IGNORECASE,
)
_HYBRID_RE = re.compile(r"\bhybrid\b|\bhybride\b|\bibrido\b|\bhíbrido\b", re.IGNORECASE)

LANGUAGE_CODES = {
    "english": "en", "french": "fr", "german": "de", "spanish": "es", "italian": "it",
    "dutch": "nl", "portuguese": "pt", "polish": "pl", "swedish": "sv", "danish": "da",
    "norwegian": "no", "finnish": "fi", "czech": "cs",
}
_LANGUAGE_RE = re.compile(
    r"\b(?:fluent|fluency|native|business[- ]level|proficient|proficiency)\s+(?:in\s+)?"
    r"(" + "|".join(LANGUAGE_CODES) + r")\b"
    r"|\b(" + "|".join(LANGUAGE_CODES) + r")[- ]speaking\b",
    re.IGNORECASE,
)

_EXTRA_SCALARS = (str, int, float, bool)


def _first_present(raw: Mapping[str, Any], aliases: tuple) -> Any:
    for key in aliases:
        value = raw.get(key)
        if value is not None and collapse_whitespace(value):
            return value
    return None


def _typed_extras(raw: Mapping[str, Any]) -> Dict[str, Any]:
    """Keep source-specific fields that are JSON scalars or flat lists of them."""
    extras: Dict[str, Any] = {}
    for key, value in raw.items():
        if key in ALIASED_KEYS or value is None:
            continue
        if isinstance(value, _EXTRA_SCALARS):
            extras[key] = value
        elif isinstance(value, (list, tuple)) and all(isinstance(v, _EXTRA_SCALARS) for v in value):
            extras[key] = list(value)
        else:
            logger.debug(f"Dropping non-scalar extra field {key!r}")
    return extras


def parse_posted_at(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = collapse_whitespace(value)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            logger.debug(f"Unparseable posted_at {value!r}")
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def classify_early_career(title: str, description: str) -> bool:
    """True when the posting reads as graduate / entry-level."""
    text = f"{title} {description}"
    if _EXCLUDED_ASSISTANT_RE.search(title):
        return False
    if _MANAGER_RE.search(title) and not _TRAINEE_MANAGER_RE.search(text):
        return False
    if _SENIOR_TITLE_RE.search(title):
        return False
    return (
        bool(_GRADUATE_RE.search(text))
        and not _SENIOR_RE.search(text)
        and not _EXPERIENCE_RE.search(text)
    )


def detect_language_requirements(description: str) -> List[str]:
    found: List[str] = []
    for match in _LANGUAGE_RE.finditer(description or ""):
        name = (match.group(1) or match.group(2)).lower()
        code = LANGUAGE_CODES[name]
        if code not in found:
            found.append(code)
    return found


def canonicalize(raw: Mapping[str, Any]) -> CanonicalizationResult:
    """Normalize one raw posting.

    Args:
        raw: Raw posting dict from a job-source collaborator

    Returns:
        CanonicalizationResult with either a PostingRecord or the missing fields
    """
    if not isinstance(raw, Mapping):
        return CanonicalizationResult(missing_fields=list(REQUIRED_FIELDS))
    values = {name: _first_present(raw, aliases) for name, aliases in FIELD_ALIASES.items()}
    source = collapse_whitespace(values["source"]) or None

    missing = [name for name in REQUIRED_FIELDS if values[name] is None]
    if missing:
        return CanonicalizationResult(missing_fields=missing, source=source)

    title = collapse_whitespace(values["title"])
    employer = collapse_whitespace(values["employer"])
    description = str(values["description"]).strip()
    location = normalize_location(values["location"])
    if not location.normalized:
        return CanonicalizationResult(missing_fields=["location"], source=source)

    text = f"{title} {description}"
    early_career = classify_early_career(title, description)

    if location.is_remote:
        work_environment = "remote"
    elif _HYBRID_RE.search(text):
        work_environment = "hybrid"
    else:
        work_environment = "on-site"

    record = PostingRecord(
        hash=PostingFingerprinter.calculate(title, employer, location.normalized),
        title=title,
        employer_raw=employer,
        employer_display=employer,
        location=location.normalized,
        city=location.city,
        country_code=location.country_code,
        is_remote=location.is_remote,
        work_environment=work_environment,
        description=description,
        source_url=collapse_whitespace(values["url"]),
        origin_source=source,
        categories=["early-career" if early_career else "experienced"],
        is_internship=bool(_INTERNSHIP_RE.search(title)),
        is_graduate_program=bool(_GRADUATE_PROGRAM_RE.search(text)),
        language_requirements=detect_language_requirements(description),
        posted_at=parse_posted_at(values["posted_at"]),
        extras=_typed_extras(raw),
    )
    return CanonicalizationResult(record=record, source=source)
