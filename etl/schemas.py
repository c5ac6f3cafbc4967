"""
Record types flowing through the ingestion side of the pipeline.

Raw postings are loosely-typed dicts whose keys depend on the source.
The canonicalizer turns them into ``PostingRecord`` (required core fields plus
an ``extras`` map for anything source-specific) or rejects them with the list
of missing fields.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

# Fields every source must provide; a record missing one is rejected.
REQUIRED_FIELDS = ("title", "employer", "location", "description", "url", "source")

# Accepted source spellings for each core field, in lookup order.
FIELD_ALIASES: Dict[str, tuple] = {
    "title": ("title", "job_title"),
    "employer": ("employer", "company", "company_name"),
    "location": ("location", "location_text"),
    "description": ("description", "job_description"),
    "url": ("url", "job_url", "source_url"),
    "source": ("source", "site", "origin_source"),
    "posted_at": ("posted_at", "date_posted", "postedAt"),
}

ALIASED_KEYS = frozenset(alias for aliases in FIELD_ALIASES.values() for alias in aliases)

SENIORITY_TAGS = frozenset({"early-career", "experienced"})


@dataclass
class PostingRecord:
    """A canonicalized posting, before or after classification.

    Attribute names match ``database.models.Posting`` so the classifier can
    evaluate either one.
    """
    hash: str
    title: str
    employer_raw: str
    location: str
    description: str
    source_url: str
    origin_source: str
    employer_display: Optional[str] = None
    city: Optional[str] = None
    country_code: Optional[str] = None
    is_remote: bool = False
    work_environment: str = "on-site"
    categories: List[str] = field(default_factory=list)
    is_internship: bool = False
    is_graduate_program: bool = False
    visa_friendly: Optional[bool] = None
    language_requirements: List[str] = field(default_factory=list)
    active: bool = True
    status: str = "active"
    filtered_reason: Optional[str] = None
    posted_at: Optional[datetime] = None
    extras: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CanonicalizationResult:
    """Outcome of canonicalizing one raw posting.

    Exactly one of ``record`` / ``missing_fields`` is meaningful: a rejected
    record has ``record=None`` and a non-empty ``missing_fields``.
    """
    record: Optional[PostingRecord] = None
    missing_fields: List[str] = field(default_factory=list)
    source: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.record is not None
