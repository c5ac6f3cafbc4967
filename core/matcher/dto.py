"""Data Transfer Objects for per-user matching.

DTOs are used to transfer data outside of the Unit of Work context,
allowing ORM objects to be converted to plain Python objects that
can be safely used after the database session is closed.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Mapping, Optional, Tuple

from core.utils import ensure_utc
from etl.canonicalizer import LANGUAGE_CODES

MAX_TARGET_CITIES = 3


def _as_tuple(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,) if value.strip() else ()
    return tuple(str(v) for v in value if v is not None and str(v).strip())


@dataclass(frozen=True)
class UserProfile:
    """A user's stated preferences, immutable for the duration of a run."""
    user_key: str
    email: Optional[str] = None
    target_cities: Tuple[str, ...] = ()
    languages: Tuple[str, ...] = ()
    career_paths: Tuple[str, ...] = ()
    entry_level_preferences: Tuple[str, ...] = ()
    work_environments: Tuple[str, ...] = ()
    needs_visa_sponsorship: bool = False
    target_employer_types: Tuple[str, ...] = ()
    role_tags: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "UserProfile":
        user_key = data.get('user_key') or data.get('email')
        if not user_key:
            raise ValueError("Profile needs a user_key or email")
        return cls(
            user_key=str(user_key),
            email=data.get('email'),
            target_cities=_as_tuple(data.get('target_cities'))[:MAX_TARGET_CITIES],
            languages=tuple(
                LANGUAGE_CODES.get(l.lower(), l.lower()) for l in _as_tuple(data.get('languages'))
            ),
            career_paths=tuple(p.lower() for p in _as_tuple(data.get('career_paths') or data.get('career_path'))),
            entry_level_preferences=_as_tuple(data.get('entry_level_preferences')),
            work_environments=tuple(w.lower() for w in _as_tuple(data.get('work_environments'))),
            needs_visa_sponsorship=bool(data.get('needs_visa_sponsorship', False)),
            target_employer_types=_as_tuple(data.get('target_employer_types')),
            role_tags=_as_tuple(data.get('role_tags')),
        )


@dataclass
class PostingDTO:
    """Posting fields needed for selection, scoring and notification."""
    hash: str
    title: str
    employer: str
    location: str
    city: Optional[str] = None
    country_code: Optional[str] = None
    is_remote: bool = False
    work_environment: str = "on-site"
    description: str = ""
    source_url: str = ""
    origin_source: str = ""
    categories: List[str] = field(default_factory=list)
    visa_friendly: Optional[bool] = None
    language_requirements: List[str] = field(default_factory=list)
    is_internship: bool = False
    is_graduate_program: bool = False
    posted_at: Optional[datetime] = None
    last_seen_at: Optional[datetime] = None

    @property
    def recency(self) -> Optional[datetime]:
        return self.posted_at or self.last_seen_at

    @classmethod
    def from_orm(cls, posting: Any) -> "PostingDTO":
        return cls(
            hash=posting.hash,
            title=posting.title,
            employer=posting.employer_display or posting.employer_raw,
            location=posting.location,
            city=posting.city,
            country_code=posting.country_code,
            is_remote=bool(posting.is_remote),
            work_environment=posting.work_environment or "on-site",
            description=posting.description or "",
            source_url=posting.source_url or "",
            origin_source=posting.origin_source or "",
            categories=list(posting.categories or []),
            visa_friendly=posting.visa_friendly,
            language_requirements=list(posting.language_requirements or []),
            is_internship=bool(posting.is_internship),
            is_graduate_program=bool(posting.is_graduate_program),
            posted_at=ensure_utc(posting.posted_at),
            last_seen_at=ensure_utc(posting.last_seen_at),
        )


@dataclass
class RelaxationEvent:
    """An explicit loosening of a constraint because the result set was too small."""
    stage: str  # selector|distributor
    constraint: str
    detail: str
