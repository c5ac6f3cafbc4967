import hashlib
import logging
import re
import unicodedata
from datetime import datetime, timezone
from typing import Any, Optional

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")


def collapse_whitespace(value: Any) -> str:
    """Trim and collapse internal whitespace runs to a single space."""
    if value is None:
        return ""
    return _WHITESPACE_RE.sub(" ", str(value)).strip()


def fold_text(value: Any) -> str:
    """Lower-case, strip diacritics and collapse whitespace.

    Used for comparisons only (city variants, keyword lookups), never for
    values that get persisted.
    """
    text = collapse_whitespace(value).lower()
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on round-trip)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class PostingFingerprinter:
    """
    Pure logic for creating deterministic posting hashes for deduplication.
    """

    @staticmethod
    def canonical_part(value: Any) -> str:
        return collapse_whitespace(value).lower()

    @classmethod
    def calculate(cls, title: str, employer: str, location: str) -> str:
        """
        Create a deterministic hash of the identity fields.
        Formula: SHA256(lower(title) | lower(employer) | lower(location)), each
        part trimmed with internal whitespace collapsed.

        Location is expected to be the normalized location so that
        "London, United Kingdom" and "London, GB" share one identity.
        """
        raw_string = "|".join(
            cls.canonical_part(part) for part in (title, employer, location)
        )
        return hashlib.sha256(raw_string.encode('utf-8')).hexdigest()
