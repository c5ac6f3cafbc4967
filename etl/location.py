"""
Location normalization for raw postings.

Raw location strings arrive in whatever shape each source uses
("London, England, United Kingdom", "Wien", "München, DE", "Remote - EU").
They are normalized to ``"City, CC"`` (ISO alpha-2 country code) or the
``remote`` marker, and the same tables drive city matching for users who type
native or diacritic variants of a city name.
"""
import logging
import re
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from core.utils import collapse_whitespace, fold_text

logger = logging.getLogger(__name__)

REMOTE_MARKER = "remote"

_REMOTE_RE = re.compile(r"\b(remote|work\s+from\s+home|wfh|anywhere|home[\s-]?based)\b", re.IGNORECASE)

# canonical city -> (country code, variants)
KNOWN_CITIES: Dict[str, Tuple[str, Tuple[str, ...]]] = {
    "London": ("GB", ("london", "city of london", "greater london", "canary wharf", "westminster")),
    "Manchester": ("GB", ("manchester",)),
    "Birmingham": ("GB", ("birmingham",)),
    "Edinburgh": ("GB", ("edinburgh",)),
    "Glasgow": ("GB", ("glasgow",)),
    "Dublin": ("IE", ("dublin", "baile atha cliath")),
    "Paris": ("FR", ("paris", "la defense")),
    "Lyon": ("FR", ("lyon",)),
    "Berlin": ("DE", ("berlin",)),
    "Munich": ("DE", ("munich", "munchen", "muenchen")),
    "Hamburg": ("DE", ("hamburg",)),
    "Frankfurt": ("DE", ("frankfurt", "frankfurt am main")),
    "Cologne": ("DE", ("cologne", "koln", "koeln")),
    "Amsterdam": ("NL", ("amsterdam",)),
    "Rotterdam": ("NL", ("rotterdam",)),
    "The Hague": ("NL", ("the hague", "den haag", "s-gravenhage")),
    "Brussels": ("BE", ("brussels", "bruxelles", "brussel")),
    "Madrid": ("ES", ("madrid",)),
    "Barcelona": ("ES", ("barcelona",)),
    "Lisbon": ("PT", ("lisbon", "lisboa")),
    "Milan": ("IT", ("milan", "milano")),
    "Rome": ("IT", ("rome", "roma")),
    "Zurich": ("CH", ("zurich", "zuerich")),
    "Geneva": ("CH", ("geneva", "geneve", "genf")),
    "Vienna": ("AT", ("vienna", "wien")),
    "Prague": ("CZ", ("prague", "praha")),
    "Warsaw": ("PL", ("warsaw", "warszawa")),
    "Stockholm": ("SE", ("stockholm",)),
    "Copenhagen": ("DK", ("copenhagen", "kobenhavn", "københavn")),
    "Helsinki": ("FI", ("helsinki", "helsingfors")),
    "Oslo": ("NO", ("oslo",)),
    "Luxembourg": ("LU", ("luxembourg", "luxembourg city")),
}

COUNTRY_CODES: Dict[str, str] = {
    "united kingdom": "GB", "uk": "GB", "gb": "GB", "great britain": "GB", "england": "GB",
    "scotland": "GB", "wales": "GB",
    "ireland": "IE", "ie": "IE",
    "france": "FR", "fr": "FR",
    "germany": "DE", "deutschland": "DE", "de": "DE",
    "netherlands": "NL", "the netherlands": "NL", "nederland": "NL", "nl": "NL",
    "belgium": "BE", "belgique": "BE", "belgie": "BE", "be": "BE",
    "spain": "ES", "espana": "ES", "es": "ES",
    "portugal": "PT", "pt": "PT",
    "italy": "IT", "italia": "IT", "it": "IT",
    "switzerland": "CH", "schweiz": "CH", "suisse": "CH", "ch": "CH",
    "austria": "AT", "osterreich": "AT", "oesterreich": "AT", "at": "AT",
    "czech republic": "CZ", "czechia": "CZ", "cz": "CZ",
    "poland": "PL", "polska": "PL", "pl": "PL",
    "sweden": "SE", "sverige": "SE", "se": "SE",
    "denmark": "DK", "danmark": "DK", "dk": "DK",
    "finland": "FI", "suomi": "FI", "fi": "FI",
    "norway": "NO", "norge": "NO", "no": "NO",
    "luxembourg": "LU", "lu": "LU",
}

_VARIANT_INDEX: Dict[str, str] = {
    variant: canonical
    for canonical, (_, variants) in KNOWN_CITIES.items()
    for variant in variants
}


@dataclass(frozen=True)
class LocationInfo:
    """Normalized view of a raw location string."""
    normalized: str
    city: Optional[str] = None
    country_code: Optional[str] = None
    is_remote: bool = False


def canonical_city(name: Optional[str]) -> Optional[str]:
    """Resolve a city name or variant ("Wien", "münchen") to its canonical name."""
    if not name:
        return None
    return _VARIANT_INDEX.get(fold_text(name))


def country_for_city(name: Optional[str]) -> Optional[str]:
    city = canonical_city(name)
    if city is None:
        return None
    return KNOWN_CITIES[city][0]


def _country_code(part: str) -> Optional[str]:
    return COUNTRY_CODES.get(fold_text(part))


def normalize_location(raw: Optional[str]) -> LocationInfo:
    """
    Normalize a raw location string.

    Returns ``LocationInfo(normalized="remote")`` for remote markers,
    ``"City, CC"`` when the city or country is recognised, and the
    whitespace-collapsed input otherwise so that unknown places still hash
    consistently.
    """
    text = collapse_whitespace(raw)
    if not text:
        return LocationInfo(normalized="")

    if _REMOTE_RE.search(text):
        return LocationInfo(normalized=REMOTE_MARKER, is_remote=True)

    parts = [p.strip() for p in re.split(r"[,/|;]| - ", text) if p.strip()]
    city = None
    country = None
    for part in parts:
        if city is None:
            city = canonical_city(part)
            if city is not None:
                continue
        if country is None:
            country = _country_code(part)

    if city is not None:
        country = country or KNOWN_CITIES[city][0]
        return LocationInfo(normalized=f"{city}, {country}", city=city, country_code=country)

    if country is not None and len(parts) > 1:
        # Unknown city with a recognised country: keep the city text as given
        unknown_city = parts[0]
        if _country_code(unknown_city) is None:
            return LocationInfo(
                normalized=f"{unknown_city}, {country}",
                city=unknown_city,
                country_code=country,
            )

    if country is not None:
        return LocationInfo(normalized=country, country_code=country)

    logger.debug(f"Unrecognised location kept verbatim: {text!r}")
    return LocationInfo(normalized=text)
