"""
Country name handling.

Country names arrive in many spellings ("UK", "U.K.", "United Kingdom") from
profiles, notes and university records. Every country comparison goes through
``normalize_country`` first.
"""

import logging
from typing import Iterable, List, Optional, Sequence

from .models import CountryProfile

logger = logging.getLogger(__name__)


UNITED_KINGDOM = "UNITED KINGDOM"
UNITED_STATES = "UNITED STATES"

_UK_ALIASES = frozenset({"UK", "U.K.", "U.K", "UNITED KINGDOM"})
_US_ALIASES = frozenset({"USA", "U.S.A.", "US", "U.S.", "UNITED STATES", "UNITED STATES OF AMERICA"})

# Lowercase keys used by the per-country document rules.
_COUNTRY_KEYS = {
    "UK": "uk",
    "U.K.": "uk",
    "U.K": "uk",
    "UNITED KINGDOM": "uk",
    "USA": "usa",
    "U.S.A.": "usa",
    "U.S.": "usa",
    "US": "usa",
    "UNITED STATES": "usa",
    "UNITED STATES OF AMERICA": "usa",
    "UAE": "uae",
    "U.A.E.": "uae",
    "UNITED ARAB EMIRATES": "uae",
    "DUBAI": "uae",
    "GERMANY": "germany",
    "CANADA": "canada",
    "AUSTRALIA": "australia",
    "IRELAND": "ireland",
    "FRANCE": "france",
    "ITALY": "italy",
    "GREECE": "greece",
    "DENMARK": "denmark",
    "FINLAND": "finland",
    "SINGAPORE": "singapore",
    "MALTA": "malta",
}


def _collapse(country: str) -> str:
    return " ".join(country.upper().split())


def clean_country_name(country: Optional[str]) -> str:
    """Strip brackets, quotes and surrounding whitespace left over from list serialization."""
    if not country:
        return ""
    return country.replace("[", "").replace("]", "").replace('"', "").strip()


def normalize_country(country: Optional[str]) -> str:
    """
    Canonical upper-case form of a country name.

    UK spellings fold to ``UNITED KINGDOM``, US spellings to ``UNITED STATES``;
    anything else is upper-cased with whitespace collapsed. Empty input gives "".
    The function is idempotent.
    """
    if not country:
        return ""
    normalized = _collapse(country)
    if normalized in _UK_ALIASES:
        return UNITED_KINGDOM
    if normalized in _US_ALIASES:
        return UNITED_STATES
    return normalized


def normalize_country_key(country: Optional[str]) -> Optional[str]:
    """Lowercase lookup key for the country document rules ("uk", "usa", "uae"...)."""
    cleaned = clean_country_name(country)
    if not cleaned:
        return None
    upper = _collapse(cleaned)
    return _COUNTRY_KEYS.get(upper, cleaned.lower())


def countries_match(left: Optional[str], right: Optional[str]) -> bool:
    """True when both names are present and normalize to the same country."""
    left_normalized = normalize_country(clean_country_name(left))
    return bool(left_normalized) and left_normalized == normalize_country(clean_country_name(right))


def find_country_profile(
    profiles: Sequence[CountryProfile],
    country: Optional[str]
) -> Optional[CountryProfile]:
    """Return the profile for ``country`` by exact or normalized name match."""
    if not country:
        return None
    for profile in profiles:
        if not profile or not profile.country:
            continue
        if profile.country == country or countries_match(profile.country, country):
            return profile
    return None


def dedupe_country_profiles(profiles: Iterable[CountryProfile]) -> List[CountryProfile]:
    """Keep the first profile per normalized country."""
    seen = set()
    unique = []
    for profile in profiles:
        normalized = normalize_country(clean_country_name(profile.country))
        if not normalized:
            continue
        if normalized in seen:
            logger.debug(f"Dropping duplicate country profile '{profile.country}'")
            continue
        seen.add(normalized)
        unique.append(profile)
    return unique
