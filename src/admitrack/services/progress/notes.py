"""
Parsing of the free-form notes blob into typed ``CountryNotes``.

Notes arrive as a dict, a JSON string, plain text, nothing at all, or some
other JSON value (array, number, boolean). Parsing never raises: unusable
input yields ``notes=None`` and, where the input was meant to be JSON, an
error message the caller can surface.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Tuple, Union

from pydantic import ValidationError

from ...core.countries import find_country_profile
from ...core.models import CountryNotes, CountryProfile, Student

logger = logging.getLogger(__name__)

# Older records kept the shortlist at the top level of the blob.
_LEGACY_SHORTLIST_KEYS = ("universities", "selectedUniversities")

_SECTION_FIELDS = {
    (field.alias or name): name
    for name, field in CountryNotes.model_fields.items()
}


@dataclass(frozen=True)
class ParsedNotes:
    """Outcome of parsing a notes blob."""
    notes: Optional[CountryNotes] = None
    error: Optional[str] = None


def _load(raw: Union[Dict[str, Any], str]) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
    """Return ``(data, error)`` for a raw blob."""
    if isinstance(raw, dict):
        return raw, None

    text = raw.strip()
    # Free text typed into the notes box is not an error, just not structured.
    if not text or text[0] not in "{[":
        return None, None

    try:
        data = json.loads(text)
    except ValueError as e:
        logger.warning(f"Notes are not valid JSON: {str(e)}")
        return None, f"Notes are not valid JSON: {str(e)}"

    if not isinstance(data, dict):
        return None, "Notes JSON is not an object"

    return data, None


def parse_notes(raw: Any) -> ParsedNotes:
    """
    Parse a notes blob section by section.

    Each known section is validated on its own so one malformed section does
    not discard the others. Legacy top-level ``universities`` or
    ``selectedUniversities`` lists are folded into ``universityShortlist``.
    """
    if raw is None:
        return ParsedNotes()

    if not isinstance(raw, (dict, str)):
        return ParsedNotes(error=f"Unsupported notes type {type(raw).__name__}")

    data, error = _load(raw)
    if data is None:
        return ParsedNotes(error=error)

    data = dict(data)
    if "universityShortlist" not in data and "university_shortlist" not in data:
        for legacy_key in _LEGACY_SHORTLIST_KEYS:
            legacy = data.get(legacy_key)
            if isinstance(legacy, list) and legacy:
                data["universityShortlist"] = {"universities": legacy}
                break

    sections: Dict[str, Any] = {}
    dropped = []
    for key, value in data.items():
        field_name = _SECTION_FIELDS.get(key) or (key if key in CountryNotes.model_fields else None)
        if field_name is None or value is None:
            continue
        try:
            CountryNotes.model_validate({field_name: value})
        except ValidationError:
            dropped.append(key)
            continue
        sections[field_name] = value

    if dropped:
        logger.warning(f"Dropped malformed notes sections: {', '.join(dropped)}")

    return ParsedNotes(notes=CountryNotes.model_validate(sections), error=None)


def resolve_notes(
    student: Student,
    profile: Optional[CountryProfile],
    selected_country: Optional[str]
) -> ParsedNotes:
    """
    Notes of the selected country's profile when it has any, else the student's.
    """
    if selected_country and profile is not None and profile.notes:
        return parse_notes(profile.notes)
    return parse_notes(student.notes)


def resolve_profile(
    profiles: Sequence[CountryProfile],
    selected_country: Optional[str]
) -> Optional[CountryProfile]:
    """Profile matching the selected country, if any."""
    if not profiles or not selected_country:
        return None
    return find_country_profile(profiles, selected_country)
