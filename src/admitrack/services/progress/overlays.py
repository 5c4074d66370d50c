"""
Phase overlays: read-only projections over notes and applications.

Overlays never affect the completed/current/pending classification. They
resolve which universities a phase shows, the recorded decision of decision
phases, the chosen financial option and the enrollment university.
"""

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from ...core.catalog import (
    APPLICATION_SUBMISSION,
    ENROLLMENT,
    FINANCIAL_TB_TEST,
    UNIVERSITY_SHORTLISTING,
    decision_note_key,
)
from ...core.countries import clean_country_name, countries_match
from ...core.models import (
    Advisory,
    AdvisoryCode,
    Application,
    CountryNotes,
    DecisionOverlay,
    DecisionRecord,
    DecisionStatus,
    PhaseOverlay,
    University,
    UniversityList,
    UniversityPick,
    UniversitySelection,
)

logger = logging.getLogger(__name__)

ACCEPTED_STATUS = "ACCEPTED"

OFFER_PHASE_KEYS = frozenset({"OFFER_RECEIVED", "LETTER_OF_ACCEPTANCE", "OFFER_LETTER_AUSTRALIA"})
ENROLLMENT_PHASE_KEYS = frozenset({ENROLLMENT, "ARRIVAL_ENROLLMENT_USA"})

# Payment phases that pick the university the student pays.
UNIVERSITY_PAYMENT_KEYS = frozenset({
    "INITIAL_PAYMENT",
    "INITIAL_TUITION_PAYMENT",
    "TUITION_FEE_PAYMENT",
    "DEPOSIT_I20",
    "OSHC_TUITION_DEPOSIT",
    "ACCEPT_OFFER_PAY_DEPOSIT",
})

_ALIAS_TO_FIELD = {
    (field.alias or name): name for name, field in CountryNotes.model_fields.items()
}

VISA_DECISION_NOTE_KEY = "visaDecisionStatus"


def _universities(section: Optional[UniversityList]) -> List[University]:
    return list(section.universities) if section else []


def _dedupe(universities: Iterable[University]) -> List[University]:
    seen = set()
    unique = []
    for university in universities:
        marker = university.id if university.id is not None else (university.name, university.country)
        if marker in seen:
            continue
        seen.add(marker)
        unique.append(university)
    return unique


def filter_universities_strict(
    universities: Sequence[University],
    country: Optional[str]
) -> List[University]:
    """
    Universities located in ``country``. Entries without a country never match.
    With no country selected the list is returned unfiltered.
    """
    if not clean_country_name(country):
        return list(universities)
    return [u for u in universities if u.country and countries_match(u.country, country)]


def filter_universities_lenient(
    universities: Sequence[University],
    country: Optional[str]
) -> Tuple[List[University], bool]:
    """
    Universities in ``country``, keeping entries that have no country.

    When the filter hides every entry of a non-empty list, the unfiltered list
    is returned and the second element is True.
    """
    if not clean_country_name(country):
        return list(universities), False
    matched = [u for u in universities if not u.country or countries_match(u.country, country)]
    if not matched and universities:
        return list(universities), True
    return matched, False


def _strict_selection(
    source: List[University],
    selected_country: Optional[str],
    source_name: str,
    phase_key: str,
    is_fallback: bool = False
) -> UniversitySelection:
    filtered = filter_universities_strict(source, selected_country)
    advisory = None
    if source and not filtered and selected_country:
        advisory = Advisory(
            code=AdvisoryCode.NO_UNIVERSITIES_FOR_COUNTRY,
            message=f"No universities shortlisted for {clean_country_name(selected_country)}",
            phase_key=phase_key
        )
    return UniversitySelection(
        universities=filtered,
        source=source_name,
        is_fallback=is_fallback,
        advisory=advisory
    )


def resolve_shortlist(
    notes: Optional[CountryNotes],
    selected_country: Optional[str],
    phase_key: str = UNIVERSITY_SHORTLISTING
) -> UniversitySelection:
    """Shortlisted universities for the selected country."""
    source = _universities(notes.university_shortlist) if notes else []
    return _strict_selection(source, selected_country, "universityShortlist", phase_key)


def resolve_application_universities(
    notes: Optional[CountryNotes],
    applications: Sequence[Application],
    selected_country: Optional[str],
    phase_key: str = APPLICATION_SUBMISSION
) -> UniversitySelection:
    """
    Universities applications were submitted to.

    Notes win; without notes the university of every application is used,
    one entry per university id.
    """
    source = _universities(notes.application_submission_universities) if notes else []
    if source:
        return _strict_selection(source, selected_country, "applicationSubmissionUniversities", phase_key)

    from_applications = _dedupe(app.university for app in applications if app.university is not None)
    return _strict_selection(from_applications, selected_country, "applications", phase_key)


def resolve_offer_universities(
    notes: Optional[CountryNotes],
    applications: Sequence[Application],
    selected_country: Optional[str],
    phase_key: str = "OFFER_RECEIVED"
) -> UniversitySelection:
    """
    Universities that made an offer: notes merged with ACCEPTED applications.

    Filtering is lenient; if it hides every entry the unfiltered list is
    shown with a ``COUNTRY_MISMATCH_FALLBACK`` advisory.
    """
    from_notes = _universities(notes.universities_with_offers) if notes else []
    accepted = [
        app.university for app in applications
        if app.university is not None
        and (app.application_status or "").upper() == ACCEPTED_STATUS
    ]
    source = _dedupe(from_notes + accepted)

    universities, is_fallback = filter_universities_lenient(source, selected_country)
    advisory = None
    if is_fallback:
        logger.warning(
            f"No offer university matches country '{selected_country}', showing all {len(source)}"
        )
        advisory = Advisory(
            code=AdvisoryCode.COUNTRY_MISMATCH_FALLBACK,
            message=f"No offers matched {clean_country_name(selected_country)}; showing all offers",
            phase_key=phase_key
        )
    return UniversitySelection(
        universities=universities,
        source="universitiesWithOffers" if from_notes else "applications",
        is_fallback=is_fallback,
        advisory=advisory
    )


def resolve_initial_payment(
    notes: Optional[CountryNotes],
    applications: Sequence[Application],
    selected_country: Optional[str],
    phase_key: str = "INITIAL_PAYMENT"
) -> Tuple[UniversitySelection, Optional[University]]:
    """
    Universities the student can pay, and the one already picked.

    Prefers offers; falls back to the shortlist flagged with
    ``OFFERS_FALLBACK_TO_SHORTLIST``.
    """
    picked = notes.initial_payment_university.university if notes and notes.initial_payment_university else None

    offers = _universities(notes.universities_with_offers) if notes else []
    if offers:
        return _strict_selection(offers, selected_country, "universitiesWithOffers", phase_key), picked

    shortlist = _universities(notes.university_shortlist) if notes else []
    selection = _strict_selection(shortlist, selected_country, "universityShortlist", phase_key,
                                  is_fallback=bool(shortlist))
    if shortlist and selection.advisory is None:
        selection = selection.model_copy(update={"advisory": Advisory(
            code=AdvisoryCode.OFFERS_FALLBACK_TO_SHORTLIST,
            message="No universities with offers found; showing the shortlist",
            phase_key=phase_key
        )})
    return selection, picked


def resolve_decision(
    notes: Optional[CountryNotes],
    phase_key: str,
    student_notes: Optional[CountryNotes] = None
) -> Optional[DecisionOverlay]:
    """
    Recorded decision of a decision phase, or None when the phase has none.

    REFUSED and REJECTED allow a retry; REFUSED also allows a stop; STOPPED is
    terminal. The visa decision is also looked up in ``student_notes`` when
    the country notes carry none.
    """
    note_key = decision_note_key(phase_key)
    if note_key is None:
        return None

    record: Optional[DecisionRecord] = None
    if notes is not None:
        record = getattr(notes, _ALIAS_TO_FIELD[note_key])
    if record is None and note_key == VISA_DECISION_NOTE_KEY and student_notes is not None:
        record = getattr(student_notes, _ALIAS_TO_FIELD[note_key])

    status = record.status if record else None
    return DecisionOverlay(
        status=status,
        can_retry=status in (DecisionStatus.REFUSED, DecisionStatus.REJECTED),
        can_stop=status == DecisionStatus.REFUSED,
        is_terminal=status == DecisionStatus.STOPPED
    )


def resolve_financial_option(notes: Optional[CountryNotes]) -> Optional[str]:
    """Label of the chosen financial option."""
    if notes is None or notes.financial_option is None:
        return None
    return notes.financial_option.label or None


def resolve_enrollment_university(notes: Optional[CountryNotes]) -> Optional[University]:
    """University to enroll at: the enrollment pick, else the payment pick."""
    if notes is None:
        return None
    for pick in (notes.enrollment_university, notes.initial_payment_university):
        if isinstance(pick, UniversityPick) and pick.university is not None:
            return pick.university
    return None


def build_overlay(
    phase_key: str,
    notes: Optional[CountryNotes],
    applications: Sequence[Application],
    selected_country: Optional[str],
    student_notes: Optional[CountryNotes] = None
) -> Optional[PhaseOverlay]:
    """
    Overlay for one phase, or None when the phase carries none.

    ``student_notes`` are the student-level notes, consulted only for a visa
    decision missing from the country notes.
    """
    if phase_key == UNIVERSITY_SHORTLISTING:
        return PhaseOverlay(selection=resolve_shortlist(notes, selected_country, phase_key))

    if phase_key.startswith(APPLICATION_SUBMISSION):
        return PhaseOverlay(selection=resolve_application_universities(
            notes, applications, selected_country, phase_key
        ))

    if phase_key in OFFER_PHASE_KEYS:
        return PhaseOverlay(selection=resolve_offer_universities(
            notes, applications, selected_country, phase_key
        ))

    if phase_key in UNIVERSITY_PAYMENT_KEYS:
        selection, picked = resolve_initial_payment(notes, applications, selected_country, phase_key)
        return PhaseOverlay(selection=selection, selected_university=picked)

    if phase_key == FINANCIAL_TB_TEST:
        return PhaseOverlay(financial_option=resolve_financial_option(notes))

    if phase_key in ENROLLMENT_PHASE_KEYS:
        return PhaseOverlay(selected_university=resolve_enrollment_university(notes))

    decision = resolve_decision(notes, phase_key, student_notes)
    if decision is not None:
        return PhaseOverlay(decision=decision)

    return None
