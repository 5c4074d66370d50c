"""
Phase progress engine.

Given a student, their documents, applications, country profiles and the
country the caller is looking at, derive one ``PhaseStatus`` per catalog phase
plus an overall progress figure. The computation is pure: inputs are only
read and every call allocates a fresh report, so it is safe to call
concurrently and to memoize on its inputs.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Type, TypeVar, Union

from pydantic import BaseModel

from ...core.catalog import (
    APPLICATION_SUBMISSION,
    BASE_DOCUMENTS,
    DEFAULT_COUNTRY,
    DOCUMENT_COLLECTION,
    UNIVERSITY_SHORTLISTING,
    effective_required_docs,
    get_phases_for_country,
    resolve_catalog_country,
)
from ...core.countries import clean_country_name
from ...core.interfaces import ProgressService
from ...core.models import (
    Advisory,
    AdvisoryCode,
    Application,
    CountryNotes,
    CountryProfile,
    Document,
    Phase,
    PhaseMetadata,
    PhaseMetadataStatus,
    PhaseStatus,
    ProgressReport,
    Student,
    StudentSnapshot,
)
from ...core.monitoring import monitor_performance
from .notes import parse_notes, resolve_notes, resolve_profile
from .overlays import build_overlay, resolve_shortlist

logger = logging.getLogger(__name__)

COUNSELOR_ROLE = "counselor"

ModelT = TypeVar("ModelT", bound=BaseModel)


def _coerce(model: Type[ModelT], value: Union[ModelT, Dict[str, Any]]) -> ModelT:
    if isinstance(value, model):
        return value
    return model.model_validate(value)


def _coerce_all(model: Type[ModelT], values: Optional[Iterable[Any]]) -> List[ModelT]:
    return [_coerce(model, value) for value in (values or ()) if value is not None]


def _types(documents: Iterable[Document]) -> Set[str]:
    return {document.type.upper() for document in documents}


def overall_progress(phases: Sequence[PhaseStatus]) -> float:
    """
    ``(completed + fraction of the current phase) / total * 100``, in [0, 100].
    """
    if not phases:
        return 0.0
    completed = sum(1 for phase in phases if phase.is_completed)
    current_fraction = sum(phase.phase_completion / 100.0 for phase in phases if phase.is_current)
    return min(100.0, max(0.0, (completed + current_fraction) / len(phases) * 100.0))


class PhaseProgressEngine(ProgressService):
    """
    Computes per-phase progress for one student.

    The current phase is the selected country's profile pointer when a profile
    matches, else the student's own. Only the current phase and the one right
    after it inspect documents; earlier phases report complete and later ones
    pending.
    """

    def __init__(self, default_country: str = DEFAULT_COUNTRY):
        self.default_country = default_country

    @monitor_performance("progress", "compute")
    def compute(
        self,
        student: Union[Student, Dict[str, Any]],
        documents: Sequence[Union[Document, Dict[str, Any]]] = (),
        applications: Sequence[Union[Application, Dict[str, Any]]] = (),
        country_profiles: Sequence[Union[CountryProfile, Dict[str, Any]]] = (),
        selected_country: Optional[str] = None,
        phase_metadata: Sequence[Union[PhaseMetadata, Dict[str, Any]]] = ()
    ) -> ProgressReport:
        """
        Derive the progress report.

        Args:
            student: Student record (model or wire dict)
            documents: Uploaded documents
            applications: University applications
            country_profiles: Per-country pipelines; when empty the selected
                country is ignored
            selected_country: Destination the caller is looking at
            phase_metadata: Backend lock state per phase

        Returns:
            ProgressReport with one status per catalog phase

        Raises:
            pydantic.ValidationError: If a record cannot be read at all.
                Malformed notes never raise.
        """
        student = _coerce(Student, student)
        documents = _coerce_all(Document, documents)
        applications = _coerce_all(Application, applications)
        profiles = _coerce_all(CountryProfile, country_profiles)
        metadata = _coerce_all(PhaseMetadata, phase_metadata)

        selected = clean_country_name(selected_country) or None
        if not profiles:
            selected = None

        profile = resolve_profile(profiles, selected)
        effective_phase = (
            profile.current_phase if profile is not None and profile.current_phase
            else student.current_phase
        )

        country = resolve_catalog_country(selected or self.default_country)
        phases = get_phases_for_country(country)
        keys = [phase.key for phase in phases]
        current_index = keys.index(effective_phase) if effective_phase in keys else -1

        parsed = resolve_notes(student, profile, selected)
        notes = parsed.notes
        # Visa decision falls back to the student-level notes.
        student_notes = None
        if selected and profile is not None and profile.notes:
            student_notes = parse_notes(student.notes).notes

        counted = [document for document in documents if document.counts_toward_readiness]
        collection_docs = self._collection_documents(student, counted)

        document_collection_complete = (
            current_index >= 0
            and keys[current_index] == DOCUMENT_COLLECTION
            and set(BASE_DOCUMENTS).issubset(_types(collection_docs))
        )

        logger.debug(
            f"Computing progress for student {student.id}: phase={effective_phase} "
            f"index={current_index} country={country}",
            extra={"student_id": student.id, "country": country}
        )

        metadata_by_phase = {entry.phase_name: entry for entry in metadata}
        advisories: List[Advisory] = []
        statuses: List[PhaseStatus] = []

        for i, phase in enumerate(phases):
            is_completed, is_current, is_pending = self._classify(
                i, current_index, metadata_by_phase.get(phase.key)
            )
            is_next = i == current_index + 1

            can_proceed = self._can_proceed(
                phase, is_current, is_next, effective_phase,
                document_collection_complete, notes, selected
            )

            required = list(dict.fromkeys(effective_required_docs(phase, country)))

            if is_current or is_next:
                pool = collection_docs if phase.key == DOCUMENT_COLLECTION and is_current else counted
                present = _types(pool)
                uploaded = [document for document in pool if document.type.upper() in required]
                missing = [doc_type for doc_type in required if doc_type not in present]
                if required:
                    doc_completion = (len(required) - len(missing)) / len(required) * 100.0
                else:
                    doc_completion = 0.0 if is_current else 100.0
                is_ready = not required or not missing
            else:
                uploaded, missing = [], []
                doc_completion = 100.0
                is_ready = True

            if is_completed:
                phase_completion = 100.0
            elif is_current:
                phase_completion = doc_completion
            else:
                phase_completion = 0.0

            overlay = build_overlay(phase.key, notes, applications, selected, student_notes)
            if overlay is not None and overlay.selection is not None and overlay.selection.advisory:
                if is_current or is_completed:
                    advisories.append(overlay.selection.advisory)

            statuses.append(PhaseStatus(
                key=phase.key,
                label=phase.label,
                color=phase.color,
                required_docs=required,
                is_completed=is_completed,
                is_current=is_current,
                is_pending=is_pending,
                is_next_phase=is_next,
                can_proceed_to_next=can_proceed,
                is_ready=is_ready,
                doc_completion=doc_completion,
                phase_completion=phase_completion,
                uploaded_docs=uploaded,
                missing_docs=missing,
                can_upload=(is_current or is_next) and bool(required),
                payment_info=notes.payments.get(phase.key) if notes is not None else None,
                overlay=overlay
            ))

        if parsed.error:
            logger.warning(
                f"Unparseable notes for student {student.id}: {parsed.error}",
                extra={"student_id": student.id}
            )
            advisories.append(Advisory(
                code=AdvisoryCode.NOTES_UNPARSEABLE,
                message=parsed.error
            ))

        return ProgressReport(
            phases=statuses,
            overall_progress=overall_progress(statuses),
            current_index=current_index,
            effective_phase=effective_phase,
            country=country,
            selected_country=selected,
            document_collection_complete=document_collection_complete,
            notes_error=parsed.error,
            advisories=advisories
        )

    def compute_snapshot(
        self,
        snapshot: Union[StudentSnapshot, Dict[str, Any]],
        selected_country: Optional[str] = None
    ) -> ProgressReport:
        """Compute progress from a stored student snapshot."""
        snapshot = _coerce(StudentSnapshot, snapshot)
        return self.compute(
            snapshot.student,
            documents=snapshot.documents,
            applications=snapshot.applications,
            country_profiles=snapshot.country_profiles,
            selected_country=selected_country,
            phase_metadata=snapshot.phase_metadata
        )

    @staticmethod
    def _collection_documents(student: Student, counted: List[Document]) -> List[Document]:
        """Documents that count toward Document Collection.

        Marketing-sourced students only get credit for counselor uploads.
        """
        if not student.is_marketing_lead:
            return counted
        return [
            document for document in counted
            if (document.uploader_role or "").lower() == COUNSELOR_ROLE
        ]

    @staticmethod
    def _classify(i: int, current_index: int, metadata: Optional[PhaseMetadata]):
        if metadata is not None and metadata.status == PhaseMetadataStatus.LOCKED:
            return True, False, False

        if current_index >= 0:
            return i < current_index, i == current_index, i > current_index

        # No recognized phase pointer: fall back to the backend's bookkeeping.
        if metadata is not None and metadata.status == PhaseMetadataStatus.COMPLETED:
            return True, False, False
        if metadata is not None and metadata.status == PhaseMetadataStatus.CURRENT:
            return False, True, False
        return False, False, True

    @staticmethod
    def _can_proceed(
        phase: Phase,
        is_current: bool,
        is_next: bool,
        effective_phase: Optional[str],
        document_collection_complete: bool,
        notes: Optional[CountryNotes],
        selected_country: Optional[str]
    ) -> bool:
        if phase.key == DOCUMENT_COLLECTION:
            return is_current and document_collection_complete

        if phase.key == UNIVERSITY_SHORTLISTING:
            return is_next and document_collection_complete

        if phase.key.startswith(APPLICATION_SUBMISSION):
            if not is_next or effective_phase != UNIVERSITY_SHORTLISTING:
                return False
            return bool(resolve_shortlist(notes, selected_country).universities)

        return False


_default_engine = PhaseProgressEngine()


def compute_progress(
    student: Union[Student, Dict[str, Any]],
    documents: Sequence[Union[Document, Dict[str, Any]]] = (),
    applications: Sequence[Union[Application, Dict[str, Any]]] = (),
    country_profiles: Sequence[Union[CountryProfile, Dict[str, Any]]] = (),
    selected_country: Optional[str] = None,
    phase_metadata: Sequence[Union[PhaseMetadata, Dict[str, Any]]] = ()
) -> ProgressReport:
    """Compute progress with the default engine."""
    return _default_engine.compute(
        student,
        documents=documents,
        applications=applications,
        country_profiles=country_profiles,
        selected_country=selected_country,
        phase_metadata=phase_metadata
    )
