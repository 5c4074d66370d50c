"""
Unit tests for core data models.
"""

import pytest
from pydantic import ValidationError

from admitrack.core.models import (
    CountryNotes,
    CountryProfile,
    DecisionStatus,
    Document,
    DocumentStatus,
    DocumentType,
    Phase,
    PhaseMetadata,
    PhaseMetadataStatus,
    PhaseStatus,
    ProgressReport,
    Student,
    StudentSnapshot,
    UniversityList,
)


class TestInputModels:
    """Test models read from the CRM backend."""

    def test_document_type_enum(self):
        """Test DocumentType enum values."""
        assert DocumentType.PASSPORT == "PASSPORT"
        assert DocumentType.CV_RESUME == "CV_RESUME"
        assert DocumentType.TB_TEST_CERTIFICATE == "TB_TEST_CERTIFICATE"

    def test_document_accepts_unknown_type(self):
        """Unknown document tags from the backend are kept as strings."""
        doc = Document(id=1, type="SOMETHING_NEW", status="APPROVED")

        assert doc.type == "SOMETHING_NEW"
        assert doc.counts_toward_readiness

    def test_document_status_counting(self):
        """Only pending and approved documents count toward readiness."""
        assert Document(id=1, type="PASSPORT", status="PENDING").counts_toward_readiness
        assert not Document(id=2, type="PASSPORT", status="REJECTED").counts_toward_readiness
        assert not Document(id=3, type="PASSPORT", status=DocumentStatus.EXPIRED).counts_toward_readiness

    def test_document_invalid_status(self):
        """Test Document status validation."""
        with pytest.raises(ValidationError):
            Document(id=1, type="PASSPORT", status="LOST")

    def test_document_uploader_role(self):
        """Uploader role is read from the nested uploader."""
        doc = Document.model_validate({
            "id": 1,
            "type": "PASSPORT",
            "uploader": {"id": 5, "role": "counselor"}
        })

        assert doc.uploader_role == "counselor"
        assert Document(id=2, type="PASSPORT").uploader_role is None

    def test_student_wire_aliases(self):
        """Students accept camelCase and snake_case field names."""
        camel = Student.model_validate({"id": 1, "currentPhase": "INTERVIEW", "marketingOwnerId": 7})
        snake = Student(id=1, current_phase="INTERVIEW", marketing_owner_id=7)

        assert camel.current_phase == snake.current_phase == "INTERVIEW"
        assert camel.is_marketing_lead and snake.is_marketing_lead

    def test_student_without_marketing_owner(self):
        """Test is_marketing_lead is False without an owner."""
        assert not Student(id=1).is_marketing_lead
        assert not Student(id=1, marketing_owner_id="").is_marketing_lead

    def test_notes_accept_any_json_value(self):
        """Notes of any JSON shape are stored as given and parsed later."""
        for raw in ([], [{"visaStatus": {}}], 42, True, "free text", {"a": 1}):
            assert Student.model_validate({"id": 1, "notes": raw}).notes == raw
            assert CountryProfile(country="UK", notes=raw).notes == raw

    def test_phase_metadata_defaults(self):
        """Test PhaseMetadata defaults and validation."""
        meta = PhaseMetadata.model_validate({"phaseName": "INTERVIEW", "status": "Locked"})

        assert meta.status == PhaseMetadataStatus.LOCKED
        assert meta.reopen_count == 0
        assert meta.max_reopen_allowed == 3

        with pytest.raises(ValidationError):
            PhaseMetadata(phase_name="INTERVIEW", reopen_count=-1)


class TestNotesModels:
    """Test typed notes sections."""

    def test_country_notes_sections(self):
        """Test CountryNotes parses known sections by wire name."""
        notes = CountryNotes.model_validate({
            "universityShortlist": {"universities": [{"id": 1, "name": "X", "country": "UK"}]},
            "interviewStatus": {"status": "REFUSED", "updatedAt": "2026-01-01"},
            "financialOption": {"label": "Education Loan"},
            "payments": {"INITIAL_PAYMENT": {"amount": 500, "type": "Deposit"}},
            "somethingElse": True
        })

        assert notes.university_shortlist.universities[0].name == "X"
        assert notes.interview_status.status == DecisionStatus.REFUSED
        assert notes.financial_option.label == "Education Loan"
        assert notes.payments["INITIAL_PAYMENT"].amount == 500
        assert notes.visa_status is None

    def test_university_list_drops_non_objects(self):
        """Test UniversityList ignores entries that are not objects."""
        section = UniversityList.model_validate({"universities": [{"id": 1}, None, "junk"]})

        assert len(section.universities) == 1


class TestOutputModels:
    """Test computed output models."""

    def test_phase_is_frozen(self):
        """Catalog phases cannot be mutated."""
        phase = Phase(key="X", label="X", color="#000", required_docs=("PASSPORT",))

        with pytest.raises(ValidationError):
            phase.key = "Y"

    def test_phase_status_bounds(self):
        """Test PhaseStatus completion bounds."""
        with pytest.raises(ValidationError):
            PhaseStatus(key="X", label="X", color="#000", doc_completion=120)

    def test_progress_report_serializes_with_aliases(self):
        """Reports serialize with camelCase wire names."""
        report = ProgressReport(
            phases=[PhaseStatus(key="A", label="A", color="#000", is_current=True)],
            overall_progress=10,
            current_index=0,
            country="United Kingdom"
        )

        data = report.model_dump(by_alias=True)

        assert data["overallProgress"] == 10
        assert data["phases"][0]["isCurrent"] is True
        assert report.phase("A") is report.current_phase
        assert report.phase("B") is None

    def test_student_snapshot(self):
        """Test StudentSnapshot defaults."""
        snapshot = StudentSnapshot.model_validate({"student": {"id": 3}})

        assert snapshot.documents == []
        assert snapshot.country_profiles == []
