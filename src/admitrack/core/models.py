"""
Core data models for the admissions pipeline tracker.
All models use Pydantic for validation and serialization.

Models exchanged with the CRM backend keep its camelCase field names on the
wire (``currentPhase``, ``marketingOwnerId``...) and accept snake_case too.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DocumentType(str, Enum):
    """Document tags known to the phase catalogs."""
    PASSPORT = "PASSPORT"
    ACADEMIC_TRANSCRIPT = "ACADEMIC_TRANSCRIPT"
    RECOMMENDATION_LETTER = "RECOMMENDATION_LETTER"
    STATEMENT_OF_PURPOSE = "STATEMENT_OF_PURPOSE"
    ENGLISH_TEST_SCORE = "ENGLISH_TEST_SCORE"
    CV_RESUME = "CV_RESUME"
    FINANCIAL_STATEMENT = "FINANCIAL_STATEMENT"
    MEDICAL_CERTIFICATE = "MEDICAL_CERTIFICATE"
    FINANCIAL_PROOF = "FINANCIAL_PROOF"
    BANK_STATEMENT = "BANK_STATEMENT"
    BANK_STATEMENTS = "BANK_STATEMENTS"
    I_20_FORM = "I_20_FORM"
    SEVIS_FEE_RECEIPT = "SEVIS_FEE_RECEIPT"
    DS_160_CONFIRMATION = "DS_160_CONFIRMATION"
    VISA_APPOINTMENT_CONFIRMATION = "VISA_APPOINTMENT_CONFIRMATION"
    SPONSOR_AFFIDAVIT = "SPONSOR_AFFIDAVIT"
    INCOME_PROOF = "INCOME_PROOF"
    TB_TEST_CERTIFICATE = "TB_TEST_CERTIFICATE"
    TUITION_FEE_RECEIPT = "TUITION_FEE_RECEIPT"
    BLOCKED_ACCOUNT_PROOF = "BLOCKED_ACCOUNT_PROOF"
    HEALTH_INSURANCE = "HEALTH_INSURANCE"
    APS_CERTIFICATE = "APS_CERTIFICATE"
    VISA_APPLICATION = "VISA_APPLICATION"
    BIOMETRICS = "BIOMETRICS"
    LOA = "LOA"
    GIC_CERTIFICATE = "GIC_CERTIFICATE"
    MEDICAL_EXAM = "MEDICAL_EXAM"
    OSHC = "OSHC"
    ECOE = "ECOE"
    MEDICAL_INSURANCE = "MEDICAL_INSURANCE"
    CAMPUS_FRANCE_REGISTRATION = "CAMPUS_FRANCE_REGISTRATION"
    INTERVIEW_ACKNOWLEDGEMENT = "INTERVIEW_ACKNOWLEDGEMENT"
    OFII_FORM = "OFII_FORM"
    UNIVERSITALY_RECEIPT = "UNIVERSITALY_RECEIPT"
    ACCOMMODATION_PROOF = "ACCOMMODATION_PROOF"
    IPA_LETTER = "IPA_LETTER"
    MEDICAL_REPORT = "MEDICAL_REPORT"
    STUDENT_VISA_APPROVAL = "STUDENT_VISA_APPROVAL"
    MEDICAL_TEST = "MEDICAL_TEST"
    EMIRATES_ID_APPLICATION = "EMIRATES_ID_APPLICATION"
    ID_CARD = "ID_CARD"
    ENROLLMENT_LETTER = "ENROLLMENT_LETTER"
    OTHER = "OTHER"


class DocumentStatus(str, Enum):
    """Review status of an uploaded document."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"


# Only these statuses count toward phase readiness.
COUNTED_DOCUMENT_STATUSES = frozenset({DocumentStatus.PENDING.value, DocumentStatus.APPROVED.value})


class DecisionStatus(str, Enum):
    """Outcome recorded for a decision phase (interview, CAS, visa)."""
    APPROVED = "APPROVED"
    REFUSED = "REFUSED"
    STOPPED = "STOPPED"
    REJECTED = "REJECTED"


class PhaseMetadataStatus(str, Enum):
    """Lock state persisted per phase by the backend."""
    PENDING = "Pending"
    CURRENT = "Current"
    COMPLETED = "Completed"
    LOCKED = "Locked"


class AdvisoryCode(str, Enum):
    """Caller-visible signals that are not errors."""
    NO_UNIVERSITIES_FOR_COUNTRY = "NO_UNIVERSITIES_FOR_COUNTRY"
    COUNTRY_MISMATCH_FALLBACK = "COUNTRY_MISMATCH_FALLBACK"
    OFFERS_FALLBACK_TO_SHORTLIST = "OFFERS_FALLBACK_TO_SHORTLIST"
    NOTES_UNPARSEABLE = "NOTES_UNPARSEABLE"


class WireModel(BaseModel):
    """Base for models exchanged with the CRM backend."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# Input Models

class Uploader(WireModel):
    """User who uploaded a document."""
    id: Optional[Union[int, str]] = None
    role: Optional[str] = None


class Document(WireModel):
    """Uploaded document record. ``type`` is kept as a free tag."""
    id: Union[int, str]
    type: str
    status: DocumentStatus = DocumentStatus.PENDING
    uploader: Optional[Uploader] = None

    @property
    def uploader_role(self) -> Optional[str]:
        return self.uploader.role if self.uploader else None

    @property
    def counts_toward_readiness(self) -> bool:
        return self.status.value in COUNTED_DOCUMENT_STATUSES


class University(WireModel):
    """University as stored in notes and applications."""
    id: Optional[Union[int, str]] = None
    name: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None


class Application(WireModel):
    """Application of a student to one university."""
    id: Union[int, str]
    university: Optional[University] = None
    application_status: Optional[str] = Field(None, alias="applicationStatus")


class Student(WireModel):
    """Lead record; its phase pointer applies when no country profile overrides it."""
    id: Union[int, str]
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")
    current_phase: Optional[str] = Field(None, alias="currentPhase")
    status: Optional[str] = None
    marketing_owner_id: Optional[Union[int, str]] = Field(None, alias="marketingOwnerId")
    notes: Optional[Any] = Field(None, description="Notes blob; any shape is accepted and parsed leniently")

    @property
    def is_marketing_lead(self) -> bool:
        return self.marketing_owner_id is not None and self.marketing_owner_id != ""


class CountryProfile(WireModel):
    """Per-destination pipeline: its own phase pointer and notes blob."""
    country: str
    current_phase: Optional[str] = Field(None, alias="currentPhase")
    notes: Optional[Any] = Field(None, description="Notes blob; any shape is accepted and parsed leniently")
    preferred_country: Optional[bool] = Field(None, alias="preferredCountry")


class PhaseMetadata(WireModel):
    """Backend lock/reopen bookkeeping for a phase."""
    phase_name: str = Field(alias="phaseName")
    status: PhaseMetadataStatus = PhaseMetadataStatus.PENDING
    reopen_count: int = Field(0, alias="reopenCount", ge=0)
    max_reopen_allowed: int = Field(3, alias="maxReopenAllowed", ge=0)


# Typed notes sections

class UniversityList(WireModel):
    """A list of universities selected during a phase."""
    universities: List[University] = Field(default_factory=list)

    @field_validator("universities", mode="before")
    @classmethod
    def drop_empty_entries(cls, v):
        if isinstance(v, list):
            return [item for item in v if isinstance(item, (dict, University))]
        return v


class UniversityPick(WireModel):
    """A single university chosen during a phase."""
    university: Optional[University] = None


class DecisionRecord(WireModel):
    """Recorded decision for interview / CAS / visa phases."""
    status: DecisionStatus
    updated_at: Optional[str] = Field(None, alias="updatedAt")


class FinancialOption(WireModel):
    """Financial option chosen in the Financial & TB Test phase."""
    label: Optional[str] = None
    value: Optional[Any] = None


class PaymentRecord(WireModel):
    """Payment captured on a payment phase."""
    amount: Optional[Union[float, str]] = None
    type: Optional[str] = None
    updated_at: Optional[str] = Field(None, alias="updatedAt")


class CountryNotes(WireModel):
    """Typed view over the free-form notes blob. Every section is optional."""
    university_shortlist: Optional[UniversityList] = Field(None, alias="universityShortlist")
    application_submission_universities: Optional[UniversityList] = Field(
        None, alias="applicationSubmissionUniversities"
    )
    universities_with_offers: Optional[UniversityList] = Field(None, alias="universitiesWithOffers")
    initial_payment_university: Optional[UniversityPick] = Field(None, alias="initialPaymentUniversity")
    enrollment_university: Optional[UniversityPick] = Field(None, alias="enrollmentUniversity")
    interview_status: Optional[DecisionRecord] = Field(None, alias="interviewStatus")
    cas_visa_status: Optional[DecisionRecord] = Field(None, alias="casVisaStatus")
    visa_status: Optional[DecisionRecord] = Field(None, alias="visaStatus")
    visa_decision_status: Optional[DecisionRecord] = Field(None, alias="visaDecisionStatus")
    financial_option: Optional[FinancialOption] = Field(None, alias="financialOption")
    payments: Dict[str, PaymentRecord] = Field(default_factory=dict)


# Catalog Models

class Phase(BaseModel):
    """Static catalog entry."""
    model_config = ConfigDict(frozen=True)

    key: str
    label: str
    color: str
    required_docs: Tuple[str, ...] = ()


# Output Models

class Advisory(WireModel):
    """Non-fatal signal returned to the caller."""
    code: AdvisoryCode
    message: str
    phase_key: Optional[str] = Field(None, alias="phaseKey")


class UniversitySelection(WireModel):
    """Universities resolved for display on a phase."""
    universities: List[University] = Field(default_factory=list)
    source: Optional[str] = None
    is_fallback: bool = Field(False, alias="isFallback")
    advisory: Optional[Advisory] = None


class DecisionOverlay(WireModel):
    """Tri-state decision projected from notes."""
    status: Optional[DecisionStatus] = None
    can_retry: bool = Field(False, alias="canRetry")
    can_stop: bool = Field(False, alias="canStop")
    is_terminal: bool = Field(False, alias="isTerminal")


class PhaseOverlay(WireModel):
    """Phase-specific read-only data derived from notes and applications."""
    selection: Optional[UniversitySelection] = None
    selected_university: Optional[University] = Field(None, alias="selectedUniversity")
    decision: Optional[DecisionOverlay] = None
    financial_option: Optional[str] = Field(None, alias="financialOption")


class PhaseStatus(WireModel):
    """Computed state of one catalog phase."""
    key: str
    label: str
    color: str
    required_docs: List[str] = Field(default_factory=list, alias="requiredDocs")
    is_completed: bool = Field(False, alias="isCompleted")
    is_current: bool = Field(False, alias="isCurrent")
    is_pending: bool = Field(False, alias="isPending")
    is_next_phase: bool = Field(False, alias="isNextPhase")
    can_proceed_to_next: bool = Field(False, alias="canProceedToNext")
    is_ready: bool = Field(True, alias="isReady")
    doc_completion: float = Field(100.0, alias="docCompletion", ge=0.0, le=100.0)
    phase_completion: float = Field(0.0, alias="phaseCompletion", ge=0.0, le=100.0)
    uploaded_docs: List[Document] = Field(default_factory=list, alias="uploadedDocs")
    missing_docs: List[str] = Field(default_factory=list, alias="missingDocs")
    can_upload: bool = Field(False, alias="canUpload")
    payment_info: Optional[PaymentRecord] = Field(None, alias="paymentInfo")
    overlay: Optional[PhaseOverlay] = None


class ProgressReport(WireModel):
    """Complete output of one engine invocation."""
    phases: List[PhaseStatus] = Field(default_factory=list)
    overall_progress: float = Field(0.0, alias="overallProgress", ge=0.0, le=100.0)
    current_index: int = Field(-1, alias="currentIndex")
    effective_phase: Optional[str] = Field(None, alias="effectivePhase")
    country: str
    selected_country: Optional[str] = Field(None, alias="selectedCountry")
    document_collection_complete: bool = Field(False, alias="documentCollectionComplete")
    notes_error: Optional[str] = Field(None, alias="notesError")
    advisories: List[Advisory] = Field(default_factory=list)

    def phase(self, key: str) -> Optional[PhaseStatus]:
        """Look up a phase status by catalog key."""
        for status in self.phases:
            if status.key == key:
                return status
        return None

    @property
    def current_phase(self) -> Optional[PhaseStatus]:
        for status in self.phases:
            if status.is_current:
                return status
        return None


class StudentSnapshot(WireModel):
    """Everything the engine needs about one student, as fetched from the backend."""
    student: Student
    documents: List[Document] = Field(default_factory=list)
    applications: List[Application] = Field(default_factory=list)
    country_profiles: List[CountryProfile] = Field(default_factory=list, alias="countryProfiles")
    phase_metadata: List[PhaseMetadata] = Field(default_factory=list, alias="phaseMetadata")
