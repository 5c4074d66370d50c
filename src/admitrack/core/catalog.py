"""
Authoritative phase catalogs and document requirements.

Every destination country runs the same ten-step shape of pipeline; the order
of a catalog defines the only legal forward transition (current -> next).
The tables here are immutable and shared read-only with callers.
"""

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Optional, Tuple

from .countries import clean_country_name, normalize_country_key
from .models import DocumentType, Phase

logger = logging.getLogger(__name__)


DEFAULT_COUNTRY = "United Kingdom"

# Phase keys the engine gives special treatment to.
DOCUMENT_COLLECTION = "DOCUMENT_COLLECTION"
UNIVERSITY_SHORTLISTING = "UNIVERSITY_SHORTLISTING"
APPLICATION_SUBMISSION = "APPLICATION_SUBMISSION"
OFFER_RECEIVED = "OFFER_RECEIVED"
INITIAL_PAYMENT = "INITIAL_PAYMENT"
INTERVIEW = "INTERVIEW"
FINANCIAL_TB_TEST = "FINANCIAL_TB_TEST"
CAS_VISA = "CAS_VISA"
VISA_APPLICATION = "VISA_APPLICATION"
VISA_DECISION = "VISA_DECISION"
ENROLLMENT = "ENROLLMENT"


def _tags(*types: DocumentType) -> Tuple[str, ...]:
    return tuple(t.value for t in types)


# Documents required to complete Document Collection, for every country.
BASE_DOCUMENTS = _tags(
    DocumentType.PASSPORT,
    DocumentType.ACADEMIC_TRANSCRIPT,
    DocumentType.RECOMMENDATION_LETTER,
    DocumentType.STATEMENT_OF_PURPOSE,
    DocumentType.CV_RESUME,
)

# Documents that, once uploaded, satisfy requirements for every destination.
SHARED_DOCUMENTS = _tags(
    DocumentType.FINANCIAL_PROOF,
    DocumentType.FINANCIAL_STATEMENT,
    DocumentType.BANK_STATEMENT,
    DocumentType.BANK_STATEMENTS,
    DocumentType.PASSPORT,
    DocumentType.ACADEMIC_TRANSCRIPT,
    DocumentType.ENGLISH_TEST_SCORE,
    DocumentType.MEDICAL_CERTIFICATE,
    DocumentType.CV_RESUME,
    DocumentType.RECOMMENDATION_LETTER,
    DocumentType.STATEMENT_OF_PURPOSE,
)

ENROLLMENT_DOCUMENTS = _tags(DocumentType.ID_CARD, DocumentType.ENROLLMENT_LETTER)

_IDENTITY = _tags(DocumentType.PASSPORT, DocumentType.ACADEMIC_TRANSCRIPT)
_WITH_ENGLISH = _IDENTITY + _tags(DocumentType.ENGLISH_TEST_SCORE)
_WITH_FINANCIAL = _WITH_ENGLISH + _tags(DocumentType.FINANCIAL_STATEMENT)
_WITH_MEDICAL = _WITH_FINANCIAL + _tags(DocumentType.MEDICAL_CERTIFICATE)


def _phase(key: str, label: str, color: str, required_docs: Tuple[str, ...]) -> Phase:
    return Phase(key=key, label=label, color=color, required_docs=required_docs)


def _common_head() -> Tuple[Phase, ...]:
    return (
        _phase(DOCUMENT_COLLECTION, "Document Collection", "#2196f3", BASE_DOCUMENTS),
        _phase(UNIVERSITY_SHORTLISTING, "University Shortlisting", "#ff9800", _IDENTITY),
    )


def _submission() -> Phase:
    return _phase(APPLICATION_SUBMISSION, "Application Submission", "#9c27b0", _WITH_ENGLISH)


def _offer(key: str = OFFER_RECEIVED, label: str = "Offer Received") -> Phase:
    return _phase(key, label, "#4caf50", _WITH_ENGLISH)


def _visa_decision(key: str = VISA_DECISION, label: str = "Visa Decision") -> Phase:
    return _phase(key, label, "#4caf50", _WITH_MEDICAL)


def _enrollment(key: str = ENROLLMENT, label: str = "Enrollment") -> Phase:
    return _phase(key, label, "#03a9f4", _WITH_MEDICAL)


_PHASE_CATALOGS = {
    "United Kingdom": _common_head() + (
        _submission(),
        _offer(),
        _phase(INITIAL_PAYMENT, "Initial Payment", "#795548", _WITH_FINANCIAL),
        _phase(INTERVIEW, "Interview", "#607d8b", _WITH_FINANCIAL),
        _phase(FINANCIAL_TB_TEST, "Financial & TB Test", "#ff5722", _WITH_MEDICAL),
        _phase(CAS_VISA, "CAS Process", "#8bc34a", _WITH_MEDICAL),
        _phase(VISA_APPLICATION, "Visa Process", "#ffc107", _WITH_MEDICAL),
        _enrollment(),
    ),
    "Italy": _common_head() + (
        _submission(),
        _offer(),
        _phase("PRE_ENROLLMENT_UNIVERSITALY", "Pre-Enrollment on Universitaly Portal", "#9c27b0", _WITH_ENGLISH),
        _phase(INITIAL_PAYMENT, "Initial Payment", "#795548", _WITH_FINANCIAL),
        _phase("VISA_APPLICATION_ITALY", "Visa Application – Type D (Long Stay)", "#ffc107", _WITH_MEDICAL),
        _visa_decision(),
        _phase("ARRIVAL_RESIDENCE_PERMIT", "Arrival & Residence Permit (Permesso di Soggiorno)", "#607d8b",
               _WITH_MEDICAL),
        _enrollment(),
    ),
    "France": _common_head() + (
        _phase("APPLICATION_SUBMISSION_FRANCE", "Application Submission (Campus France / Direct)", "#9c27b0",
               _WITH_ENGLISH),
        _phase("INTERVIEW_CAMPUS_FRANCE", "Interview (Campus France)", "#607d8b", _WITH_FINANCIAL),
        _offer(),
        _phase(INITIAL_PAYMENT, "Initial Payment", "#795548", _WITH_FINANCIAL),
        _phase("VISA_APPLICATION_FRANCE", "Visa Application – VFS France", "#ffc107", _WITH_MEDICAL),
        _visa_decision(),
        _phase("OFII_ARRIVAL", "OFII / Arrival Formalities", "#607d8b", _WITH_MEDICAL),
        _enrollment(),
    ),
    "Germany": _common_head() + (
        _submission(),
        _offer(),
        _phase("APS_CERTIFICATE", "APS (If Not Done Before)", "#8bc34a", _WITH_ENGLISH),
        _phase("BLOCKED_ACCOUNT_HEALTH", "Blocked Account + Health Insurance", "#795548", _WITH_FINANCIAL),
        _phase("VISA_APPLICATION_GERMANY", "Visa Application – National D Visa", "#ffc107", _WITH_MEDICAL),
        _visa_decision(),
        _phase("ARRIVAL_GERMANY", "Arrival in Germany", "#607d8b", _WITH_MEDICAL),
        _enrollment(),
    ),
    "United States": _common_head() + (
        _submission(),
        _offer(),
        _phase("DEPOSIT_I20", "Deposit Payment & I-20", "#795548", _WITH_FINANCIAL),
        _phase("SEVIS_FEE", "SEVIS Fee Payment", "#795548", _WITH_FINANCIAL),
        _phase("VISA_APPLICATION_USA", "Visa Application (F-1) – DS-160 + Biometrics", "#ffc107", _WITH_MEDICAL),
        _phase("VISA_INTERVIEW", "Visa Interview", "#607d8b", _WITH_MEDICAL),
        _visa_decision(),
        _enrollment("ARRIVAL_ENROLLMENT_USA", "Arrival & Enrollment"),
    ),
    "Canada": _common_head() + (
        _submission(),
        _offer("LETTER_OF_ACCEPTANCE", "Letter of Acceptance (LOA)"),
        _phase(INITIAL_PAYMENT, "Initial Payment", "#795548", _WITH_FINANCIAL),
        _phase("GIC_OPTIONAL", "GIC (Optional for SDS)", "#795548", _WITH_FINANCIAL),
        _phase("STUDY_PERMIT_APPLICATION", "Study Permit Application", "#ffc107", _WITH_MEDICAL),
        _visa_decision(),
        _phase("PRE_DEPARTURE", "Pre-Departure", "#607d8b", _WITH_MEDICAL),
        _enrollment(),
    ),
    "Australia": _common_head() + (
        _submission(),
        _offer("OFFER_LETTER_AUSTRALIA", "Offer Letter"),
        _phase("OSHC_TUITION_DEPOSIT", "OSHC + Tuition Deposit", "#795548", _WITH_FINANCIAL),
        _phase("ECOE_ISSUED", "eCOE Issued", "#8bc34a", _WITH_FINANCIAL),
        _phase("VISA_APPLICATION_AUSTRALIA", "Visa Application (Subclass 500)", "#ffc107", _WITH_MEDICAL),
        _visa_decision(),
        _phase("PRE_DEPARTURE", "Pre-Departure", "#607d8b", _WITH_MEDICAL),
        _enrollment(),
    ),
    "Ireland": _common_head() + (
        _submission(),
        _offer(),
        _phase("INITIAL_TUITION_PAYMENT", "Initial Tuition Payment", "#795548", _WITH_FINANCIAL),
        _phase(VISA_APPLICATION, "Visa Application", "#ffc107", _WITH_MEDICAL),
        _visa_decision(),
        _phase("PRE_DEPARTURE", "Pre-Departure", "#607d8b", _WITH_MEDICAL),
        _phase("GNIB_REGISTRATION", "Arrival → GNIB Registration", "#607d8b", _WITH_MEDICAL),
        _enrollment(),
    ),
    "Greece": _common_head() + (
        _submission(),
        _offer(),
        _phase("INITIAL_TUITION_PAYMENT", "Initial Tuition Payment", "#795548", _WITH_FINANCIAL),
        _phase("VISA_APPLICATION_GREECE", "Visa Application (National Visa – Type D)", "#ffc107", _WITH_MEDICAL),
        _visa_decision(),
        _phase("ARRIVAL_GREECE", "Arrival in Greece", "#607d8b", _WITH_MEDICAL),
        _phase("RESIDENCE_PERMIT_GREECE", "Residence Permit", "#607d8b", _WITH_MEDICAL),
        _enrollment(),
    ),
    "Denmark": _common_head() + (
        _submission(),
        _offer(),
        _phase("TUITION_FEE_PAYMENT", "Tuition Fee Payment", "#795548", _WITH_FINANCIAL),
        _phase("RESIDENCE_PERMIT_APPLICATION_DENMARK", "Residence Permit Application", "#ffc107", _WITH_MEDICAL),
        _visa_decision("VISA_PERMIT_DECISION_DENMARK", "Visa / Permit Decision"),
        _phase("PRE_DEPARTURE", "Pre-Departure", "#607d8b", _WITH_MEDICAL),
        _phase("ARRIVAL_CPR_REGISTRATION", "Arrival & CPR Registration", "#607d8b", _WITH_MEDICAL),
        _enrollment(),
    ),
    "Finland": _common_head() + (
        _submission(),
        _phase("ENTRANCE_EXAM_INTERVIEW", "Entrance Exam / Interview", "#607d8b", _WITH_ENGLISH),
        _offer(),
        _phase("TUITION_FEE_PAYMENT", "Tuition Fee Payment", "#795548", _WITH_FINANCIAL),
        _phase("RESIDENCE_PERMIT_APPLICATION_FINLAND", "Residence Permit Application", "#ffc107", _WITH_MEDICAL),
        _visa_decision(),
        _phase("ARRIVAL_MUNICIPALITY_REGISTRATION", "Arrival & Municipality Registration", "#607d8b",
               _WITH_MEDICAL),
        _enrollment(),
    ),
    "Singapore": _common_head() + (
        _submission(),
        _offer(),
        _phase("ACCEPT_OFFER_PAY_DEPOSIT", "Accept Offer & Pay Deposit", "#795548", _WITH_FINANCIAL),
        _phase("STUDENT_PASS_APPLICATION_IPA", "Student Pass Application (IPA)", "#ffc107", _WITH_MEDICAL),
        _visa_decision("IPA_RECEIVED", "In-Principle Approval (IPA) Received"),
        _phase("ARRIVAL_SINGAPORE", "Arrival in Singapore", "#607d8b", _WITH_MEDICAL),
        _phase("STUDENT_PASS_ISSUANCE", "Student Pass Issuance", "#607d8b", _WITH_MEDICAL),
        _enrollment(),
    ),
    "UAE": _common_head() + (
        _submission(),
        _offer(),
        _phase("INITIAL_TUITION_PAYMENT", "Initial Tuition Payment", "#795548", _WITH_FINANCIAL),
        _phase("STUDENT_VISA_PROCESSING_UAE", "Student Visa Processing", "#ffc107", _WITH_MEDICAL),
        _visa_decision("VISA_APPROVAL_UAE", "Visa Approval"),
        _phase("ARRIVAL_UAE", "Arrival in UAE", "#607d8b", _WITH_MEDICAL),
        _phase("EMIRATES_ID_MEDICAL", "Emirates ID & Medical", "#607d8b", _WITH_MEDICAL),
        _enrollment(),
    ),
    "Malta": _common_head() + (
        _submission(),
        _offer(),
        _phase(INITIAL_PAYMENT, "Initial Payment", "#795548", _WITH_FINANCIAL),
        _phase("VISA_APPLICATION_MALTA", "Visa Application (National Visa – Type D)", "#ffc107", _WITH_MEDICAL),
        _visa_decision(),
        _phase("ARRIVAL_MALTA", "Arrival in Malta", "#607d8b", _WITH_MEDICAL),
        _phase("RESIDENCE_PERMIT_APPLICATION_MALTA", "Residence Permit Application", "#607d8b", _WITH_MEDICAL),
        _enrollment(),
    ),
}

PHASE_CATALOGS = MappingProxyType(_PHASE_CATALOGS)
DEFAULT_PHASES = PHASE_CATALOGS[DEFAULT_COUNTRY]


# Country and phase-label specific document rules. An empty list means the
# phase falls back to the catalog's own required documents.
_COUNTRY_DOCUMENT_RULES = {
    "usa": {
        "Offer Received": _tags(DocumentType.I_20_FORM),
        "SEVIS Fee Payment": _tags(DocumentType.SEVIS_FEE_RECEIPT),
        "Visa Application (F-1) – DS-160 + Biometrics": _tags(
            DocumentType.DS_160_CONFIRMATION,
            DocumentType.VISA_APPOINTMENT_CONFIRMATION,
            DocumentType.BANK_STATEMENTS,
            DocumentType.SPONSOR_AFFIDAVIT,
            DocumentType.INCOME_PROOF,
        ),
    },
    "uk": {
        "Offer Received": (),
        "Visa Process": _tags(
            DocumentType.TB_TEST_CERTIFICATE,
            DocumentType.BANK_STATEMENTS,
            DocumentType.TUITION_FEE_RECEIPT,
        ),
    },
    "germany": {
        "Offer Received": (),
        "Blocked Account + Health Insurance": _tags(
            DocumentType.BLOCKED_ACCOUNT_PROOF,
            DocumentType.HEALTH_INSURANCE,
        ),
        "Visa Application – National D Visa": _tags(
            DocumentType.APS_CERTIFICATE,
            DocumentType.VISA_APPLICATION,
            DocumentType.BIOMETRICS,
        ),
    },
    "canada": {
        "Letter of Acceptance (LOA)": _tags(DocumentType.LOA),
        "Initial Payment": _tags(DocumentType.TUITION_FEE_RECEIPT),
        "Study Permit Application": _tags(
            DocumentType.GIC_CERTIFICATE,
            DocumentType.BANK_STATEMENTS,
            DocumentType.MEDICAL_EXAM,
            DocumentType.BIOMETRICS,
        ),
    },
    "australia": {
        "Offer Letter": (),
        "OSHC + Tuition Deposit": _tags(DocumentType.OSHC, DocumentType.TUITION_FEE_RECEIPT),
        "eCOE Issued": _tags(DocumentType.ECOE),
        "Visa Application (Subclass 500)": _tags(
            DocumentType.FINANCIAL_PROOF,
            DocumentType.VISA_APPLICATION,
            DocumentType.BIOMETRICS,
        ),
    },
    "ireland": {
        "Offer Received": (),
        "Initial Tuition Payment": _tags(DocumentType.TUITION_FEE_RECEIPT),
        "Visa Application": _tags(DocumentType.BANK_STATEMENT, DocumentType.MEDICAL_INSURANCE),
    },
    "france": {
        "Offer Received": (),
        "Application Submission (Campus France / Direct)": _tags(
            DocumentType.CAMPUS_FRANCE_REGISTRATION,
            DocumentType.INTERVIEW_ACKNOWLEDGEMENT,
        ),
        "Visa Application – VFS France": _tags(
            DocumentType.TUITION_FEE_RECEIPT,
            DocumentType.OFII_FORM,
            DocumentType.BIOMETRICS,
        ),
    },
    "italy": {
        "Offer Received": (),
        "Pre-Enrollment on Universitaly Portal": _tags(DocumentType.UNIVERSITALY_RECEIPT),
        "Visa Application – Type D (Long Stay)": _tags(
            DocumentType.FINANCIAL_PROOF,
            DocumentType.ACCOMMODATION_PROOF,
            DocumentType.VISA_APPLICATION,
        ),
    },
    "greece": {
        "Offer Received": (),
        "Initial Tuition Payment": _tags(DocumentType.TUITION_FEE_RECEIPT),
        "Visa Application (National Visa – Type D)": _tags(
            DocumentType.FINANCIAL_PROOF,
            DocumentType.ACCOMMODATION_PROOF,
            DocumentType.VISA_APPLICATION,
        ),
    },
    "denmark": {
        "Offer Received": (),
        "Tuition Fee Payment": _tags(DocumentType.TUITION_FEE_RECEIPT),
        "Residence Permit Application": _tags(DocumentType.FINANCIAL_PROOF, DocumentType.BIOMETRICS),
    },
    "finland": {
        "Offer Received": (),
        "Tuition Fee Payment": _tags(DocumentType.TUITION_FEE_RECEIPT),
        "Residence Permit Application": _tags(DocumentType.FINANCIAL_PROOF, DocumentType.BIOMETRICS),
    },
    "singapore": {
        "Offer Received": (),
        "Student Pass Application (IPA)": _tags(DocumentType.IPA_LETTER),
        "Student Pass Issuance": _tags(DocumentType.MEDICAL_REPORT),
    },
    "uae": {
        "Offer Received": (),
        "Student Visa Processing": _tags(
            DocumentType.STUDENT_VISA_APPROVAL,
            DocumentType.MEDICAL_TEST,
            DocumentType.EMIRATES_ID_APPLICATION,
        ),
    },
    "malta": {
        "Offer Received": (),
        "Initial Payment": _tags(DocumentType.TUITION_FEE_RECEIPT),
        "Visa Application (National Visa – Type D)": _tags(
            DocumentType.BANK_STATEMENTS,
            DocumentType.ACCOMMODATION_PROOF,
            DocumentType.MEDICAL_INSURANCE,
        ),
    },
}

COUNTRY_DOCUMENT_RULES = MappingProxyType(
    {country: MappingProxyType(rules) for country, rules in _COUNTRY_DOCUMENT_RULES.items()}
)

PAYMENT_PHASE_KEYS = frozenset({
    INITIAL_PAYMENT,
    "DEPOSIT_I20",
    "SEVIS_FEE",
    "GIC_OPTIONAL",
    "OSHC_TUITION_DEPOSIT",
    "INITIAL_TUITION_PAYMENT",
    "TUITION_FEE_PAYMENT",
    "ACCEPT_OFFER_PAY_DEPOSIT",
    "BLOCKED_ACCOUNT_HEALTH",
})


@dataclass(frozen=True)
class DocumentRequirement:
    """Documents a phase asks for in a given country."""
    documents: Tuple[str, ...]
    can_upload: bool


def get_phases_for_country(country: Optional[str]) -> Tuple[Phase, ...]:
    """
    Resolve the phase catalog for a destination country.

    Names are cleaned and matched through their normalized country key, so
    "UK", "U.K." and "United Kingdom" all resolve to the same catalog. Unknown
    or missing countries get the default catalog.
    """
    cleaned = clean_country_name(country)
    if not cleaned:
        return DEFAULT_PHASES

    if cleaned in PHASE_CATALOGS:
        return PHASE_CATALOGS[cleaned]

    wanted = normalize_country_key(cleaned)
    for name, phases in PHASE_CATALOGS.items():
        if normalize_country_key(name) == wanted:
            return phases

    logger.warning(
        f"Country '{country}' has no phase catalog, using {DEFAULT_COUNTRY}. "
        f"Available: {', '.join(PHASE_CATALOGS.keys())}"
    )
    return DEFAULT_PHASES


def resolve_catalog_country(country: Optional[str]) -> str:
    """Name of the catalog ``get_phases_for_country`` would pick."""
    phases = get_phases_for_country(country)
    for name, catalog in PHASE_CATALOGS.items():
        if catalog is phases:
            return name
    return DEFAULT_COUNTRY


def get_documents_for_phase(phase_key: str, phase_label: str, country: Optional[str]) -> DocumentRequirement:
    """
    Documents required by a phase for a country.

    Document Collection always uses ``BASE_DOCUMENTS`` and Enrollment the ID card
    and enrollment letter. Other phases use the country rule when one exists and
    is non-empty; otherwise no documents are returned and ``can_upload`` is False.
    """
    if phase_key == DOCUMENT_COLLECTION:
        return DocumentRequirement(documents=BASE_DOCUMENTS, can_upload=True)

    if phase_key == ENROLLMENT:
        return DocumentRequirement(documents=ENROLLMENT_DOCUMENTS, can_upload=True)

    country_key = normalize_country_key(country)
    rules = COUNTRY_DOCUMENT_RULES.get(country_key) if country_key else None
    if rules:
        documents = rules.get(phase_label)
        if documents:
            return DocumentRequirement(documents=tuple(documents), can_upload=True)

    return DocumentRequirement(documents=(), can_upload=False)


def effective_required_docs(phase: Phase, country: Optional[str]) -> Tuple[str, ...]:
    """Country rule documents when present, else the catalog's own list."""
    requirement = get_documents_for_phase(phase.key, phase.label, country)
    return requirement.documents if requirement.documents else tuple(phase.required_docs)


def decision_note_key(phase_key: str) -> Optional[str]:
    """Notes section holding the decision for a decision phase, if any."""
    if not phase_key:
        return None
    if phase_key.startswith(INTERVIEW):
        return "interviewStatus"
    if phase_key == CAS_VISA:
        return "casVisaStatus"
    if phase_key.startswith(VISA_APPLICATION):
        return "visaStatus"
    if VISA_DECISION in phase_key:
        return "visaDecisionStatus"
    return None
