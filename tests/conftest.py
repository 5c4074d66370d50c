"""
Pytest configuration and shared fixtures for admitrack tests.
"""

import pytest
from hypothesis import settings, Verbosity
from typing import Any, Dict, List

from admitrack.core.catalog import BASE_DOCUMENTS
from admitrack.services.decisions import DecisionService
from admitrack.services.progress import PhaseProgressEngine

# Configure Hypothesis for property-based testing
settings.register_profile("default", max_examples=100, verbosity=Verbosity.normal)
settings.register_profile("ci", max_examples=1000, verbosity=Verbosity.verbose)
settings.register_profile("dev", max_examples=10, verbosity=Verbosity.verbose)

# Load the appropriate profile
settings.load_profile("default")


FIXED_TIMESTAMP = "2026-01-15T10:00:00+00:00"


def make_document(doc_id: int, doc_type: str, status: str = "APPROVED", role: str = "counselor") -> Dict[str, Any]:
    """Wire-format document record."""
    return {
        "id": doc_id,
        "type": doc_type,
        "status": status,
        "uploader": {"id": 99, "role": role}
    }


@pytest.fixture
def engine() -> PhaseProgressEngine:
    """Engine with the default country."""
    return PhaseProgressEngine()


@pytest.fixture
def decision_service() -> DecisionService:
    """Decision service with a fixed clock."""
    return DecisionService(clock=lambda: FIXED_TIMESTAMP)


@pytest.fixture
def student() -> Dict[str, Any]:
    """Student sitting in Document Collection."""
    return {
        "id": 1,
        "firstName": "Asha",
        "lastName": "Verma",
        "currentPhase": "DOCUMENT_COLLECTION",
        "status": "ACTIVE"
    }


@pytest.fixture
def marketing_student(student) -> Dict[str, Any]:
    """Student sourced by the marketing team."""
    return {**student, "marketingOwnerId": 42}


@pytest.fixture
def base_documents() -> List[Dict[str, Any]]:
    """All five Document Collection documents, approved and uploaded by a counselor."""
    return [make_document(i, doc_type) for i, doc_type in enumerate(BASE_DOCUMENTS, start=1)]


@pytest.fixture
def uk_university() -> Dict[str, Any]:
    """University located in the UK."""
    return {"id": 1, "name": "University of Leeds", "country": "UK", "city": "Leeds"}


@pytest.fixture
def canada_university() -> Dict[str, Any]:
    """University located in Canada."""
    return {"id": 2, "name": "University of Toronto", "country": "Canada", "city": "Toronto"}
