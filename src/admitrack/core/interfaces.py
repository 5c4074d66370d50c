"""
Abstract base classes and domain errors for admitrack services.
These define the contracts that service implementations must follow.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Union

from .models import (
    Application,
    CountryProfile,
    DecisionStatus,
    Document,
    PhaseMetadata,
    ProgressReport,
    Student,
    StudentSnapshot,
)


class AdmitrackError(Exception):
    """Base class for admitrack domain errors."""


class StudentNotFoundError(AdmitrackError):
    """Raised when a student snapshot is not in the repository."""

    def __init__(self, student_id: Union[int, str]):
        self.student_id = student_id
        super().__init__(f"Student '{student_id}' not found")


class InvalidDecisionError(AdmitrackError):
    """Raised when a decision status or phase is not valid for a decision write."""


class DecisionNotAllowedError(AdmitrackError):
    """Raised when a retry or stop is requested from a state that does not permit it."""


class ProgressService(ABC):
    """Abstract interface for phase progress computation."""

    @abstractmethod
    def compute(
        self,
        student: Student,
        documents: Sequence[Document] = (),
        applications: Sequence[Application] = (),
        country_profiles: Sequence[CountryProfile] = (),
        selected_country: Optional[str] = None,
        phase_metadata: Sequence[PhaseMetadata] = ()
    ) -> ProgressReport:
        """
        Derive per-phase state for one student.

        Args:
            student: Student record with its phase pointer and notes
            documents: Uploaded documents
            applications: University applications
            country_profiles: Per-country pipelines
            selected_country: Destination the caller is looking at
            phase_metadata: Backend lock/reopen bookkeeping

        Returns:
            Progress report with one status per catalog phase
        """
        pass


class DecisionWriter(ABC):
    """Abstract interface for decision writes on a notes blob."""

    @abstractmethod
    def record(
        self,
        notes: Optional[Any],
        phase_key: str,
        status: Union[DecisionStatus, str]
    ) -> Dict[str, Any]:
        """Record a decision and return the updated notes."""
        pass

    @abstractmethod
    def retry(self, notes: Optional[Any], phase_key: str) -> Dict[str, Any]:
        """Clear a refused or rejected decision so it can be recorded again."""
        pass

    @abstractmethod
    def stop(self, notes: Optional[Any], phase_key: str) -> Dict[str, Any]:
        """Mark a refused decision as terminal."""
        pass


class StudentRepository(ABC):
    """Abstract interface for fetching and storing student snapshots."""

    @abstractmethod
    async def get_snapshot(self, student_id: Union[int, str]) -> StudentSnapshot:
        """
        Fetch everything the engine needs about a student.

        Raises:
            StudentNotFoundError: If the student is unknown
        """
        pass

    @abstractmethod
    async def save_snapshot(self, snapshot: StudentSnapshot) -> StudentSnapshot:
        """Store or replace a student snapshot."""
        pass

    @abstractmethod
    async def update_notes(
        self,
        student_id: Union[int, str],
        country: Optional[str],
        notes: Dict[str, Any]
    ) -> StudentSnapshot:
        """
        Replace the notes blob of a country profile, or of the student when
        no country is given.
        """
        pass

    @abstractmethod
    async def list_student_ids(self) -> List[Union[int, str]]:
        """Ids of all stored students."""
        pass
