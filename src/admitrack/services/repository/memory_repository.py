"""
In-memory student snapshot repository.
"""

import logging
import threading
from typing import Any, Dict, List, Optional, Union

from ...core.countries import find_country_profile
from ...core.interfaces import StudentNotFoundError, StudentRepository
from ...core.models import StudentSnapshot

logger = logging.getLogger(__name__)

StudentId = Union[int, str]


class InMemoryStudentRepository(StudentRepository):
    """
    Dict-backed snapshot store.

    Snapshots are copied on the way in and out so callers never share state
    with the store.
    """

    def __init__(self, snapshots: Optional[List[StudentSnapshot]] = None):
        self._snapshots: Dict[str, StudentSnapshot] = {}
        self._lock = threading.Lock()

        for snapshot in snapshots or []:
            self._snapshots[self._key(snapshot.student.id)] = snapshot.model_copy(deep=True)

        logger.info(f"Initialized in-memory student repository with {len(self._snapshots)} students")

    @staticmethod
    def _key(student_id: StudentId) -> str:
        return str(student_id)

    async def get_snapshot(self, student_id: StudentId) -> StudentSnapshot:
        with self._lock:
            snapshot = self._snapshots.get(self._key(student_id))
            if snapshot is None:
                raise StudentNotFoundError(student_id)
            return snapshot.model_copy(deep=True)

    async def save_snapshot(self, snapshot: StudentSnapshot) -> StudentSnapshot:
        with self._lock:
            self._snapshots[self._key(snapshot.student.id)] = snapshot.model_copy(deep=True)
        logger.debug(f"Saved snapshot for student {snapshot.student.id}", extra={"student_id": snapshot.student.id})
        return snapshot

    async def update_notes(
        self,
        student_id: StudentId,
        country: Optional[str],
        notes: Dict[str, Any]
    ) -> StudentSnapshot:
        """
        Replace the notes of the profile matching ``country``, or the student's
        own notes when no country is given or no profile matches.
        """
        with self._lock:
            snapshot = self._snapshots.get(self._key(student_id))
            if snapshot is None:
                raise StudentNotFoundError(student_id)

            profile = find_country_profile(snapshot.country_profiles, country)
            if profile is not None:
                profile.notes = dict(notes)
            else:
                snapshot.student.notes = dict(notes)

            return snapshot.model_copy(deep=True)

    async def list_student_ids(self) -> List[StudentId]:
        with self._lock:
            return [snapshot.student.id for snapshot in self._snapshots.values()]

    async def ping(self) -> bool:
        """Health probe."""
        return True
