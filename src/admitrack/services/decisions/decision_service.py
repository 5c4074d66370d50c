"""
Decision writes for interview, CAS and visa phases.

The progress engine only reads notes; the operations here are the write side
the caller invokes (record, retry, stop, payment) before re-running the
engine. Every operation returns a new notes dict and leaves its input alone.
"""

import copy
import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, FrozenSet, Optional, Union

from ...core.catalog import PAYMENT_PHASE_KEYS, VISA_DECISION, decision_note_key
from ...core.interfaces import DecisionNotAllowedError, DecisionWriter, InvalidDecisionError
from ...core.models import DecisionStatus, PaymentRecord
from ...core.monitoring import monitor_performance

logger = logging.getLogger(__name__)

NotesInput = Optional[Any]

# Free text found in a notes blob is kept under this key when sections are written.
NOTES_TEXT_KEY = "text"

DECISION_STATUSES: FrozenSet[DecisionStatus] = frozenset({
    DecisionStatus.APPROVED,
    DecisionStatus.REFUSED,
    DecisionStatus.STOPPED,
})
VISA_DECISION_STATUSES: FrozenSet[DecisionStatus] = frozenset({
    DecisionStatus.APPROVED,
    DecisionStatus.REJECTED,
})
RETRYABLE_STATUSES: FrozenSet[DecisionStatus] = frozenset({
    DecisionStatus.REFUSED,
    DecisionStatus.REJECTED,
})


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


def load_notes(notes: NotesInput) -> Dict[str, Any]:
    """
    Writable copy of a notes blob.

    Dicts are deep-copied and JSON objects decoded. Text that is not a JSON
    object is kept under ``NOTES_TEXT_KEY``. Other values (nothing, arrays,
    numbers) start from an empty blob.
    """
    if isinstance(notes, dict):
        return copy.deepcopy(notes)
    if not isinstance(notes, str):
        if notes is not None:
            logger.warning(f"Notes of type {type(notes).__name__} replaced by an empty notes blob")
        return {}
    if not notes.strip():
        return {}
    try:
        data = json.loads(notes)
    except ValueError:
        data = None
    if not isinstance(data, dict):
        logger.info("Notes are free text, keeping them under the text key")
        return {NOTES_TEXT_KEY: notes}
    return data


def dump_notes(notes: Dict[str, Any]) -> str:
    """Serialize notes the way the backend stores them."""
    return json.dumps(notes, default=str)


class DecisionService(DecisionWriter):
    """
    Applies decision transitions to a notes blob.

    Args:
        clock: Returns the ``updatedAt`` timestamp; injectable for tests
    """

    def __init__(self, clock: Optional[Callable[[], str]] = None):
        self.clock = clock or _utcnow

    def allowed_statuses(self, phase_key: str) -> FrozenSet[DecisionStatus]:
        """Statuses a phase accepts; raises when the phase takes no decision."""
        self._note_key(phase_key)
        if VISA_DECISION in phase_key:
            return VISA_DECISION_STATUSES
        return DECISION_STATUSES

    @monitor_performance("decisions", "record")
    def record(self, notes: NotesInput, phase_key: str, status: Union[DecisionStatus, str]) -> Dict[str, Any]:
        note_key = self._note_key(phase_key)
        decision = self._status(status)
        if decision not in self.allowed_statuses(phase_key):
            allowed = ", ".join(sorted(s.value for s in self.allowed_statuses(phase_key)))
            raise InvalidDecisionError(
                f"Status {decision.value} is not valid for {phase_key} (allowed: {allowed})"
            )

        updated = load_notes(notes)
        updated[note_key] = {"status": decision.value, "updatedAt": self.clock()}
        logger.info(f"Recorded {decision.value} for {phase_key}", extra={"phase_key": phase_key})
        return updated

    @monitor_performance("decisions", "retry")
    def retry(self, notes: NotesInput, phase_key: str) -> Dict[str, Any]:
        note_key = self._note_key(phase_key)
        updated = load_notes(notes)
        current = self._current(updated, note_key)
        if current not in RETRYABLE_STATUSES:
            raise DecisionNotAllowedError(
                f"Cannot retry {phase_key} from {current.value if current else 'no decision'}"
            )

        updated.pop(note_key, None)
        logger.info(f"Cleared {current.value} decision for {phase_key}", extra={"phase_key": phase_key})
        return updated

    @monitor_performance("decisions", "stop")
    def stop(self, notes: NotesInput, phase_key: str) -> Dict[str, Any]:
        note_key = self._note_key(phase_key)
        updated = load_notes(notes)
        current = self._current(updated, note_key)
        if current != DecisionStatus.REFUSED:
            raise DecisionNotAllowedError(
                f"Cannot stop {phase_key} from {current.value if current else 'no decision'}"
            )

        updated[note_key] = {"status": DecisionStatus.STOPPED.value, "updatedAt": self.clock()}
        logger.info(f"Stopped {phase_key}", extra={"phase_key": phase_key})
        return updated

    def record_payment(
        self,
        notes: NotesInput,
        phase_key: str,
        amount: Union[float, str],
        payment_type: Optional[str] = None
    ) -> Dict[str, Any]:
        """Store ``payments.<phase_key>`` for a payment phase."""
        if phase_key not in PAYMENT_PHASE_KEYS:
            raise InvalidDecisionError(f"{phase_key} is not a payment phase")

        record = PaymentRecord(amount=amount, type=payment_type, updated_at=self.clock())
        updated = load_notes(notes)
        payments = updated.get("payments")
        if not isinstance(payments, dict):
            payments = {}
        payments[phase_key] = record.model_dump(by_alias=True, exclude_none=True)
        updated["payments"] = payments
        return updated

    @staticmethod
    def _note_key(phase_key: str) -> str:
        note_key = decision_note_key(phase_key)
        if note_key is None:
            raise InvalidDecisionError(f"Phase {phase_key} does not take a decision")
        return note_key

    @staticmethod
    def _status(status: Union[DecisionStatus, str]) -> DecisionStatus:
        if isinstance(status, DecisionStatus):
            return status
        try:
            return DecisionStatus(str(status).upper())
        except ValueError:
            raise InvalidDecisionError(f"Unknown decision status '{status}'") from None

    @staticmethod
    def _current(notes: Dict[str, Any], note_key: str) -> Optional[DecisionStatus]:
        entry = notes.get(note_key)
        if not isinstance(entry, dict):
            return None
        try:
            return DecisionStatus(entry.get("status"))
        except ValueError:
            return None
