"""
Property-based tests for the overall progress figure.

Overall progress stays within [0, 100] and reaches 100 only when the last
phase is current and fully complete.
"""

from hypothesis import given, strategies as st

from admitrack.core.catalog import DEFAULT_PHASES
from admitrack.services.progress import compute_progress


phase_keys = [phase.key for phase in DEFAULT_PHASES]
document_types = sorted(
    {doc for phase in DEFAULT_PHASES for doc in phase.required_docs}
    | {"ID_CARD", "ENROLLMENT_LETTER", "TB_TEST_CERTIFICATE"}
)


@given(
    current_phase=st.sampled_from(phase_keys),
    uploaded=st.lists(st.sampled_from(document_types), max_size=12)
)
def test_overall_progress_in_bounds(current_phase, uploaded):
    documents = [{"id": i, "type": t, "status": "APPROVED"} for i, t in enumerate(uploaded)]

    report = compute_progress({"id": 1, "currentPhase": current_phase}, documents=documents)

    assert 0.0 <= report.overall_progress <= 100.0

    last = report.phases[-1]
    if report.overall_progress == 100.0:
        assert report.current_index == len(report.phases) - 1
        assert last.phase_completion == 100.0


@given(current_phase=st.sampled_from(phase_keys))
def test_overall_progress_counts_completed_phases(current_phase):
    report = compute_progress({"id": 1, "currentPhase": current_phase})

    completed = report.current_index
    assert report.overall_progress >= completed / len(report.phases) * 100.0 - 1e-9
    assert report.overall_progress <= (completed + 1) / len(report.phases) * 100.0 + 1e-9
