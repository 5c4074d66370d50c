"""
Property-based tests for phase classification.

For any phase pointer and catalog, every phase is exactly one of completed,
current or pending, and phase completion is 100 before the current phase and
0 after it.
"""

from hypothesis import given, strategies as st

from admitrack.core.catalog import BASE_DOCUMENTS, PHASE_CATALOGS
from admitrack.services.progress import compute_progress


document_types = st.sampled_from(list(BASE_DOCUMENTS) + ["ENGLISH_TEST_SCORE", "FINANCIAL_STATEMENT", "OTHER"])


@st.composite
def documents_strategy(draw):
    """Generate a list of wire-format documents."""
    count = draw(st.integers(min_value=0, max_value=8))
    return [
        {
            "id": i,
            "type": draw(document_types),
            "status": draw(st.sampled_from(["PENDING", "APPROVED", "REJECTED", "EXPIRED"])),
            "uploader": {"role": draw(st.sampled_from(["counselor", "marketing", None]))}
        }
        for i in range(count)
    ]


@st.composite
def pipeline_strategy(draw):
    """Generate a country, a phase pointer for it, and documents."""
    country = draw(st.sampled_from(sorted(PHASE_CATALOGS.keys())))
    keys = [phase.key for phase in PHASE_CATALOGS[country]]
    current_phase = draw(st.one_of(st.sampled_from(keys), st.none(), st.just("UNKNOWN_PHASE")))
    student = {
        "id": 1,
        "currentPhase": "DOCUMENT_COLLECTION",
        "marketingOwnerId": draw(st.one_of(st.none(), st.integers(min_value=1, max_value=50)))
    }
    profiles = [{"country": country, "currentPhase": current_phase}]
    return student, profiles, country, draw(documents_strategy())


@given(pipeline_strategy())
def test_exactly_one_state_per_phase(pipeline):
    student, profiles, country, documents = pipeline

    report = compute_progress(student, documents=documents, country_profiles=profiles, selected_country=country)

    for phase in report.phases:
        assert [phase.is_completed, phase.is_current, phase.is_pending].count(True) == 1


@given(pipeline_strategy())
def test_phase_completion_is_monotonic(pipeline):
    student, profiles, country, documents = pipeline

    report = compute_progress(student, documents=documents, country_profiles=profiles, selected_country=country)

    for i, phase in enumerate(report.phases):
        if report.current_index < 0 or i > report.current_index:
            assert phase.phase_completion == 0.0
        elif i < report.current_index:
            assert phase.phase_completion == 100.0
        else:
            assert 0.0 <= phase.phase_completion <= 100.0
            assert phase.phase_completion == phase.doc_completion


@given(pipeline_strategy())
def test_only_current_and_next_inspect_documents(pipeline):
    student, profiles, country, documents = pipeline

    report = compute_progress(student, documents=documents, country_profiles=profiles, selected_country=country)

    for i, phase in enumerate(report.phases):
        if not (phase.is_current or phase.is_next_phase):
            assert phase.missing_docs == []
            assert phase.uploaded_docs == []
            assert phase.is_ready
        assert phase.is_next_phase == (i == report.current_index + 1)
        assert phase.is_ready == (not phase.required_docs or not phase.missing_docs)
