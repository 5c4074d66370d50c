"""
Integration tests for the HTTP API.
"""

import pytest
from fastapi.testclient import TestClient

from admitrack.api.main import app
from admitrack.core.catalog import BASE_DOCUMENTS

from conftest import make_document


@pytest.fixture
def client():
    """Client with services initialized through the lifespan."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def snapshot(uk_university):
    """Stored student with a UK and a Canada pipeline."""
    return {
        "student": {"id": 7, "firstName": "Ravi", "currentPhase": "DOCUMENT_COLLECTION"},
        "documents": [make_document(i, t) for i, t in enumerate(BASE_DOCUMENTS, start=1)],
        "applications": [],
        "countryProfiles": [
            {
                "country": "UK",
                "currentPhase": "INTERVIEW",
                "notes": {"universityShortlist": {"universities": [uk_university]}}
            },
            {"country": "Canada", "currentPhase": "UNIVERSITY_SHORTLISTING"}
        ],
        "phaseMetadata": []
    }


class TestHealth:
    """Test health and metrics endpoints."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert "X-Request-ID" in response.headers

    def test_detailed_health(self, client):
        response = client.get("/health/detailed")

        body = response.json()
        assert response.status_code == 200
        assert set(body["checks"]) == {"catalog", "repository", "memory"}
        assert body["checks"]["catalog"]["status"] == "healthy"

    def test_metrics(self, client, snapshot):
        client.put("/api/v1/students/7", json=snapshot)
        client.get("/api/v1/students/7/progress")

        body = client.get("/metrics").json()

        assert body["metrics"]["counters"]
        assert "api.student_progress" in body["performance"]["operations"]


class TestCatalogEndpoint:
    """Test phase catalog listing."""

    def test_default_phases(self, client):
        body = client.get("/api/v1/phases").json()

        assert body["country"] == "United Kingdom"
        assert len(body["phases"]) == 10
        assert body["phases"][0]["requiredDocs"] == list(BASE_DOCUMENTS)

    def test_country_phases(self, client):
        body = client.get("/api/v1/phases", params={"country": "usa"}).json()

        assert body["country"] == "United States"
        assert "SEVIS_FEE" in [phase["key"] for phase in body["phases"]]


class TestProgressEndpoints:
    """Test progress computation endpoints."""

    def test_stateless_progress(self, client):
        response = client.post("/api/v1/progress", json={
            "student": {"id": 1, "currentPhase": "INITIAL_PAYMENT"}
        })

        body = response.json()
        assert response.status_code == 200
        assert body["currentIndex"] == 4
        assert body["phases"][4]["isCurrent"] is True
        assert body["phases"][0]["phaseCompletion"] == 100.0

    def test_stateless_progress_validation(self, client):
        response = client.post("/api/v1/progress", json={"documents": []})

        assert response.status_code == 422

    def test_stored_progress(self, client, snapshot):
        assert client.put("/api/v1/students/7", json=snapshot).status_code == 200

        body = client.get("/api/v1/students/7/progress").json()

        assert body["effectivePhase"] == "DOCUMENT_COLLECTION"
        assert body["documentCollectionComplete"] is True

    def test_stored_progress_for_country(self, client, snapshot):
        client.put("/api/v1/students/7", json=snapshot)

        body = client.get("/api/v1/students/7/progress", params={"country": "Canada"}).json()

        assert body["effectivePhase"] == "UNIVERSITY_SHORTLISTING"
        assert body["country"] == "Canada"

    def test_unknown_student(self, client):
        response = client.get("/api/v1/students/404/progress")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == 404

    def test_mismatched_student_id(self, client, snapshot):
        response = client.put("/api/v1/students/8", json=snapshot)

        assert response.status_code == 400


class TestDecisionEndpoints:
    """Test decision and payment writes."""

    def test_record_then_retry(self, client, snapshot):
        client.put("/api/v1/students/7", json=snapshot)

        recorded = client.post(
            "/api/v1/students/7/decisions/INTERVIEW",
            json={"action": "record", "status": "REFUSED", "country": "UK"}
        )

        assert recorded.status_code == 200
        body = recorded.json()
        assert body["notes"]["interviewStatus"]["status"] == "REFUSED"
        assert body["notes"]["universityShortlist"]["universities"][0]["id"] == 1
        interview = body["progress"]["phases"][5]
        assert interview["overlay"]["decision"]["canRetry"] is True

        retried = client.post(
            "/api/v1/students/7/decisions/INTERVIEW",
            json={"action": "retry", "country": "UK"}
        )

        assert retried.status_code == 200
        assert "interviewStatus" not in retried.json()["notes"]

    def test_record_keeps_free_text_notes(self, client, snapshot):
        snapshot["student"]["notes"] = "Prefers evening calls"
        client.put("/api/v1/students/7", json=snapshot)

        response = client.post(
            "/api/v1/students/7/decisions/INTERVIEW",
            json={"action": "record", "status": "APPROVED"}
        )

        assert response.status_code == 200
        notes = response.json()["notes"]
        assert notes["text"] == "Prefers evening calls"
        assert notes["interviewStatus"]["status"] == "APPROVED"

    def test_progress_with_array_notes(self, client, snapshot):
        snapshot["student"]["notes"] = []
        snapshot["countryProfiles"][1]["notes"] = [{"universityShortlist": {}}]
        client.put("/api/v1/students/7", json=snapshot)

        response = client.get("/api/v1/students/7/progress", params={"country": "Canada"})

        assert response.status_code == 200
        assert response.json()["notesError"] is not None

    def test_stop_without_refusal_conflicts(self, client, snapshot):
        client.put("/api/v1/students/7", json=snapshot)

        response = client.post(
            "/api/v1/students/7/decisions/CAS_VISA",
            json={"action": "stop", "country": "UK"}
        )

        assert response.status_code == 409

    def test_invalid_status(self, client, snapshot):
        client.put("/api/v1/students/7", json=snapshot)

        response = client.post(
            "/api/v1/students/7/decisions/INTERVIEW",
            json={"action": "record", "status": "MAYBE"}
        )

        assert response.status_code == 400

    def test_record_requires_status(self, client, snapshot):
        client.put("/api/v1/students/7", json=snapshot)

        response = client.post("/api/v1/students/7/decisions/INTERVIEW", json={"action": "record"})

        assert response.status_code == 400

    def test_unknown_action(self, client, snapshot):
        client.put("/api/v1/students/7", json=snapshot)

        response = client.post("/api/v1/students/7/decisions/INTERVIEW", json={"action": "undo"})

        assert response.status_code == 422

    def test_record_payment(self, client, snapshot):
        client.put("/api/v1/students/7", json=snapshot)

        response = client.post(
            "/api/v1/students/7/payments/INITIAL_PAYMENT",
            json={"amount": 1200, "type": "Deposit", "country": "UK"}
        )

        body = response.json()
        assert response.status_code == 200
        assert body["progress"]["phases"][4]["paymentInfo"]["amount"] == 1200.0
