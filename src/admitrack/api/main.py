"""
Main FastAPI application for admitrack.
Exposes the phase progress engine and the decision write operations over HTTP.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union
import logging
import time
import uuid

from fastapi import FastAPI, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..core.catalog import (
    DEFAULT_COUNTRY,
    PHASE_CATALOGS,
    effective_required_docs,
    get_phases_for_country,
    resolve_catalog_country,
)
from ..core.countries import find_country_profile
from ..core.health import HealthChecker, build_health_checker
from ..core.interfaces import (
    DecisionNotAllowedError,
    InvalidDecisionError,
    StudentNotFoundError,
    StudentRepository,
)
from ..core.models import (
    Application,
    CountryProfile,
    Document,
    PhaseMetadata,
    ProgressReport,
    Student,
    StudentSnapshot,
    WireModel,
)
from ..core.monitoring import get_monitoring_status, monitor_performance, setup_logging
from ..services.decisions import DecisionService
from ..services.progress import PhaseProgressEngine
from ..services.repository import InMemoryStudentRepository


class Settings(BaseSettings):
    """Application settings, read from ``ADMITRACK_*`` variables and ``.env``."""
    model_config = SettingsConfigDict(env_prefix="ADMITRACK_", env_file=".env", extra="ignore")

    app_name: str = "admitrack"
    version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    structured_logging: bool = False
    cors_origins: List[str] = ["*"]
    default_country: str = DEFAULT_COUNTRY


# Request/Response Models
class ProgressRequest(WireModel):
    """Everything needed for a stateless progress computation."""
    student: Student
    documents: List[Document] = Field(default_factory=list)
    applications: List[Application] = Field(default_factory=list)
    country_profiles: List[CountryProfile] = Field(default_factory=list, alias="countryProfiles")
    selected_country: Optional[str] = Field(None, alias="selectedCountry")
    phase_metadata: List[PhaseMetadata] = Field(default_factory=list, alias="phaseMetadata")


class DecisionRequest(WireModel):
    """Decision write on one phase."""
    action: Literal["record", "retry", "stop"]
    status: Optional[str] = None
    country: Optional[str] = None


class PaymentRequest(WireModel):
    """Payment captured on a payment phase."""
    amount: Union[float, str]
    type: Optional[str] = None
    country: Optional[str] = None


class NotesUpdateResponse(WireModel):
    """Notes after a write, and the progress recomputed from them."""
    notes: Dict[str, Any]
    progress: ProgressReport


class HealthCheckResponse(BaseModel):
    """Response model for health checks."""
    status: str
    service: str
    version: str
    timestamp: float
    services: Optional[Dict[str, str]] = None


# Global settings instance
settings = Settings()

setup_logging(settings.log_level, structured=settings.structured_logging)
logger = logging.getLogger(__name__)

# Global service instances
repository: Optional[StudentRepository] = None
progress_engine: Optional[PhaseProgressEngine] = None
decision_service: Optional[DecisionService] = None
health_checker: Optional[HealthChecker] = None


async def initialize_services():
    """Initialize all services."""
    global repository, progress_engine, decision_service, health_checker

    logger.info("Initializing services...")

    repository = InMemoryStudentRepository()
    progress_engine = PhaseProgressEngine(default_country=settings.default_country)
    decision_service = DecisionService()
    health_checker = build_health_checker(repository_check=repository.ping)

    logger.info("All services initialized successfully")


async def cleanup_services():
    """Cleanup services on shutdown."""
    global repository, progress_engine, decision_service, health_checker

    logger.info("Cleaning up services...")

    repository = None
    progress_engine = None
    decision_service = None
    health_checker = None

    logger.info("Services cleaned up")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info(f"Starting {settings.app_name} API")

    await initialize_services()

    yield

    logger.info(f"Shutting down {settings.app_name} API")

    await cleanup_services()


app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    description="Admission pipeline phase progress for education consulting",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Tag every request with an id and log its duration."""
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    start_time = time.time()
    response = await call_next(request)
    execution_time = (time.time() - start_time) * 1000

    response.headers["X-Request-ID"] = request_id

    logger.info(
        f"Request {request_id}: {request.method} {request.url.path} "
        f"completed in {execution_time:.2f}ms with status {response.status_code}",
        extra={"request_id": request_id}
    )

    return response


def _services():
    if repository is None or progress_engine is None or decision_service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Services not initialized"
        )
    return repository, progress_engine, decision_service


# Health check endpoints
@app.get("/health", response_model=HealthCheckResponse)
async def health_check():
    """Basic health check endpoint."""
    return HealthCheckResponse(
        status="healthy",
        service="admitrack-api",
        version=settings.version,
        timestamp=time.time()
    )


@app.get("/health/detailed")
async def detailed_health_check():
    """Detailed health check running every registered check."""
    if health_checker is None:
        return HealthCheckResponse(
            status="degraded",
            service="admitrack-api",
            version=settings.version,
            timestamp=time.time(),
            services={"health_checker": "not_initialized"}
        )
    return await health_checker.get_overall_health()


@app.get("/metrics")
async def metrics():
    """Counters and timings of engine and decision operations."""
    return get_monitoring_status()


# Catalog
@app.get("/api/v1/phases")
async def list_phases(country: Optional[str] = Query(None)):
    """Phase catalog for a country, with its effective required documents."""
    resolved = resolve_catalog_country(country or settings.default_country)
    return {
        "country": resolved,
        "phases": [
            {
                "key": phase.key,
                "label": phase.label,
                "color": phase.color,
                "requiredDocs": list(effective_required_docs(phase, resolved))
            }
            for phase in get_phases_for_country(resolved)
        ],
        "countries": list(PHASE_CATALOGS.keys())
    }


# Progress endpoints
@app.post("/api/v1/progress", response_model=ProgressReport)
async def compute_progress(payload: ProgressRequest):
    """Stateless progress computation over posted records."""
    _, engine, _ = _services()
    return engine.compute(
        payload.student,
        documents=payload.documents,
        applications=payload.applications,
        country_profiles=payload.country_profiles,
        selected_country=payload.selected_country,
        phase_metadata=payload.phase_metadata
    )


@app.put("/api/v1/students/{student_id}", response_model=StudentSnapshot)
@monitor_performance("api", "save_student")
async def save_student(student_id: str, snapshot: StudentSnapshot):
    """Store or replace a student snapshot."""
    repo, _, _ = _services()
    if str(snapshot.student.id) != student_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Path id {student_id} does not match student id {snapshot.student.id}"
        )
    return await repo.save_snapshot(snapshot)


@app.get("/api/v1/students/{student_id}/progress", response_model=ProgressReport)
@monitor_performance("api", "student_progress")
async def student_progress(student_id: str, country: Optional[str] = Query(None)):
    """Progress of a stored student, optionally for one destination."""
    repo, engine, _ = _services()
    try:
        snapshot = await repo.get_snapshot(student_id)
    except StudentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return engine.compute_snapshot(snapshot, selected_country=country)


async def _write_notes(student_id: str, country: Optional[str], write) -> NotesUpdateResponse:
    repo, engine, _ = _services()
    try:
        snapshot = await repo.get_snapshot(student_id)
    except StudentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    profile = find_country_profile(snapshot.country_profiles, country) if country else None
    current = profile.notes if profile is not None and profile.notes else snapshot.student.notes

    try:
        updated = write(current)
    except InvalidDecisionError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except DecisionNotAllowedError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    snapshot = await repo.update_notes(student_id, country, updated)
    return NotesUpdateResponse(
        notes=updated,
        progress=engine.compute_snapshot(snapshot, selected_country=country)
    )


@app.post("/api/v1/students/{student_id}/decisions/{phase_key}", response_model=NotesUpdateResponse)
@monitor_performance("api", "decision")
async def apply_decision(student_id: str, phase_key: str, payload: DecisionRequest):
    """Record, retry or stop the decision of an interview, CAS or visa phase."""
    _, _, decisions = _services()

    if payload.action == "record":
        if not payload.status:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="status is required to record a decision"
            )

        def write(notes):
            return decisions.record(notes, phase_key, payload.status)
    elif payload.action == "retry":
        def write(notes):
            return decisions.retry(notes, phase_key)
    else:
        def write(notes):
            return decisions.stop(notes, phase_key)

    return await _write_notes(student_id, payload.country, write)


@app.post("/api/v1/students/{student_id}/payments/{phase_key}", response_model=NotesUpdateResponse)
@monitor_performance("api", "payment")
async def record_payment(student_id: str, phase_key: str, payload: PaymentRequest):
    """Record the payment made on a payment phase."""
    _, _, decisions = _services()
    return await _write_notes(
        student_id,
        payload.country,
        lambda notes: decisions.record_payment(notes, phase_key, payload.amount, payload.type)
    )


# Error handlers
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions with proper logging."""
    logger.warning(f"HTTP {exc.status_code}: {exc.detail} - {request.method} {request.url}")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "code": exc.status_code,
                "message": exc.detail,
                "timestamp": datetime.now().isoformat(),
                "request_id": getattr(request.state, "request_id", None)
            }
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions with proper logging."""
    logger.error(f"Unhandled exception: {str(exc)} - {request.method} {request.url}", exc_info=True)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "code": 500,
                "message": "Internal server error",
                "timestamp": datetime.now().isoformat(),
                "request_id": getattr(request.state, "request_id", None)
            }
        }
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "admitrack.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
