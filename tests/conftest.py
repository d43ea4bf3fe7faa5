"""Shared fixtures."""

import os


# Must be set before coursegate.config is imported anywhere
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("REDIS_ENABLED", "false")

import random  # noqa: E402
from datetime import UTC, datetime  # noqa: E402
from uuid import uuid4  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from jose import jwt  # noqa: E402

from coursegate.access.service import AccessGuard  # noqa: E402
from coursegate.assessments.service import AssessmentService  # noqa: E402
from coursegate.auth.permissions import Role  # noqa: E402
from coursegate.auth.schemas import Identity  # noqa: E402
from coursegate.certificates.service import CertificateService  # noqa: E402
from coursegate.config.settings import Settings, get_settings  # noqa: E402
from coursegate.progress.service import ProgressService  # noqa: E402
from tests.fakes import (  # noqa: E402
    FakeClock,
    InMemoryAssessmentRepository,
    InMemoryCatalog,
    InMemoryCertificateRepository,
    InMemoryProgressRepository,
    InterleavingAssessmentRepository,
    SampleCourse,
    build_sample_course,
)


# ==============================================================================
# Core fixtures
# ==============================================================================


@pytest.fixture
def settings() -> Settings:
    return Settings(environment="testing", log_to_file=False, redis_enabled=False)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 2, 9, 0, tzinfo=UTC))


@pytest.fixture
def catalog() -> InMemoryCatalog:
    return InMemoryCatalog()


@pytest.fixture
def sample(catalog: InMemoryCatalog) -> SampleCourse:
    return build_sample_course(catalog)


@pytest.fixture
def progress_repo() -> InMemoryProgressRepository:
    return InMemoryProgressRepository()


@pytest.fixture
def assessment_repo() -> InMemoryAssessmentRepository:
    return InMemoryAssessmentRepository()


@pytest.fixture
def certificate_repo() -> InMemoryCertificateRepository:
    return InMemoryCertificateRepository()


# ==============================================================================
# Services
# ==============================================================================


@pytest.fixture
def progress_service(progress_repo, catalog, settings, clock) -> ProgressService:
    return ProgressService(progress_repo, catalog, settings, clock=clock)


@pytest.fixture
def certificate_service(
    certificate_repo, progress_service, catalog, settings, clock
) -> CertificateService:
    return CertificateService(
        certificate_repo, progress_service, catalog, settings, clock=clock
    )


@pytest.fixture
def assessment_service(
    assessment_repo, catalog, progress_service, certificate_service, settings, clock
) -> AssessmentService:
    return AssessmentService(
        assessment_repo,
        catalog,
        progress_service,
        certificate_service,
        settings,
        clock=clock,
        rng=random.Random(7),
    )


@pytest.fixture
def interleaving_service(
    catalog, progress_service, certificate_service, settings, clock
) -> AssessmentService:
    """Assessment service whose storage yields between calls."""
    return AssessmentService(
        InterleavingAssessmentRepository(),
        catalog,
        progress_service,
        certificate_service,
        settings,
        clock=clock,
        rng=random.Random(7),
    )


@pytest.fixture
def access_guard(catalog, progress_service) -> AccessGuard:
    return AccessGuard(catalog, progress_service)


# ==============================================================================
# Identities
# ==============================================================================


@pytest.fixture
def student() -> Identity:
    return Identity(user_id=uuid4(), role=Role.STUDENT, email="student@test.com")


@pytest.fixture
def admin() -> Identity:
    return Identity(user_id=uuid4(), role=Role.ADMIN, email="admin@test.com")


@pytest.fixture
def supervisor() -> Identity:
    return Identity(user_id=uuid4(), role=Role.SUPERVISOR)


# ==============================================================================
# HTTP
# ==============================================================================


def make_token(identity: Identity, **claims) -> str:
    settings = get_settings()
    payload = {
        "sub": str(identity.user_id),
        "role": identity.role.value,
        "type": "access",
        **claims,
    }
    return jwt.encode(
        payload, settings.auth_secret_key, algorithm=settings.auth_algorithm
    )


@pytest.fixture
def auth_headers():
    def _headers(identity: Identity) -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(identity)}"}

    return _headers


@pytest.fixture
def app(
    catalog,
    progress_service,
    certificate_service,
    assessment_service,
    access_guard,
):
    """Application wired to the in-memory services; lifespan is not run."""
    from coursegate.main import create_app

    application = create_app()
    application.state.cassandra_session = object()
    application.state.catalog = catalog
    application.state.progress_service = progress_service
    application.state.certificate_service = certificate_service
    application.state.assessment_service = assessment_service
    application.state.access_guard = access_guard
    return application


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app, raise_server_exceptions=False)
