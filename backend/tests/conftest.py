"""
Pytest configuration and shared fixtures for testing.
"""
import os
from pathlib import Path

# Use SQLite for tests. The path is relative to this file so the .db lands
# inside tests/ regardless of the working directory. These must be set before
# anything imports app.core.config or app.models.
_TEST_DB = Path(__file__).parent / "test.db"
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_DB}"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-key")
os.environ.setdefault("ADMIN_TOKEN", "test-admin-token")
os.environ.setdefault("DEBUG", "False")
os.environ.setdefault("EXPIRY_SWEEP_ENABLED", "False")

from contextlib import asynccontextmanager  # noqa: E402
from typing import Callable, Dict  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from app.api.v1._dependencies import get_clock  # noqa: E402
from app.core.attempts import (  # noqa: E402
    FixedClock,
    InMemoryAttemptStore,
    InMemoryEnrollmentDirectory,
    InMemoryTestCatalog,
    McqAutoScorer,
    SessionManager,
)
from app.core.config import settings  # noqa: E402
from app.core.security import create_access_token  # noqa: E402
from app.main import app  # noqa: E402
from app.models import Base, get_db  # noqa: E402
from app.models.models import TestMode  # noqa: E402
from app.schemas.admin import TestDefinitionRequest  # noqa: E402
from app.services.enrollments import enroll_student  # noqa: E402
from app.services.test_definitions import upsert_test_definition  # noqa: E402

from helpers import (  # noqa: E402
    CLASS_ID,
    HOUR,
    NOW,
    OTHER_STUDENT_ID,
    QUESTIONS,
    STUDENT_ID,
)


@asynccontextmanager
async def _test_lifespan(app):
    """No-op lifespan for tests.

    Skips Sentry, metrics initialization and the background expiry sweeper.
    """
    yield


# Neutralize the production lifespan on the singleton app.
app.router.lifespan_context = _test_lifespan


engine = create_engine(
    f"sqlite:///{_TEST_DB}", connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    """
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def testing_session_local():
    """Expose TestingSessionLocal for tests that need their own sessions."""
    return TestingSessionLocal


@pytest.fixture
def clock():
    """Server clock pinned to NOW; tests move it with advance()/set()."""
    return FixedClock(NOW)


@pytest.fixture(scope="function")
def client(db_session, clock):
    """
    Create a test client with database and clock dependency overrides.

    Each request gets its own session on the test database, as in production.
    """

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def make_token_headers(student_id: str) -> Dict[str, str]:
    access_token = create_access_token({"student_id": student_id})
    return {"Authorization": f"Bearer {access_token}"}


@pytest.fixture
def auth_headers():
    """Bearer token headers for STUDENT_ID."""
    return make_token_headers(STUDENT_ID)


@pytest.fixture
def other_auth_headers():
    """Bearer token headers for OTHER_STUDENT_ID."""
    return make_token_headers(OTHER_STUDENT_ID)


@pytest.fixture
def admin_headers():
    """
    Create headers with valid admin token for admin endpoints.
    """
    return {"X-Admin-Token": settings.ADMIN_TOKEN}


@pytest.fixture
def flexible_test(db_session):
    """
    Flexible test open from NOW-1h to NOW+1h, 2 attempts of 30 minutes,
    assigned to CLASS_ID with STUDENT_ID enrolled.
    """
    request = TestDefinitionRequest(
        title="Unit 3 Quiz",
        mode=TestMode.FLEXIBLE,
        total_time_allowed_seconds=1800,
        opens_at=NOW - HOUR,
        closes_at=NOW + HOUR,
        attempts_allowed=2,
        passing_score=50,
        class_ids=[CLASS_ID],
        questions=QUESTIONS,
    )
    definition, _ = upsert_test_definition(db_session, "flex-1", request)
    enroll_student(db_session, STUDENT_ID, CLASS_ID)
    return definition


@pytest.fixture
def live_test(db_session):
    """
    Live test joinable from NOW-5min, hard end at NOW+40min, 60 minute
    allowance, assigned to CLASS_ID with STUDENT_ID enrolled.
    """
    request = TestDefinitionRequest(
        title="Midterm",
        mode=TestMode.LIVE,
        total_time_allowed_seconds=3600,
        join_time=NOW - 300,
        end_time=NOW + 2400,
        class_ids=[CLASS_ID],
        questions=QUESTIONS,
    )
    definition, _ = upsert_test_definition(db_session, "live-1", request)
    enroll_student(db_session, STUDENT_ID, CLASS_ID)
    return definition


@pytest.fixture
def make_manager() -> Callable[..., SessionManager]:
    """
    Build a SessionManager over in-memory collaborators.

    STUDENT_ID and OTHER_STUDENT_ID are enrolled in CLASS_ID, so they may
    take any test assigned to that class.
    """

    def _make(*tests, clock=None, scorer=None) -> SessionManager:
        catalog = InMemoryTestCatalog(tests)
        enrollment = InMemoryEnrollmentDirectory(catalog)
        enrollment.enroll(STUDENT_ID, CLASS_ID)
        enrollment.enroll(OTHER_STUDENT_ID, CLASS_ID)
        return SessionManager(
            catalog=catalog,
            enrollment=enrollment,
            store=InMemoryAttemptStore(),
            scorer=scorer if scorer is not None else McqAutoScorer(),
            clock=clock or FixedClock(NOW),
        )

    return _make
