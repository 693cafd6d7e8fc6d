"""
SessionManager wiring for the SQL-backed deployment.
"""
from sqlalchemy.orm import Session

from app.core.attempts import (
    Clock,
    McqAutoScorer,
    SessionManager,
    SqlAttemptStore,
    SqlEnrollmentDirectory,
    SqlTestCatalog,
)


def build_session_manager(db: Session, clock: Clock) -> SessionManager:
    """Wire a SessionManager to SQL-backed collaborators on ``db``."""
    return SessionManager(
        catalog=SqlTestCatalog(db),
        enrollment=SqlEnrollmentDirectory(db),
        store=SqlAttemptStore(db),
        scorer=McqAutoScorer(),
        clock=clock,
    )
