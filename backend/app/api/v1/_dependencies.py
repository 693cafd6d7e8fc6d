"""
Shared dependencies for attempt endpoints.

The SessionManager is assembled per request around the request's database
session. The clock is its own dependency so tests can pin server time with
``app.dependency_overrides[get_clock]``.
"""
from fastapi import Depends
from sqlalchemy.orm import Session

from app.core.attempts import Clock, SessionManager, SystemClock
from app.models import get_db
from app.services.attempt_sessions import build_session_manager

_system_clock = SystemClock()


def get_clock() -> Clock:
    """Server clock used for every attempt decision."""
    return _system_clock


def get_session_manager(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> SessionManager:
    return build_session_manager(db, clock)
