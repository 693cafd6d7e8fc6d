"""
Models package for the attempt session service.
"""
from .base import Base, engine, SessionLocal, get_db
from .models import (
    Test,
    TestQuestion,
    ClassEnrollment,
    TestAttempt,
    AttemptAnswer,
    TestMode,
    QuestionKind,
    AttemptStatus,
)

__all__ = [
    "Base",
    "engine",
    "SessionLocal",
    "get_db",
    "Test",
    "TestQuestion",
    "ClassEnrollment",
    "TestAttempt",
    "AttemptAnswer",
    "TestMode",
    "QuestionKind",
    "AttemptStatus",
]
