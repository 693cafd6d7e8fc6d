"""
Timed test attempt sessions.

Start, resume, answer, submit and expire attempts for Live and Flexible
tests, with at most one active attempt per (test, student) and a per-test
attempt quota.
"""

from .errors import (
    AttemptAccessDenied,
    AttemptNotActive,
    AttemptNotFound,
    AttemptSessionError,
    InvalidAnswer,
    NotEnrolled,
    QuotaExhausted,
    StoreConflict,
    TestNotFound,
    Unavailable,
    WindowClosed,
)
from .domain import (
    AnswerPayload,
    AnswerRecord,
    AttemptHandle,
    AttemptHistory,
    AttemptRecord,
    AttemptSummaryRow,
    EffectiveStatus,
    FinalizeResult,
    FinalizeTrigger,
    PassStatus,
    QuestionRef,
    ScoreResult,
    SessionState,
    SweepReport,
    TestDefinition,
    WindowState,
)
from .clock import Clock, FixedClock, SystemClock
from .availability import window_state
from .classifier import classify, is_consumed, remaining_seconds
from .store import AttemptStore, InMemoryAttemptStore, SqlAttemptStore
from .journal import AnswerJournal
from .scoring import McqAutoScorer, Scorer
from .collaborators import (
    EnrollmentDirectory,
    InMemoryEnrollmentDirectory,
    InMemoryTestCatalog,
    SqlEnrollmentDirectory,
    SqlTestCatalog,
    TestCatalog,
)
from .manager import SessionManager

__all__ = [
    "AttemptSessionError",
    "WindowClosed",
    "QuotaExhausted",
    "AttemptNotActive",
    "NotEnrolled",
    "StoreConflict",
    "Unavailable",
    "TestNotFound",
    "AttemptNotFound",
    "InvalidAnswer",
    "AttemptAccessDenied",
    "AnswerPayload",
    "AnswerRecord",
    "AttemptHandle",
    "AttemptHistory",
    "AttemptRecord",
    "AttemptSummaryRow",
    "EffectiveStatus",
    "FinalizeResult",
    "FinalizeTrigger",
    "PassStatus",
    "QuestionRef",
    "ScoreResult",
    "SessionState",
    "SweepReport",
    "TestDefinition",
    "WindowState",
    "Clock",
    "FixedClock",
    "SystemClock",
    "window_state",
    "classify",
    "is_consumed",
    "remaining_seconds",
    "AttemptStore",
    "InMemoryAttemptStore",
    "SqlAttemptStore",
    "AnswerJournal",
    "McqAutoScorer",
    "Scorer",
    "TestCatalog",
    "EnrollmentDirectory",
    "SqlTestCatalog",
    "SqlEnrollmentDirectory",
    "InMemoryTestCatalog",
    "InMemoryEnrollmentDirectory",
    "SessionManager",
]
