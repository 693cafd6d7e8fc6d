"""
Services package for business logic.
"""

from .attempt_sessions import build_session_manager
from .enrollments import enroll_student
from .expiry_sweeper import ExpirySweeper, run_sweep_once
from .test_definitions import (
    InvalidTestDefinition,
    build_definition,
    upsert_test_definition,
)

__all__ = [
    "build_session_manager",
    "enroll_student",
    "ExpirySweeper",
    "run_sweep_once",
    "InvalidTestDefinition",
    "build_definition",
    "upsert_test_definition",
]
