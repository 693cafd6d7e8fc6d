"""
Read-only collaborators of the session manager: test lookup and enrollment.

The SQL implementations read the tests, test_questions and
class_enrollments tables. A test is visible to a student when the student is
enrolled in at least one of the test's classes; a test assigned to no class
is visible to nobody.
"""
from typing import Dict, Iterable, Optional, Protocol, Set

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from app.core import db_error_handling
from app.core.attempts.domain import QuestionRef, TestDefinition
from app.core.datetime_utils import to_epoch_seconds
from app.models.models import ClassEnrollment, QuestionKind, Test, TestMode


class TestCatalog(Protocol):
    def get_test(self, test_id: str) -> Optional[TestDefinition]:
        ...


class EnrollmentDirectory(Protocol):
    def is_enrolled(self, student_id: str, test_id: str) -> bool:
        ...


def _optional_epoch(value) -> Optional[int]:
    return to_epoch_seconds(value) if value is not None else None


def definition_from_row(row: Test) -> TestDefinition:
    """Convert a Test row (with questions loaded) to a TestDefinition."""
    return TestDefinition(
        id=row.id,
        mode=TestMode(row.mode),
        total_time_allowed_seconds=row.total_time_allowed_seconds,
        questions=[
            QuestionRef(
                question_id=q.question_id,
                kind=QuestionKind(q.kind),
                points=q.points,
                correct_option_id=q.correct_option_id,
            )
            for q in row.questions
        ],
        join_time=_optional_epoch(row.join_time),
        end_time=_optional_epoch(row.end_time),
        opens_at=_optional_epoch(row.opens_at),
        closes_at=_optional_epoch(row.closes_at),
        attempts_allowed=row.attempts_allowed,
        passing_score=row.passing_score,
        class_ids=list(row.class_ids or []),
    )


class SqlTestCatalog:
    def __init__(self, db: Session):
        self.db = db

    def get_test(self, test_id: str) -> Optional[TestDefinition]:
        with db_error_handling.handle_db_error(self.db, "load test"):
            row = self.db.execute(
                select(Test)
                .options(selectinload(Test.questions))
                .where(Test.id == test_id)
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            return definition_from_row(row) if row else None


class SqlEnrollmentDirectory:
    def __init__(self, db: Session):
        self.db = db

    def is_enrolled(self, student_id: str, test_id: str) -> bool:
        with db_error_handling.handle_db_error(self.db, "check enrollment"):
            class_ids = self.db.execute(
                select(Test.class_ids).where(Test.id == test_id)
            ).scalar_one_or_none()
            if not class_ids:
                return False
            match = self.db.execute(
                select(ClassEnrollment.id)
                .where(
                    ClassEnrollment.student_id == student_id,
                    ClassEnrollment.class_id.in_(list(class_ids)),
                )
                .limit(1)
            ).first()
            return match is not None


class InMemoryTestCatalog:
    def __init__(self, tests: Iterable[TestDefinition] = ()):
        self.tests: Dict[str, TestDefinition] = {t.id: t for t in tests}

    def add(self, test: TestDefinition) -> None:
        self.tests[test.id] = test

    def get_test(self, test_id: str) -> Optional[TestDefinition]:
        return self.tests.get(test_id)


class InMemoryEnrollmentDirectory:
    """Enrollment by class membership, held in memory."""

    def __init__(self, catalog: InMemoryTestCatalog):
        self.catalog = catalog
        self.classes_by_student: Dict[str, Set[str]] = {}

    def enroll(self, student_id: str, class_id: str) -> None:
        self.classes_by_student.setdefault(student_id, set()).add(class_id)

    def is_enrolled(self, student_id: str, test_id: str) -> bool:
        test = self.catalog.get_test(test_id)
        if test is None:
            return False
        return bool(self.classes_by_student.get(student_id, set()) & set(test.class_ids))
