"""
Attempt persistence.

``AttemptStore`` is the narrow set of primitives the session manager needs:
conditional create, get by key, list by filter and conditional update. It
carries no test rules of its own.

Two implementations:
- ``SqlAttemptStore`` on a SQLAlchemy session. The "one in-progress attempt
  per (test, student)" rule is the partial unique index
  ``ix_test_attempts_pair_in_progress``; losing that race surfaces as
  ``StoreConflict``. Any other SQLAlchemy failure becomes ``Unavailable``.
- ``InMemoryAttemptStore`` guarded by a lock, for tests and local tooling.
"""
import copy
import itertools
import logging
import threading
from typing import Callable, Dict, List, Optional, Protocol, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core import db_error_handling
from app.core.attempts.domain import (
    OPEN_STATUSES,
    AnswerRecord,
    AttemptRecord,
    ScoreResult,
)
from app.core.attempts.errors import StoreConflict
from app.core.datetime_utils import from_epoch_seconds, to_epoch_seconds
from app.models.models import AttemptAnswer, AttemptStatus, TestAttempt

logger = logging.getLogger(__name__)

# Builds the new answer state from the current one (None on first write).
AnswerMerge = Callable[[Optional[AnswerRecord]], AnswerRecord]


class _AnswerInsertRace(Exception):
    """Another writer inserted the same (attempt, question) row first."""


class AttemptStore(Protocol):
    def get_attempt(self, attempt_id: int) -> Optional[AttemptRecord]:
        ...

    def list_attempts(self, test_id: str, student_id: str) -> List[AttemptRecord]:
        """All attempts of a pair, oldest first."""
        ...

    def list_attempts_for_test(self, test_id: str) -> List[AttemptRecord]:
        ...

    def list_expired_in_progress(self, now: int, limit: int) -> List[AttemptRecord]:
        """In-progress attempts whose end_time is before ``now``."""
        ...

    def create_in_progress(
        self,
        test_id: str,
        student_id: str,
        started_at: int,
        total_time_allowed_seconds: int,
        end_time: int,
    ) -> AttemptRecord:
        """Insert an in-progress attempt; StoreConflict if the pair already has one."""
        ...

    def mark_finalized(
        self, attempt_id: int, status: AttemptStatus, submitted_at: int
    ) -> bool:
        """Set a final status only if the attempt is still open. True if updated."""
        ...

    def write_answer(
        self, attempt_id: int, question_id: str, now: int, merge: AnswerMerge
    ) -> Optional[AnswerRecord]:
        """
        Apply ``merge`` to the stored answer, provided the attempt is still in
        progress and not past its end_time. Returns None when it is not.
        """
        ...

    def list_answers(self, attempt_id: int) -> List[AnswerRecord]:
        ...

    def save_score(self, attempt_id: int, result: ScoreResult, scored_at: int) -> None:
        ...


def _attempt_to_record(row: TestAttempt) -> AttemptRecord:
    return AttemptRecord(
        id=row.id,
        test_id=row.test_id,
        student_id=row.student_id,
        attempt_number=row.attempt_number,
        status=AttemptStatus(row.status),
        started_at=to_epoch_seconds(row.started_at),
        total_time_allowed_seconds=row.total_time_allowed_seconds,
        end_time=to_epoch_seconds(row.end_time),
        submitted_at=(
            to_epoch_seconds(row.submitted_at) if row.submitted_at else None
        ),
        last_active_at=(
            to_epoch_seconds(row.last_active_at) if row.last_active_at else None
        ),
        score=row.score,
        max_score=row.max_score,
        percentage=row.percentage,
        pass_status=row.pass_status,
    )


def _answer_to_record(row: AttemptAnswer) -> AnswerRecord:
    return AnswerRecord(
        attempt_id=row.attempt_id,
        question_id=row.question_id,
        selected_option_id=row.selected_option_id,
        content=row.content,
        word_count=row.word_count,
        time_spent_seconds=row.time_spent_seconds,
        is_marked_for_review=bool(row.is_marked_for_review),
        last_write_seq=row.last_write_seq or 0,
        updated_at=to_epoch_seconds(row.updated_at) if row.updated_at else None,
    )


class SqlAttemptStore:
    """AttemptStore backed by the test_attempts and attempt_answers tables."""

    def __init__(self, db: Session):
        self.db = db

    def get_attempt(self, attempt_id: int) -> Optional[AttemptRecord]:
        with db_error_handling.handle_db_error(self.db, "load attempt"):
            row = self.db.get(TestAttempt, attempt_id, populate_existing=True)
            return _attempt_to_record(row) if row else None

    def list_attempts(self, test_id: str, student_id: str) -> List[AttemptRecord]:
        with db_error_handling.handle_db_error(self.db, "list attempts"):
            rows = (
                self.db.execute(
                    select(TestAttempt)
                    .where(
                        TestAttempt.test_id == test_id,
                        TestAttempt.student_id == student_id,
                    )
                    .order_by(TestAttempt.attempt_number)
                    .execution_options(populate_existing=True)
                )
                .scalars()
                .all()
            )
            return [_attempt_to_record(row) for row in rows]

    def list_attempts_for_test(self, test_id: str) -> List[AttemptRecord]:
        with db_error_handling.handle_db_error(self.db, "list test attempts"):
            rows = (
                self.db.execute(
                    select(TestAttempt)
                    .where(TestAttempt.test_id == test_id)
                    .order_by(TestAttempt.student_id, TestAttempt.attempt_number)
                )
                .scalars()
                .all()
            )
            return [_attempt_to_record(row) for row in rows]

    def list_expired_in_progress(self, now: int, limit: int) -> List[AttemptRecord]:
        with db_error_handling.handle_db_error(self.db, "list expired attempts"):
            rows = (
                self.db.execute(
                    select(TestAttempt)
                    .where(
                        TestAttempt.status.in_(list(OPEN_STATUSES)),
                        TestAttempt.end_time < from_epoch_seconds(now),
                    )
                    .order_by(TestAttempt.end_time)
                    .limit(limit)
                )
                .scalars()
                .all()
            )
            return [_attempt_to_record(row) for row in rows]

    def create_in_progress(
        self,
        test_id: str,
        student_id: str,
        started_at: int,
        total_time_allowed_seconds: int,
        end_time: int,
    ) -> AttemptRecord:
        with db_error_handling.handle_db_error(
            self.db,
            "create attempt",
            context={"test_id": test_id, "student_id": student_id},
        ):
            previous = self.db.execute(
                select(func.max(TestAttempt.attempt_number)).where(
                    TestAttempt.test_id == test_id,
                    TestAttempt.student_id == student_id,
                )
            ).scalar()
            row = TestAttempt(
                test_id=test_id,
                student_id=student_id,
                attempt_number=(previous or 0) + 1,
                status=AttemptStatus.IN_PROGRESS,
                started_at=from_epoch_seconds(started_at),
                total_time_allowed_seconds=total_time_allowed_seconds,
                end_time=from_epoch_seconds(end_time),
                last_active_at=from_epoch_seconds(started_at),
            )
            self.db.add(row)
            try:
                self.db.flush()
            except IntegrityError:
                # Either the partial unique index or uq_attempt_number fired:
                # a concurrent request inserted for this pair first.
                self.db.rollback()
                logger.warning(
                    f"Lost attempt creation race for test {test_id}, "
                    f"student {student_id}",
                    extra={"test_id": test_id, "student_id": student_id},
                )
                raise StoreConflict()
            self.db.commit()
            self.db.refresh(row)
            return _attempt_to_record(row)

    def mark_finalized(
        self, attempt_id: int, status: AttemptStatus, submitted_at: int
    ) -> bool:
        with db_error_handling.handle_db_error(
            self.db, "finalize attempt", context={"attempt_id": attempt_id}
        ):
            result = self.db.execute(
                update(TestAttempt)
                .where(
                    TestAttempt.id == attempt_id,
                    TestAttempt.status.in_(list(OPEN_STATUSES)),
                )
                .values(status=status, submitted_at=from_epoch_seconds(submitted_at))
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
            return result.rowcount == 1

    def write_answer(
        self, attempt_id: int, question_id: str, now: int, merge: AnswerMerge
    ) -> Optional[AnswerRecord]:
        # One retry covers two first writes to the same question colliding on
        # uq_attempt_answer; the retry sees the winner's row and merges onto it.
        for attempt_no in (1, 2):
            try:
                return self._write_answer_once(attempt_id, question_id, now, merge)
            except _AnswerInsertRace:
                if attempt_no == 2:
                    raise StoreConflict(
                        "Concurrent answer writes collided. Please retry."
                    )
        return None

    def _write_answer_once(
        self, attempt_id: int, question_id: str, now: int, merge: AnswerMerge
    ) -> Optional[AnswerRecord]:
        with db_error_handling.handle_db_error(
            self.db,
            "save answer",
            context={"attempt_id": attempt_id, "question_id": question_id},
        ):
            now_dt = from_epoch_seconds(now)
            touched = self.db.execute(
                update(TestAttempt)
                .where(
                    TestAttempt.id == attempt_id,
                    TestAttempt.status == AttemptStatus.IN_PROGRESS,
                    TestAttempt.end_time >= now_dt,
                )
                .values(last_active_at=now_dt)
                .execution_options(synchronize_session=False)
            )
            if touched.rowcount != 1:
                self.db.rollback()
                return None

            row = self.db.execute(
                select(AttemptAnswer)
                .where(
                    AttemptAnswer.attempt_id == attempt_id,
                    AttemptAnswer.question_id == question_id,
                )
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()

            merged = merge(_answer_to_record(row) if row else None)
            if row is None:
                row = AttemptAnswer(attempt_id=attempt_id, question_id=question_id)
                self.db.add(row)
            row.selected_option_id = merged.selected_option_id
            row.content = merged.content
            row.word_count = merged.word_count
            row.time_spent_seconds = merged.time_spent_seconds
            row.is_marked_for_review = merged.is_marked_for_review
            row.last_write_seq = merged.last_write_seq
            row.updated_at = from_epoch_seconds(merged.updated_at or now)
            try:
                self.db.flush()
            except IntegrityError:
                self.db.rollback()
                raise _AnswerInsertRace()
            self.db.commit()
            return merged

    def list_answers(self, attempt_id: int) -> List[AnswerRecord]:
        with db_error_handling.handle_db_error(self.db, "list answers"):
            rows = (
                self.db.execute(
                    select(AttemptAnswer)
                    .where(AttemptAnswer.attempt_id == attempt_id)
                    .order_by(AttemptAnswer.id)
                )
                .scalars()
                .all()
            )
            return [_answer_to_record(row) for row in rows]

    def save_score(self, attempt_id: int, result: ScoreResult, scored_at: int) -> None:
        with db_error_handling.handle_db_error(
            self.db, "save score", context={"attempt_id": attempt_id}
        ):
            self.db.execute(
                update(TestAttempt)
                .where(TestAttempt.id == attempt_id)
                .values(
                    score=result.score,
                    max_score=result.max_score,
                    percentage=result.percentage,
                    pass_status=result.pass_status.value,
                    mcq_correct=result.mcq_correct,
                    mcq_wrong=result.mcq_wrong,
                    scored_at=from_epoch_seconds(scored_at),
                )
                .execution_options(synchronize_session=False)
            )
            self.db.commit()


class InMemoryAttemptStore:
    """Lock-guarded AttemptStore kept in process memory."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._attempts: Dict[int, AttemptRecord] = {}
        self._answers: Dict[Tuple[int, str], AnswerRecord] = {}
        self.create_calls = 0

    def get_attempt(self, attempt_id: int) -> Optional[AttemptRecord]:
        with self._lock:
            record = self._attempts.get(attempt_id)
            return copy.copy(record) if record else None

    def list_attempts(self, test_id: str, student_id: str) -> List[AttemptRecord]:
        with self._lock:
            records = [
                copy.copy(a)
                for a in self._attempts.values()
                if a.test_id == test_id and a.student_id == student_id
            ]
        return sorted(records, key=lambda a: a.attempt_number)

    def list_attempts_for_test(self, test_id: str) -> List[AttemptRecord]:
        with self._lock:
            records = [copy.copy(a) for a in self._attempts.values() if a.test_id == test_id]
        return sorted(records, key=lambda a: (a.student_id, a.attempt_number))

    def list_expired_in_progress(self, now: int, limit: int) -> List[AttemptRecord]:
        with self._lock:
            records = [
                copy.copy(a)
                for a in self._attempts.values()
                if a.status in OPEN_STATUSES and a.end_time < now
            ]
        return sorted(records, key=lambda a: a.end_time)[:limit]

    def create_in_progress(
        self,
        test_id: str,
        student_id: str,
        started_at: int,
        total_time_allowed_seconds: int,
        end_time: int,
    ) -> AttemptRecord:
        with self._lock:
            self.create_calls += 1
            pair = [
                a
                for a in self._attempts.values()
                if a.test_id == test_id and a.student_id == student_id
            ]
            if any(a.status == AttemptStatus.IN_PROGRESS for a in pair):
                raise StoreConflict()
            record = AttemptRecord(
                id=next(self._ids),
                test_id=test_id,
                student_id=student_id,
                attempt_number=len(pair) + 1,
                status=AttemptStatus.IN_PROGRESS,
                started_at=started_at,
                total_time_allowed_seconds=total_time_allowed_seconds,
                end_time=end_time,
                last_active_at=started_at,
            )
            self._attempts[record.id] = record
            return copy.copy(record)

    def mark_finalized(
        self, attempt_id: int, status: AttemptStatus, submitted_at: int
    ) -> bool:
        with self._lock:
            record = self._attempts.get(attempt_id)
            if record is None or record.status not in OPEN_STATUSES:
                return False
            record.status = status
            record.submitted_at = submitted_at
            return True

    def write_answer(
        self, attempt_id: int, question_id: str, now: int, merge: AnswerMerge
    ) -> Optional[AnswerRecord]:
        with self._lock:
            record = self._attempts.get(attempt_id)
            if (
                record is None
                or record.status != AttemptStatus.IN_PROGRESS
                or record.end_time < now
            ):
                return None
            record.last_active_at = now
            key = (attempt_id, question_id)
            current = self._answers.get(key)
            merged = merge(copy.copy(current) if current else None)
            self._answers[key] = merged
            return copy.copy(merged)

    def list_answers(self, attempt_id: int) -> List[AnswerRecord]:
        with self._lock:
            return [
                copy.copy(a) for (aid, _), a in self._answers.items() if aid == attempt_id
            ]

    def save_score(self, attempt_id: int, result: ScoreResult, scored_at: int) -> None:
        with self._lock:
            record = self._attempts[attempt_id]
            record.score = result.score
            record.max_score = result.max_score
            record.percentage = result.percentage
            record.pass_status = result.pass_status.value
