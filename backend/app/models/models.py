"""
Database models for the attempt session service.

Tests, enrollments, attempts and answers. Tests and enrollments are written by
instructor/admin workflows; attempts and answers are written only by the
attempt session manager and the answer journal.
"""
from sqlalchemy import (
    Boolean,
    Column,
    Integer,
    String,
    DateTime,
    ForeignKey,
    Text,
    Enum,
    Float,
    UniqueConstraint,
    Index,
    CheckConstraint,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import JSON
from datetime import datetime, timezone
import enum

from .base import Base


class TestMode(str, enum.Enum):
    """Delivery mode of a test."""

    LIVE = "live"
    FLEXIBLE = "flexible"


class QuestionKind(str, enum.Enum):
    """Question kind enumeration."""

    MCQ = "mcq"
    ESSAY = "essay"


class AttemptStatus(str, enum.Enum):
    """Stored attempt status enumeration."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    AUTO_SUBMITTED = "auto_submitted"


class Test(Base):
    """Timed assessment definition, read-only to the session manager."""

    __tablename__ = "tests"

    id = Column(String(64), primary_key=True)
    title = Column(String(255), nullable=False, default="Untitled Test")
    mode = Column(Enum(TestMode), nullable=False)
    total_time_allowed_seconds = Column(Integer, nullable=False)

    # Live mode: one shared window for every student
    join_time = Column(DateTime(timezone=True), nullable=True)
    end_time = Column(DateTime(timezone=True), nullable=True)

    # Flexible mode: availability window plus per-student quota
    opens_at = Column(DateTime(timezone=True), nullable=True)
    closes_at = Column(DateTime(timezone=True), nullable=True)
    attempts_allowed = Column(Integer, nullable=False, default=1)

    passing_score = Column(Float, nullable=True)  # Percentage (0-100)
    class_ids = Column(JSON, nullable=False, default=list)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # Relationships
    questions = relationship(
        "TestQuestion",
        back_populates="test",
        cascade="all, delete-orphan",
        order_by="TestQuestion.position",
    )
    attempts = relationship("TestAttempt", back_populates="test")

    __table_args__ = (
        CheckConstraint("attempts_allowed >= 1", name="ck_tests_attempts_allowed"),
        CheckConstraint(
            "total_time_allowed_seconds > 0", name="ck_tests_time_allowed_positive"
        ),
    )


class TestQuestion(Base):
    """Ordered question reference within a test, with its point value."""

    __tablename__ = "test_questions"

    id = Column(Integer, primary_key=True, index=True)
    test_id = Column(
        String(64), ForeignKey("tests.id", ondelete="CASCADE"), nullable=False
    )
    question_id = Column(String(64), nullable=False)
    position = Column(Integer, nullable=False)
    kind = Column(Enum(QuestionKind), nullable=False, default=QuestionKind.MCQ)
    points = Column(Float, nullable=False, default=1.0)
    correct_option_id = Column(String(64), nullable=True)  # MCQ only

    test = relationship("Test", back_populates="questions")

    __table_args__ = (
        UniqueConstraint("test_id", "question_id", name="uq_test_question"),
        Index("ix_test_questions_test_position", "test_id", "position"),
    )


class ClassEnrollment(Base):
    """Student membership in a class; tests are assigned to classes."""

    __tablename__ = "class_enrollments"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(String(64), nullable=False)
    class_id = Column(String(64), nullable=False)
    enrolled_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("student_id", "class_id", name="uq_class_enrollment"),
        Index("ix_class_enrollments_student", "student_id"),
    )


class TestAttempt(Base):
    """One instance of a student taking a test, with its own fixed deadline."""

    __tablename__ = "test_attempts"

    id = Column(Integer, primary_key=True, index=True)
    test_id = Column(
        String(64), ForeignKey("tests.id", ondelete="RESTRICT"), nullable=False
    )
    student_id = Column(String(64), nullable=False)
    attempt_number = Column(Integer, nullable=False, default=1)
    status = Column(
        Enum(AttemptStatus),
        default=AttemptStatus.IN_PROGRESS,
        nullable=False,
        index=True,
    )
    started_at = Column(DateTime(timezone=True), nullable=False)
    # Captured at creation; later test edits do not change a running attempt
    total_time_allowed_seconds = Column(Integer, nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False, index=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    last_active_at = Column(DateTime(timezone=True), nullable=True)

    # Populated by the scoring handoff after finalize
    score = Column(Float, nullable=True)
    max_score = Column(Float, nullable=True)
    percentage = Column(Float, nullable=True)
    pass_status = Column(String(20), nullable=True)  # passed, failed, pending
    mcq_correct = Column(Integer, nullable=True)
    mcq_wrong = Column(Integer, nullable=True)
    scored_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    test = relationship("Test", back_populates="attempts")
    answers = relationship(
        "AttemptAnswer", back_populates="attempt", cascade="all, delete-orphan"
    )

    __table_args__ = (
        # At most one in_progress attempt per (test, student). This is the
        # conditional-create guard: a losing concurrent insert fails with
        # IntegrityError instead of creating a second live attempt.
        Index(
            "ix_test_attempts_pair_in_progress",
            "test_id",
            "student_id",
            unique=True,
            postgresql_where=text("status = 'IN_PROGRESS'"),
            sqlite_where=text("status = 'IN_PROGRESS'"),
        ),
        Index("ix_test_attempts_pair", "test_id", "student_id"),
        UniqueConstraint(
            "test_id", "student_id", "attempt_number", name="uq_attempt_number"
        ),
        CheckConstraint(
            "pass_status IS NULL OR pass_status IN ('passed', 'failed', 'pending')",
            name="ck_test_attempts_pass_status_valid",
        ),
    )


class AttemptAnswer(Base):
    """Current response and accumulated time for one question of an attempt."""

    __tablename__ = "attempt_answers"

    id = Column(Integer, primary_key=True, index=True)
    attempt_id = Column(
        Integer,
        ForeignKey("test_attempts.id", ondelete="CASCADE"),
        nullable=False,
    )
    question_id = Column(String(64), nullable=False)
    selected_option_id = Column(String(64), nullable=True)
    content = Column(Text, nullable=True)
    word_count = Column(Integer, nullable=True)
    time_spent_seconds = Column(Integer, nullable=False, default=0)
    is_marked_for_review = Column(Boolean, nullable=False, default=False)
    # Highest client write_seq applied; writes at or below it are ignored
    last_write_seq = Column(Integer, nullable=False, default=0)
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    attempt = relationship("TestAttempt", back_populates="answers")

    __table_args__ = (
        UniqueConstraint("attempt_id", "question_id", name="uq_attempt_answer"),
        CheckConstraint(
            "time_spent_seconds >= 0", name="ck_attempt_answers_time_non_negative"
        ),
    )
