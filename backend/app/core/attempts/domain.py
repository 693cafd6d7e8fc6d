"""
Value types shared by the attempt session components.

Every instant held by these types is integer epoch seconds (UTC). Conversion
from database datetimes or request payloads happens before values reach here.
"""
import enum
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from app.models.models import AttemptStatus, QuestionKind, TestMode


class WindowState(str, enum.Enum):
    """Availability of a test at a given instant."""

    NOT_YET_OPEN = "not_yet_open"
    OPEN = "open"
    CLOSED = "closed"


class EffectiveStatus(str, enum.Enum):
    """Time-aware classification of an attempt. Derived, never stored."""

    ACTIVE = "active"
    COMPLETED = "completed"
    EXPIRED = "expired"


class FinalizeTrigger(str, enum.Enum):
    """What caused an attempt to be finalized."""

    USER_SUBMIT = "user_submit"
    AUTO_EXPIRE = "auto_expire"


class PassStatus(str, enum.Enum):
    PASSED = "passed"
    FAILED = "failed"
    PENDING = "pending"


COMPLETED_STATUSES = frozenset({AttemptStatus.SUBMITTED, AttemptStatus.AUTO_SUBMITTED})
OPEN_STATUSES = frozenset({AttemptStatus.NOT_STARTED, AttemptStatus.IN_PROGRESS})


@dataclass(frozen=True)
class QuestionRef:
    """A question as referenced by a test: id, kind and point value."""

    question_id: str
    kind: QuestionKind = QuestionKind.MCQ
    points: float = 1.0
    correct_option_id: Optional[str] = None  # MCQ only


@dataclass
class TestDefinition:
    """
    Read-only view of a test as the session manager needs it.

    Live tests carry one shared window (join_time, end_time) and an implicit
    quota of one attempt. Flexible tests carry an availability window
    (opens_at, closes_at) and an attempts_allowed quota.
    """

    id: str
    mode: TestMode
    total_time_allowed_seconds: int
    questions: List[QuestionRef] = field(default_factory=list)
    join_time: Optional[int] = None
    end_time: Optional[int] = None
    opens_at: Optional[int] = None
    closes_at: Optional[int] = None
    attempts_allowed: int = 1
    passing_score: Optional[float] = None
    class_ids: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.total_time_allowed_seconds <= 0:
            raise ValueError(
                f"total_time_allowed_seconds must be positive, "
                f"got {self.total_time_allowed_seconds}"
            )
        start, end = self.window_bounds
        if start is None or end is None:
            raise ValueError(f"{self.mode.value} test {self.id} is missing its window")
        if end < start:
            raise ValueError(f"Test {self.id} window ends before it starts")
        if self.mode == TestMode.FLEXIBLE and self.attempts_allowed < 1:
            raise ValueError(
                f"attempts_allowed must be at least 1, got {self.attempts_allowed}"
            )

    @property
    def window_bounds(self) -> Tuple[Optional[int], Optional[int]]:
        """The (start, end) pair that governs availability for this mode."""
        if self.mode == TestMode.LIVE:
            return self.join_time, self.end_time
        return self.opens_at, self.closes_at

    @property
    def max_attempts(self) -> int:
        """Attempt quota: always 1 for Live tests."""
        if self.mode == TestMode.LIVE:
            return 1
        return self.attempts_allowed

    def get_question(self, question_id: str) -> Optional[QuestionRef]:
        for question in self.questions:
            if question.question_id == question_id:
                return question
        return None

    @property
    def has_essays(self) -> bool:
        return any(q.kind == QuestionKind.ESSAY for q in self.questions)


@dataclass
class AttemptRecord:
    """Stored state of one attempt."""

    id: int
    test_id: str
    student_id: str
    attempt_number: int
    status: AttemptStatus
    started_at: int
    total_time_allowed_seconds: int
    end_time: int
    submitted_at: Optional[int] = None
    last_active_at: Optional[int] = None
    score: Optional[float] = None
    max_score: Optional[float] = None
    percentage: Optional[float] = None
    pass_status: Optional[str] = None


@dataclass(frozen=True)
class AnswerPayload:
    """
    A student's response to one question.

    At most one of selected_option_id (MCQ) or content (essay) is set.
    write_seq is a client counter per (attempt, question) that increases with
    every new write and is reused on retries; a write whose write_seq is not
    above the stored one changes nothing. is_marked_for_review of None keeps
    the stored mark.
    """

    selected_option_id: Optional[str] = None
    content: Optional[str] = None
    time_spent_delta_seconds: int = 0
    write_seq: int = field(kw_only=True)
    is_marked_for_review: Optional[bool] = None


@dataclass
class AnswerRecord:
    """Current response and accumulated time for one (attempt, question)."""

    attempt_id: int
    question_id: str
    selected_option_id: Optional[str] = None
    content: Optional[str] = None
    word_count: Optional[int] = None
    time_spent_seconds: int = 0
    is_marked_for_review: bool = False
    last_write_seq: int = 0
    updated_at: Optional[int] = None


@dataclass
class SessionState:
    """Snapshot of a (test, student) pair, computed fresh on every read."""

    test_id: str
    student_id: str
    now: int
    window_state: WindowState
    attempts_consumed: int
    attempts_allowed: int
    active_attempt_id: Optional[int] = None
    remaining_seconds: Optional[int] = None
    can_start_new_attempt: bool = False

    @property
    def has_active_attempt(self) -> bool:
        return self.active_attempt_id is not None


@dataclass
class AttemptHandle:
    """What a caller gets back from start_or_resume."""

    attempt: AttemptRecord
    remaining_seconds: int
    resumed: bool
    server_time: int


@dataclass
class FinalizeResult:
    """Outcome of finalize; already_finalized is True for a no-op repeat."""

    attempt: AttemptRecord
    already_finalized: bool
    scored: bool = False


@dataclass
class ScoreResult:
    score: float
    max_score: float
    percentage: float
    pass_status: PassStatus
    mcq_correct: int
    mcq_wrong: int


@dataclass
class AttemptSummaryRow:
    """One classified attempt in a history view."""

    attempt: AttemptRecord
    effective_status: EffectiveStatus
    remaining_seconds: int


@dataclass
class AttemptHistory:
    """Read-only history of a (test, student) pair."""

    test_id: str
    student_id: str
    attempt_count: int
    best_score: Optional[float]
    best_percentage: Optional[float]
    last_status: Optional[EffectiveStatus]
    rows: List[AttemptSummaryRow] = field(default_factory=list)


@dataclass
class SweepReport:
    """Counts from one expiry sweep pass."""

    examined: int = 0
    finalized: int = 0
    already_completed: int = 0
    failed: int = 0
    finalized_ids: List[int] = field(default_factory=list)
