"""
Pydantic schemas for instructor/admin endpoints.

Timestamp fields accept any representation ``normalize_timestamp``
understands: ISO-8601 strings, epoch seconds or milliseconds, or
``{"seconds": ...}`` mappings. They are collapsed to epoch seconds before
anything is stored.
"""
from pydantic import BaseModel, Field, model_validator
from typing import Any, Dict, List, Optional, Self, Union

from app.models.models import QuestionKind, TestMode
from app.schemas.test_attempts import AttemptSummaryResponse

TimestampInput = Union[int, float, str, Dict[str, Any]]


class TestQuestionRequest(BaseModel):
    """Schema for one question reference within a test definition."""

    question_id: str = Field(..., min_length=1, max_length=64, description="Question ID")
    kind: QuestionKind = Field(QuestionKind.MCQ, description="mcq or essay")
    points: float = Field(1.0, gt=0, description="Points awarded for this question")
    correct_option_id: Optional[str] = Field(
        None, max_length=64, description="Correct option (mcq only)"
    )

    @model_validator(mode="after")
    def validate_kind_fields(self) -> Self:
        if self.kind == QuestionKind.ESSAY and self.correct_option_id is not None:
            raise ValueError("Essay questions cannot have a correct_option_id")
        return self


class TestDefinitionRequest(BaseModel):
    """
    Schema for creating or replacing a test definition.

    Live tests give either join_time and end_time directly, or
    scheduled_start_time with duration_minutes (and optional buffer_minutes),
    from which join_time = start - LIVE_JOIN_LEAD_MINUTES and
    end_time = start + duration + buffer are derived.

    Flexible tests give opens_at, closes_at and attempts_allowed.
    """

    title: str = Field("Untitled Test", min_length=1, max_length=255)
    mode: TestMode = Field(..., description="live or flexible")
    total_time_allowed_seconds: Optional[int] = Field(
        None, gt=0, description="Time allowance per attempt, in seconds"
    )
    duration_minutes: Optional[int] = Field(
        None, gt=0, description="Time allowance per attempt, in minutes"
    )
    questions: List[TestQuestionRequest] = Field(default_factory=list)

    # Live
    join_time: Optional[TimestampInput] = None
    end_time: Optional[TimestampInput] = None
    scheduled_start_time: Optional[TimestampInput] = None
    buffer_minutes: Optional[int] = Field(None, ge=0, le=240)

    # Flexible
    opens_at: Optional[TimestampInput] = None
    closes_at: Optional[TimestampInput] = None
    attempts_allowed: int = Field(1, ge=1, le=100)

    passing_score: Optional[float] = Field(
        None, ge=0, le=100, description="Pass mark as a percentage"
    )
    class_ids: List[str] = Field(
        default_factory=list, description="Classes whose students may take the test"
    )


class TestDefinitionResponse(BaseModel):
    """Schema for a stored test definition."""

    id: str
    title: str
    mode: TestMode
    total_time_allowed_seconds: int
    join_time: Optional[int] = None
    end_time: Optional[int] = None
    opens_at: Optional[int] = None
    closes_at: Optional[int] = None
    attempts_allowed: int
    passing_score: Optional[float] = None
    class_ids: List[str]
    question_count: int


class EnrollmentRequest(BaseModel):
    """Schema for enrolling a student in a class."""

    student_id: str = Field(..., min_length=1, max_length=64)
    class_id: str = Field(..., min_length=1, max_length=64)


class EnrollmentResponse(BaseModel):
    student_id: str
    class_id: str
    created: bool = Field(..., description="False if the enrollment already existed")


class TestAttemptsResponse(BaseModel):
    """Schema for the monitoring view of all attempts on a test."""

    test_id: str
    server_time: int
    attempts: List[AttemptSummaryResponse]


class SweepResponse(BaseModel):
    """Schema for one expiry sweep pass."""

    server_time: int
    examined: int
    finalized: int
    already_completed: int
    failed: int
    finalized_ids: List[int]
