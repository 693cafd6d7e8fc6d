"""
Pydantic schemas for request/response validation.
"""
from .test_attempts import (
    AttemptResponse,
    SessionStateResponse,
    AttemptHandleResponse,
    AnswerRequest,
    AnswerResponse,
    FinalizeResponse,
    AttemptSummaryResponse,
    AttemptHistoryResponse,
)
from .admin import (
    TestQuestionRequest,
    TestDefinitionRequest,
    TestDefinitionResponse,
    EnrollmentRequest,
    EnrollmentResponse,
    TestAttemptsResponse,
    SweepResponse,
)

__all__ = [
    "AttemptResponse",
    "SessionStateResponse",
    "AttemptHandleResponse",
    "AnswerRequest",
    "AnswerResponse",
    "FinalizeResponse",
    "AttemptSummaryResponse",
    "AttemptHistoryResponse",
    # Admin schemas
    "TestQuestionRequest",
    "TestDefinitionRequest",
    "TestDefinitionResponse",
    "EnrollmentRequest",
    "EnrollmentResponse",
    "TestAttemptsResponse",
    "SweepResponse",
]
