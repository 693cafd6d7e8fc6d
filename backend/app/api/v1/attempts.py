"""
Student attempt endpoints: session state, start/resume, answers, submit and
history.

Identity comes from the bearer token only. Server time comes from the clock
dependency; nothing in a request body is used to decide admission, deadlines
or submission status. Attempt session errors propagate to the exception
handler in ``app.main``, which renders them with their HTTP status and
``retryable`` flag.
"""
import logging

from fastapi import APIRouter, Depends, Path

from app.api.v1._dependencies import get_session_manager
from app.core.attempts import AnswerPayload, FinalizeTrigger, SessionManager
from app.core.auth import get_current_student_id
from app.schemas.test_attempts import (
    AnswerRequest,
    AnswerResponse,
    AttemptHandleResponse,
    AttemptHistoryResponse,
    FinalizeResponse,
    SessionStateResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

TestIdPath = Path(..., min_length=1, max_length=64, description="Test ID")
QuestionIdPath = Path(..., min_length=1, max_length=64, description="Question ID")


@router.get("/tests/{test_id}/session", response_model=SessionStateResponse)
def get_session_state(
    test_id: str = TestIdPath,
    student_id: str = Depends(get_current_student_id),
    manager: SessionManager = Depends(get_session_manager),
):
    """
    Get the caller's session state for a test.

    Always safe to call; clients poll this to recover from any ambiguous
    state (reconnects, multiple tabs, a missed deadline).

    Returns:
        Window state, attempts consumed/allowed, the resumable attempt (if any)
        with server-computed remaining seconds, and whether a new attempt can
        start
    """
    state = manager.get_session_state(test_id, student_id)
    return SessionStateResponse.from_state(state)


@router.post("/tests/{test_id}/attempts", response_model=AttemptHandleResponse)
def start_or_resume_attempt(
    test_id: str = TestIdPath,
    student_id: str = Depends(get_current_student_id),
    manager: SessionManager = Depends(get_session_manager),
):
    """
    Start a new attempt, or resume the caller's active one.

    Concurrent calls from several tabs converge on the same attempt.

    Raises:
        WindowClosed (409), QuotaExhausted (409), NotEnrolled (403),
        StoreConflict (409, retryable), TestNotFound (404)
    """
    handle = manager.start_or_resume(test_id, student_id)
    return AttemptHandleResponse.model_validate(handle)


@router.get("/tests/{test_id}/attempts", response_model=AttemptHistoryResponse)
def list_attempts(
    test_id: str = TestIdPath,
    student_id: str = Depends(get_current_student_id),
    manager: SessionManager = Depends(get_session_manager),
):
    """
    Get the caller's attempt history for a test: attempt count, best score,
    last status and each attempt with its effective status.
    """
    history = manager.list_attempt_summaries(test_id, student_id)
    return AttemptHistoryResponse.from_history(history)


@router.put(
    "/attempts/{attempt_id}/answers/{question_id}", response_model=AnswerResponse
)
def save_answer(
    answer: AnswerRequest,
    attempt_id: int = Path(..., ge=1, description="Attempt ID"),
    question_id: str = QuestionIdPath,
    student_id: str = Depends(get_current_student_id),
    manager: SessionManager = Depends(get_session_manager),
):
    """
    Save the answer to one question of an active attempt.

    The value replaces the stored one; ``time_spent_delta_seconds`` adds to
    the question's accumulated time. ``is_marked_for_review`` sets or clears
    the review mark and is kept when omitted. A write whose ``write_seq`` is
    not above the last applied one (a retry, or a write overtaken by a newer
    one) changes nothing.

    Raises:
        AttemptNotActive (409, retryable): The attempt is completed or past
            its deadline; refresh the session state
        AttemptAccessDenied (403), AttemptNotFound (404), InvalidAnswer (400)
    """
    stored = manager.record_answer(
        attempt_id,
        question_id,
        AnswerPayload(
            selected_option_id=answer.selected_option_id,
            content=answer.content,
            time_spent_delta_seconds=answer.time_spent_delta_seconds,
            write_seq=answer.write_seq,
            is_marked_for_review=answer.is_marked_for_review,
        ),
        student_id=student_id,
    )
    return AnswerResponse.model_validate(stored)


@router.get(
    "/attempts/{attempt_id}/answers", response_model=list[AnswerResponse]
)
def list_answers(
    attempt_id: int = Path(..., ge=1, description="Attempt ID"),
    student_id: str = Depends(get_current_student_id),
    manager: SessionManager = Depends(get_session_manager),
):
    """Get the saved answers of one of the caller's attempts."""
    return [
        AnswerResponse.model_validate(a)
        for a in manager.list_answers(attempt_id, student_id=student_id)
    ]


@router.post("/attempts/{attempt_id}/submit", response_model=FinalizeResponse)
def submit_attempt(
    attempt_id: int = Path(..., ge=1, description="Attempt ID"),
    student_id: str = Depends(get_current_student_id),
    manager: SessionManager = Depends(get_session_manager),
):
    """
    Submit an attempt.

    Idempotent: submitting a completed attempt returns it unchanged. A
    submit after the deadline is recorded as auto_submitted.
    """
    result = manager.finalize(
        attempt_id, FinalizeTrigger.USER_SUBMIT, student_id=student_id
    )
    return FinalizeResponse.model_validate(result)
