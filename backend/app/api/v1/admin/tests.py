"""
Test definition admin endpoints.

Instructors create and replace tests here. Editing a test never moves the
deadline of an attempt that already started.
"""
from fastapi import APIRouter, Depends, Path, Response, status
from sqlalchemy.orm import Session

from app.core.error_responses import raise_bad_request
from app.models import get_db
from app.schemas.admin import TestDefinitionRequest, TestDefinitionResponse
from app.services.test_definitions import (
    InvalidTestDefinition,
    upsert_test_definition,
)

from ._dependencies import logger, verify_admin_token

router = APIRouter()


@router.put("/tests/{test_id}", response_model=TestDefinitionResponse)
def put_test_definition(
    request: TestDefinitionRequest,
    response: Response,
    test_id: str = Path(..., min_length=1, max_length=64, description="Test ID"),
    db: Session = Depends(get_db),
    _: bool = Depends(verify_admin_token),
):
    r"""
    Create or replace a test definition.

    Live tests take join_time/end_time, or scheduled_start_time with
    duration_minutes. Flexible tests take opens_at, closes_at and
    attempts_allowed. Timestamps may be ISO-8601 strings, epoch seconds or
    milliseconds.

    Requires X-Admin-Token header with valid admin token.

    Returns:
        The stored definition; 201 when created, 200 when replaced

    Example:
        ```
        curl -X PUT "https://api.example.com/v1/admin/tests/unit-3-quiz" \
          -H "X-Admin-Token: your-admin-token" \
          -H "Content-Type: application/json" \
          -d '{"mode": "live", "scheduled_start_time": "2026-03-02T09:00:00Z",
               "duration_minutes": 60, "class_ids": ["7b"]}'
        ```
    """
    try:
        definition, created = upsert_test_definition(db, test_id, request)
    except InvalidTestDefinition as e:
        logger.warning(f"Rejected definition for test {test_id}: {e}")
        raise_bad_request(str(e))

    if created:
        response.status_code = status.HTTP_201_CREATED

    return TestDefinitionResponse(
        id=definition.id,
        title=request.title,
        mode=definition.mode,
        total_time_allowed_seconds=definition.total_time_allowed_seconds,
        join_time=definition.join_time,
        end_time=definition.end_time,
        opens_at=definition.opens_at,
        closes_at=definition.closes_at,
        attempts_allowed=definition.max_attempts,
        passing_score=definition.passing_score,
        class_ids=definition.class_ids,
        question_count=len(definition.questions),
    )
