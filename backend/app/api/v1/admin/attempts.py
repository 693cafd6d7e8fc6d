"""
Attempt monitoring and expiry sweep admin endpoints.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query

from app.api.v1._dependencies import get_session_manager
from app.core.attempts import SessionManager
from app.schemas.admin import SweepResponse, TestAttemptsResponse
from app.schemas.test_attempts import AttemptSummaryResponse

from ._dependencies import logger, verify_admin_token

router = APIRouter()


@router.get("/tests/{test_id}/attempts", response_model=TestAttemptsResponse)
def list_test_attempts(
    test_id: str = Path(..., min_length=1, max_length=64, description="Test ID"),
    manager: SessionManager = Depends(get_session_manager),
    _: bool = Depends(verify_admin_token),
):
    """
    List every attempt on a test with its effective status at server time.

    Attempts past their deadline that the sweep has not reached yet show as
    ``expired`` here even though their stored status is still in_progress.

    Requires X-Admin-Token header with valid admin token.
    """
    now = manager.clock.now()
    rows = manager.list_test_attempts(test_id, now=now)
    return TestAttemptsResponse(
        test_id=test_id,
        server_time=now,
        attempts=[AttemptSummaryResponse.model_validate(row) for row in rows],
    )


@router.post("/attempts/sweep", response_model=SweepResponse)
def sweep_expired_attempts(
    limit: Optional[int] = Query(
        None, ge=1, le=5000, description="Maximum attempts examined in this pass"
    ),
    manager: SessionManager = Depends(get_session_manager),
    _: bool = Depends(verify_admin_token),
):
    r"""
    Run one expiry sweep pass now.

    Finalizes in_progress attempts whose deadline has passed as
    auto_submitted. Safe to call while the background sweeper is running.

    Requires X-Admin-Token header with valid admin token.

    Example:
        ```
        curl -X POST "https://api.example.com/v1/admin/attempts/sweep" \
          -H "X-Admin-Token: your-admin-token"
        ```
    """
    now = manager.clock.now()
    report = manager.sweep_expired(now=now, limit=limit)
    logger.info(
        f"Manual expiry sweep finalized {report.finalized} of {report.examined} attempt(s)"
    )
    return SweepResponse(
        server_time=now,
        examined=report.examined,
        finalized=report.finalized,
        already_completed=report.already_completed,
        failed=report.failed,
        finalized_ids=report.finalized_ids,
    )
