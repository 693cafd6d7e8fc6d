"""
Class enrollment admin endpoints.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.models import get_db
from app.schemas.admin import EnrollmentRequest, EnrollmentResponse
from app.services.enrollments import enroll_student

from ._dependencies import verify_admin_token

router = APIRouter()


@router.put("/enrollments", response_model=EnrollmentResponse)
def put_enrollment(
    request: EnrollmentRequest,
    db: Session = Depends(get_db),
    _: bool = Depends(verify_admin_token),
):
    """
    Enroll a student in a class. Repeating the call is harmless.

    Requires X-Admin-Token header with valid admin token.
    """
    created = enroll_student(db, request.student_id, request.class_id)
    return EnrollmentResponse(
        student_id=request.student_id,
        class_id=request.class_id,
        created=created,
    )
