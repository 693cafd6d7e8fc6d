"""
Class enrollment writes for instructor/admin workflows.
"""
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.db_error_handling import handle_db_error
from app.models.models import ClassEnrollment

logger = logging.getLogger(__name__)


def enroll_student(db: Session, student_id: str, class_id: str) -> bool:
    """
    Enroll a student in a class.

    Returns:
        True if a new enrollment was created, False if it already existed

    Raises:
        Unavailable: On database failure
    """
    context = {"student_id": student_id, "class_id": class_id}
    with handle_db_error(db, "enroll student", context=context):
        existing = db.execute(
            select(ClassEnrollment.id).where(
                ClassEnrollment.student_id == student_id,
                ClassEnrollment.class_id == class_id,
            )
        ).scalar_one_or_none()
        if existing is not None:
            return False

        db.add(ClassEnrollment(student_id=student_id, class_id=class_id))
        try:
            db.commit()
        except IntegrityError:
            # Concurrent enrollment of the same pair
            db.rollback()
            return False

    logger.info(
        f"Enrolled student {student_id} in class {class_id}",
        extra={"student_id": student_id},
    )
    return True
