"""
Database error handling utilities.

The SQL-backed attempt store wraps every unit of work in ``handle_db_error``.
It centralizes the common pattern of:
1. Rolling back the database session on error
2. Logging the error with context
3. Raising ``Unavailable`` so callers see one retryable error kind instead of
   driver-specific exceptions

Errors that are already part of the attempt session taxonomy (for example a
lost conditional create translated into ``StoreConflict``) pass through
unchanged.

Usage:
    from app.core.db_error_handling import handle_db_error

    with handle_db_error(db, "create attempt"):
        db.add(row)
        db.commit()
"""

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.attempts.errors import AttemptSessionError, Unavailable


logger = logging.getLogger(__name__)


@contextmanager
def handle_db_error(
    db: Session,
    operation_name: str,
    *,
    log_level: int = logging.ERROR,
    context: Optional[dict] = None,
) -> Generator[None, None, None]:
    """Context manager for store operations.

    Args:
        db: The SQLAlchemy database session to rollback on error.
        operation_name: Human-readable name of the operation for error messages
            and logging (e.g., "create attempt", "upsert answer").
        log_level: Logging level for error messages. Defaults to logging.ERROR.
        context: Optional identifiers to include in the log record
            (e.g., {"attempt_id": 12}).

    Yields:
        None - the context manager is used for its side effects only.

    Raises:
        AttemptSessionError: Re-raised unchanged after rollback.
        Unavailable: On any SQLAlchemyError, with the session rolled back.
    """
    try:
        yield
    except AttemptSessionError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()

        logger.log(
            log_level,
            f"Database error during {operation_name}: {e}",
            exc_info=True,
            extra=context or {},
        )

        raise Unavailable(
            f"Failed to {operation_name}. Please try again.",
            operation=operation_name,
        ) from e
