"""
Graceful failure utilities.

This module provides a reusable context manager for handling non-critical
operations that should not block the main execution flow. It centralizes
the common "graceful degradation" pattern of:
1. Attempting an operation
2. Logging any exceptions with context
3. Continuing execution without raising

This is distinct from `db_error_handling.py` which handles store errors that
must reach the caller.

Usage:
    from app.core.graceful_failure import graceful_failure

    # Scoring runs after the attempt is already finalized:
    with graceful_failure("score attempt", logger, context={"attempt_id": 7}):
        result = scorer.score(test, attempt, answers)

    # With custom log level (default is WARNING) and stack trace:
    with graceful_failure("run expiry sweep", logger, log_level=logging.ERROR, exc_info=True):
        manager.sweep_expired()
"""

import logging
from contextlib import contextmanager
from typing import Any, Generator, Optional

from app.observability import metrics


@contextmanager
def graceful_failure(
    operation_name: str,
    logger: logging.Logger,
    *,
    log_level: int = logging.WARNING,
    exc_info: bool = False,
    context: Optional[dict[str, Any]] = None,
) -> Generator[None, None, None]:
    """Context manager for non-critical operations that should not block execution.

    This context manager provides a standard pattern for graceful degradation:
    1. Execute the wrapped code
    2. On exception: log the error with context and continue

    Unlike `handle_db_error`, this does NOT:
    - Raise an error to the caller
    - Rollback the database session
    - Stop execution

    Use this for follow-up work whose failure must not undo the primary
    operation (e.g., scoring a finalized attempt, one periodic sweep pass).

    Args:
        operation_name: Human-readable name of the operation for logging
            (e.g., "score attempt").
        logger: The logger instance to use for logging errors.
        log_level: Logging level for error messages. Defaults to WARNING.
        exc_info: Whether to include exception traceback in log. Defaults to False.
        context: Optional dictionary of additional context to include in the log
            message and record (e.g., {"attempt_id": 123}).

    Yields:
        None - the context manager is used for its side effects only.
    """
    try:
        yield
    except Exception as e:
        if context:
            context_str = ", ".join(f"{k}={v}" for k, v in context.items())
            message = f"Failed to {operation_name} ({context_str}): {e}"
        else:
            message = f"Failed to {operation_name}: {e}"

        logger.log(log_level, message, exc_info=exc_info, extra=context or {})

        # Metrics recording must not break graceful failure handling
        try:
            metrics.record_error(error_type="GracefulFailure")
        except Exception as metric_error:
            logger.debug(f"Failed to record graceful failure metric: {metric_error}")
