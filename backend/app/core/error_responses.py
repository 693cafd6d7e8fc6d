"""
Standardized error response messages and builders.

This module provides consistent error messages and HTTPException builders
for the API layer. Attempt session failures are raised as
``AttemptSessionError`` subclasses by the core and rendered by
``attempt_error_payload``; everything the HTTP layer itself rejects
(authentication, admin token, malformed admin input) goes through the
builders below.

Error Message Format Guidelines:
- Use sentence case (capitalize first letter only)
- End with a period for complete sentences
- Use "Please try again." for transient server errors

Usage:
    from app.core.error_responses import ErrorMessages, raise_unauthorized

    if payload is None:
        raise_unauthorized(ErrorMessages.INVALID_TOKEN)
"""

from typing import Any, Dict, NoReturn

from fastapi import HTTPException, status

from app.core.attempts.errors import AttemptSessionError


class ErrorMessages:
    """Centralized error message constants and templates.

    Naming Convention:
    - Constants: SCREAMING_SNAKE_CASE for static messages
    - Methods: snake_case for templates that accept parameters
    """

    # ==========================================================================
    # Authentication Errors (401)
    # ==========================================================================
    INVALID_TOKEN = "Invalid authentication token."
    INVALID_TOKEN_TYPE = "Invalid token type."
    INVALID_TOKEN_PAYLOAD = "Invalid token payload."
    ADMIN_TOKEN_INVALID = "Invalid admin token."

    # ==========================================================================
    # Bad Request Errors (400)
    # ==========================================================================
    LIVE_SCHEDULE_REQUIRED = (
        "Live tests need join_time and end_time, or scheduled_start_time "
        "and duration_minutes."
    )
    FLEXIBLE_WINDOW_REQUIRED = "Flexible tests need opens_at and closes_at."
    DUPLICATE_QUESTION_IDS = "Question ids must be unique within a test."

    # ==========================================================================
    # Configuration Errors (500)
    # ==========================================================================
    ADMIN_TOKEN_NOT_CONFIGURED = "Admin token not configured on server."

    # ==========================================================================
    # Template Methods for Dynamic Messages
    # ==========================================================================
    @staticmethod
    def invalid_timestamp(field_name: str, error: str) -> str:
        """Message for an admin-supplied timestamp that cannot be parsed."""
        return f"Invalid timestamp for {field_name}: {error}"


def attempt_error_payload(exc: AttemptSessionError) -> Dict[str, Any]:
    """JSON body for an attempt session error: detail, error_code, retryable."""
    return {
        "detail": exc.message,
        "error_code": exc.code,
        "retryable": exc.retryable,
    }


# ==============================================================================
# HTTPException Builder Functions
# ==============================================================================


def raise_bad_request(detail: str) -> NoReturn:
    """Raise a 400 Bad Request exception.

    Use for client errors where the request is malformed or invalid.

    Args:
        detail: User-facing error message

    Raises:
        HTTPException: 400 Bad Request
    """
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=detail,
    )


def raise_unauthorized(
    detail: str,
    include_www_authenticate: bool = True,
) -> NoReturn:
    """Raise a 401 Unauthorized exception.

    Use for authentication failures (invalid/missing credentials).

    Args:
        detail: User-facing error message
        include_www_authenticate: Whether to include WWW-Authenticate header

    Raises:
        HTTPException: 401 Unauthorized
    """
    headers = {"WWW-Authenticate": "Bearer"} if include_www_authenticate else None
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers=headers,
    )


def raise_not_configured(detail: str) -> NoReturn:
    """Raise a 500 error for missing server configuration.

    Use when required server configuration (e.g., the admin token) is missing.

    Args:
        detail: Error message describing what's not configured

    Raises:
        HTTPException: 500 Internal Server Error
    """
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=detail,
    )
