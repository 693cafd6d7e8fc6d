"""
FastAPI authentication dependencies.
"""
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from .security import decode_token, verify_token_type
from .error_responses import (
    ErrorMessages,
    raise_unauthorized,
)

# HTTP Bearer token scheme
security = HTTPBearer()


def _decode_and_validate_token(token: str) -> str:
    """
    Decode and validate an access token, returning the student_id.

    Args:
        token: The JWT token string

    Returns:
        The student_id claim as a string

    Raises:
        HTTPException: 401 if token is invalid, wrong type, or missing student_id
    """
    payload = decode_token(token)
    if payload is None:
        raise_unauthorized(ErrorMessages.INVALID_TOKEN)

    if not verify_token_type(payload, "access"):
        raise_unauthorized(ErrorMessages.INVALID_TOKEN_TYPE)

    student_id = payload.get("student_id")
    if student_id is None or str(student_id) == "":
        raise_unauthorized(ErrorMessages.INVALID_TOKEN_PAYLOAD)

    return str(student_id)


async def get_current_student_id(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> str:
    """
    Get the authenticated student's id from the bearer token.

    Args:
        credentials: HTTP Bearer token credentials from request header

    Returns:
        The caller's student_id

    Raises:
        HTTPException: 401 if token is invalid
    """
    return _decode_and_validate_token(credentials.credentials)

