"""
Error taxonomy for attempt session operations.

Each kind is a distinct exception class so callers can branch on it. The
HTTP layer maps them to status codes with ``http_status`` and reports
``retryable`` to the client.
"""
from typing import Optional


class AttemptSessionError(Exception):
    """Base class for expected attempt session failures."""

    code: str = "attempt_session_error"
    http_status: int = 400
    retryable: bool = False
    default_message: str = "Attempt session operation failed."

    def __init__(self, message: Optional[str] = None, **context):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class WindowClosed(AttemptSessionError):
    """The test is not currently available. Not retryable until the window changes."""

    code = "window_closed"
    http_status = 409
    default_message = "This test is not currently open."

    def __init__(self, message: Optional[str] = None, window_state=None, **context):
        self.window_state = window_state
        super().__init__(message, window_state=window_state, **context)


class QuotaExhausted(AttemptSessionError):
    """All allowed attempts are consumed."""

    code = "quota_exhausted"
    http_status = 409
    default_message = "You have used all allowed attempts for this test."


class AttemptNotActive(AttemptSessionError):
    """Operation on an attempt that is completed or expired."""

    code = "attempt_not_active"
    http_status = 409
    retryable = True
    default_message = (
        "This attempt is no longer active. Refresh the test state to continue."
    )


class NotEnrolled(AttemptSessionError):
    code = "not_enrolled"
    http_status = 403
    default_message = "You are not enrolled in a class this test is assigned to."


class StoreConflict(AttemptSessionError):
    """A concurrent request created the in-progress attempt first."""

    code = "store_conflict"
    http_status = 409
    retryable = True
    default_message = (
        "Another request started this attempt at the same time. Please try again."
    )


class Unavailable(AttemptSessionError):
    """Unexpected store or infrastructure failure."""

    code = "unavailable"
    http_status = 503
    retryable = True
    default_message = "The service is temporarily unavailable. Please try again."


class TestNotFound(AttemptSessionError):
    code = "test_not_found"
    http_status = 404
    default_message = "Test not found."


class AttemptNotFound(AttemptSessionError):
    code = "attempt_not_found"
    http_status = 404
    default_message = "Attempt not found."


class InvalidAnswer(AttemptSessionError):
    """Unknown question id or a payload that does not fit the question kind."""

    code = "invalid_answer"
    http_status = 400
    default_message = "Invalid answer payload."


class AttemptAccessDenied(AttemptSessionError):
    code = "attempt_access_denied"
    http_status = 403
    default_message = "Not authorized to access this attempt."
