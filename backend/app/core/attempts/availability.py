"""
Availability policy: is a test open at a given instant?
"""
from app.core.attempts.domain import TestDefinition, WindowState


def window_state(test: TestDefinition, now: int) -> WindowState:
    """
    Classify ``now`` against the test's availability window.

    Live tests use (join_time, end_time), Flexible tests (opens_at, closes_at).
    Both boundaries are inside the window, so a start at exactly the closing
    second is admitted.

    Args:
        test: The test definition
        now: Server time in epoch seconds

    Returns:
        Exactly one of NOT_YET_OPEN, OPEN or CLOSED
    """
    start, end = test.window_bounds
    if now < start:
        return WindowState.NOT_YET_OPEN
    if now <= end:
        return WindowState.OPEN
    return WindowState.CLOSED
